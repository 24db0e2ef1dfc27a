import os
import random
import sys

# Add project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from ddg_server.rate_limiter import RateLimiter
from ddg_server.tools import SearchToolsProvider
from ddg_server.web_search import DuckDuckGoSearchTool
from mocks import FakeDuckDuckGo, SinkRecorder

@pytest.fixture
def ddg(monkeypatch):
    """Mock DuckDuckGo for reliable tests."""
    import ddg_server.web_search

    fake = FakeDuckDuckGo()
    monkeypatch.setattr(ddg_server.web_search.aiohttp, "ClientSession", fake.session)
    yield fake

@pytest.fixture
def search_tool():
    return DuckDuckGoSearchTool(
        rate_limiter=RateLimiter(min_interval=0),
        token_settle_delay=0,
        rng=random.Random(7),
    )

@pytest.fixture
def provider(search_tool):
    return SearchToolsProvider(search_tool, download_images=True)

@pytest.fixture
def sinks():
    return SinkRecorder()
