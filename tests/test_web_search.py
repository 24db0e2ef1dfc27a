import pytest

from ddg_server.config import Settings
from ddg_server.headers import USER_AGENTS
from ddg_server.models import SafeSearch, SearchRequest
from ddg_server.rate_limiter import RateLimiter
from ddg_server.web_search import (
    DuckDuckGoSearchTool, build_web_params, build_image_params, build_image_page_params,
    WebSearchAPIError, SessionTokenError, WebSearchError,
    WEB_SEARCH_URL, IMAGE_PAGE_URL, IMAGE_RESULTS_URL,
)
from mocks import MockResponse

def test_moderate_first_page_sends_only_query():
    request = SearchRequest(query="cats", results_per_page=5, safe_search="moderate", page=1)
    assert build_web_params(request) == {"q": "cats"}

@pytest.mark.parametrize("level,flag", [(SafeSearch.STRICT, "1"), (SafeSearch.OFF, "-1")])
def test_safe_search_flag(level, flag):
    request = SearchRequest(query="cats", safe_search=level)
    assert build_web_params(request)["p"] == flag

def test_offset_only_after_first_page():
    request = SearchRequest(query="cats", results_per_page=7, page=3)
    assert request.offset == 14
    assert build_web_params(request) == {"q": "cats", "s": "14"}

def test_image_params():
    request = SearchRequest(query="cats", results_per_page=4, safe_search="off", page=2)
    assert build_image_page_params(request) == {"q": "cats", "iax": "images", "ia": "images"}
    assert build_image_params(request, "4-123", "us-en") == {
        "q": "cats",
        "o": "json",
        "l": "us-en",
        "vqd": "4-123",
        "f": ",,,,,",
        "p": "-1",
        "s": "4",
    }

@pytest.mark.asyncio
async def test_search_sends_spoofed_headers(ddg, search_tool):
    ddg.serve_web('<a href="https://example.com/cats">Cats</a>')

    response = await search_tool.search(SearchRequest(query="cats", results_per_page=3, safe_search="strict"))

    assert response.count == 1
    assert response.links[0].url == "https://example.com/cats"
    call = ddg.calls_to(WEB_SEARCH_URL)[0]
    assert call["params"] == {"q": "cats", "p": "1"}
    assert call["headers"]["User-Agent"] in USER_AGENTS

@pytest.mark.asyncio
async def test_search_non_200_raises_api_error(ddg, search_tool):
    ddg.routes[WEB_SEARCH_URL] = MockResponse(status=503, reason="Service Unavailable")

    with pytest.raises(WebSearchAPIError) as excinfo:
        await search_tool.search(SearchRequest(query="cats"))

    assert excinfo.value.status == 503
    assert str(excinfo.value) == "Failed to fetch search results: Service Unavailable"

@pytest.mark.asyncio
async def test_image_search_requires_token(ddg, search_tool):
    ddg.serve_images([], page="<html>nothing</html>")

    with pytest.raises(SessionTokenError):
        await search_tool.search_images(SearchRequest(query="cats"))

    assert ddg.calls_to(IMAGE_RESULTS_URL) == []

@pytest.mark.asyncio
async def test_image_search_passes_token(ddg, search_tool):
    ddg.serve_images([{"image": "https://img.example.com/a.jpg"}])

    response = await search_tool.search_images(SearchRequest(query="cats", results_per_page=2))

    assert [image.source_url for image in response.images] == ["https://img.example.com/a.jpg"]
    assert response.images[0].local_path is None
    assert ddg.calls_to(IMAGE_RESULTS_URL)[0]["params"]["vqd"] == "4-1234567890"
    assert len(ddg.calls_to(IMAGE_PAGE_URL)) == 1

@pytest.mark.asyncio
async def test_image_search_rejects_non_object_payload(ddg, search_tool):
    ddg.serve_images([])
    ddg.routes[IMAGE_RESULTS_URL] = MockResponse(json_data=["not", "an", "object"])

    with pytest.raises(WebSearchError, match="Failed to parse API response"):
        await search_tool.search_images(SearchRequest(query="cats"))

@pytest.mark.asyncio
async def test_undecodable_body_becomes_search_error(ddg, search_tool):
    ddg.routes[WEB_SEARCH_URL] = MockResponse(
        text_error=UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
    )

    with pytest.raises(WebSearchError, match="Unexpected error"):
        await search_tool.search(SearchRequest(query="cats"))

@pytest.mark.asyncio
async def test_token_settle_delay_between_token_and_results(ddg):
    ddg.serve_images([{"image": "https://img.example.com/a.jpg"}])
    pauses = []

    async def record_sleep(seconds):
        pauses.append((seconds, [call["url"] for call in ddg.calls]))

    tool = DuckDuckGoSearchTool(rate_limiter=RateLimiter(min_interval=0), token_settle_delay=1.0, sleep=record_sleep)
    await tool.search_images(SearchRequest(query="cats"))

    assert pauses == [(1.0, [IMAGE_PAGE_URL])]
    assert [call["url"] for call in ddg.calls] == [IMAGE_PAGE_URL, IMAGE_RESULTS_URL]

def test_token_settle_delay_defaults_to_one_second():
    assert Settings.model_fields["token_settle_delay"].default == 1.0
    assert Settings.model_fields["min_request_interval"].default == 2.0

@pytest.mark.asyncio
async def test_search_tool_uses_configured_settle_delay(ddg, monkeypatch):
    import ddg_server.web_search

    monkeypatch.setattr(ddg_server.web_search.settings, "token_settle_delay", 1.0)
    ddg.serve_images([])
    pauses = []

    async def record_sleep(seconds):
        pauses.append(seconds)

    tool = DuckDuckGoSearchTool(rate_limiter=RateLimiter(min_interval=0), sleep=record_sleep)
    await tool.search_images(SearchRequest(query="cats"))

    assert pauses == [1.0]
