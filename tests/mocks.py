import asyncio

from ddg_server.tools import ToolCallContext
from ddg_server.web_search import WEB_SEARCH_URL, IMAGE_PAGE_URL, IMAGE_RESULTS_URL

VQD_PAGE = '<html><script>DDG.deep.initialize("/d.js?q=cats&vqd="4-1234567890");vqd="4-1234567890"</script></html>'

class MockResponse:
    def __init__(self, status=200, text="", json_data=None, body=None, headers=None, reason="OK", hang=False,
                 text_error=None):
        self.status = status
        self.reason = reason
        self.headers = headers or {}
        self._text = text
        self._json = json_data
        self._body = body
        self._hang = hang
        self._text_error = text_error

    async def __aenter__(self):
        if self._hang:
            await asyncio.sleep(30)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        pass

    async def text(self):
        if self._text_error:
            raise self._text_error
        return self._text

    async def json(self, content_type="application/json"):
        return self._json

    async def read(self):
        return self._body if self._body is not None else self._text.encode()

class MockSession:
    """Stands in for aiohttp.ClientSession, answering from a URL -> response table"""

    def __init__(self, routes, calls):
        self.routes = routes
        self.calls = calls

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        pass

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params or {}, "headers": headers or {}})
        if url not in self.routes:
            return MockResponse(status=404, reason="Not Found")
        return self.routes[url]

class FakeDuckDuckGo:
    def __init__(self):
        self.routes = {}
        self.calls = []

    def session(self, *args, **kwargs):
        return MockSession(self.routes, self.calls)

    def serve_web(self, html, **kwargs):
        self.routes[WEB_SEARCH_URL] = MockResponse(text=html, **kwargs)

    def serve_images(self, results, page=VQD_PAGE):
        self.routes[IMAGE_PAGE_URL] = MockResponse(text=page)
        self.routes[IMAGE_RESULTS_URL] = MockResponse(json_data={"results": results})

    def calls_to(self, url):
        return [call for call in self.calls if call["url"] == url]

class SinkRecorder:
    def __init__(self):
        self.statuses = []
        self.warnings = []

    async def status(self, message):
        self.statuses.append(message)

    async def warn(self, message):
        self.warnings.append(message)

    def context(self, **kwargs):
        kwargs.setdefault("config", {"page_size": "auto", "safe_search": "auto"})
        return ToolCallContext(status=self.status, warn=self.warn, **kwargs)

class FakeClock:
    """Clock whose sleep advances time instantly"""

    def __init__(self, start=100.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
