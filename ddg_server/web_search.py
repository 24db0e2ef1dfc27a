import asyncio
import aiohttp
import random
import time
from typing import Optional, Dict, Any, Awaitable, Callable
from ddg_server.models import (
    SafeSearch, SearchRequest, WebSearchResponse, ImageSearchResponse, ImageResult
)
from ddg_server.config import settings
from ddg_server.downloader import ImageDownloader
from ddg_server.extract import extract_links, extract_vqd, extract_image_urls
from ddg_server.headers import spoof_headers
from ddg_server.rate_limiter import RateLimiter
import logging

logger = logging.getLogger(__name__)

WEB_SEARCH_URL = "https://duckduckgo.com/html/"
IMAGE_PAGE_URL = "https://duckduckgo.com/"
IMAGE_RESULTS_URL = "https://duckduckgo.com/i.js"

class WebSearchError(Exception):
    """Base exception for web search errors"""
    pass

class WebSearchTimeoutError(WebSearchError):
    """Raised when the search request times out"""
    pass

class WebSearchAPIError(WebSearchError):
    """Raised when DuckDuckGo answers with a non-success status"""

    def __init__(self, stage: str, status: int, reason: Optional[str]):
        self.stage = stage
        self.status = status
        self.reason = reason or f"HTTP {status}"
        super().__init__(f"Failed to fetch {stage}: {self.reason}")

class SessionTokenError(WebSearchError):
    """Raised when the vqd token cannot be found in the search page"""
    pass

class SearchAbortedError(WebSearchError):
    """Raised when the caller cancels a search in flight"""
    pass

def pagination_params(request: SearchRequest) -> Dict[str, str]:
    """Safe search flag and start offset shared by both endpoints."""
    params = {}
    if request.safe_search != SafeSearch.MODERATE:
        params["p"] = "1" if request.safe_search == SafeSearch.STRICT else "-1"
    if request.page > 1:
        params["s"] = str(request.offset)
    return params

def build_web_params(request: SearchRequest) -> Dict[str, str]:
    return {"q": request.query, **pagination_params(request)}

def build_image_page_params(request: SearchRequest) -> Dict[str, str]:
    return {"q": request.query, "iax": "images", "ia": "images"}

def build_image_params(request: SearchRequest, vqd: str, locale: str) -> Dict[str, str]:
    params = {
        "q": request.query,
        "o": "json",
        "l": locale,
        "vqd": vqd,
        "f": ",,,,,",
    }
    params.update(pagination_params(request))
    return params

class DuckDuckGoSearchTool:
    """Scrapes DuckDuckGo web and image results"""

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        downloader: Optional[ImageDownloader] = None,
        timeout: Optional[int] = None,
        token_settle_delay: Optional[float] = None,
        locale: Optional[str] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.rate_limiter = rate_limiter or RateLimiter(settings.min_request_interval)
        self.downloader = downloader or ImageDownloader(timeout=self.timeout)
        self.token_settle_delay = (
            token_settle_delay if token_settle_delay is not None else settings.token_settle_delay
        )
        self.locale = locale or settings.locale
        self.rng = rng
        self._sleep = sleep

    async def search(self, request: SearchRequest) -> WebSearchResponse:
        """
        Perform a web search against the DuckDuckGo HTML endpoint

        Args:
            request: SearchRequest with query, page size, safe search and page

        Returns:
            WebSearchResponse with deduplicated links

        Raises:
            WebSearchError: For various search-related errors
        """
        await self.rate_limiter.wait_if_needed()
        start_time = time.time()

        async with aiohttp.ClientSession() as session:
            html = await self._get_text(session, WEB_SEARCH_URL, build_web_params(request), "search results")

        links = extract_links(html, request.results_per_page)
        logger.info(f"Extracted {len(links)} links for query '{request.query}'")

        return WebSearchResponse(
            links=links,
            query=request.query,
            count=len(links),
            response_time_ms=(time.time() - start_time) * 1000
        )

    async def search_images(
        self,
        request: SearchRequest,
        working_directory: Optional[str] = None,
    ) -> ImageSearchResponse:
        """
        Perform an image search and optionally download the results

        The results endpoint needs a vqd token, so the search page is fetched
        first and the token scraped from it.

        Args:
            request: SearchRequest with query, page size, safe search and page
            working_directory: Where to save images; None skips downloading

        Returns:
            ImageSearchResponse; entries carry a local path when downloaded

        Raises:
            SessionTokenError: If the search page has no vqd token
            WebSearchError: For various search-related errors
        """
        await self.rate_limiter.wait_if_needed()
        start_time = time.time()

        async with aiohttp.ClientSession() as session:
            page = await self._get_text(
                session, IMAGE_PAGE_URL, build_image_page_params(request), "initial response"
            )
            vqd = extract_vqd(page)
            if not vqd:
                raise SessionTokenError("Unable to extract vqd token.")

            await self._sleep(self.token_settle_delay)

            data = await self._get_json(
                session, IMAGE_RESULTS_URL, build_image_params(request, vqd, self.locale), "image results"
            )
            urls = extract_image_urls(data, request.results_per_page)
            logger.info(f"Extracted {len(urls)} image URLs for query '{request.query}'")

            images = [ImageResult(source_url=url) for url in urls]
            if urls and working_directory:
                try:
                    downloaded = await self.downloader.download_all(session, urls, working_directory)
                except OSError as e:
                    raise WebSearchError(f"Cannot save images to {working_directory}: {str(e)}")
                if downloaded:
                    images = downloaded
                else:
                    logger.warning("All image downloads failed, returning source URLs")

        return ImageSearchResponse(
            images=images,
            query=request.query,
            count=len(images),
            response_time_ms=(time.time() - start_time) * 1000
        )

    async def _get_text(
        self,
        session: aiohttp.ClientSession,
        url: str,
        params: Dict[str, str],
        stage: str,
    ) -> str:
        try:
            async with session.get(
                url,
                params=params,
                headers=spoof_headers(self.rng),
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status != 200:
                    raise WebSearchAPIError(stage, response.status, response.reason)
                return await response.text()
        except WebSearchError:
            raise
        except asyncio.TimeoutError:
            raise WebSearchTimeoutError(f"Request timed out after {self.timeout} seconds")
        except aiohttp.ClientError as e:
            raise WebSearchError(f"Network error: {str(e)}")
        except Exception as e:
            logger.error(f"Unexpected error during {stage} request: {str(e)}")
            raise WebSearchError(f"Unexpected error: {str(e)}")

    async def _get_json(
        self,
        session: aiohttp.ClientSession,
        url: str,
        params: Dict[str, str],
        stage: str,
    ) -> Dict[str, Any]:
        try:
            async with session.get(
                url,
                params=params,
                headers=spoof_headers(self.rng),
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status != 200:
                    raise WebSearchAPIError(stage, response.status, response.reason)
                # i.js is served as application/x-javascript
                data = await response.json(content_type=None)
        except WebSearchError:
            raise
        except asyncio.TimeoutError:
            raise WebSearchTimeoutError(f"Request timed out after {self.timeout} seconds")
        except aiohttp.ClientError as e:
            raise WebSearchError(f"Network error: {str(e)}")
        except ValueError as e:
            raise WebSearchError(f"Failed to parse API response: {str(e)}")
        except Exception as e:
            logger.error(f"Unexpected error during {stage} request: {str(e)}")
            raise WebSearchError(f"Unexpected error: {str(e)}")

        if not isinstance(data, dict):
            raise WebSearchError("Failed to parse API response: expected a JSON object")
        return data
