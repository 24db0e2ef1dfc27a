import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Coroutine, Dict, List, Mapping, Optional, TypeVar, Union
from pydantic import ValidationError
from ddg_server.config import settings, AUTO
from ddg_server.extract import NO_WEB_RESULTS, NO_IMAGE_RESULTS
from ddg_server.models import SafeSearch, SearchRequest
from ddg_server.rate_limiter import RateLimiter
from ddg_server.web_search import (
    DuckDuckGoSearchTool, WebSearchError, WebSearchAPIError, SessionTokenError, SearchAbortedError
)

logger = logging.getLogger(__name__)

ABORTED = "Search aborted by user."
DEFAULT_PAGE_SIZE = 5
DEFAULT_SAFE_SEARCH = SafeSearch.MODERATE

T = TypeVar("T")
Sink = Callable[[str], Awaitable[None]]

async def log_status(message: str) -> None:
    logger.info(message)

async def log_warning(message: str) -> None:
    logger.warning(message)

def settings_config() -> Dict[str, Any]:
    return {"page_size": settings.page_size, "safe_search": settings.safe_search}

@dataclass
class ToolCallContext:
    """What the host hands to each tool invocation"""
    status: Sink = log_status
    warn: Sink = log_warning
    cancel_event: Optional[asyncio.Event] = None
    config: Mapping[str, Any] = field(default_factory=settings_config)
    working_directory: Optional[str] = None

def resolve_option(call_value: Any, config_value: Any, default: Any) -> Any:
    """A host config value other than "auto" beats the per-call argument."""
    if config_value is not None and config_value != AUTO:
        return config_value
    if call_value is not None:
        return call_value
    return default

async def run_cancellable(coro: Coroutine[Any, Any, T], cancel_event: Optional[asyncio.Event]) -> T:
    """
    Await ``coro`` unless ``cancel_event`` fires first

    Raises:
        SearchAbortedError: If the event is set before the work finishes
    """
    if cancel_event is None:
        return await coro
    if cancel_event.is_set():
        coro.close()
        raise SearchAbortedError(ABORTED)

    work = asyncio.ensure_future(coro)
    abort = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({work, abort}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        abort.cancel()
        if not work.done():
            work.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await work

    if work.cancelled():
        raise SearchAbortedError(ABORTED)
    return work.result()

class SearchToolsProvider:
    """Web and image search tools sharing one rate limiter"""

    def __init__(
        self,
        search_tool: Optional[DuckDuckGoSearchTool] = None,
        download_images: Optional[bool] = None,
    ):
        self.search_tool = search_tool or DuckDuckGoSearchTool()
        self.download_images = settings.download_images if download_images is None else download_images

    @property
    def rate_limiter(self) -> RateLimiter:
        return self.search_tool.rate_limiter

    def build_request(
        self,
        query: str,
        page_size: Optional[int],
        safe_search: Optional[Union[str, SafeSearch]],
        page: Optional[int],
        context: ToolCallContext,
    ) -> SearchRequest:
        return SearchRequest(
            query=query,
            results_per_page=resolve_option(page_size, context.config.get("page_size"), DEFAULT_PAGE_SIZE),
            safe_search=resolve_option(safe_search, context.config.get("safe_search"), DEFAULT_SAFE_SEARCH),
            page=page or 1,
        )

    async def web_search(
        self,
        query: str,
        page_size: Optional[int] = None,
        safe_search: Optional[Union[str, SafeSearch]] = None,
        page: Optional[int] = 1,
        context: Optional[ToolCallContext] = None,
    ) -> Union[Dict[str, Any], str]:
        """
        Search DuckDuckGo for web pages

        Returns:
            ``{"links": [[label, url], ...], "count": n}`` or a descriptive string
        """
        context = context or ToolCallContext()
        await context.status("Initiating DuckDuckGo web search...")
        try:
            request = self.build_request(query, page_size, safe_search, page, context)
            response = await run_cancellable(self.search_tool.search(request), context.cancel_event)
        except (WebSearchError, ValidationError) as e:
            return await self._failure(e, context)
        except Exception as e:
            logger.error(f"Unexpected error during search: {str(e)}", exc_info=True)
            return await self._failure(e, context)

        if response.count == 0:
            return NO_WEB_RESULTS

        await context.status(f"Found {response.count} web pages.")
        return {
            "links": [[link.label, link.url] for link in response.links],
            "count": response.count,
        }

    async def image_search(
        self,
        query: str,
        page_size: Optional[int] = None,
        safe_search: Optional[Union[str, SafeSearch]] = None,
        page: Optional[int] = 1,
        context: Optional[ToolCallContext] = None,
    ) -> Union[List[str], str]:
        """
        Search DuckDuckGo for images

        Returns:
            Local file paths of the downloaded images, the image URLs when
            nothing was downloaded, or a descriptive string
        """
        context = context or ToolCallContext()
        await context.status("Initiating DuckDuckGo image search...")
        working_directory = None
        if self.download_images:
            working_directory = context.working_directory or settings.download_directory

        try:
            request = self.build_request(query, page_size, safe_search, page, context)
            response = await run_cancellable(
                self.search_tool.search_images(request, working_directory), context.cancel_event
            )
        except (WebSearchError, ValidationError) as e:
            return await self._failure(e, context)
        except Exception as e:
            logger.error(f"Unexpected error during search: {str(e)}", exc_info=True)
            return await self._failure(e, context)

        if response.count == 0:
            return NO_IMAGE_RESULTS

        await context.status(f"Found {response.count} images.")
        return [image.local_path or image.source_url for image in response.images]

    async def _failure(self, error: Exception, context: ToolCallContext) -> str:
        if isinstance(error, SearchAbortedError):
            return ABORTED
        if isinstance(error, SessionTokenError):
            await context.warn("Failed to extract vqd token.")
        elif isinstance(error, WebSearchAPIError):
            await context.warn(str(error))
        else:
            logger.error(f"Search failed: {str(error)}")
            await context.warn(f"Error during search: {str(error)}")
        return f"Error: {str(error)}"
