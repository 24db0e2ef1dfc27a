import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from mcp.server.fastmcp import FastMCP, Context
from pydantic import Field
from ddg_server.config import settings
from ddg_server.tools import SearchToolsProvider, ToolCallContext

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

PageSize = Optional[Annotated[int, Field(ge=1, le=10, description="Number of results to return")]]
SafeSearchLevel = Optional[Literal["strict", "moderate", "off"]]
Page = Annotated[int, Field(ge=1, le=100, description="Page number for pagination")]

def tool_context(ctx: Optional[Context]) -> ToolCallContext:
    """Route status and warnings to the MCP client when a request context exists."""
    if ctx is None:
        return ToolCallContext()
    return ToolCallContext(status=ctx.info, warn=ctx.warning)

class MCPServer:
    """MCP Server that exposes DuckDuckGo web and image search"""

    def __init__(self, provider: Optional[SearchToolsProvider] = None):
        self.provider = provider or SearchToolsProvider()
        self.server = FastMCP("duckduckgo-search-server")
        self._setup_tools()

    def _setup_tools(self):
        """Register MCP tools with the server"""

        @self.server.tool(
            name="web_search",
            title="Web Search",
            description="Search for web pages on DuckDuckGo using a query string and return a list of URLs."
        )
        async def web_search(
            query: str,
            page_size: PageSize = None,
            safe_search: SafeSearchLevel = None,
            page: Page = 1,
            ctx: Context = None
        ) -> Union[Dict[str, Any], str]:
            """
            Search the web using DuckDuckGo

            Args:
                query: The search query for finding web pages
                page_size: Number of results (1-10, default: 5)
                safe_search: strict, moderate or off (default: moderate)
                page: Page number for pagination (default: 1)

            Returns:
                Dictionary with [label, url] pairs and their count, or a message
            """
            logger.info(f"Web search request received: query='{query}', page_size={page_size}, page={page}")
            return await self.provider.web_search(
                query, page_size=page_size, safe_search=safe_search, page=page, context=tool_context(ctx)
            )

        @self.server.tool(
            name="image_search",
            title="Image Search",
            description=(
                "Search for images on DuckDuckGo using a query string and return a list of image paths or URLs. "
                "Images are downloaded only when DDG_DOWNLOAD_DIRECTORY is set; otherwise URLs are returned."
            )
        )
        async def image_search(
            query: str,
            page_size: PageSize = None,
            safe_search: SafeSearchLevel = None,
            page: Page = 1,
            ctx: Context = None
        ) -> Union[List[str], str]:
            """
            Search for images using DuckDuckGo

            MCP requests carry no working directory, so images are downloaded
            only when DDG_DOWNLOAD_DIRECTORY is set (and DDG_DOWNLOAD_IMAGES is
            true). The files go there and their paths are returned; otherwise
            the image URLs are returned.

            Args:
                query: The search query for finding images
                page_size: Number of results (1-10, default: 5)
                safe_search: strict, moderate or off (default: moderate)
                page: Page number for pagination (default: 1)
            """
            logger.info(f"Image search request received: query='{query}', page_size={page_size}, page={page}")
            return await self.provider.image_search(
                query, page_size=page_size, safe_search=safe_search, page=page, context=tool_context(ctx)
            )

    def run(self):
        """Run the MCP server using stdio communication"""
        logger.info("Starting MCP DuckDuckGo search server...")

        try:
            self.server.run(transport="stdio")
        except Exception as e:
            logger.error(f"Failed to start MCP server: {str(e)}", exc_info=True)
            raise

def main():
    """Main entry point for the MCP server"""
    server = MCPServer()

    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("MCP server stopped by user")
    except Exception as e:
        logger.error(f"MCP server failed: {str(e)}", exc_info=True)
        exit(1)

if __name__ == "__main__":
    main()
