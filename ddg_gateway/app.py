import logging
from typing import Any, Dict, List, Literal, Optional, Union

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, Field

from ddg_server.config import settings
from ddg_server.tools import SearchToolsProvider, ToolCallContext

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# FastAPI Request/Response Models
class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=500, description="Search query")
    page_size: Optional[int] = Field(default=None, ge=1, le=10, description="Number of results")
    safe_search: Optional[Literal["strict", "moderate", "off"]] = Field(default=None, description="Safe search setting")
    page: int = Field(default=1, ge=1, le=100, description="Page number for pagination")

class WebSearchResult(BaseModel):
    links: List[List[str]]
    count: int

class SearchResponse(BaseModel):
    status: str
    result: Optional[Union[WebSearchResult, List[str]]] = None
    message: Optional[str] = None

class HealthResponse(BaseModel):
    status: str
    rate_limit_interval: float

# Global tools provider; both endpoints share its rate limiter
provider = SearchToolsProvider()

def to_response(outcome: Union[Dict[str, Any], List[str], str]) -> SearchResponse:
    """Tool outcomes that are plain strings are messages, not results"""
    if isinstance(outcome, str):
        logger.info(f"Search returned a message: {outcome}")
        return SearchResponse(status="error", message=outcome)
    return SearchResponse(status="success", result=outcome)

# Create FastAPI app
app = FastAPI(
    title="DuckDuckGo Search Gateway",
    description="HTTP gateway for the DuckDuckGo web and image search tools",
    version="1.0.0"
)

@app.post("/search/web", response_model=SearchResponse)
async def search_web(request: SearchRequest) -> SearchResponse:
    """Perform a web search"""
    outcome = await provider.web_search(
        request.query,
        page_size=request.page_size,
        safe_search=request.safe_search,
        page=request.page,
        context=ToolCallContext(working_directory=settings.download_directory),
    )
    return to_response(outcome)

@app.post("/search/images", response_model=SearchResponse)
async def search_images(request: SearchRequest) -> SearchResponse:
    """Perform an image search"""
    outcome = await provider.image_search(
        request.query,
        page_size=request.page_size,
        safe_search=request.safe_search,
        page=request.page,
        context=ToolCallContext(working_directory=settings.download_directory),
    )
    return to_response(outcome)

@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Report gateway health"""
    return HealthResponse(
        status="healthy",
        rate_limit_interval=provider.rate_limiter.min_interval
    )

@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "DuckDuckGo Search Gateway",
        "version": "1.0.0",
        "endpoints": {
            "web_search": "POST /search/web",
            "image_search": "POST /search/images",
            "health": "GET /health"
        }
    }

if __name__ == "__main__":
    import os
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(
        "ddg_gateway.app:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        log_level="info"
    )
