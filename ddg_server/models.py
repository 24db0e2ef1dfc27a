from enum import Enum
from pydantic import BaseModel, Field, validator
from typing import List, Optional

class SafeSearch(str, Enum):
    STRICT = "strict"
    MODERATE = "moderate"
    OFF = "off"

class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Search query")
    results_per_page: int = Field(default=5, ge=1, le=100, description="Results per page")
    safe_search: SafeSearch = Field(default=SafeSearch.MODERATE, description="Safe search level")
    page: int = Field(default=1, ge=1, description="1-based page number")

    @property
    def offset(self) -> int:
        """Index of the first result on this page."""
        return self.results_per_page * (self.page - 1)

class SearchResultLink(BaseModel):
    label: str
    url: str = Field(..., description="Valid HTTP/HTTPS URL")

    @validator('url')
    def validate_url(cls, v):
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v

class WebSearchResponse(BaseModel):
    links: List[SearchResultLink]
    query: str
    count: int
    response_time_ms: float

class ImageResult(BaseModel):
    source_url: str
    local_path: Optional[str] = None

class ImageSearchResponse(BaseModel):
    images: List[ImageResult]
    query: str
    count: int
    response_time_ms: float
