import re
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlsplit
from ddg_server.models import SearchResultLink

logger = logging.getLogger(__name__)

NO_WEB_RESULTS = "No web pages found for the query."
NO_IMAGE_RESULTS = "No images found for the query."

# href may wrap the target in a redirect, so take the last absolute URL in it
LINK_PATTERN = re.compile(r'\shref="[^"]*(https?[^?&"]+)[^>]*>([^<]*)', re.MULTILINE)
VQD_PATTERN = re.compile(r'vqd=(?:"([^"]+)"|\'([^\']+)\'|([\d-]+)&)')
IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".gif")

def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()

def extract_links(html: str, max_results: int) -> List[SearchResultLink]:
    """
    Extract result links from a DuckDuckGo HTML results page

    Args:
        html: Raw response body
        max_results: Upper bound on the number of links returned

    Returns:
        Links in page order, deduplicated by URL (first occurrence wins)
    """
    links: List[SearchResultLink] = []
    seen = set()
    for match in LINK_PATTERN.finditer(html):
        if len(links) >= max_results:
            break
        url = unquote(match.group(1))
        if not url.startswith(("http://", "https://")) or url in seen:
            continue
        seen.add(url)
        links.append(SearchResultLink(label=collapse_whitespace(match.group(2)), url=url))
    return links

def extract_vqd(html: str) -> Optional[str]:
    """Find the session token DuckDuckGo embeds in its search page."""
    match = VQD_PATTERN.search(html)
    if not match:
        return None
    return next(group for group in match.groups() if group)

def is_image_url(url: str) -> bool:
    return urlsplit(url).path.lower().endswith(IMAGE_SUFFIXES)

def extract_image_urls(payload: Dict[str, Any], max_results: int) -> List[str]:
    """
    Pick image URLs out of an i.js results payload

    The candidate list is truncated to ``max_results`` before filtering, so
    fewer URLs than requested may come back.
    """
    candidates = payload.get("results") or []
    if not isinstance(candidates, list):
        logger.warning("Invalid response format: 'results' field is not a list")
        return []

    urls = []
    for entry in candidates[:max_results]:
        url = entry.get("image") if isinstance(entry, dict) else None
        if isinstance(url, str) and is_image_url(url):
            urls.append(url)
    return urls
