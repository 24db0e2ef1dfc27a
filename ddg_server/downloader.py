import asyncio
import aiohttp
import logging
import re
import time
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional
from urllib.parse import urlsplit
from ddg_server.headers import spoof_headers
from ddg_server.models import ImageResult

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"
EXTENSION_ALIASES = {"jpeg": "jpg", "svg+xml": "svg", "x-icon": "ico"}
# Extensions end up in file names, so no separators or dots
SAFE_EXTENSION = re.compile(r"[a-z0-9+-]+")
DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")

def _safe_extension(candidate: str) -> Optional[str]:
    extension = EXTENSION_ALIASES.get(candidate, candidate)
    return extension if SAFE_EXTENSION.fullmatch(extension) else None

def extension_for(content_type: Optional[str], url: str) -> str:
    """Pick a file extension from the Content-Type header, then the URL path."""
    if content_type:
        mime = content_type.split(";", 1)[0].strip().lower()
        if mime.startswith("image/"):
            extension = _safe_extension(mime[len("image/"):])
            if extension:
                return extension

    suffix = PurePosixPath(urlsplit(url).path).suffix.lstrip(".").lower()
    return _safe_extension(suffix) or DEFAULT_EXTENSION

def to_caller_path(path: Path) -> str:
    """Forward slashes only, no Windows drive letter."""
    return DRIVE_PREFIX.sub("", str(path).replace("\\", "/"))

class ImageDownloader:
    """Downloads search result images into a working directory"""

    def __init__(self, timeout: int = 30, clock: Callable[[], float] = time.time):
        self.timeout = timeout
        self._clock = clock

    async def download_all(
        self,
        session: aiohttp.ClientSession,
        urls: List[str],
        working_directory: str,
    ) -> List[ImageResult]:
        """
        Download every URL concurrently

        Args:
            session: Open client session used for all downloads
            urls: Image URLs in result order
            working_directory: Directory the files are written to

        Returns:
            Successfully downloaded images, in result order. Failed entries
            are logged and left out.

        Raises:
            OSError: If the working directory cannot be created

        Files already written are removed again if the call is cancelled.
        """
        directory = Path(working_directory)
        directory.mkdir(parents=True, exist_ok=True)
        # One timestamp per call keeps the files of a search together
        timestamp = int(self._clock() * 1000)
        written: List[Path] = []

        try:
            outcomes = await asyncio.gather(*(
                self._download_one(session, url, directory, f"{timestamp}-{index}", written)
                for index, url in enumerate(urls, start=1)
            ))
        except asyncio.CancelledError:
            for path in written:
                path.unlink(missing_ok=True)
            logger.info(f"Download cancelled, removed {len(written)} saved images")
            raise
        return [outcome for outcome in outcomes if outcome is not None]

    async def _download_one(
        self,
        session: aiohttp.ClientSession,
        url: str,
        directory: Path,
        stem: str,
        written: List[Path],
    ) -> Optional[ImageResult]:
        try:
            async with session.get(
                url,
                headers=spoof_headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                if response.status != 200:
                    logger.warning(f"Skipping image {url}: HTTP {response.status}")
                    return None
                body = await response.read()
                content_type = response.headers.get("Content-Type")
        except asyncio.TimeoutError:
            logger.warning(f"Skipping image {url}: timed out after {self.timeout} seconds")
            return None
        except aiohttp.ClientError as e:
            logger.warning(f"Skipping image {url}: {str(e)}")
            return None

        if not body:
            logger.warning(f"Skipping image {url}: empty response body")
            return None

        path = directory / f"{stem}.{extension_for(content_type, url)}"
        try:
            path.write_bytes(body)
        except OSError as e:
            logger.warning(f"Skipping image {url}: could not write {path}: {str(e)}")
            return None
        written.append(path)

        logger.debug(f"Saved image {url} to {path}")
        return ImageResult(source_url=url, local_path=to_caller_path(path))
