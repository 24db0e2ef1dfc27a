import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

class RateLimiter:
    """Enforces a minimum interval between outbound requests.

    One instance is shared by every tool of a provider. The check, the wait
    and the timestamp update run under a lock, so concurrent callers are
    released one at a time and never closer together than ``min_interval``.
    """

    def __init__(
        self,
        min_interval: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self.last_request: Optional[float] = None

    async def wait_if_needed(self) -> float:
        """
        Wait until the next request may be issued.

        Returns:
            Number of seconds spent waiting
        """
        async with self._lock:
            waited = 0.0
            if self.last_request is not None:
                elapsed = self._clock() - self.last_request
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    logger.debug(f"Rate limiting: waiting {waited:.3f}s")
                    await self._sleep(waited)
            self.last_request = self._clock()
            return waited
