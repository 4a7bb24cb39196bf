"""
Server clock alignment.

Every code and signature is derived from Steam's clock, not the local one.
"""

import threading

import structlog

from steamguard.api.endpoints.two_factor import query_time
from steamguard.api.http_client import HttpClient
from steamguard.core.clock import Clock, SystemClock
from steamguard.exceptions import SteamGuardError

logger = structlog.get_logger(__name__)


class TimeSync:
    """
    Process-scoped offset between Steam's clock and the local clock.

    The offset is fetched lazily on first use and only refreshed when a
    caller asks for it. A failed refresh keeps the previous offset (or zero)
    and logs a warning instead of raising, so codes can always be generated.
    """

    def __init__(self, http: HttpClient, clock: Clock | None = None) -> None:
        """
        Args:
            http: HTTP client used to query Steam's time.
            clock: Local clock. Defaults to the system clock.
        """
        self._http = http
        self._clock = clock or SystemClock()
        self._offset: int | None = None
        self._synced = False
        self._lock = threading.Lock()

    @property
    def is_synced(self) -> bool:
        """Whether an offset has been obtained from Steam."""
        return self._synced

    def get_offset(self) -> int:
        """Seconds to add to the local clock to obtain Steam time."""
        offset = self._offset
        if offset is None:
            return self.refresh()
        return offset

    def now(self) -> int:
        """Current Steam server time in seconds."""
        return int(self._clock.time()) + self.get_offset()

    def refresh(self) -> int:
        """
        Query Steam's clock and replace the cached offset.

        Returns:
            The new offset, or the previous/zero offset if Steam could not be queried.
        """
        with self._lock:
            try:
                response = query_time(self._http)
                server_time = int(response["server_time"])
            except (SteamGuardError, KeyError, TypeError, ValueError) as e:
                fallback = self._offset if self._offset is not None else 0
                self._offset = fallback
                logger.warning(
                    "Time sync failed, using fallback offset",
                    offset=fallback,
                    error_type=type(e).__name__,
                )
                return fallback

            offset = server_time - int(self._clock.time())
            self._offset = offset
            self._synced = True
            logger.debug("Time synced", offset=offset)
            return offset

    def set_offset(self, offset: int) -> None:
        """Pin the offset, e.g. for tests or when the caller measured it elsewhere."""
        with self._lock:
            self._offset = offset
            self._synced = True
