"""Short-lived memoization of read-only player queries.

A status page polling every second would otherwise evaluate three
expressions per poll. Track info, track time and volume each get a
slot, but all three slots share one ``last_update`` timestamp: storing
any of them refreshes the freshness window of the others without
touching their values.
"""

from __future__ import annotations

import enum
import logging
import time
from typing import Any, Callable

from tuneremote.domain.models import CachedResult

logger = logging.getLogger(__name__)


class QueryKind(str, enum.Enum):
    TRACK_INFO = "track_info"
    TRACK_TIME = "track_time"
    VOLUME = "volume"


class ResultCache:
    """Three query slots with a shared freshness timestamp.

    Staleness is checked on every read; nothing is ever expired in the
    background. Times are in seconds from ``clock`` (monotonic by default).
    """

    def __init__(
        self,
        duration: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._duration = duration
        self._clock = clock
        self._values: dict[QueryKind, Any] = {}
        self._last_update: float | None = None

    @property
    def duration(self) -> float:
        return self._duration

    def now(self) -> float:
        return self._clock()

    def get(self, kind: QueryKind, now: float | None = None) -> CachedResult | None:
        """Return the cached value for ``kind`` while the shared window is open."""
        if now is None:
            now = self._clock()
        value = self._values.get(kind)
        if value is None or self._last_update is None:
            return None
        if now - self._last_update >= self._duration:
            return None
        return CachedResult(value=value, captured_at=self._last_update)

    def put(self, kind: QueryKind, value: Any, now: float | None = None) -> None:
        """Store ``value`` unconditionally and restamp the shared timestamp."""
        if now is None:
            now = self._clock()
        self._values[kind] = value
        self._last_update = now
        logger.debug("Cached %s at %.3f", kind.value, now)

    def clear(self) -> None:
        self._values.clear()
        self._last_update = None
