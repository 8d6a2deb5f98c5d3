"""Rate-limit tolerance for a polling stream."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class ThrottleDecision(str, Enum):
    """What to do with a status response."""

    PROCEED = "proceed"
    RETRY_SAME_TICK = "retry_same_tick"
    ABORT_STREAM = "abort_stream"


class ThrottleGuard:
    """Counts consecutive throttled responses on one stream.

    A guard without ``max_consecutive`` never aborts; it only logs and asks
    for a retry on the next tick.
    """

    def __init__(
        self,
        stream: str,
        is_rate_limited: Callable[[Any], bool],
        max_consecutive: Optional[int] = None,
    ):
        self.stream = stream
        self.is_rate_limited = is_rate_limited
        self.max_consecutive = max_consecutive
        self.consecutive_throttles = 0

    def observe(self, response: Any) -> ThrottleDecision:
        if not self.is_rate_limited(response):
            self.consecutive_throttles = 0
            return ThrottleDecision.PROCEED

        self.consecutive_throttles += 1
        logger.info(
            f"Request to {self.stream} was throttled, that's "
            f"{self.consecutive_throttles} throttle errors in a row..."
        )
        if (
            self.max_consecutive is not None
            and self.consecutive_throttles >= self.max_consecutive
        ):
            return ThrottleDecision.ABORT_STREAM
        return ThrottleDecision.RETRY_SAME_TICK
