"""Polling cadence for long-running deployments."""

from __future__ import annotations

from datetime import timedelta
from typing import Union

from beanstalk_deploy.common.constants import (
    BASE_POLL_DELAY_SECONDS,
    LONG_POLL_DELAY_SECONDS,
    LONG_POLL_THRESHOLD_SECONDS,
    MEDIUM_POLL_DELAY_SECONDS,
    MEDIUM_POLL_THRESHOLD_SECONDS,
)


class CadenceController:
    """Slows polling down as a deployment drags on.

    The delay steps up from 10s to 20s after five minutes of supervision and
    to 30s after ten.
    """

    def __init__(
        self,
        base_delay: float = BASE_POLL_DELAY_SECONDS,
        medium_delay: float = MEDIUM_POLL_DELAY_SECONDS,
        long_delay: float = LONG_POLL_DELAY_SECONDS,
        medium_threshold: float = MEDIUM_POLL_THRESHOLD_SECONDS,
        long_threshold: float = LONG_POLL_THRESHOLD_SECONDS,
    ):
        self.base_delay = base_delay
        self.medium_delay = medium_delay
        self.long_delay = long_delay
        self.medium_threshold = medium_threshold
        self.long_threshold = long_threshold

    def delay_for(self, elapsed: Union[float, timedelta]) -> float:
        """Seconds to wait before the next poll.

        Args:
            elapsed: Time since supervision started (seconds or timedelta)
        """
        if isinstance(elapsed, timedelta):
            elapsed = elapsed.total_seconds()
        if elapsed > self.long_threshold:
            return self.long_delay
        if elapsed > self.medium_threshold:
            return self.medium_delay
        return self.base_delay
