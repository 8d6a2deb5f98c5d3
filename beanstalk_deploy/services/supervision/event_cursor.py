"""Event stream cursor and failure detection."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable

from beanstalk_deploy.common.constants import DEPLOYMENT_FAILURE_PATTERN
from beanstalk_deploy.models import EventRecord

logger = logging.getLogger(__name__)


@dataclass
class ConsumeResult:
    """What a consumed batch revealed."""

    failure_detected: bool = False
    consumed: int = 0


def format_event(event: EventRecord) -> str:
    """Render an event as ``HH:MM:SS SEVERITY: message`` (UTC)."""
    when = datetime.fromtimestamp(event.timestamp_seconds, tz=timezone.utc)
    return f"{when.strftime('%H:%M:%S')} {event.severity.value}: {event.message}"


class EventCursor:
    """Tracks the start of the next event window.

    Events are requested "at or after next_start", so after a batch the
    cursor moves one second past the newest event to avoid seeing it again.
    """

    def __init__(self, start: datetime, failure_pattern: str = DEPLOYMENT_FAILURE_PATTERN):
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self.next_start = start
        self._failure_re = re.compile(failure_pattern)

    def is_failure(self, message: str) -> bool:
        return self._failure_re.search(message) is not None

    def consume(self, batch: Iterable[EventRecord]) -> ConsumeResult:
        """Log a newest-first batch in chronological order and advance.

        Args:
            batch: Events as returned by the remote API (newest first)

        Returns:
            ConsumeResult telling whether a deployment failure was reported
        """
        events = list(reversed(list(batch)))
        result = ConsumeResult(consumed=len(events))
        if not events:
            return result

        for event in events:
            logger.info(format_event(event))
            if self.is_failure(event.message):
                result.failure_detected = True

        newest = max(event.timestamp_seconds for event in events)
        candidate = datetime.fromtimestamp(newest, tz=timezone.utc) + timedelta(seconds=1)
        if candidate > self.next_start:
            self.next_start = candidate
        return result
