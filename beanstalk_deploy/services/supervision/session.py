"""State owned by one supervision run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from beanstalk_deploy.services.supervision.event_cursor import EventCursor
from beanstalk_deploy.services.supervision.health_grace import HealthGraceTimer
from beanstalk_deploy.services.supervision.throttle_guard import ThrottleGuard


class SupervisionState(str, Enum):
    AWAITING_READY = "awaiting_ready"
    DEGRADED_GRACE = "degraded_grace"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SupervisionSession:
    """Mutable state of one supervision run.

    The cursor and failure flag are written only by the event handler; the
    environment guard, poll counter and grace timer only by the environment
    handler.
    """

    application: str
    environment: str
    version_label: str
    started_at: float
    cursor: EventCursor
    events_guard: ThrottleGuard
    environment_guard: ThrottleGuard
    grace: HealthGraceTimer
    state: SupervisionState = SupervisionState.AWAITING_READY
    tick: int = 0
    poll_count: int = 0
    event_calls: int = 0
    environment_calls: int = 0
    deployment_failed: bool = False
    failure_tick: Optional[int] = None

    def mark_deployment_failed(self) -> None:
        """Set the sticky failure flag, remembering the tick it was first seen."""
        if not self.deployment_failed:
            self.deployment_failed = True
            self.failure_tick = self.tick

    @property
    def failure_confirmed(self) -> bool:
        """True once a full poll has passed since the failure was reported."""
        return self.deployment_failed and self.failure_tick is not None and (
            self.failure_tick < self.tick
        )
