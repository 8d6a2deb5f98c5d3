"""Deployment supervision engine.

This package is organized into focused modules:
- event_cursor: Event window tracking and failure detection
- throttle_guard: Consecutive rate-limit counting per stream
- cadence: Poll delay as a function of elapsed time
- health_grace: Recovery window for non-green health
- session: Per-run mutable state
- supervisor: The polling loop that combines the above
"""

from .cadence import CadenceController
from .event_cursor import ConsumeResult, EventCursor, format_event
from .health_grace import GraceVerdict, HealthGraceTimer
from .session import SupervisionSession, SupervisionState
from .supervisor import DeploymentSupervisor
from .throttle_guard import ThrottleDecision, ThrottleGuard

__all__ = [
    "CadenceController",
    "ConsumeResult",
    "DeploymentSupervisor",
    "EventCursor",
    "GraceVerdict",
    "HealthGraceTimer",
    "SupervisionSession",
    "SupervisionState",
    "ThrottleDecision",
    "ThrottleGuard",
    "format_event",
]
