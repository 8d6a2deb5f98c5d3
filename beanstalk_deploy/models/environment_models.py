"""
Environment and event models.

Typed views of the DescribeEnvironments and DescribeEvents payloads returned
by Elastic Beanstalk. Field aliases match the remote JSON keys so payloads
can be validated directly.
"""

import math
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EnvironmentStatus(str, Enum):
    """Lifecycle status of an environment."""

    LAUNCHING = "Launching"
    UPDATING = "Updating"
    READY = "Ready"
    TERMINATING = "Terminating"
    TERMINATED = "Terminated"
    ABORTING = "Aborting"
    LINKING_FROM = "LinkingFrom"
    LINKING_TO = "LinkingTo"


class EnvironmentHealth(str, Enum):
    """Health colour of an environment."""

    GREEN = "Green"
    YELLOW = "Yellow"
    RED = "Red"
    GREY = "Grey"


class EventSeverity(str, Enum):
    """Severity of an environment event."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    FATAL = "FATAL"


class EnvironmentSnapshot(BaseModel):
    """Point-in-time read of an environment."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version_label: Optional[str] = Field(default=None, alias="VersionLabel")
    status: EnvironmentStatus = Field(..., alias="Status")
    health: EnvironmentHealth = Field(..., alias="Health")
    health_status: Optional[str] = Field(default=None, alias="HealthStatus")

    @property
    def is_green(self) -> bool:
        return self.health == EnvironmentHealth.GREEN

    def is_live(self, version_label: str) -> bool:
        """True when the environment runs ``version_label`` and is Ready."""
        return (
            self.version_label == version_label
            and self.status == EnvironmentStatus.READY
        )


class EventRecord(BaseModel):
    """A single environment event."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp_seconds: int = Field(..., alias="EventDate")
    severity: EventSeverity = Field(..., alias="Severity")
    message: str = Field(default="", alias="Message")

    @field_validator("timestamp_seconds", mode="before")
    @classmethod
    def _floor_timestamp(cls, value):
        # Remote timestamps are epoch seconds that may carry a fraction
        if isinstance(value, float):
            return math.floor(value)
        return value
