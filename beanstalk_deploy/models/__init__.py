"""
Models package.

Contains the environment snapshot and event models read from Elastic Beanstalk.
"""

from beanstalk_deploy.models.environment_models import (
    EnvironmentHealth,
    EnvironmentSnapshot,
    EnvironmentStatus,
    EventRecord,
    EventSeverity,
)

__all__ = [
    "EnvironmentHealth",
    "EnvironmentSnapshot",
    "EnvironmentStatus",
    "EventRecord",
    "EventSeverity",
]
