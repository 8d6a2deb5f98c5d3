"""Grace window for an environment that is live but not yet green."""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Optional

from beanstalk_deploy.common.constants import DEFAULT_WAIT_FOR_RECOVERY_SECONDS
from beanstalk_deploy.common.exceptions import HealthRecoveryTimeoutError
from beanstalk_deploy.models import EnvironmentSnapshot

logger = logging.getLogger(__name__)


class GraceVerdict(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"


class HealthGraceTimer:
    """Decides the outcome once the target version is Ready.

    Args:
        wait_for_recovery_seconds: How long non-green health is tolerated
    """

    def __init__(self, wait_for_recovery_seconds: float = DEFAULT_WAIT_FOR_RECOVERY_SECONDS):
        self.wait_for_recovery_seconds = wait_for_recovery_seconds
        self.deadline: Optional[float] = None

    @property
    def window_open(self) -> bool:
        return self.deadline is not None

    def on_ready_with_version(self, snapshot: EnvironmentSnapshot, now: float) -> GraceVerdict:
        """Evaluate a snapshot that shows the target version and Ready status.

        Args:
            snapshot: Current environment snapshot
            now: Current time on the supervisor's clock (seconds)

        Returns:
            SUCCESS when health is green, PENDING while the window is open

        Raises:
            HealthRecoveryTimeoutError: If the window expired without recovery
        """
        health = snapshot.health.value
        if not self.window_open:
            if snapshot.is_green:
                return GraceVerdict.SUCCESS
            logger.warning(
                f"Environment update finished, but health is {health} and health status "
                f"is {snapshot.health_status}. Giving it {self.wait_for_recovery_seconds} "
                f"seconds to recover..."
            )
            self.deadline = now + self.wait_for_recovery_seconds
            return GraceVerdict.PENDING

        if snapshot.is_green:
            logger.info(
                f"Environment has recovered, health is now {health}, "
                f"health status is {snapshot.health_status}"
            )
            return GraceVerdict.SUCCESS

        if now > self.deadline:
            raise HealthRecoveryTimeoutError(
                f"Environment still has health {health} "
                f"{self.wait_for_recovery_seconds} seconds after update finished! "
                f"Health status: {snapshot.health_status}",
                health=health,
                health_status=snapshot.health_status,
            )

        left = math.floor(self.deadline - now)
        logger.warning(
            f"Environment still has health: {health} and health status "
            f"{snapshot.health_status}. Waiting {left} more seconds before failing..."
        )
        return GraceVerdict.PENDING
