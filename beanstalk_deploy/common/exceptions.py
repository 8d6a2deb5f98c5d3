"""Exceptions raised while deploying and supervising an environment."""

from __future__ import annotations

from typing import Optional


class BeanstalkDeployError(Exception):
    """Base class for every deployment failure."""


class ConfigurationError(BeanstalkDeployError):
    """Required deployment input is missing or invalid."""


class TransportError(BeanstalkDeployError):
    """Remote API answered with an unexpected status.

    Attributes:
        status_code: HTTP status of the response
        error_code: Error code from a JSON error body, if any
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class ThrottlingError(TransportError):
    """Environment stream was rate limited too many times in a row."""


class VersionExistsError(BeanstalkDeployError):
    """The application bundle for this version is already in storage."""


class DeploymentFailedError(BeanstalkDeployError):
    """The remote service reported that the new version failed to deploy."""


class HealthRecoveryTimeoutError(BeanstalkDeployError):
    """Environment did not turn green within the recovery window.

    Attributes:
        health: Last observed health colour
        health_status: Last observed health status text
    """

    def __init__(
        self, message: str, health: Optional[str] = None, health_status: Optional[str] = None
    ):
        super().__init__(message)
        self.health = health
        self.health_status = health_status


class SupervisionTimeoutError(BeanstalkDeployError):
    """Supervision ran past its overall deadline."""
