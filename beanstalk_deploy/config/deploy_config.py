"""
Deployment configuration.

Inputs come either from GitHub Action inputs (INPUT_* environment variables)
or from command line arguments plus the standard AWS credential variables.
"""

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from beanstalk_deploy.common.constants import DEFAULT_WAIT_FOR_RECOVERY_SECONDS
from beanstalk_deploy.common.exceptions import ConfigurationError


def strip(value: Optional[str]) -> str:
    """Strip leading and trailing whitespace, treating None as empty."""
    return (value or "").strip()


def is_github_action(environ: Optional[Mapping[str, str]] = None) -> bool:
    environ = os.environ if environ is None else environ
    return bool(environ.get("GITHUB_ACTION"))


def _describe_secret(value: str) -> str:
    if not value:
        return "not set"
    return f"{len(value)} characters long, starts with {value[0]}"


@dataclass
class DeployConfig:
    """Everything needed to release and supervise one version."""

    application: str
    environment: str
    version_label: str
    region: str
    ecr_registry: str = ""
    dockerrun_template: Optional[str] = None
    access_key: str = ""
    secret_key: str = ""
    session_token: Optional[str] = None
    wait_for_deployment: bool = True
    wait_for_recovery_seconds: int = DEFAULT_WAIT_FOR_RECOVERY_SECONDS
    timeout_seconds: Optional[float] = None

    @classmethod
    def from_action_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DeployConfig":
        """Create configuration from GitHub Action inputs."""
        environ = os.environ if environ is None else environ

        recovery = strip(environ.get("INPUT_WAIT_FOR_ENVIRONMENT_RECOVERY"))
        timeout = strip(environ.get("INPUT_DEPLOYMENT_TIMEOUT"))
        try:
            wait_for_recovery_seconds = (
                int(recovery) if recovery else DEFAULT_WAIT_FOR_RECOVERY_SECONDS
            )
            timeout_seconds = float(timeout) if timeout else None
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric input: {e}") from e

        return cls(
            application=strip(environ.get("INPUT_APPLICATION_NAME")),
            environment=strip(environ.get("INPUT_ENVIRONMENT_NAME")),
            version_label=strip(environ.get("INPUT_VERSION_LABEL")),
            region=strip(environ.get("INPUT_REGION")),
            ecr_registry=strip(environ.get("INPUT_ECR_REGISTRY")),
            dockerrun_template=environ.get("INPUT_DOCKERRUN_JSON") or None,
            access_key=strip(environ.get("INPUT_AWS_ACCESS_KEY")),
            secret_key=strip(environ.get("INPUT_AWS_SECRET_KEY")),
            session_token=strip(environ.get("INPUT_AWS_SESSION_TOKEN")) or None,
            wait_for_deployment=strip(environ.get("INPUT_WAIT_FOR_DEPLOYMENT")).lower()
            != "false",
            wait_for_recovery_seconds=wait_for_recovery_seconds,
            timeout_seconds=timeout_seconds,
        )

    @classmethod
    def from_args(cls, args, environ: Optional[Mapping[str, str]] = None) -> "DeployConfig":
        """Create configuration from parsed CLI arguments and AWS_* variables."""
        environ = os.environ if environ is None else environ

        dockerrun_template = None
        if args.dockerrun_file:
            try:
                with open(args.dockerrun_file, encoding="utf-8") as f:
                    dockerrun_template = f.read()
            except OSError as e:
                raise ConfigurationError(
                    f"Could not read Dockerrun file {args.dockerrun_file}: {e}"
                ) from e

        return cls(
            application=strip(args.application),
            environment=strip(args.environment),
            version_label=strip(args.version_label),
            region=strip(args.region),
            ecr_registry=strip(args.ecr_registry),
            dockerrun_template=dockerrun_template,
            access_key=strip(environ.get("AWS_ACCESS_KEY_ID")),
            secret_key=strip(environ.get("AWS_SECRET_ACCESS_KEY")),
            session_token=strip(environ.get("AWS_SESSION_TOKEN")) or None,
            wait_for_deployment=not args.no_wait,
            wait_for_recovery_seconds=args.wait_for_recovery,
            timeout_seconds=args.timeout,
        )

    def validate(self) -> None:
        """Raise ConfigurationError when a required input is missing."""
        if not self.region:
            raise ConfigurationError("Region not specified!")
        if not self.access_key:
            raise ConfigurationError("AWS Access Key not specified!")
        if not self.secret_key:
            raise ConfigurationError("AWS Secret Key not specified!")
        if self.wait_for_recovery_seconds < 0:
            raise ConfigurationError("Recovery wait time must not be negative!")

    def describe(self) -> List[str]:
        """Parameter summary lines, with credentials masked."""
        dockerrun = (
            "Provided"
            if self.dockerrun_template
            else "Not Provided, will use the default single container definition."
        )
        return [
            " ***** Input parameters were: ***** ",
            f"         Application: {self.application}",
            f"         Environment: {self.environment}",
            f"       Version Label: {self.version_label}",
            f"        ECR Registry: {self.ecr_registry}",
            f"          AWS Region: {self.region}",
            f"      AWS Access Key: {_describe_secret(self.access_key)}",
            f"      AWS Secret Key: {_describe_secret(self.secret_key)}",
            f"  Dockerrun.aws.json: {dockerrun}",
            f" Wait for deployment: {str(self.wait_for_deployment).lower()}",
            f"  Recovery wait time: {self.wait_for_recovery_seconds}",
        ]
