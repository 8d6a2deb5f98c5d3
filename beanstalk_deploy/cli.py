#!/usr/bin/env python3
"""
beanstalk-deploy CLI

Deploys a container image to an Elastic Beanstalk environment and waits for
the environment to become healthy.

Exit codes:
    0: Deployment finished and the environment is green
    1: Deployment finished but the environment is not green (or bad usage)
    2: Deployment failed
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Mapping, Optional

import httpx
from dotenv import load_dotenv

from beanstalk_deploy.common.constants import DEFAULT_WAIT_FOR_RECOVERY_SECONDS
from beanstalk_deploy.common.exceptions import BeanstalkDeployError
from beanstalk_deploy.config import DeployConfig, configure_logging, is_github_action
from beanstalk_deploy.models import EnvironmentHealth
from beanstalk_deploy.services.aws import AwsApiClient, AwsCredentials
from beanstalk_deploy.services.deployment import DeploymentOutcome, DeploymentService
from beanstalk_deploy.services.status_client import BeanstalkStatusClient
from beanstalk_deploy.services.supervision import DeploymentSupervisor

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_UNHEALTHY = 1
EXIT_USAGE = 1
EXIT_FAILURE = 2

BANNER = [
    "Beanstalk-Deploy: deploying ECR containers to Elastic Beanstalk.",
    "",
]


class _UsageParser(argparse.ArgumentParser):
    """Argument parser that exits with the usage exit code."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _UsageParser(
        prog="beanstalk-deploy",
        description="Deploy ECR image info to AWS Elastic Beanstalk",
        epilog=(
            "Environment variables AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY "
            "must be defined for the program to work."
        ),
    )
    parser.add_argument("application", help="Beanstalk application name")
    parser.add_argument("environment", help="Beanstalk environment name")
    parser.add_argument("version_label", help="Label of the version to deploy")
    parser.add_argument("region", help="AWS region, e.g. us-east-1")
    parser.add_argument("ecr_registry", help="ECR registry host of the image")
    parser.add_argument(
        "--dockerrun-file",
        default=None,
        help="Dockerrun.aws.json template (default: single container definition)",
    )
    parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Return as soon as the update has been started",
    )
    parser.add_argument(
        "--wait-for-recovery",
        type=int,
        default=DEFAULT_WAIT_FOR_RECOVERY_SECONDS,
        help=f"Seconds to wait for health to turn green (default: {DEFAULT_WAIT_FOR_RECOVERY_SECONDS})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up supervising after this many seconds (default: no limit)",
    )
    return parser


async def run_deployment(config: DeployConfig) -> DeploymentOutcome:
    """Release the configured version and supervise it."""
    credentials = AwsCredentials(config.access_key, config.secret_key, config.session_token)
    async with AwsApiClient(credentials, config.region) as api_client:
        supervisor = DeploymentSupervisor(
            BeanstalkStatusClient(api_client),
            wait_for_recovery_seconds=config.wait_for_recovery_seconds,
            timeout_seconds=config.timeout_seconds,
        )
        service = DeploymentService(api_client, supervisor)
        return await service.deploy_new_version(
            application=config.application,
            environment=config.environment,
            version_label=config.version_label,
            ecr_registry=config.ecr_registry,
            dockerrun_template=config.dockerrun_template,
            wait_for_deployment=config.wait_for_deployment,
        )


def exit_code_for(outcome: DeploymentOutcome) -> int:
    """Map a finished deployment to the process exit code."""
    if not outcome.waited:
        return EXIT_SUCCESS

    env = outcome.environment
    if env is not None and env.health == EnvironmentHealth.GREEN:
        logger.info("Environment update successful!")
        return EXIT_SUCCESS

    health = env.health.value if env is not None else None
    health_status = env.health_status if env is not None else None
    logger.warning(
        f"Environment update finished, but environment health is: {health}, "
        f"HealthStatus: {health_status}"
    )
    return EXIT_UNHEALTHY


def main(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    """Main CLI entry point."""
    load_dotenv()
    environ = os.environ if environ is None else environ
    github_action = is_github_action(environ)
    configure_logging(github_action=github_action)

    args = None if github_action else build_parser().parse_args(argv)

    for line in BANNER:
        print(line)

    try:
        if github_action:
            config = DeployConfig.from_action_env(environ)
        else:
            config = DeployConfig.from_args(args, environ)
        config.validate()
    except BeanstalkDeployError as e:
        logger.error(f"Deployment failed: {e}")
        return EXIT_FAILURE

    for line in config.describe():
        print(line)
    print()

    try:
        outcome = asyncio.run(run_deployment(config))
    except (BeanstalkDeployError, httpx.HTTPError) as e:
        logger.error(f"Deployment failed: {e}")
        return EXIT_FAILURE
    except Exception as e:
        logger.exception(f"Deployment failed: {e}")
        return EXIT_FAILURE

    return exit_code_for(outcome)


if __name__ == "__main__":
    sys.exit(main())
