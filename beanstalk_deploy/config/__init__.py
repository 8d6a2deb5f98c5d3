"""Configuration and logging setup."""

from beanstalk_deploy.config.deploy_config import DeployConfig, is_github_action, strip
from beanstalk_deploy.config.logging_config import GitHubActionsFormatter, configure_logging

__all__ = [
    "DeployConfig",
    "GitHubActionsFormatter",
    "configure_logging",
    "is_github_action",
    "strip",
]
