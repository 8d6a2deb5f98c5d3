"""Unit tests for the command line entry point."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from beanstalk_deploy.cli import EXIT_FAILURE, EXIT_SUCCESS, EXIT_UNHEALTHY, exit_code_for, main
from beanstalk_deploy.common.exceptions import DeploymentFailedError
from beanstalk_deploy.models import EnvironmentSnapshot
from beanstalk_deploy.services.deployment import DeploymentOutcome

ARGV = ["my-app", "my-env", "v1", "us-east-1", "reg.example"]
CREDENTIALS_ENV = {"AWS_ACCESS_KEY_ID": "AKID", "AWS_SECRET_ACCESS_KEY": "secret"}


def _outcome(health="Green", waited=True):
    environment = None
    if waited:
        environment = EnvironmentSnapshot(
            version_label="v1", status="Ready", health=health, health_status="Ok"
        )
    return DeploymentOutcome(
        version_label="v1",
        bucket="bucket",
        s3_key="/my-app/v1/Dockerrun.aws.json",
        waited=waited,
        environment=environment,
    )


@pytest.fixture
def cli_patches():
    """Patch side effects of main()."""
    with patch("beanstalk_deploy.cli.load_dotenv"), patch(
        "beanstalk_deploy.cli.configure_logging"
    ) as configure_logging, patch(
        "beanstalk_deploy.cli.run_deployment", new_callable=AsyncMock
    ) as run_deployment:
        yield configure_logging, run_deployment


class TestExitCodeFor:
    """Test exit_code_for function."""

    def test_green(self):
        assert exit_code_for(_outcome("Green")) == EXIT_SUCCESS

    def test_not_green(self):
        assert exit_code_for(_outcome("Yellow")) == EXIT_UNHEALTHY

    def test_not_waited(self):
        assert exit_code_for(_outcome(waited=False)) == EXIT_SUCCESS


class TestMain:
    """Test main function."""

    def test_success(self, cli_patches):
        """Test a green deployment exits with zero."""
        _, run_deployment = cli_patches
        run_deployment.return_value = _outcome("Green")

        assert main(ARGV, CREDENTIALS_ENV) == 0

        config = run_deployment.call_args.args[0]
        assert config.application == "my-app"
        assert config.access_key == "AKID"

    def test_unhealthy(self, cli_patches):
        _, run_deployment = cli_patches
        run_deployment.return_value = _outcome("Red")

        assert main(ARGV, CREDENTIALS_ENV) == 1

    def test_deployment_failure(self, cli_patches):
        """Test a failed deployment exits with two."""
        _, run_deployment = cli_patches
        run_deployment.side_effect = DeploymentFailedError("Deployment failed!")

        assert main(ARGV, CREDENTIALS_ENV) == 2

    def test_network_failure(self, cli_patches):
        _, run_deployment = cli_patches
        run_deployment.side_effect = httpx.ConnectError("connection refused")

        assert main(ARGV, CREDENTIALS_ENV) == 2

    def test_missing_credentials(self, cli_patches):
        """Test missing credentials fail before any request is made."""
        _, run_deployment = cli_patches

        assert main(ARGV, {}) == 2
        run_deployment.assert_not_called()

    def test_usage_error(self, cli_patches):
        """Test missing positional arguments exit with one."""
        with pytest.raises(SystemExit) as exc_info:
            main(["my-app"], CREDENTIALS_ENV)

        assert exc_info.value.code == 1

    def test_github_action_inputs(self, cli_patches):
        """Test Action mode reads inputs and ignores the command line."""
        configure_logging, run_deployment = cli_patches
        run_deployment.return_value = _outcome(waited=False)
        environ = {
            "GITHUB_ACTION": "run1",
            "INPUT_APPLICATION_NAME": "action-app",
            "INPUT_ENVIRONMENT_NAME": "action-env",
            "INPUT_VERSION_LABEL": "v9",
            "INPUT_REGION": "us-west-2",
            "INPUT_AWS_ACCESS_KEY": "AKID",
            "INPUT_AWS_SECRET_KEY": "secret",
            "INPUT_WAIT_FOR_DEPLOYMENT": "false",
        }

        assert main(["--bogus"], environ) == 0

        configure_logging.assert_called_once_with(github_action=True)
        config = run_deployment.call_args.args[0]
        assert config.application == "action-app"
        assert config.wait_for_deployment is False
