"""Deployment service for releasing a new version to an Elastic Beanstalk environment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from beanstalk_deploy.common.exceptions import VersionExistsError
from beanstalk_deploy.models import EnvironmentSnapshot
from beanstalk_deploy.services.aws.api_client import AwsApiClient, expect_status
from beanstalk_deploy.services.deployment.dockerrun import bundle_key, render_dockerrun
from beanstalk_deploy.services.status_client import BeanstalkStatusClient
from beanstalk_deploy.services.supervision import DeploymentSupervisor

logger = logging.getLogger(__name__)


@dataclass
class DeploymentOutcome:
    """Result of a deployment operation."""

    version_label: str
    bucket: str
    s3_key: str
    waited: bool
    environment: Optional[EnvironmentSnapshot] = None


class DeploymentService:
    """Service for orchestrating a version release.

    Uploads the bundle, registers it as an application version, activates it
    on the environment and optionally hands over to the supervisor.
    """

    def __init__(
        self,
        api_client: AwsApiClient,
        supervisor: Optional[DeploymentSupervisor] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Initialize the deployment service.

        Args:
            api_client: Signed AWS client
            supervisor: Supervisor used when waiting for the deployment
                (defaults to one backed by the same client)
            now: Wall clock used to mark the deployment start
        """
        self.api_client = api_client
        self.supervisor = supervisor or DeploymentSupervisor(BeanstalkStatusClient(api_client))
        self._now = now

    def _bucket_host(self, bucket: str) -> str:
        return f"{bucket}.s3.{self.api_client.region}.amazonaws.com"

    async def create_storage_location(self) -> str:
        """Create (or look up) the Beanstalk storage bucket and return its name."""
        response = await self.api_client.beanstalk("CreateStorageLocation")
        expect_status(200, response)
        return response.data["CreateStorageLocationResponse"][
            "CreateStorageLocationResult"
        ]["S3Bucket"]

    async def bundle_exists(self, bucket: str, s3_key: str) -> bool:
        """Check whether a bundle is already stored under ``s3_key``.

        Raises:
            TransportError: If the check returned anything but 200 or 404
        """
        response = await self.api_client.request(
            "s3", "HEAD", s3_key, host=self._bucket_host(bucket)
        )
        if response.status_code == 200:
            return True
        expect_status(404, response)
        return False

    async def upload_bundle(self, bucket: str, s3_key: str, content: str) -> None:
        response = await self.api_client.request(
            "s3",
            "PUT",
            s3_key,
            host=self._bucket_host(bucket),
            headers={"Content-Type": "application/octet-stream"},
            content=content.encode("utf-8"),
        )
        expect_status(200, response)

    async def create_application_version(
        self, application: str, bucket: str, s3_key: str, version_label: str
    ) -> None:
        response = await self.api_client.beanstalk(
            "CreateApplicationVersion",
            ApplicationName=application,
            VersionLabel=version_label,
            **{
                "SourceBundle.S3Bucket": bucket,
                "SourceBundle.S3Key": s3_key.lstrip("/"),
            },
        )
        expect_status(200, response)

    async def update_environment(
        self, application: str, environment: str, version_label: str
    ) -> None:
        response = await self.api_client.beanstalk(
            "UpdateEnvironment",
            ApplicationName=application,
            EnvironmentName=environment,
            VersionLabel=version_label,
        )
        expect_status(200, response)

    async def deploy_new_version(
        self,
        application: str,
        environment: str,
        version_label: str,
        ecr_registry: str,
        dockerrun_template: Optional[str] = None,
        wait_for_deployment: bool = True,
    ) -> DeploymentOutcome:
        """Upload, register and activate a new version.

        This method:
        1. Creates the storage location and checks the version is new
        2. Uploads the Dockerrun bundle
        3. Creates the application version and activates it
        4. Supervises the environment when wait_for_deployment is set

        Args:
            application: Application name
            environment: Environment name
            version_label: Label of the new version
            ecr_registry: Registry host used by the default bundle
            dockerrun_template: Optional Dockerrun.aws.json template
            wait_for_deployment: Whether to supervise until the version is live

        Returns:
            DeploymentOutcome with the final environment snapshot when waited

        Raises:
            VersionExistsError: If the bundle for this version already exists
            BeanstalkDeployError: If any step or the supervision fails
        """
        bundle = render_dockerrun(
            dockerrun_template,
            ecr_registry=ecr_registry,
            application=application,
            environment=environment,
            version_label=version_label,
        )
        s3_key = bundle_key(application, version_label)

        bucket = await self.create_storage_location()
        logger.info(f"Uploading file to bucket {bucket}")

        if await self.bundle_exists(bucket, s3_key):
            raise VersionExistsError(f"Version {version_label} already exists in S3!")

        await self.upload_bundle(bucket, s3_key, bundle)
        logger.info(f"New build successfully uploaded to S3, bucket={bucket}, key={s3_key}")

        await self.create_application_version(application, bucket, s3_key, version_label)
        logger.info(f"Created new application version {version_label} in Beanstalk.")

        deploy_start = self._now()
        logger.info(f"Starting deployment of version {version_label} to environment {environment}")
        await self.update_environment(application, environment, version_label)

        outcome = DeploymentOutcome(
            version_label=version_label, bucket=bucket, s3_key=s3_key, waited=wait_for_deployment
        )
        if not wait_for_deployment:
            logger.info(
                'Deployment started, parameter "wait_for_deployment" was false, so action is finished.'
            )
            logger.warning("**** IMPORTANT: Please verify manually that the deployment succeeds!")
            return outcome

        logger.info('Deployment started, "wait_for_deployment" was true...')
        outcome.environment = await self.supervisor.supervise(
            application, environment, version_label, deploy_start
        )
        return outcome
