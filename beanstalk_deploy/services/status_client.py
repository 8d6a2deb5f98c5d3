"""Read-only status queries against an Elastic Beanstalk environment."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from beanstalk_deploy.common.constants import (
    EVENT_SEVERITY_FILTER,
    THROTTLING_ERROR_CODE,
)
from beanstalk_deploy.common.exceptions import BeanstalkDeployError
from beanstalk_deploy.models import EnvironmentSnapshot, EventRecord
from beanstalk_deploy.services.aws.api_client import ApiResponse, AwsApiClient

logger = logging.getLogger(__name__)


@dataclass
class StatusResponse:
    """Outcome of one status query.

    ``events`` is filled for successful event queries (newest first, as the
    remote API returns them) and ``snapshot`` for successful environment
    queries.
    """

    response: ApiResponse
    events: List[EventRecord] = field(default_factory=list)
    snapshot: Optional[EnvironmentSnapshot] = None

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def error_code(self) -> Optional[str]:
        return self.response.error_code

    @property
    def ok(self) -> bool:
        return self.response.status_code == 200


class StatusClient(Protocol):
    """What the supervisor needs from a status source."""

    async def describe_events(
        self, application: str, environment: str, since: datetime
    ) -> StatusResponse: ...

    async def describe_environment(
        self, application: str, environment: str
    ) -> StatusResponse: ...

    def is_rate_limited(self, response: StatusResponse) -> bool: ...


def format_start_time(since: datetime) -> str:
    """Format a timestamp as the compact ISO 8601 form the query API accepts."""
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return since.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


class BeanstalkStatusClient:
    """Status client backed by the Elastic Beanstalk query API."""

    def __init__(self, api_client: AwsApiClient):
        self.api_client = api_client

    async def describe_events(
        self, application: str, environment: str, since: datetime
    ) -> StatusResponse:
        """Fetch every event at or after ``since``.

        Args:
            application: Application name
            environment: Environment name
            since: Lower bound (inclusive) of the event window

        Returns:
            StatusResponse with events newest first
        """
        response = await self.api_client.beanstalk(
            "DescribeEvents",
            ApplicationName=application,
            Severity=EVENT_SEVERITY_FILTER,
            EnvironmentName=environment,
            StartTime=format_start_time(since),
        )
        result = StatusResponse(response=response)
        if result.ok:
            raw_events = response.data["DescribeEventsResponse"]["DescribeEventsResult"][
                "Events"
            ]
            result.events = [EventRecord.model_validate(ev) for ev in raw_events or []]
        return result

    async def describe_environment(
        self, application: str, environment: str
    ) -> StatusResponse:
        """Fetch the current snapshot of an environment.

        Raises:
            BeanstalkDeployError: If the environment does not exist
        """
        response = await self.api_client.beanstalk(
            "DescribeEnvironments",
            ApplicationName=application,
            **{"EnvironmentNames.members.1": environment},
        )
        result = StatusResponse(response=response)
        if result.ok:
            environments = response.data["DescribeEnvironmentsResponse"][
                "DescribeEnvironmentsResult"
            ]["Environments"]
            if not environments:
                raise BeanstalkDeployError(
                    f"Environment {environment} not found in application {application}"
                )
            result.snapshot = EnvironmentSnapshot.model_validate(environments[0])
        return result

    def is_rate_limited(self, response: StatusResponse) -> bool:
        return (
            response.status_code == 400
            and response.error_code == THROTTLING_ERROR_CODE
        )
