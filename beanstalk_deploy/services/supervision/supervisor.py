"""Deployment supervision loop.

After a new version has been activated, the supervisor polls the event log
and the environment snapshot on every tick, logs progress, and settles on a
single verdict: the final environment snapshot, or an exception describing
why the deployment failed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, Optional

from beanstalk_deploy.common.constants import (
    DEFAULT_WAIT_FOR_RECOVERY_SECONDS,
    HEARTBEAT_EVERY_POLLS,
    MAX_ENVIRONMENT_THROTTLES,
    QUERY_TIMEOUT_SECONDS,
)
from beanstalk_deploy.common.exceptions import (
    BeanstalkDeployError,
    DeploymentFailedError,
    HealthRecoveryTimeoutError,
    SupervisionTimeoutError,
    ThrottlingError,
    TransportError,
)
from beanstalk_deploy.models import EnvironmentSnapshot
from beanstalk_deploy.services.aws.api_client import format_error
from beanstalk_deploy.services.status_client import StatusClient, StatusResponse
from beanstalk_deploy.services.supervision.cadence import CadenceController
from beanstalk_deploy.services.supervision.event_cursor import EventCursor
from beanstalk_deploy.services.supervision.formatters import (
    format_call_summary,
    format_heartbeat,
)
from beanstalk_deploy.services.supervision.health_grace import (
    GraceVerdict,
    HealthGraceTimer,
)
from beanstalk_deploy.services.supervision.session import (
    SupervisionSession,
    SupervisionState,
)
from beanstalk_deploy.services.supervision.throttle_guard import (
    ThrottleDecision,
    ThrottleGuard,
)

logger = logging.getLogger(__name__)

EVENTS_STREAM = "DescribeEvents"
ENVIRONMENT_STREAM = "DescribeEnvironments"


class DeploymentSupervisor:
    """Polls an environment until the new version is live and healthy.

    Args:
        status_client: Source of events and environment snapshots
        wait_for_recovery_seconds: Grace window for non-green health
        cadence: Poll delay policy
        timeout_seconds: Optional overall deadline for one run
        query_timeout_seconds: Deadline for each status query; a query that
            misses it is skipped for the tick (None waits indefinitely)
        clock: Monotonic clock in seconds
        sleep: Coroutine used to wait between ticks
    """

    def __init__(
        self,
        status_client: StatusClient,
        *,
        wait_for_recovery_seconds: float = DEFAULT_WAIT_FOR_RECOVERY_SECONDS,
        cadence: Optional[CadenceController] = None,
        timeout_seconds: Optional[float] = None,
        query_timeout_seconds: Optional[float] = QUERY_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.status_client = status_client
        self.wait_for_recovery_seconds = wait_for_recovery_seconds
        self.cadence = cadence or CadenceController()
        self.timeout_seconds = timeout_seconds
        self.query_timeout_seconds = query_timeout_seconds
        self._clock = clock
        self._sleep = sleep

    def new_session(
        self, application: str, environment: str, version_label: str, since: datetime
    ) -> SupervisionSession:
        is_rate_limited = self.status_client.is_rate_limited
        return SupervisionSession(
            application=application,
            environment=environment,
            version_label=version_label,
            started_at=self._clock(),
            cursor=EventCursor(since),
            events_guard=ThrottleGuard(EVENTS_STREAM, is_rate_limited),
            environment_guard=ThrottleGuard(
                ENVIRONMENT_STREAM, is_rate_limited, MAX_ENVIRONMENT_THROTTLES
            ),
            grace=HealthGraceTimer(self.wait_for_recovery_seconds),
        )

    async def supervise(
        self, application: str, environment: str, version_label: str, since: datetime
    ) -> EnvironmentSnapshot:
        """Wait until ``version_label`` is live on the environment.

        Args:
            application: Application name
            environment: Environment name
            version_label: Version that was just activated
            since: Time the update was started; first event window start

        Returns:
            The environment snapshot that ended supervision (health Green)

        Raises:
            TransportError: On unexpected API responses or exhausted throttling
            DeploymentFailedError: If the events reported a failed deployment
            HealthRecoveryTimeoutError: If health did not recover in time
            SupervisionTimeoutError: If the overall deadline passed
        """
        session = self.new_session(application, environment, version_label, since)
        if self.timeout_seconds is None:
            return await self.run(session)

        try:
            return await asyncio.wait_for(self.run(session), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            session.state = SupervisionState.FAILED
            raise SupervisionTimeoutError(
                f"Deployment did not finish within {self.timeout_seconds} seconds, "
                f"{self._call_summary(session)}"
            ) from None

    async def run(self, session: SupervisionSession) -> EnvironmentSnapshot:
        """Drive a prepared session to a verdict."""
        try:
            while True:
                snapshot = await self._tick(session)
                if snapshot is not None:
                    session.state = SupervisionState.SUCCEEDED
                    return snapshot
                await self._sleep(self.cadence.delay_for(self._elapsed(session)))
        except Exception:
            session.state = SupervisionState.FAILED
            raise

    async def _tick(self, session: SupervisionSession) -> Optional[EnvironmentSnapshot]:
        session.tick += 1
        events_result, environment_result = await asyncio.gather(
            self._query(
                EVENTS_STREAM,
                self.status_client.describe_events(
                    session.application, session.environment, session.cursor.next_start
                ),
            ),
            self._query(
                ENVIRONMENT_STREAM,
                self.status_client.describe_environment(
                    session.application, session.environment
                ),
            ),
            return_exceptions=True,
        )

        # Events first, so trailing failure events are logged before a verdict
        self._handle_events(session, events_result)
        return self._handle_environment(session, environment_result)

    async def _query(
        self, stream: str, request: Awaitable[StatusResponse]
    ) -> Optional[StatusResponse]:
        if self.query_timeout_seconds is None:
            return await request
        try:
            return await asyncio.wait_for(request, timeout=self.query_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"Request to {stream} did not answer within "
                f"{self.query_timeout_seconds} seconds, skipping it this poll"
            )
            return None

    def _check_result(self, session: SupervisionSession, stream: str, result) -> None:
        if not isinstance(result, BaseException):
            return
        if isinstance(result, BeanstalkDeployError) or not isinstance(result, Exception):
            raise result
        summary = self._call_summary(session)
        logger.error(f"Failed in call to {stream}, {summary}")
        raise TransportError(f"{result} ({summary})") from result

    def _handle_events(self, session: SupervisionSession, result) -> None:
        session.event_calls += 1
        self._check_result(session, EVENTS_STREAM, result)
        if result is None:
            return

        if session.events_guard.observe(result) is ThrottleDecision.RETRY_SAME_TICK:
            return
        self._raise_for_status(session, EVENTS_STREAM, result)

        consumed = session.cursor.consume(result.events)
        if consumed.failure_detected:
            session.mark_deployment_failed()

    def _handle_environment(
        self, session: SupervisionSession, result
    ) -> Optional[EnvironmentSnapshot]:
        session.environment_calls += 1
        self._check_result(session, ENVIRONMENT_STREAM, result)
        if result is None:
            return None

        decision = session.environment_guard.observe(result)
        if decision is ThrottleDecision.ABORT_STREAM:
            raise ThrottlingError(
                f"Deployment failed, got {session.environment_guard.consecutive_throttles} "
                f"throttling errors in a row while waiting for deployment, "
                f"{self._call_summary(session)}",
                status_code=result.status_code,
                error_code=result.error_code,
            )
        if decision is ThrottleDecision.RETRY_SAME_TICK:
            return None
        self._raise_for_status(session, ENVIRONMENT_STREAM, result)

        session.poll_count += 1
        env = result.snapshot

        if session.deployment_failed:
            if not session.failure_confirmed:
                logger.info("Deployment failure reported, polling once more for remaining events")
                return None
            message = (
                f"Deployment failed! Current State: Version: {env.version_label}, "
                f"Health: {env.health.value}, Health Status: {env.health_status}"
            )
            logger.error(message)
            raise DeploymentFailedError(f"{message}, {self._call_summary(session)}")

        if env.is_live(session.version_label):
            return self._evaluate_live(session, env)

        if session.poll_count % HEARTBEAT_EVERY_POLLS == 0:
            logger.info(format_heartbeat(env.status.value, env.health.value, env.health_status))
        return None

    def _evaluate_live(
        self, session: SupervisionSession, env: EnvironmentSnapshot
    ) -> Optional[EnvironmentSnapshot]:
        if not session.grace.window_open:
            logger.info(f"Deployment finished. Version updated to {env.version_label}")
            logger.info(
                f"Status for {session.application}-{session.environment} is "
                f"{env.status.value}, Health: {env.health.value}, "
                f"HealthStatus: {env.health_status}"
            )

        try:
            verdict = session.grace.on_ready_with_version(env, self._clock())
        except HealthRecoveryTimeoutError as e:
            raise HealthRecoveryTimeoutError(
                f"{e} ({self._call_summary(session)})",
                health=e.health,
                health_status=e.health_status,
            ) from e

        if verdict is GraceVerdict.SUCCESS:
            return env
        session.state = SupervisionState.DEGRADED_GRACE
        return None

    def _raise_for_status(
        self, session: SupervisionSession, stream: str, result: StatusResponse
    ) -> None:
        if result.ok:
            return
        summary = self._call_summary(session)
        logger.error(f"Failed in call to {stream}, {summary}")
        raise TransportError(
            f"{format_error(result.response)} ({summary})",
            status_code=result.status_code,
            error_code=result.error_code,
        )

    def _elapsed(self, session: SupervisionSession) -> float:
        return self._clock() - session.started_at

    def _call_summary(self, session: SupervisionSession) -> str:
        return format_call_summary(
            session.event_calls, session.environment_calls, self._elapsed(session)
        )
