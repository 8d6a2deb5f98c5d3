"""Unit tests for DeploymentSupervisor."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from beanstalk_deploy.common.exceptions import (
    DeploymentFailedError,
    HealthRecoveryTimeoutError,
    SupervisionTimeoutError,
    ThrottlingError,
    TransportError,
)
from beanstalk_deploy.services.supervision import (
    CadenceController,
    DeploymentSupervisor,
    SupervisionState,
)

DEPLOY_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_supervisor(fake_clock):
    """Build a supervisor around a scripted status client."""

    def _make(client, **kwargs):
        return DeploymentSupervisor(
            client, clock=fake_clock, sleep=fake_clock.sleep, **kwargs
        )

    return _make


async def _run(supervisor, version="v1"):
    session = supervisor.new_session("my-app", "my-env", version, DEPLOY_START)
    try:
        result = await supervisor.run(session)
    except Exception as e:
        return session, e
    return session, result


class TestImmediateOutcome:
    """Test supervision that settles on the first tick."""

    @pytest.mark.asyncio
    async def test_ready_green_resolves_without_grace_window(
        self, make_supervisor, responses, fake_clock
    ):
        """Test Ready/Green on the target version succeeds on the first tick."""
        client = responses.client(environments=[responses.environment("v1", "Ready", "Green")])
        supervisor = make_supervisor(client)

        session, result = await _run(supervisor)

        assert result.version_label == "v1"
        assert result.is_green
        assert session.state == SupervisionState.SUCCEEDED
        assert not session.grace.window_open
        assert fake_clock.sleeps == []
        assert client.environment_calls == 1

    @pytest.mark.asyncio
    async def test_supervise_returns_snapshot(self, make_supervisor, responses):
        """Test the public entry point resolves with the final snapshot."""
        client = responses.client(environments=[responses.environment()])
        supervisor = make_supervisor(client)

        snapshot = await supervisor.supervise("my-app", "my-env", "v1", DEPLOY_START)

        assert snapshot.health.value == "Green"

    @pytest.mark.asyncio
    async def test_other_version_keeps_polling(self, make_supervisor, responses, fake_clock):
        """Test a Ready environment on the previous version is not a success."""
        client = responses.client(
            environments=[
                responses.environment("v0", "Ready", "Green"),
                responses.environment("v1", "Updating", "Grey"),
                responses.environment("v1", "Ready", "Green"),
            ]
        )
        supervisor = make_supervisor(client)

        session, result = await _run(supervisor)

        assert result.version_label == "v1"
        assert client.environment_calls == 3
        assert fake_clock.sleeps == [10, 10]


class TestHealthGrace:
    """Test the recovery window for non-green health."""

    @pytest.mark.asyncio
    async def test_degraded_then_recovered(self, make_supervisor, responses, fake_clock):
        """Test Yellow, Yellow, Green within the window succeeds."""
        client = responses.client(
            environments=[
                responses.environment(health="Yellow", health_status="Warning"),
                responses.environment(health="Yellow", health_status="Warning"),
                responses.environment(health="Green"),
            ]
        )
        supervisor = make_supervisor(client, wait_for_recovery_seconds=30)

        session, result = await _run(supervisor)

        assert result.is_green
        assert session.state == SupervisionState.SUCCEEDED
        assert fake_clock.sleeps == [10, 10]

    @pytest.mark.asyncio
    async def test_degraded_timeout(self, make_supervisor, responses, fake_clock):
        """Test health that stays Yellow past the window fails."""
        client = responses.client(
            environments=[responses.environment(health="Yellow", health_status="Degraded")]
        )
        supervisor = make_supervisor(client, wait_for_recovery_seconds=30)

        session, error = await _run(supervisor)

        assert isinstance(error, HealthRecoveryTimeoutError)
        assert error.health == "Yellow"
        assert error.health_status == "Degraded"
        assert "30 seconds after update finished" in str(error)
        assert "calls to describeEnvironments" in str(error)
        assert session.state == SupervisionState.FAILED
        # Window opened at t=0, still tolerated at t=30, expired at t=40
        assert client.environment_calls == 5
        assert fake_clock.sleeps == [10, 10, 10, 10]

    @pytest.mark.asyncio
    async def test_grace_state_while_waiting(self, make_supervisor, responses):
        """Test the session is in the degraded grace state while waiting."""
        client = responses.client(environments=[responses.environment(health="Red")])
        supervisor = make_supervisor(client)
        session = supervisor.new_session("my-app", "my-env", "v1", DEPLOY_START)

        assert await supervisor._tick(session) is None
        assert session.state == SupervisionState.DEGRADED_GRACE
        assert session.grace.window_open


class TestFailureDetection:
    """Test failure reported through the event stream."""

    @pytest.mark.asyncio
    async def test_failure_event_beats_ready_green(self, make_supervisor, responses):
        """Test a failure event wins over a Ready/Green snapshot."""
        failure = responses.event(100, "Failed to deploy application.", "ERROR")
        trailing = responses.event(101, "Unsuccessful command execution", "ERROR")
        client = responses.client(
            events=[responses.events(failure), responses.events(trailing)],
            environments=[responses.environment("v1", "Ready", "Green")],
        )
        supervisor = make_supervisor(client)

        session, error = await _run(supervisor)

        assert isinstance(error, DeploymentFailedError)
        assert "Version: v1, Health: Green" in str(error)
        assert session.state == SupervisionState.FAILED
        # One extra poll so trailing events are collected
        assert len(client.event_windows) == 2
        assert client.environment_calls == 2

    @pytest.mark.asyncio
    async def test_failure_confirmed_on_next_snapshot(self, make_supervisor, responses):
        """Test the snapshot after the failure event fails the deployment."""
        failure = responses.event(100, "Failed to deploy application.", "ERROR")
        client = responses.client(
            events=[responses.events(failure), responses.events()],
            environments=[
                responses.environment("v0", "Updating", "Grey"),
                responses.environment("v1", "Ready", "Green"),
            ],
        )
        supervisor = make_supervisor(client)

        session, error = await _run(supervisor)

        assert isinstance(error, DeploymentFailedError)
        assert session.deployment_failed
        assert session.failure_tick == 1

    @pytest.mark.asyncio
    async def test_trailing_events_logged_before_failure(
        self, make_supervisor, responses, caplog
    ):
        """Test trailing events are logged before the failure verdict."""
        caplog.set_level(logging.INFO)
        failure = responses.event(100, "Failed to deploy application.", "ERROR")
        trailing = responses.event(105, "Rollback complete", "INFO")
        client = responses.client(
            events=[responses.events(failure), responses.events(trailing)],
            environments=[responses.environment("v0", "Updating", "Red")],
        )
        supervisor = make_supervisor(client)

        await _run(supervisor)

        messages = [r.getMessage() for r in caplog.records]
        trailing_index = messages.index("00:01:45 INFO: Rollback complete")
        failure_index = next(i for i, m in enumerate(messages) if m.startswith("Deployment failed!"))
        assert trailing_index < failure_index


class TestThrottling:
    """Test rate-limit handling on both streams."""

    @pytest.mark.asyncio
    async def test_four_environment_throttles_then_success(
        self, make_supervisor, responses, fake_clock
    ):
        """Test four throttles in a row are tolerated."""
        client = responses.client(
            environments=[responses.throttled()] * 4 + [responses.environment()]
        )
        supervisor = make_supervisor(client)

        session, result = await _run(supervisor)

        assert result.is_green
        assert session.environment_guard.consecutive_throttles == 0
        assert fake_clock.sleeps == [10, 10, 10, 10]

    @pytest.mark.asyncio
    async def test_five_environment_throttles_abort(self, make_supervisor, responses):
        """Test five throttles in a row abort supervision."""
        client = responses.client(environments=[responses.throttled()])
        supervisor = make_supervisor(client)

        session, error = await _run(supervisor)

        assert isinstance(error, ThrottlingError)
        assert isinstance(error, TransportError)
        assert "5 throttling errors in a row" in str(error)
        assert client.environment_calls == 5

    @pytest.mark.asyncio
    async def test_throttled_events_do_not_block_environment(
        self, make_supervisor, responses
    ):
        """Test throttled event queries never stop the environment evaluation."""
        client = responses.client(
            events=[responses.throttled()],
            environments=[
                responses.environment("v1", "Updating", "Grey"),
                responses.environment("v1", "Ready", "Green"),
            ],
        )
        supervisor = make_supervisor(client)

        session, result = await _run(supervisor)

        assert result.is_green
        assert session.events_guard.consecutive_throttles == 2
        assert session.cursor.next_start == DEPLOY_START

    @pytest.mark.asyncio
    async def test_events_throttles_never_abort(self, make_supervisor, responses):
        """Test the events stream keeps retrying past the environment limit."""
        client = responses.client(
            events=[responses.throttled()],
            environments=[responses.environment("v1", "Updating", "Grey")] * 7
            + [responses.environment()],
        )
        supervisor = make_supervisor(client)

        session, result = await _run(supervisor)

        assert result.is_green
        assert session.events_guard.consecutive_throttles == 8

    @pytest.mark.asyncio
    async def test_throttled_environment_does_not_block_events(
        self, make_supervisor, responses
    ):
        """Test events are still consumed while the environment is throttled."""
        client = responses.client(
            events=[responses.events(responses.event(1704110405)), responses.events()],
            environments=[responses.throttled(), responses.environment()],
        )
        supervisor = make_supervisor(client)

        session, result = await _run(supervisor)

        assert session.cursor.next_start == datetime(2024, 1, 1, 12, 0, 6, tzinfo=timezone.utc)
        assert client.event_windows[1] == session.cursor.next_start


class TestTransportErrors:
    """Test non-throttle failures from the status streams."""

    @pytest.mark.asyncio
    async def test_events_error_is_fatal(self, make_supervisor, responses):
        """Test a non-JSON events error aborts with diagnostics."""
        client = responses.client(
            events=[responses.error(500, "Internal error")],
            environments=[responses.environment("v1", "Updating", "Grey")],
        )
        supervisor = make_supervisor(client)

        session, error = await _run(supervisor)

        assert isinstance(error, TransportError)
        assert error.status_code == 500
        assert "Status: 500. Message: Internal error" in str(error)
        assert "have done 1 calls to describeEvents" in str(error)
        assert session.state == SupervisionState.FAILED

    @pytest.mark.asyncio
    async def test_environment_json_error_is_fatal(self, make_supervisor, responses):
        """Test a JSON environment error reports its error code."""
        client = responses.client(
            environments=[
                responses.error(
                    403,
                    {"Error": {"Code": "AccessDenied", "Message": "Not allowed"}},
                    headers={"content-type": "application/json"},
                )
            ]
        )
        supervisor = make_supervisor(client)

        session, error = await _run(supervisor)

        assert isinstance(error, TransportError)
        assert error.error_code == "AccessDenied"
        assert "Code: AccessDenied, Message: Not allowed" in str(error)

    @pytest.mark.asyncio
    async def test_events_network_error_is_wrapped(self, make_supervisor, responses):
        """Test a connection error on events becomes a TransportError with diagnostics."""
        client = responses.client(
            events=[httpx.ConnectError("connection refused")],
            environments=[responses.environment()],
        )
        supervisor = make_supervisor(client)

        session, error = await _run(supervisor)

        assert isinstance(error, TransportError)
        assert isinstance(error.__cause__, httpx.ConnectError)
        assert "connection refused" in str(error)
        assert "have done 1 calls to describeEvents" in str(error)
        assert session.event_calls == 1
        assert session.state == SupervisionState.FAILED

    @pytest.mark.asyncio
    async def test_environment_network_error_is_wrapped(self, make_supervisor, responses):
        """Test a read timeout on the environment query is fatal and counted."""
        client = responses.client(
            events=[responses.events()],
            environments=[httpx.ReadTimeout("timed out")],
        )
        supervisor = make_supervisor(client)

        session, error = await _run(supervisor)

        assert isinstance(error, TransportError)
        assert isinstance(error.__cause__, httpx.ReadTimeout)
        assert "1 calls to describeEnvironments" in str(error)
        assert session.environment_calls == 1
        assert session.state == SupervisionState.FAILED


def _slow_first_call(method, delay=5.0):
    """Make the first call to ``method`` answer only after ``delay`` real seconds."""
    calls = []

    async def wrapper(*args):
        calls.append(args)
        result = await method(*args)
        if len(calls) == 1:
            await asyncio.sleep(delay)
        return result

    return wrapper


class TestQueryTimeout:
    """Test that a slow query does not hold up the other stream."""

    @pytest.mark.asyncio
    async def test_slow_events_do_not_delay_environment(
        self, make_supervisor, responses, caplog
    ):
        """Test the environment verdict is reached while events are still pending."""
        caplog.set_level(logging.WARNING)
        client = responses.client(environments=[responses.environment()])
        client.describe_events = _slow_first_call(client.describe_events)
        supervisor = make_supervisor(client, query_timeout_seconds=0.05)

        session, result = await _run(supervisor)

        assert result.is_green
        assert session.state == SupervisionState.SUCCEEDED
        assert session.event_calls == 1
        assert any("Request to DescribeEvents did not answer" in m for m in caplog.messages)

    @pytest.mark.asyncio
    async def test_slow_environment_skipped_for_one_poll(
        self, make_supervisor, responses, fake_clock
    ):
        """Test a late snapshot is skipped and the next poll decides."""
        client = responses.client(environments=[responses.environment()])
        client.describe_environment = _slow_first_call(client.describe_environment)
        supervisor = make_supervisor(client, query_timeout_seconds=0.05)

        session, result = await _run(supervisor)

        assert result.is_green
        assert session.environment_calls == 2
        assert session.poll_count == 1
        assert fake_clock.sleeps == [10]


class TestCursorAndLogging:
    """Test event window handling and progress logging."""

    @pytest.mark.asyncio
    async def test_cursor_advances_past_newest_event(self, make_supervisor, responses):
        """Test the next event window starts one second after the newest event."""
        start = int(DEPLOY_START.timestamp())
        batch = responses.events(
            responses.event(start + 30), responses.event(start + 20), responses.event(start + 10)
        )
        client = responses.client(
            events=[batch, responses.events()],
            environments=[
                responses.environment("v1", "Updating", "Grey"),
                responses.environment(),
            ],
        )
        supervisor = make_supervisor(client)

        await _run(supervisor)

        assert client.event_windows[0] == DEPLOY_START
        assert client.event_windows[1] == DEPLOY_START + timedelta(seconds=31)

    @pytest.mark.asyncio
    async def test_heartbeat_every_sixth_poll(self, make_supervisor, responses, caplog):
        """Test the still-updating heartbeat is logged on every sixth poll."""
        caplog.set_level(logging.INFO)
        client = responses.client(
            environments=[responses.environment("v1", "Updating", "Grey", "Pending")] * 12
            + [responses.environment()]
        )
        supervisor = make_supervisor(client)

        await _run(supervisor)

        heartbeats = [r.getMessage() for r in caplog.records if "Still updating" in r.getMessage()]
        assert heartbeats == [
            'Still updating, status is "Updating", health is "Grey", health status is "Pending"'
        ] * 2

    @pytest.mark.asyncio
    async def test_cadence_escalates_with_elapsed_time(
        self, make_supervisor, responses, fake_clock
    ):
        """Test polling slows down after five minutes."""
        client = responses.client(
            environments=[responses.environment("v1", "Updating", "Grey")] * 32
            + [responses.environment()]
        )
        supervisor = make_supervisor(client)

        await _run(supervisor)

        assert fake_clock.sleeps[:31] == [10] * 31
        assert fake_clock.sleeps[31] == 20


class TestOverallTimeout:
    """Test the optional supervision deadline."""

    @pytest.mark.asyncio
    async def test_timeout_raises(self, responses):
        """Test supervision stops when the deadline passes."""
        client = responses.client(environments=[responses.environment("v1", "Updating", "Grey")])
        cadence = CadenceController(base_delay=0.01, medium_delay=0.01, long_delay=0.01)
        supervisor = DeploymentSupervisor(client, cadence=cadence, timeout_seconds=0.1)

        with pytest.raises(SupervisionTimeoutError, match="did not finish within"):
            await supervisor.supervise("my-app", "my-env", "v1", DEPLOY_START)
