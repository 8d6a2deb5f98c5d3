"""Pytest configuration for tests.

Sets up Python path and shared fixtures for all tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to Python path so imports work correctly
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from beanstalk_deploy.models import EnvironmentSnapshot, EventRecord  # noqa: E402
from beanstalk_deploy.services.aws.api_client import ApiResponse  # noqa: E402
from beanstalk_deploy.services.status_client import StatusResponse  # noqa: E402

JSON_HEADERS = {"content-type": "application/json"}


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeStatusClient:
    """Status client replaying scripted responses.

    Each queue is consumed in order; the last entry repeats once the queue is
    down to one item. Exceptions in a queue are raised instead of returned.
    """

    def __init__(self, events=None, environments=None):
        self.events = list(events or [])
        self.environments = list(environments or [])
        self.event_windows = []
        self.environment_calls = 0

    @staticmethod
    def _next(queue, default=None):
        item = queue.pop(0) if len(queue) > 1 else (queue[0] if queue else default)
        if isinstance(item, BaseException):
            raise item
        return item

    async def describe_events(self, application, environment, since):
        self.event_windows.append(since)
        return self._next(self.events, default=events_response())

    async def describe_environment(self, application, environment):
        self.environment_calls += 1
        return self._next(self.environments)

    def is_rate_limited(self, response):
        return response.status_code == 400 and response.error_code == "Throttling"


def event(timestamp, message="Environment update is starting.", severity="INFO"):
    return EventRecord(timestamp_seconds=timestamp, severity=severity, message=message)


def events_response(*events):
    return StatusResponse(
        response=ApiResponse(status_code=200, headers=JSON_HEADERS, data={}),
        events=list(events),
    )


def environment_response(version="v1", status="Ready", health="Green", health_status="Ok"):
    return StatusResponse(
        response=ApiResponse(status_code=200, headers=JSON_HEADERS, data={}),
        snapshot=EnvironmentSnapshot(
            version_label=version,
            status=status,
            health=health,
            health_status=health_status,
        ),
    )


def throttled_response():
    return StatusResponse(
        response=ApiResponse(
            status_code=400,
            headers=JSON_HEADERS,
            data={"Error": {"Code": "Throttling", "Message": "Rate exceeded"}},
        )
    )


def error_response(status_code, data, headers=None):
    return StatusResponse(
        response=ApiResponse(
            status_code=status_code, headers=headers or {"content-type": "text/plain"}, data=data
        )
    )


@pytest.fixture
def fake_clock():
    """Provide a fake clock starting at zero."""
    return FakeClock()


@pytest.fixture
def responses():
    """Expose response builders to tests."""

    class _Builders:
        event = staticmethod(event)
        events = staticmethod(events_response)
        environment = staticmethod(environment_response)
        throttled = staticmethod(throttled_response)
        error = staticmethod(error_response)
        client = FakeStatusClient

    return _Builders
