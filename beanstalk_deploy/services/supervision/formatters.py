"""Formatters for supervision log lines and error messages."""

from __future__ import annotations


def format_timespan(seconds: float) -> str:
    """Format elapsed seconds as ``<minutes>m<seconds>s``.

    Args:
        seconds: Elapsed time in seconds

    Returns:
        Formatted timespan, e.g. "3m7s"
    """
    total = int(seconds)
    minutes, remainder = divmod(total, 60)
    return f"{minutes}m{remainder}s"


def format_call_summary(event_calls: int, environment_calls: int, elapsed: float) -> str:
    """Format the request counters attached to supervision errors."""
    return (
        f"have done {event_calls} calls to describeEvents, "
        f"{environment_calls} calls to describeEnvironments in {format_timespan(elapsed)}"
    )


def format_heartbeat(status: str, health: str, health_status: str | None) -> str:
    return (
        f'Still updating, status is "{status}", health is "{health}", '
        f'health status is "{health_status}"'
    )
