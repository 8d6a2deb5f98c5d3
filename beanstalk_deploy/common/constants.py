"""Deployment and supervision constants."""

# ============================================================================
# Elastic Beanstalk API
# ============================================================================

# Query API version for all Elastic Beanstalk operations
BEANSTALK_API_VERSION = "2010-12-01"

# Severity filter for DescribeEvents (TRACE returns every severity)
EVENT_SEVERITY_FILTER = "TRACE"

# Error code the remote API uses for rate-limit rejections
THROTTLING_ERROR_CODE = "Throttling"

# ============================================================================
# Supervision Cadence
# ============================================================================

# Delay between polls at the start of supervision (seconds)
BASE_POLL_DELAY_SECONDS = 10

# Delay once supervision has run past the first threshold (seconds)
MEDIUM_POLL_DELAY_SECONDS = 20

# Delay once supervision has run past the second threshold (seconds)
LONG_POLL_DELAY_SECONDS = 30

# Elapsed time after which polling slows to the medium delay (seconds)
MEDIUM_POLL_THRESHOLD_SECONDS = 5 * 60

# Elapsed time after which polling slows to the long delay (seconds)
LONG_POLL_THRESHOLD_SECONDS = 10 * 60

# ============================================================================
# Supervision Limits
# ============================================================================

# Upper bound for a single status query, kept below the base poll delay (seconds)
QUERY_TIMEOUT_SECONDS = 8

# Consecutive environment throttles tolerated before supervision aborts
MAX_ENVIRONMENT_THROTTLES = 5

# Heartbeat log frequency while the environment is still updating (polls)
HEARTBEAT_EVERY_POLLS = 6

# Default grace window for non-green health after the update (seconds)
DEFAULT_WAIT_FOR_RECOVERY_SECONDS = 30

# Event message that marks a failed deployment
DEPLOYMENT_FAILURE_PATTERN = r"Failed to deploy application"

__all__ = [
    "BEANSTALK_API_VERSION",
    "EVENT_SEVERITY_FILTER",
    "THROTTLING_ERROR_CODE",
    "BASE_POLL_DELAY_SECONDS",
    "MEDIUM_POLL_DELAY_SECONDS",
    "LONG_POLL_DELAY_SECONDS",
    "MEDIUM_POLL_THRESHOLD_SECONDS",
    "LONG_POLL_THRESHOLD_SECONDS",
    "QUERY_TIMEOUT_SECONDS",
    "MAX_ENVIRONMENT_THROTTLES",
    "HEARTBEAT_EVERY_POLLS",
    "DEFAULT_WAIT_FOR_RECOVERY_SECONDS",
    "DEPLOYMENT_FAILURE_PATTERN",
]
