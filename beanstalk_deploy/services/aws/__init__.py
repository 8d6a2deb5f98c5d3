"""Signed AWS transport."""

from beanstalk_deploy.services.aws.api_client import (
    ApiResponse,
    AwsApiClient,
    expect_status,
    format_error,
)
from beanstalk_deploy.services.aws.signing import AwsCredentials, sign_request

__all__ = [
    "ApiResponse",
    "AwsApiClient",
    "AwsCredentials",
    "expect_status",
    "format_error",
    "sign_request",
]
