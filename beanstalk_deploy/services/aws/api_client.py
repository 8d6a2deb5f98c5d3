"""Signed AWS API client with a reusable HTTP connection pool."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import quote

import httpx

from beanstalk_deploy.common.constants import BEANSTALK_API_VERSION
from beanstalk_deploy.common.exceptions import TransportError
from beanstalk_deploy.services.aws.signing import (
    AwsCredentials,
    canonical_query_string,
    sign_request,
)

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


@dataclass
class ApiResponse:
    """Result of a single API call.

    ``data`` holds the decoded JSON document when the response is JSON and the
    raw body text otherwise.
    """

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    data: Any = None

    @property
    def is_json(self) -> bool:
        content_type = self.headers.get("content-type", "")
        return content_type.split(";")[0].strip() == JSON_CONTENT_TYPE

    @property
    def error(self) -> Optional[dict]:
        if self.is_json and isinstance(self.data, dict):
            error = self.data.get("Error")
            if isinstance(error, dict):
                return error
        return None

    @property
    def error_code(self) -> Optional[str]:
        error = self.error
        return error.get("Code") if error else None

    @property
    def error_message(self) -> Optional[str]:
        error = self.error
        return error.get("Message") if error else None


def format_error(response: ApiResponse) -> str:
    """Describe a failed response, with the error code when the body is JSON."""
    if not response.is_json:
        return f"Status: {response.status_code}. Message: {response.data}"
    return (
        f"Status: {response.status_code}. "
        f"Code: {response.error_code}, Message: {response.error_message}"
    )


def expect_status(expected: int, response: ApiResponse) -> None:
    """Raise TransportError unless the response has the expected status."""
    if response.status_code == expected:
        return
    raise TransportError(
        format_error(response),
        status_code=response.status_code,
        error_code=response.error_code,
    )


class AwsApiClient:
    """Sends SigV4-signed requests to AWS services.

    Maintains a single httpx.AsyncClient for connection pooling. The client is
    created lazily and released through close() or the async context manager.
    """

    def __init__(
        self,
        credentials: AwsCredentials,
        region: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            credentials: Keys used to sign every request
            region: AWS region of the Beanstalk application
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.credentials = credentials
        self.region = region
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client_initialized(self) -> httpx.AsyncClient:
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(
                        timeout=self.timeout, transport=self._transport
                    )
                    logger.debug(f"Initialized AWS client for region {self.region}")
        return self._client

    def service_host(self, service: str) -> str:
        return f"{service}.{self.region}.amazonaws.com"

    async def request(
        self,
        service: str,
        method: str = "GET",
        path: str = "/",
        *,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        content: bytes = b"",
        host: Optional[str] = None,
    ) -> ApiResponse:
        """Sign and send a request.

        Non-2xx responses are returned, not raised; callers decide which
        statuses are acceptable.

        Args:
            service: AWS service name (e.g. "elasticbeanstalk", "s3")
            method: HTTP method
            path: Request path
            params: Query string parameters
            headers: Extra headers
            content: Request body
            host: Host override, defaults to the regional service endpoint

        Returns:
            ApiResponse with decoded body

        Raises:
            httpx.TransportError: If the request could not be sent
        """
        client = await self._ensure_client_initialized()
        host = host or self.service_host(service)
        query = canonical_query_string(params)

        signed_headers = sign_request(
            method=method,
            host=host,
            path=path,
            query=query,
            headers=headers or {},
            payload=content,
            service=service,
            region=self.region,
            credentials=self.credentials,
        )

        url = f"https://{host}{quote(path or '/', safe='/-_.~')}"
        if query:
            url = f"{url}?{query}"

        response = await client.request(
            method, url, headers=signed_headers, content=content or None
        )
        return self._to_api_response(response)

    @staticmethod
    def _to_api_response(response: httpx.Response) -> ApiResponse:
        headers = {k.lower(): v for k, v in response.headers.items()}
        api_response = ApiResponse(status_code=response.status_code, headers=headers)
        if api_response.is_json and response.content:
            try:
                api_response.data = response.json()
            except json.JSONDecodeError:
                logger.warning("Response claimed JSON content but could not be decoded")
                api_response.data = response.text
        else:
            api_response.data = response.text
        return api_response

    async def beanstalk(self, operation: str, **params: str) -> ApiResponse:
        """Call an Elastic Beanstalk query API operation.

        Args:
            operation: Operation name (e.g. "DescribeEnvironments")
            **params: Operation parameters

        Returns:
            ApiResponse with the JSON document
        """
        query = {"Operation": operation, "Version": BEANSTALK_API_VERSION}
        query.update({k: str(v) for k, v in params.items()})
        return await self.request(
            "elasticbeanstalk",
            params=query,
            headers={"Accept": JSON_CONTENT_TYPE},
        )

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug("AWS client closed")

    async def __aenter__(self):
        await self._ensure_client_initialized()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
