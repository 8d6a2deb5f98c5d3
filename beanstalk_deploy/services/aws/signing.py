"""AWS Signature Version 4 request signing."""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional
from urllib.parse import quote

ALGORITHM = "AWS4-HMAC-SHA256"


@dataclass(frozen=True)
class AwsCredentials:
    """Access key pair, optionally with a session token."""

    access_key: str
    secret_key: str
    session_token: Optional[str] = None


def _hmac(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def sha256_hex(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def _uri_encode(value: str, safe: str = "-_.~") -> str:
    return quote(value, safe=safe)


def canonical_query_string(params: Optional[Mapping[str, str]]) -> str:
    """Encode query parameters the way SigV4 expects (sorted, RFC 3986)."""
    if not params:
        return ""
    pairs = sorted((_uri_encode(str(k)), _uri_encode(str(v))) for k, v in params.items())
    return "&".join(f"{k}={v}" for k, v in pairs)


def signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """Derive the per-day, per-region, per-service signing key."""
    k_date = _hmac(f"AWS4{secret_key}".encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, "aws4_request")


def sign_request(
    *,
    method: str,
    host: str,
    path: str,
    query: str,
    headers: Mapping[str, str],
    payload: bytes,
    service: str,
    region: str,
    credentials: AwsCredentials,
    now: Optional[datetime] = None,
) -> dict[str, str]:
    """Sign a request and return the headers to send with it.

    Args:
        method: HTTP method
        host: Host the request is sent to
        path: Request path (already starting with "/")
        query: Canonical query string (see canonical_query_string)
        headers: Extra headers to sign and send
        payload: Request body
        service: AWS service name used in the credential scope
        region: AWS region used in the credential scope
        credentials: Keys used to sign
        now: Signing time, defaults to the current UTC time

    Returns:
        Headers including Authorization, x-amz-date and host
    """
    now = now or datetime.now(timezone.utc)
    amz_date = now.strftime("%Y%m%dT%H%M%SZ")
    date_stamp = now.strftime("%Y%m%d")
    payload_hash = sha256_hex(payload)

    signed = {k.lower(): str(v).strip() for k, v in headers.items()}
    signed["host"] = host
    signed["x-amz-date"] = amz_date
    if service == "s3":
        signed["x-amz-content-sha256"] = payload_hash
    if credentials.session_token:
        signed["x-amz-security-token"] = credentials.session_token

    header_names = sorted(signed)
    canonical_headers = "".join(f"{name}:{signed[name]}\n" for name in header_names)
    signed_headers = ";".join(header_names)

    canonical_request = "\n".join(
        [
            method.upper(),
            _uri_encode(path or "/", safe="/-_.~"),
            query,
            canonical_headers,
            signed_headers,
            payload_hash,
        ]
    )

    scope = f"{date_stamp}/{region}/{service}/aws4_request"
    string_to_sign = "\n".join(
        [ALGORITHM, amz_date, scope, sha256_hex(canonical_request.encode("utf-8"))]
    )
    signature = hmac.new(
        signing_key(credentials.secret_key, date_stamp, region, service),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()

    signed["authorization"] = (
        f"{ALGORITHM} Credential={credentials.access_key}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )
    return signed
