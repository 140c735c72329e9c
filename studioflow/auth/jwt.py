"""HS256 bearer tokens identifying the user acting on a project."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from studioflow.core.exceptions import AuthenticationError

ACCESS_TOKEN_USE = "access"
_HEADER = {"alg": "HS256", "typ": "JWT"}


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(segment: str) -> bytes:
    padding = "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(f"{segment}{padding}".encode("ascii"))


def _segment(document: dict[str, Any]) -> str:
    return _b64url_encode(json.dumps(document, separators=(",", ":"), sort_keys=True).encode("utf-8"))


def _signature(signing_input: str, secret: str) -> str:
    if not secret:
        raise AuthenticationError("JWT secret must be configured.")
    digest = hmac.new(secret.encode("utf-8"), signing_input.encode("utf-8"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def _read_segment(segment: str, what: str) -> dict[str, Any]:
    try:
        document = json.loads(_b64url_decode(segment).decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
        raise AuthenticationError(f"Invalid token {what}.") from exc
    if not isinstance(document, dict):
        raise AuthenticationError(f"Invalid token {what}.")
    return document


def encode_jwt(payload: dict[str, Any], secret: str, ttl: timedelta) -> str:
    """Sign ``payload`` with HS256, adding ``iat``, ``exp`` and ``jti`` when absent."""
    issued_at = datetime.now(timezone.utc)
    claims = {
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + ttl).timestamp()),
        "jti": uuid.uuid4().hex,
        **payload,
    }
    signing_input = f"{_segment(_HEADER)}.{_segment(claims)}"
    return f"{signing_input}.{_signature(signing_input, secret)}"


def decode_jwt(token: str, secret: str, verify_exp: bool = True) -> dict[str, Any]:
    """Verify the signature (and expiry) of ``token`` and return its claims."""
    parts = token.split(".") if token else []
    if len(parts) != 3:
        raise AuthenticationError("Invalid token format.")
    header_segment, payload_segment, signature_segment = parts

    expected = _signature(f"{header_segment}.{payload_segment}", secret)
    if not hmac.compare_digest(expected, signature_segment):
        raise AuthenticationError("Invalid token signature.")
    if _read_segment(header_segment, "header").get("alg") != _HEADER["alg"]:
        raise AuthenticationError("Unsupported token algorithm.")

    claims = _read_segment(payload_segment, "payload")
    if verify_exp:
        exp = claims.get("exp")
        if exp is None:
            raise AuthenticationError("Token is missing exp claim.")
        if int(exp) < int(datetime.now(timezone.utc).timestamp()):
            raise AuthenticationError("Token has expired.")
    return claims


def decode_access_token(token: str, secret: str) -> dict[str, Any]:
    """Decode a token and make sure it was issued for API access."""
    claims = decode_jwt(token=token, secret=secret)
    if claims.get("token_use", ACCESS_TOKEN_USE) != ACCESS_TOKEN_USE:
        raise AuthenticationError("Token cannot be used for API access.")
    if "sub" not in claims or "role" not in claims:
        raise AuthenticationError("Invalid auth claims.")
    return claims


def create_access_token(user_id: int, role: str, secret: str, ttl_minutes: int = 60) -> str:
    """Issue a token naming the acting user and their role."""
    payload = {"sub": str(user_id), "role": role, "token_use": ACCESS_TOKEN_USE}
    return encode_jwt(payload=payload, secret=secret, ttl=timedelta(minutes=ttl_minutes))
