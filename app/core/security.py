"""Signed bearer tokens carrying a verified identity.

Tokens are issued by the storefront's authenticator; this service only
verifies the signature and expiry and reads the identity out of them.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from app.domain.enums import OPERATOR_ROLES, IdentityRole

TOKEN_VERSION = 1


@dataclass(frozen=True, slots=True)
class Identity:
    user_id: str
    role: IdentityRole

    @property
    def is_operator(self) -> bool:
        return self.role in OPERATOR_ROLES


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(raw: str) -> bytes:
    padded = raw + ("=" * (-len(raw) % 4))
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def _sign(payload_segment: str, secret: str) -> bytes:
    return hmac.new(
        secret.encode("utf-8"),
        payload_segment.encode("utf-8"),
        hashlib.sha256,
    ).digest()


def create_identity_token(
    *,
    identity: Identity,
    secret: str,
    ttl_minutes: int,
) -> tuple[str, datetime]:
    now = datetime.now(UTC)
    expires_at = now + timedelta(minutes=ttl_minutes)
    payload = {
        "v": TOKEN_VERSION,
        "sub": identity.user_id,
        "role": identity.role.value,
        "exp": int(expires_at.timestamp()),
        "iat": int(now.timestamp()),
    }

    payload_raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode(
        "utf-8"
    )
    payload_segment = _b64url_encode(payload_raw)
    signature = _sign(payload_segment, secret)
    token = f"{payload_segment}.{_b64url_encode(signature)}"
    return token, expires_at


def decode_identity_token(token: str, secret: str) -> Identity:
    try:
        payload_segment, signature_segment = token.split(".", 1)
    except ValueError as exc:
        raise ValueError("Malformed token") from exc

    expected_signature = _sign(payload_segment, secret)
    try:
        actual_signature = _b64url_decode(signature_segment)
    except (ValueError, TypeError) as exc:
        raise ValueError("Malformed token signature") from exc

    if not hmac.compare_digest(expected_signature, actual_signature):
        raise ValueError("Invalid token signature")

    try:
        payload = json.loads(_b64url_decode(payload_segment).decode("utf-8"))
    except (ValueError, TypeError, json.JSONDecodeError) as exc:
        raise ValueError("Malformed token payload") from exc

    if not isinstance(payload, dict):
        raise ValueError("Malformed token payload")
    if payload.get("v") != TOKEN_VERSION:
        raise ValueError("Unsupported token version")

    try:
        user_id = str(payload["sub"]).strip()
        role = IdentityRole(str(payload["role"]).lower())
        expires_at = datetime.fromtimestamp(int(payload["exp"]), UTC)
    except (KeyError, ValueError, TypeError) as exc:
        raise ValueError("Malformed token payload") from exc

    if not user_id:
        raise ValueError("Malformed token payload")
    if expires_at <= datetime.now(UTC):
        raise ValueError("Token expired")

    return Identity(user_id=user_id, role=role)


def parse_bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    return credentials.strip()
