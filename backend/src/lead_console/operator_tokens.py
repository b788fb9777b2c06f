from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


class OperatorTokenError(ValueError):
    """Raised when operator session tokens are invalid or expired."""


@dataclass(frozen=True)
class OperatorTokenPayload:
    user_id: str
    expires_at: datetime


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(f"{data}{padding}".encode("ascii"))


def _sign(payload_b64: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload_b64.encode("ascii"), hashlib.sha256).hexdigest()


def issue_operator_token(
    *,
    user_id: str,
    secret: str,
    ttl_minutes: int,
    now: datetime | None = None,
) -> str:
    normalized_user = user_id.strip()
    if not normalized_user:
        raise OperatorTokenError("operator user_id is empty")
    if not secret:
        raise OperatorTokenError("operator session secret is empty")
    if ttl_minutes <= 0:
        raise OperatorTokenError("operator token ttl must be positive")

    issued_at = now or datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(minutes=ttl_minutes)
    payload_json = json.dumps(
        {"sub": normalized_user, "exp": int(expires_at.timestamp())},
        separators=(",", ":"),
        sort_keys=True,
    ).encode("utf-8")
    payload_b64 = _b64url_encode(payload_json)
    return f"{payload_b64}.{_sign(payload_b64, secret)}"


def decode_operator_token(token: str, *, secret: str, now: datetime | None = None) -> OperatorTokenPayload:
    if not token or "." not in token or not token.isascii():
        raise OperatorTokenError("invalid token format")
    if not secret:
        raise OperatorTokenError("operator session secret is empty")

    payload_b64, signature = token.rsplit(".", 1)
    if not hmac.compare_digest(signature, _sign(payload_b64, secret)):
        raise OperatorTokenError("token signature mismatch")

    try:
        payload_obj = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise OperatorTokenError("token payload decoding failed") from exc
    if not isinstance(payload_obj, dict):
        raise OperatorTokenError("token payload decoding failed")

    user_id = str(payload_obj.get("sub", "")).strip()
    if not user_id:
        raise OperatorTokenError("token subject missing")

    try:
        exp = int(payload_obj["exp"])
    except (KeyError, TypeError, ValueError) as exc:
        raise OperatorTokenError("token expiration missing") from exc

    expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    reference_now = now or datetime.now(timezone.utc)
    if expires_at <= reference_now:
        raise OperatorTokenError("token expired")

    return OperatorTokenPayload(user_id=user_id, expires_at=expires_at)
