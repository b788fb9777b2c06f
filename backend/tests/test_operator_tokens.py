from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from lead_console.operator_tokens import OperatorTokenError, decode_operator_token, issue_operator_token

SECRET = "test-operator-secret"


def test_issue_and_decode_operator_token() -> None:
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    token = issue_operator_token(user_id="user-001", secret=SECRET, ttl_minutes=30, now=now)

    payload = decode_operator_token(token, secret=SECRET, now=now + timedelta(minutes=5))

    assert payload.user_id == "user-001"
    assert payload.expires_at == now + timedelta(minutes=30)


def test_decode_rejects_wrong_secret() -> None:
    token = issue_operator_token(user_id="user-001", secret=SECRET, ttl_minutes=30)

    with pytest.raises(OperatorTokenError, match="signature mismatch"):
        decode_operator_token(token, secret="another-secret")


def test_decode_rejects_expired_token() -> None:
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    token = issue_operator_token(user_id="user-001", secret=SECRET, ttl_minutes=1, now=now)

    with pytest.raises(OperatorTokenError, match="expired"):
        decode_operator_token(token, secret=SECRET, now=now + timedelta(minutes=2))


@pytest.mark.parametrize("token", ["", "no-dot", "abc.def", "tökén.sig"])
def test_decode_rejects_malformed_tokens(token: str) -> None:
    with pytest.raises(OperatorTokenError):
        decode_operator_token(token, secret=SECRET)


def test_issue_requires_user_and_secret() -> None:
    with pytest.raises(OperatorTokenError):
        issue_operator_token(user_id=" ", secret=SECRET, ttl_minutes=5)
    with pytest.raises(OperatorTokenError):
        issue_operator_token(user_id="user-001", secret="", ttl_minutes=5)
