"""Tests for guest access token issuance and verification."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest
from ordering.config import Settings
from ordering.guest.access import TOKEN_TYPE, issue_guest_token, token_lifetime_seconds, verify_guest_token
from ordering.shared.errors import AccessDeniedError, GuestTokenError

SETTINGS = Settings(guest_token_secret="unit-test-secret")
CONTACT = {"email": "guest@example.com", "phone": "0912"}


def _forge(payload, secret="unit-test-secret"):
    return jwt.encode(payload, secret, algorithm="HS256")


class TestIssue:
    def test_claims(self):
        token = issue_guest_token("ord-1", CONTACT, settings=SETTINGS)
        payload = jwt.decode(token, "unit-test-secret", algorithms=["HS256"])
        assert payload["orderId"] == "ord-1"
        assert payload["guestContact"] == CONTACT
        assert payload["type"] == TOKEN_TYPE
        assert payload["exp"] - payload["iat"] == 30 * 24 * 3600

    def test_lifetime(self):
        assert token_lifetime_seconds(SETTINGS) == 30 * 24 * 3600


class TestVerify:
    def test_round_trip(self):
        token = issue_guest_token("ord-1", CONTACT, settings=SETTINGS)
        grant = verify_guest_token(token, "ord-1", settings=SETTINGS)
        assert grant.order_id == "ord-1"
        assert grant.email == "guest@example.com"
        assert grant.covers("ord-1")

    def test_missing_token(self):
        with pytest.raises(GuestTokenError):
            verify_guest_token(None, settings=SETTINGS)

    def test_wrong_order(self):
        token = issue_guest_token("ord-1", CONTACT, settings=SETTINGS)
        with pytest.raises(AccessDeniedError):
            verify_guest_token(token, "ord-2", settings=SETTINGS)

    def test_expired(self):
        now = datetime.now(UTC)
        token = _forge({"orderId": "ord-1", "type": TOKEN_TYPE, "iat": now - timedelta(days=31), "exp": now - timedelta(days=1)})
        with pytest.raises(GuestTokenError, match="expired"):
            verify_guest_token(token, settings=SETTINGS)

    def test_forged_signature(self):
        token = _forge(
            {"orderId": "ord-1", "type": TOKEN_TYPE, "exp": datetime.now(UTC) + timedelta(days=1)},
            secret="someone-else",
        )
        with pytest.raises(GuestTokenError):
            verify_guest_token(token, settings=SETTINGS)

    def test_wrong_type(self):
        token = _forge({"orderId": "ord-1", "type": "session", "exp": datetime.now(UTC) + timedelta(days=1)})
        with pytest.raises(GuestTokenError, match="type"):
            verify_guest_token(token, settings=SETTINGS)

    def test_garbage(self):
        with pytest.raises(GuestTokenError):
            verify_guest_token("not.a.jwt", settings=SETTINGS)
