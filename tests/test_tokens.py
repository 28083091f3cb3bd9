"""
Tests for session token issue/verify.
"""

from datetime import datetime, timedelta, timezone

import pytest

from food_ordering.core.config import TokenExpiryMode
from food_ordering.core.errors import InvalidToken
from food_ordering.services.tokens import TokenClaim, TokenService


class TestTokenService:
    """Signature, tampering and expiry."""

    @pytest.fixture
    def service(self):
        return TokenService("unit-test-key")

    def test_round_trip_returns_same_claim(self, service):
        claim = TokenClaim(email="a@x.com", subject="7", admin=False)
        assert service.verify(service.issue(claim)) == claim

    def test_admin_flag_survives_round_trip(self, service):
        token = service.issue(TokenClaim(email="boss@x.com", subject="1", admin=True))
        assert service.verify(token).admin is True

    def test_tampered_payload_rejected(self, service):
        token = service.issue(TokenClaim(email="a@x.com"))
        header, payload, signature = token.split(".")
        other = service.issue(TokenClaim(email="mallory@x.com")).split(".")[1]
        with pytest.raises(InvalidToken):
            service.verify(f"{header}.{other}.{signature}")

    def test_foreign_signed_token_rejected(self, service):
        foreign = TokenService("someone-elses-key").issue(TokenClaim(email="a@x.com"))
        with pytest.raises(InvalidToken):
            service.verify(foreign)

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
    def test_malformed_token_rejected(self, service, token):
        with pytest.raises(InvalidToken):
            service.verify(token)

    def test_no_expiry_by_default(self, service):
        token = service.issue(
            TokenClaim(email="a@x.com"),
            now=datetime.now(timezone.utc) - timedelta(days=3650),
        )
        assert service.verify(token).email == "a@x.com"

    def test_fixed_expiry_rejects_old_token(self):
        service = TokenService("k", expiry_mode=TokenExpiryMode.FIXED, ttl_minutes=5)
        old = service.issue(
            TokenClaim(email="a@x.com"),
            now=datetime.now(timezone.utc) - timedelta(minutes=10),
        )
        with pytest.raises(InvalidToken):
            service.verify(old)

    def test_fixed_expiry_accepts_fresh_token(self):
        service = TokenService("k", expiry_mode=TokenExpiryMode.FIXED, ttl_minutes=5)
        assert service.verify(service.issue(TokenClaim(email="a@x.com"))).email == "a@x.com"

    def test_expiring_service_rejects_token_without_exp(self):
        unbounded = TokenService("k").issue(TokenClaim(email="a@x.com"))
        expiring = TokenService("k", expiry_mode=TokenExpiryMode.FIXED)
        with pytest.raises(InvalidToken):
            expiring.verify(unbounded)

    def test_renew_only_in_sliding_mode(self):
        claim = TokenClaim(email="a@x.com")
        assert TokenService("k").renew(claim) is None
        assert TokenService("k", expiry_mode=TokenExpiryMode.FIXED).renew(claim) is None

        sliding = TokenService("k", expiry_mode=TokenExpiryMode.SLIDING)
        renewed = sliding.renew(claim)
        assert sliding.verify(renewed).email == "a@x.com"

    def test_empty_key_refused(self):
        with pytest.raises(ValueError):
            TokenService("")
