"""Tests for access/rotation token minting and verification."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from erp_backoffice.auth.tokens import TokenService
from erp_backoffice.common.config import BackofficeSettings
from erp_backoffice.common.exceptions import (
    ExpiredTokenError,
    InvalidTokenError,
    TokenAlgorithmError,
)


ACCESS_SECRET = "test-access-secret-for-unit-tests-0123456789"
REFRESH_SECRET = "test-refresh-secret-for-unit-tests-9876543210"


def make_settings(**overrides) -> BackofficeSettings:
    defaults = {
        "access_token_secret": ACCESS_SECRET,
        "refresh_token_secret": REFRESH_SECRET,
        "db_url": "sqlite+aiosqlite://",
    }
    defaults.update(overrides)
    return BackofficeSettings(**defaults)


@pytest.fixture
def tokens():
    return TokenService(make_settings())


class TestMintAndVerify:
    def test_access_round_trip(self, tokens):
        token = tokens.mint_access(42)
        assert tokens.verify_access(token) == 42

    def test_refresh_round_trip(self, tokens):
        token = tokens.mint_refresh(7)
        assert tokens.verify_refresh(token) == 7

    def test_claims_carry_type_and_expiry(self, tokens):
        now = datetime.now(timezone.utc)
        token = tokens.mint_access(1, now=now)
        claims = jwt.decode(token, ACCESS_SECRET, algorithms=["HS256"])
        assert claims["type"] == "access"
        assert claims["exp"] - claims["iat"] == 900

    def test_tokens_minted_together_differ(self, tokens):
        now = datetime.now(timezone.utc)
        assert tokens.mint_refresh(1, now=now) != tokens.mint_refresh(1, now=now)

    def test_refresh_lifetime_from_settings(self):
        svc = TokenService(make_settings(refresh_token_ttl=120))
        token = svc.mint_refresh(1)
        claims = jwt.decode(token, REFRESH_SECRET, algorithms=["HS256"])
        assert claims["exp"] - claims["iat"] == 120


class TestRejection:
    def test_expired_access_token(self, tokens):
        issued = datetime.now(timezone.utc) - timedelta(hours=1)
        token = tokens.mint_access(1, now=issued)
        with pytest.raises(ExpiredTokenError):
            tokens.verify_access(token)

    def test_refresh_token_is_not_an_access_token(self, tokens):
        token = tokens.mint_refresh(1)
        with pytest.raises(InvalidTokenError):
            tokens.verify_access(token)

    def test_access_token_is_not_a_refresh_token(self, tokens):
        token = tokens.mint_access(1)
        with pytest.raises(InvalidTokenError):
            tokens.verify_refresh(token)

    def test_wrong_signing_key(self, tokens):
        forged = jwt.encode(
            {"user_id": 1, "type": "access", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            "some-other-key-that-is-long-enough-to-sign",
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            tokens.verify_access(forged)

    def test_other_algorithm_rejected(self, tokens):
        forged = jwt.encode(
            {"user_id": 1, "type": "access", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            ACCESS_SECRET,
            algorithm="HS512",
        )
        with pytest.raises(TokenAlgorithmError):
            tokens.verify_access(forged)

    def test_garbage_token(self, tokens):
        with pytest.raises(InvalidTokenError):
            tokens.verify_access("not-a-jwt")

    def test_missing_user_id(self, tokens):
        forged = jwt.encode(
            {"type": "access", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            ACCESS_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            tokens.verify_access(forged)
