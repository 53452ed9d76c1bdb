"""Signed bearer tokens: short-lived access and day-scale rotation tokens."""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from erp_backoffice.common.config import BackofficeSettings
from erp_backoffice.common.exceptions import (
    ExpiredTokenError,
    InvalidTokenError,
    TokenAlgorithmError,
)

ALGORITHM = "HS256"

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class _TokenKind:
    name: str
    key: str
    ttl: timedelta


class TokenService:
    """Mints and verifies the two independently keyed token kinds.

    Keys are taken from the settings object handed in at construction; the
    service never reads the environment itself.
    """

    def __init__(self, settings: BackofficeSettings):
        self._kinds = {
            ACCESS: _TokenKind(
                ACCESS,
                settings.access_token_secret,
                timedelta(seconds=settings.access_token_ttl),
            ),
            REFRESH: _TokenKind(
                REFRESH,
                settings.refresh_token_secret,
                timedelta(seconds=settings.refresh_token_ttl),
            ),
        }

    def mint_access(self, user_id: int, now: datetime | None = None) -> str:
        return self._mint(self._kinds[ACCESS], user_id, now)

    def mint_refresh(self, user_id: int, now: datetime | None = None) -> str:
        return self._mint(self._kinds[REFRESH], user_id, now)

    def verify_access(self, token: str) -> int:
        """Return the user id carried by a valid access token."""
        return self._verify(self._kinds[ACCESS], token)

    def verify_refresh(self, token: str) -> int:
        """Return the user id carried by a valid rotation token."""
        return self._verify(self._kinds[REFRESH], token)

    @staticmethod
    def _mint(kind: _TokenKind, user_id: int, now: datetime | None) -> str:
        issued = now or datetime.now(timezone.utc)
        payload = {
            "user_id": user_id,
            "type": kind.name,
            "jti": secrets.token_hex(8),
            "iat": issued,
            "exp": issued + kind.ttl,
        }
        return jwt.encode(payload, kind.key, algorithm=ALGORITHM)

    @staticmethod
    def _verify(kind: _TokenKind, token: str) -> int:
        try:
            claims = jwt.decode(
                token,
                kind.key,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "user_id"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise ExpiredTokenError() from exc
        except jwt.InvalidAlgorithmError as exc:
            raise TokenAlgorithmError() from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError() from exc

        if claims.get("type") != kind.name:
            raise InvalidTokenError()
        user_id = claims["user_id"]
        if not isinstance(user_id, int):
            raise InvalidTokenError()
        return user_id
