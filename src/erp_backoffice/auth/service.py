"""Identity and session service: login, 2FA, rotation, password lifecycle, users."""

import asyncio
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_backoffice.auth import totp
from erp_backoffice.auth.mailer import EmailSender
from erp_backoffice.auth.models import PasswordResetModel, UserModel
from erp_backoffice.auth.passwords import hash_password, verify_password
from erp_backoffice.auth.tokens import TokenService
from erp_backoffice.common.config import BackofficeSettings
from erp_backoffice.common.exceptions import (
    ExpiredTokenError,
    InactiveAccountError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidOtpError,
    InvalidTokenError,
    NotFoundError,
    TwoFactorRequiredError,
    UsedTokenError,
)
from erp_backoffice.common.listing import paginate
from erp_backoffice.common.models import as_utc
from erp_backoffice.common.schemas import ListParams, Pagination

logger = logging.getLogger(__name__)


@dataclass
class IssuedTokens:
    user: UserModel
    access_token: str
    refresh_token: str


@dataclass
class TwoFactorSetup:
    otp_key: str
    otp_url: str
    qr_image: str | None = None


class SessionService:
    """Login state machine, token rotation and the password lifecycle."""

    def __init__(
        self,
        settings: BackofficeSettings,
        tokens: TokenService,
        mailer: EmailSender,
        qr_writer: totp.QRCodeWriter,
    ):
        self.settings = settings
        self.tokens = tokens
        self.mailer = mailer
        self.qr_writer = qr_writer

    # ── Login ──

    async def login(self, session: AsyncSession, username: str, password: str) -> IssuedTokens:
        """Verify the password; issue tokens unless a second factor is required."""
        user = await self._load_login_candidate(session, username)
        ok = await asyncio.to_thread(verify_password, user.password_hash, password)
        if not ok:
            raise InvalidCredentialsError()
        if user.is_two_fa:
            raise TwoFactorRequiredError()
        return await self._issue(session, user)

    async def verify_two_fa(self, session: AsyncSession, username: str, otp_key: str) -> IssuedTokens:
        user = await self._load_login_candidate(session, username)
        if not user.is_two_fa:
            raise InvalidOtpError()
        if not totp.verify_code(user.otp_key, otp_key.strip(), skew=self.settings.totp_skew):
            raise InvalidOtpError()
        return await self._issue(session, user)

    async def _load_login_candidate(self, session: AsyncSession, username: str) -> UserModel:
        user = await self.get_by_username(session, username)
        if user is None:
            raise NotFoundError("User not found")
        if not user.is_active:
            raise InactiveAccountError()
        return user

    async def _issue(self, session: AsyncSession, user: UserModel) -> IssuedTokens:
        access = self.tokens.mint_access(user.id)
        refresh = self.tokens.mint_refresh(user.id)
        # Overwriting the slot invalidates any rotation token issued earlier.
        user.refresh_token = refresh
        await session.flush()
        logger.info("Issued session tokens for user %s", user.id)
        return IssuedTokens(user=user, access_token=access, refresh_token=refresh)

    # ── Rotation ──

    async def refresh_access(self, session: AsyncSession, refresh_token: str) -> str:
        """Exchange the rotation cookie for a new access token."""
        user = await self._user_for_refresh(session, refresh_token)
        if not user.is_active:
            raise InactiveAccountError()
        return self.tokens.mint_access(user.id)

    async def logout(self, session: AsyncSession, refresh_token: str) -> UserModel:
        user = await self._user_for_refresh(session, refresh_token)
        user.refresh_token = None
        await session.flush()
        logger.info("Cleared rotation slot for user %s", user.id)
        return user

    async def _user_for_refresh(self, session: AsyncSession, refresh_token: str) -> UserModel:
        user_id = self.tokens.verify_refresh(refresh_token)
        user = await session.get(UserModel, user_id)
        if user is None or user.refresh_token != refresh_token:
            raise InvalidTokenError("Refresh token is no longer valid")
        return user

    # ── Passwords ──

    async def change_password(
        self, session: AsyncSession, user_id: int, current: str, new: str
    ) -> UserModel:
        user = await self.get_user(session, user_id)
        ok = await asyncio.to_thread(verify_password, user.password_hash, current)
        if not ok:
            raise InvalidCredentialsError("Current password is incorrect")
        user.password_hash = await asyncio.to_thread(hash_password, new)
        user.updated_by_id = user_id
        await session.flush()
        return user

    async def send_password_reset(
        self, session: AsyncSession, target_id: int, actor_id: int
    ) -> tuple[PasswordResetModel, bool]:
        """Store a single-use reset token for ``target_id`` and email the link.

        Returns the stored token row and whether an email was actually sent.
        """
        user = await self.get_user(session, target_id)
        if not user.email:
            raise InvalidInputError("User has no email address")

        reset = PasswordResetModel(
            user_id=user.id,
            token=secrets.token_urlsafe(48),
            is_used=False,
            expired_at=datetime.now(timezone.utc)
            + timedelta(seconds=self.settings.reset_token_ttl),
            created_by_id=actor_id,
        )
        session.add(reset)
        await session.flush()

        link = self.settings.password_reset_url.format(token=reset.token)
        sent = await self.mailer.send_password_reset(user.email, user.name, user.username, link)
        logger.info("Password reset issued for user %s by %s (emailed=%s)", user.id, actor_id, sent)
        return reset, sent

    async def reset_password(
        self, session: AsyncSession, token: str, password: str, confirm: str
    ) -> UserModel:
        """Consume a reset token; the new hash and the used flag commit together."""
        result = await session.execute(
            select(PasswordResetModel).where(PasswordResetModel.token == token)
        )
        reset = result.scalar_one_or_none()
        if reset is None:
            raise NotFoundError("Token not found")
        if as_utc(reset.expired_at) <= datetime.now(timezone.utc):
            raise ExpiredTokenError()
        if reset.is_used:
            raise UsedTokenError()
        if password != confirm:
            raise InvalidInputError("Password confirmation does not match")

        user = await self.get_user(session, reset.user_id)
        user.password_hash = await asyncio.to_thread(hash_password, password)
        user.refresh_token = None
        reset.is_used = True
        await session.flush()
        logger.info("Password reset consumed for user %s", user.id)
        return user

    # ── Two-factor enrolment ──

    async def enable_two_fa(
        self, session: AsyncSession, target_id: int, actor_id: int
    ) -> TwoFactorSetup:
        """Enrol ``target_id`` into 2FA.

        The secret and its URL are stored before the flag is raised, so a user
        is never 2FA-required without a secret. An existing secret is reused.
        """
        user = await self.get_user(session, target_id)
        if user.otp_key:
            if not user.is_two_fa:
                user.is_two_fa = True
                user.updated_by_id = actor_id
                await session.flush()
            return TwoFactorSetup(otp_key=user.otp_key, otp_url=user.otp_url or "")

        secret = totp.new_secret()
        url = totp.provisioning_url(secret, user.username, self.settings.totp_issuer)
        user.otp_key = secret
        user.otp_url = url
        await session.flush()

        user.is_two_fa = True
        user.updated_by_id = actor_id
        await session.flush()

        file_name = f"user_{user.id}_{datetime.now(timezone.utc):%Y%m%d%H%M%S}.png"
        path = await self.qr_writer.write(url, file_name)
        logger.info("Enabled two-factor authentication for user %s", user.id)
        return TwoFactorSetup(otp_key=secret, otp_url=url, qr_image=str(path))

    # ── Lookups ──

    async def get_by_username(self, session: AsyncSession, username: str) -> UserModel | None:
        result = await session.execute(select(UserModel).where(UserModel.username == username))
        return result.scalar_one_or_none()

    async def get_user(self, session: AsyncSession, user_id: int) -> UserModel:
        user = await session.get(UserModel, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user


class UserService:
    """User master CRUD; passwords are hashed off the event loop."""

    SEARCH_COLUMNS = (UserModel.username, UserModel.name, UserModel.email)
    SORT_COLUMNS = {
        "id": UserModel.id,
        "username": UserModel.username,
        "name": UserModel.name,
        "email": UserModel.email,
        "created_at": UserModel.created_at,
    }

    async def list_users(
        self, session: AsyncSession, params: ListParams, is_active: bool | None = None
    ) -> tuple[list[UserModel], Pagination]:
        query = select(UserModel)
        if is_active is not None:
            query = query.where(UserModel.is_active == is_active)
        return await paginate(
            session,
            query,
            params,
            search_columns=self.SEARCH_COLUMNS,
            sort_columns=self.SORT_COLUMNS,
            tie_breaker=UserModel.id,
        )

    async def get_user(self, session: AsyncSession, user_id: int) -> UserModel:
        user = await session.get(UserModel, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def create_user(
        self,
        session: AsyncSession,
        actor_id: int | None,
        username: str,
        name: str,
        password: str,
        email: str = "",
        dept_id: int | None = None,
        is_active: bool = True,
        is_two_fa: bool = False,
    ) -> UserModel:
        if is_two_fa:
            raise InvalidInputError("Enable two-factor authentication through enrolment")
        user = UserModel(
            username=username,
            name=name,
            email=email,
            dept_id=dept_id,
            password_hash=await asyncio.to_thread(hash_password, password),
            is_active=is_active,
            is_two_fa=False,
            created_by_id=actor_id,
            updated_by_id=actor_id,
        )
        session.add(user)
        await session.flush()
        return user

    async def update_user(
        self, session: AsyncSession, user_id: int, actor_id: int, **updates
    ) -> UserModel:
        user = await self.get_user(session, user_id)
        for field in ("name", "email", "dept_id", "is_active"):
            if updates.get(field) is not None:
                setattr(user, field, updates[field])
        if updates.get("password"):
            user.password_hash = await asyncio.to_thread(hash_password, updates["password"])
        if updates.get("is_two_fa") is not None:
            if updates["is_two_fa"] and not user.otp_key:
                raise InvalidInputError("Enable two-factor authentication through enrolment")
            user.is_two_fa = updates["is_two_fa"]
        if updates.get("is_active") is False:
            user.refresh_token = None
        user.updated_by_id = actor_id
        await session.flush()
        return user

    async def delete_user(self, session: AsyncSession, user_id: int, actor_id: int) -> None:
        if user_id == actor_id:
            raise InvalidInputError("You cannot delete your own account")
        user = await self.get_user(session, user_id)
        await session.delete(user)
        await session.flush()
