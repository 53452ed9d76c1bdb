"""SQLAlchemy models for users and password-reset tokens."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from erp_backoffice.common.models import AuditStampMixin, Base, TimestampMixin


class UserModel(Base, AuditStampMixin):
    __tablename__ = "mst_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    dept_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    email: Mapped[str] = mapped_column(String(255), default="")
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    otp_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    otp_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_two_fa: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # Single-valued rotation slot: the only live refresh token for this user.
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)


class PasswordResetModel(Base, TimestampMixin):
    __tablename__ = "password_resets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    is_used: Mapped[bool] = mapped_column(Boolean, default=False)
    expired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_by_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("mst_users.id"), nullable=True
    )
