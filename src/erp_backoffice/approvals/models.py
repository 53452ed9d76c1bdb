"""SQLAlchemy models for approval definitions and the approval history stream."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from erp_backoffice.common.models import AuditStampMixin, Base, TimestampMixin, utcnow


class ApprovalModel(Base, AuditStampMixin):
    """Approval definition attached to one menu."""

    __tablename__ = "mst_approvals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    menu_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_menus.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class ApprovalLevelModel(Base, TimestampMixin):
    __tablename__ = "mst_approval_levels"
    __table_args__ = (UniqueConstraint("approval_id", "level", name="uq_approval_level"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    approval_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_approvals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")


class ApprovalUserModel(Base):
    __tablename__ = "mst_approval_users"
    __table_args__ = (UniqueConstraint("level_id", "user_id", name="uq_approval_level_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    level_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_approval_levels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_users.id", ondelete="CASCADE"), nullable=False, index=True
    )


class ApprovalHistoryModel(Base):
    """One appended workflow event; ``seq`` numbers events within a stream."""

    __tablename__ = "approval_histories"
    __table_args__ = (
        UniqueConstraint("ref_table", "ref_id", "seq", name="uq_approval_stream_seq"),
        Index("ix_approval_stream", "ref_table", "ref_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ref_table: Mapped[str] = mapped_column(String(64), nullable=False)
    ref_id: Mapped[int] = mapped_column(Integer, nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    approval_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_approvals.id"), nullable=False, index=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[int] = mapped_column(Integer, ForeignKey("mst_users.id"), nullable=False)
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    note: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
