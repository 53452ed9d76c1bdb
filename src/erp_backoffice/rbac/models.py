"""SQLAlchemy models for roles, menus and the permission links between them."""

from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from erp_backoffice.common.models import AuditStampMixin, Base, TimestampMixin


class RoleModel(Base, AuditStampMixin):
    __tablename__ = "mst_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class MenuModel(Base, AuditStampMixin):
    """A node of the navigation forest: a group (no path) or a leaf (path)."""

    __tablename__ = "mst_menus"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("mst_menus.id"), nullable=True, index=True
    )
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    icon: Mapped[str] = mapped_column(String(100), default="")
    sort: Mapped[int] = mapped_column(Integer, default=0)


class UserRoleModel(Base, TimestampMixin):
    __tablename__ = "mst_user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_role"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_roles.id", ondelete="CASCADE"), nullable=False, index=True
    )


class RoleMenuModel(Base, TimestampMixin):
    __tablename__ = "mst_role_menus"
    __table_args__ = (UniqueConstraint("role_id", "menu_id", name="uq_role_menu"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    role_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_roles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_menus.id", ondelete="CASCADE"), nullable=False, index=True
    )


class RolePermissionModel(Base, AuditStampMixin):
    __tablename__ = "mst_role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "menu_id", name="uq_role_permission"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    role_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_roles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("mst_menus.id", ondelete="CASCADE"), nullable=False, index=True
    )
    may_create: Mapped[bool] = mapped_column(Boolean, default=False)
    may_update: Mapped[bool] = mapped_column(Boolean, default=False)
    may_delete: Mapped[bool] = mapped_column(Boolean, default=False)
