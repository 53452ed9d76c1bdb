"""Idempotent seed: built-in menu forest, Administrator role and first admin user."""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_backoffice.auth.models import UserModel
from erp_backoffice.auth.passwords import hash_password
from erp_backoffice.masterdata.resources import RESOURCES
from erp_backoffice.rbac.models import (
    MenuModel,
    RoleMenuModel,
    RoleModel,
    RolePermissionModel,
    UserRoleModel,
)

logger = logging.getLogger(__name__)

ADMIN_ROLE_CODE = "ADMIN"

# (group label, icon, [(leaf label, path)])
MENU_CATALOG: list[tuple[str, str, list[tuple[str, str]]]] = [
    (
        "Administration",
        "settings",
        [
            ("Users", "/admin/master/user"),
            ("Roles", "/admin/master/role"),
            ("Menus", "/admin/master/menu"),
            ("User Roles", "/admin/master/user-role"),
            ("Role Menus", "/admin/master/role-menu"),
            ("Role Permissions", "/admin/role-permission"),
            ("Activity Log", "/admin/activity-log"),
        ],
    ),
    ("Approval", "check-square", [("Approvals", "/admin/approval")]),
    ("Master Data", "database", [(r.label, r.path) for r in RESOURCES]),
]


@dataclass
class SeedResult:
    menus_created: int
    role_id: int
    admin_user_id: int
    admin_created: bool


async def seed_menus(session: AsyncSession, actor_id: int | None = None) -> tuple[list[MenuModel], int]:
    """Create any catalog menu that is missing; returns every catalog menu."""
    created = 0
    menus: list[MenuModel] = []
    for group_sort, (group_label, icon, leaves) in enumerate(MENU_CATALOG, start=1):
        group = (
            await session.execute(
                select(MenuModel).where(
                    MenuModel.label == group_label,
                    MenuModel.parent_id.is_(None),
                    MenuModel.path.is_(None),
                )
            )
        ).scalars().first()
        if group is None:
            group = MenuModel(
                label=group_label, icon=icon, sort=group_sort,
                created_by_id=actor_id, updated_by_id=actor_id,
            )
            session.add(group)
            await session.flush()
            created += 1
        menus.append(group)

        for leaf_sort, (label, path) in enumerate(leaves, start=1):
            leaf = (
                await session.execute(select(MenuModel).where(MenuModel.path == path))
            ).scalars().first()
            if leaf is None:
                leaf = MenuModel(
                    parent_id=group.id, label=label, path=path, sort=leaf_sort,
                    created_by_id=actor_id, updated_by_id=actor_id,
                )
                session.add(leaf)
                created += 1
            menus.append(leaf)
    await session.flush()
    return menus, created


async def seed_admin_role(session: AsyncSession, menus: list[MenuModel]) -> RoleModel:
    """Administrator role linked to every menu with every action flag."""
    role = (
        await session.execute(select(RoleModel).where(RoleModel.code == ADMIN_ROLE_CODE))
    ).scalar_one_or_none()
    if role is None:
        role = RoleModel(code=ADMIN_ROLE_CODE, name="Administrator")
        session.add(role)
        await session.flush()

    linked = set(
        (
            await session.execute(select(RoleMenuModel.menu_id).where(RoleMenuModel.role_id == role.id))
        ).scalars().all()
    )
    permitted = {
        p.menu_id: p
        for p in (
            await session.execute(
                select(RolePermissionModel).where(RolePermissionModel.role_id == role.id)
            )
        ).scalars().all()
    }
    for menu in menus:
        if menu.id not in linked:
            session.add(RoleMenuModel(role_id=role.id, menu_id=menu.id))
        perm = permitted.get(menu.id)
        if perm is None:
            perm = RolePermissionModel(role_id=role.id, menu_id=menu.id)
            session.add(perm)
        perm.may_create = perm.may_update = perm.may_delete = True
    await session.flush()
    return role


async def seed(
    session: AsyncSession,
    admin_username: str = "admin",
    admin_password: str = "admin",
    admin_name: str = "Administrator",
    admin_email: str = "",
) -> SeedResult:
    """Bring the store up to the built-in catalog; safe to run repeatedly."""
    menus, created = await seed_menus(session)
    role = await seed_admin_role(session, menus)

    admin = (
        await session.execute(select(UserModel).where(UserModel.username == admin_username))
    ).scalar_one_or_none()
    admin_created = admin is None
    if admin is None:
        admin = UserModel(
            username=admin_username,
            name=admin_name,
            email=admin_email,
            password_hash=await asyncio.to_thread(hash_password, admin_password),
            is_active=True,
            is_two_fa=False,
        )
        session.add(admin)
        await session.flush()

    has_role = (
        await session.execute(
            select(UserRoleModel.id).where(
                UserRoleModel.user_id == admin.id, UserRoleModel.role_id == role.id
            )
        )
    ).first()
    if has_role is None:
        session.add(UserRoleModel(user_id=admin.id, role_id=role.id))
    await session.flush()

    logger.info(
        "Seed complete: %d menu(s) created, admin user %s (%s)",
        created, admin.id, "created" if admin_created else "existing",
    )
    return SeedResult(
        menus_created=created, role_id=role.id, admin_user_id=admin.id, admin_created=admin_created
    )
