"""RBAC service: roles, menus, link replace-sets, permission matrix and resolver."""

import logging
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_backoffice.auth.models import UserModel
from erp_backoffice.common.exceptions import ConflictError, InvalidInputError, NotFoundError
from erp_backoffice.common.listing import paginate
from erp_backoffice.common.schemas import ListParams, Pagination
from erp_backoffice.rbac.menu_tree import (
    MenuNode,
    build_forest,
    project_forest,
    would_create_cycle,
)
from erp_backoffice.rbac.models import (
    MenuModel,
    RoleMenuModel,
    RoleModel,
    RolePermissionModel,
    UserRoleModel,
)

logger = logging.getLogger(__name__)

READ = "read"
CREATE = "create"
UPDATE = "update"
DELETE = "delete"
ACTIONS = (READ, CREATE, UPDATE, DELETE)

_FLAG_FOR_ACTION = {CREATE: "may_create", UPDATE: "may_update", DELETE: "may_delete"}


class RbacService:
    """Role, menu and permission management plus the authorization resolver."""

    ROLE_SEARCH = (RoleModel.code, RoleModel.name)
    ROLE_SORT = {"id": RoleModel.id, "code": RoleModel.code, "name": RoleModel.name}
    MENU_SEARCH = (MenuModel.label, MenuModel.path)
    MENU_SORT = {
        "id": MenuModel.id,
        "label": MenuModel.label,
        "path": MenuModel.path,
        "sort": MenuModel.sort,
        "parent_id": MenuModel.parent_id,
    }

    # ── Roles ──

    async def list_roles(
        self, session: AsyncSession, params: ListParams
    ) -> tuple[list[RoleModel], Pagination]:
        return await paginate(
            session,
            select(RoleModel),
            params,
            search_columns=self.ROLE_SEARCH,
            sort_columns=self.ROLE_SORT,
            tie_breaker=RoleModel.id,
        )

    async def get_role(self, session: AsyncSession, role_id: int) -> RoleModel:
        role = await session.get(RoleModel, role_id)
        if role is None:
            raise NotFoundError("Role not found")
        return role

    async def create_role(
        self, session: AsyncSession, actor_id: int, code: str, name: str
    ) -> RoleModel:
        role = RoleModel(code=code, name=name, created_by_id=actor_id, updated_by_id=actor_id)
        session.add(role)
        await session.flush()
        return role

    async def update_role(
        self, session: AsyncSession, role_id: int, actor_id: int, **updates
    ) -> RoleModel:
        role = await self.get_role(session, role_id)
        for field in ("code", "name"):
            if updates.get(field) is not None:
                setattr(role, field, updates[field])
        role.updated_by_id = actor_id
        await session.flush()
        return role

    async def delete_role(self, session: AsyncSession, role_id: int) -> None:
        role = await self.get_role(session, role_id)
        await session.delete(role)
        await session.flush()

    # ── Menus ──

    async def list_menus(
        self, session: AsyncSession, params: ListParams
    ) -> tuple[list[MenuModel], Pagination]:
        return await paginate(
            session,
            select(MenuModel),
            params,
            search_columns=self.MENU_SEARCH,
            sort_columns=self.MENU_SORT,
            tie_breaker=MenuModel.id,
        )

    async def get_menu(self, session: AsyncSession, menu_id: int) -> MenuModel:
        menu = await session.get(MenuModel, menu_id)
        if menu is None:
            raise NotFoundError("Menu not found")
        return menu

    async def create_menu(
        self,
        session: AsyncSession,
        actor_id: int,
        label: str,
        parent_id: int | None = None,
        path: str | None = None,
        icon: str = "",
        sort: int = 0,
    ) -> MenuModel:
        path = path or None
        if parent_id is not None:
            await self._require_group_parent(session, parent_id)
        if path is not None:
            await self._ensure_path_free(session, path)
        menu = MenuModel(
            parent_id=parent_id,
            label=label,
            path=path,
            icon=icon,
            sort=sort,
            created_by_id=actor_id,
            updated_by_id=actor_id,
        )
        session.add(menu)
        await session.flush()
        return menu

    async def update_menu(
        self, session: AsyncSession, menu_id: int, actor_id: int, fields: dict[str, Any]
    ) -> MenuModel:
        """Apply the given fields; ``parent_id`` may be set to None to make a root."""
        menu = await self.get_menu(session, menu_id)

        if "parent_id" in fields and fields["parent_id"] != menu.parent_id:
            new_parent = fields["parent_id"]
            if new_parent is not None:
                await self._require_group_parent(session, new_parent)
                parents = await self._parent_map(session)
                if would_create_cycle(parents, menu_id, new_parent):
                    raise InvalidInputError("Menu cannot be moved under its own descendant")
            menu.parent_id = new_parent

        if "path" in fields:
            path = fields["path"] or None
            if path is not None and path != menu.path:
                if await self._count_children(session, menu_id):
                    raise InvalidInputError("A menu with child menus cannot have a path")
                await self._ensure_path_free(session, path, exclude_id=menu_id)
            menu.path = path

        for field in ("label", "icon", "sort"):
            if fields.get(field) is not None:
                setattr(menu, field, fields[field])
        menu.updated_by_id = actor_id
        await session.flush()
        return menu

    async def delete_menu(self, session: AsyncSession, menu_id: int) -> None:
        menu = await self.get_menu(session, menu_id)
        if await self._count_children(session, menu_id):
            raise ConflictError("Menu still has child menus")
        await session.delete(menu)
        await session.flush()

    async def _count_children(self, session: AsyncSession, menu_id: int) -> int:
        result = await session.execute(
            select(func.count()).select_from(MenuModel).where(MenuModel.parent_id == menu_id)
        )
        return result.scalar_one()

    async def _require_group_parent(self, session: AsyncSession, parent_id: int) -> None:
        parent = await session.get(MenuModel, parent_id)
        if parent is None:
            raise InvalidInputError("Parent menu does not exist")
        if parent.path:
            raise InvalidInputError("A menu with a path cannot have child menus")

    async def _ensure_path_free(
        self, session: AsyncSession, path: str, exclude_id: int | None = None
    ) -> None:
        query = select(MenuModel.id).where(MenuModel.path == path)
        if exclude_id is not None:
            query = query.where(MenuModel.id != exclude_id)
        if (await session.execute(query.limit(1))).first() is not None:
            raise ConflictError(f"Menu path {path} already exists")

    async def _parent_map(self, session: AsyncSession) -> dict[int, int | None]:
        rows = await session.execute(select(MenuModel.id, MenuModel.parent_id))
        return {menu_id: parent_id for menu_id, parent_id in rows.all()}

    # ── Menu forest ──

    async def full_forest(self, session: AsyncSession) -> list[MenuNode]:
        menus = (await session.execute(select(MenuModel))).scalars().all()
        return build_forest(menus)

    async def permitted_menu_ids(self, session: AsyncSession, user_id: int) -> set[int]:
        """Menus reachable through any of the user's roles."""
        result = await session.execute(
            select(RoleMenuModel.menu_id)
            .join(UserRoleModel, UserRoleModel.role_id == RoleMenuModel.role_id)
            .where(UserRoleModel.user_id == user_id)
            .distinct()
        )
        return set(result.scalars().all())

    async def user_forest(self, session: AsyncSession, user_id: int) -> list[MenuNode]:
        forest = await self.full_forest(session)
        permitted = await self.permitted_menu_ids(session, user_id)
        return project_forest(forest, permitted)

    async def role_permission_tree(
        self, session: AsyncSession, role_id: int
    ) -> list[dict[str, Any]]:
        """Full forest annotated with the role's menu links and action flags."""
        await self.get_role(session, role_id)
        forest = await self.full_forest(session)
        linked = set(
            (
                await session.execute(
                    select(RoleMenuModel.menu_id).where(RoleMenuModel.role_id == role_id)
                )
            ).scalars().all()
        )
        perms = {
            p.menu_id: p
            for p in (
                await session.execute(
                    select(RolePermissionModel).where(RolePermissionModel.role_id == role_id)
                )
            ).scalars().all()
        }

        def annotate(node: MenuNode) -> dict[str, Any]:
            perm = perms.get(node.id)
            return {
                "linked": node.id in linked,
                "may_create": bool(perm and perm.may_create),
                "may_update": bool(perm and perm.may_update),
                "may_delete": bool(perm and perm.may_delete),
            }

        return [root.to_dict(annotate) for root in forest]

    # ── Link replace-sets ──

    async def get_user_roles(
        self, session: AsyncSession, user_id: int
    ) -> tuple[UserModel, list[RoleModel]]:
        user = await session.get(UserModel, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user, await self._roles_for(session, user_id)

    async def list_user_roles(
        self, session: AsyncSession, params: ListParams
    ) -> tuple[list[tuple[UserModel, list[RoleModel]]], Pagination]:
        users, pagination = await paginate(
            session,
            select(UserModel),
            params,
            search_columns=(UserModel.username, UserModel.name),
            sort_columns={"id": UserModel.id, "username": UserModel.username, "name": UserModel.name},
            tie_breaker=UserModel.id,
        )
        by_user: dict[int, list[RoleModel]] = {u.id: [] for u in users}
        if users:
            rows = await session.execute(
                select(UserRoleModel.user_id, RoleModel)
                .join(RoleModel, RoleModel.id == UserRoleModel.role_id)
                .where(UserRoleModel.user_id.in_(list(by_user)))
                .order_by(RoleModel.id)
            )
            for user_id, role in rows.all():
                by_user[user_id].append(role)
        return [(u, by_user[u.id]) for u in users], pagination

    async def replace_user_roles(
        self, session: AsyncSession, user_id: int, role_ids: list[int]
    ) -> list[RoleModel]:
        """Make ``role_ids`` the user's complete role set."""
        if await session.get(UserModel, user_id) is None:
            raise NotFoundError("User not found")
        wanted = _unique(role_ids)
        await self._require_existing(session, RoleModel, wanted, "role")

        await session.execute(delete(UserRoleModel).where(UserRoleModel.user_id == user_id))
        session.add_all(UserRoleModel(user_id=user_id, role_id=rid) for rid in wanted)
        await session.flush()
        logger.info("Replaced roles of user %s with %s", user_id, wanted)
        return await self._roles_for(session, user_id)

    async def get_role_menus(self, session: AsyncSession, role_id: int) -> list[MenuModel]:
        await self.get_role(session, role_id)
        return await self._menus_for(session, role_id)

    async def replace_role_menus(
        self, session: AsyncSession, role_id: int, menu_ids: list[int]
    ) -> list[MenuModel]:
        """Make ``menu_ids`` the role's complete menu set."""
        await self.get_role(session, role_id)
        wanted = _unique(menu_ids)
        await self._require_existing(session, MenuModel, wanted, "menu")

        await session.execute(delete(RoleMenuModel).where(RoleMenuModel.role_id == role_id))
        session.add_all(RoleMenuModel(role_id=role_id, menu_id=mid) for mid in wanted)
        await session.flush()
        logger.info("Replaced menus of role %s with %s", role_id, wanted)
        return await self._menus_for(session, role_id)

    async def _roles_for(self, session: AsyncSession, user_id: int) -> list[RoleModel]:
        result = await session.execute(
            select(RoleModel)
            .join(UserRoleModel, UserRoleModel.role_id == RoleModel.id)
            .where(UserRoleModel.user_id == user_id)
            .order_by(RoleModel.id)
        )
        return list(result.scalars().all())

    async def _menus_for(self, session: AsyncSession, role_id: int) -> list[MenuModel]:
        result = await session.execute(
            select(MenuModel)
            .join(RoleMenuModel, RoleMenuModel.menu_id == MenuModel.id)
            .where(RoleMenuModel.role_id == role_id)
            .order_by(MenuModel.sort, MenuModel.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def _require_existing(session: AsyncSession, model, ids: list[int], kind: str) -> None:
        if not ids:
            return
        found = set(
            (await session.execute(select(model.id).where(model.id.in_(ids)))).scalars().all()
        )
        missing = [i for i in ids if i not in found]
        if missing:
            raise InvalidInputError(f"Unknown {kind} id(s): {missing}")

    # ── Permission matrix ──

    async def upsert_role_permission(
        self,
        session: AsyncSession,
        actor_id: int,
        role_id: int,
        menu_id: int,
        may_create: bool,
        may_update: bool,
        may_delete: bool,
    ) -> RolePermissionModel:
        """Insert or update the single (role, menu) row; clearing flags revokes."""
        await self.get_role(session, role_id)
        await self.get_menu(session, menu_id)
        result = await session.execute(
            select(RolePermissionModel).where(
                RolePermissionModel.role_id == role_id,
                RolePermissionModel.menu_id == menu_id,
            )
        )
        perm = result.scalar_one_or_none()
        if perm is None:
            perm = RolePermissionModel(role_id=role_id, menu_id=menu_id, created_by_id=actor_id)
            session.add(perm)
        perm.may_create = may_create
        perm.may_update = may_update
        perm.may_delete = may_delete
        perm.updated_by_id = actor_id
        await session.flush()
        return perm

    # ── Authorization resolver ──

    async def resolve_permissions(
        self, session: AsyncSession, user_id: int, path: str
    ) -> dict[str, bool]:
        """OR of every RolePermission row for menus at ``path`` across the user's roles."""
        result = await session.execute(
            select(RolePermissionModel)
            .join(MenuModel, MenuModel.id == RolePermissionModel.menu_id)
            .join(UserRoleModel, UserRoleModel.role_id == RolePermissionModel.role_id)
            .where(MenuModel.path == path, UserRoleModel.user_id == user_id)
        )
        flags = {"may_create": False, "may_update": False, "may_delete": False}
        for perm in result.scalars().all():
            flags["may_create"] = flags["may_create"] or perm.may_create
            flags["may_update"] = flags["may_update"] or perm.may_update
            flags["may_delete"] = flags["may_delete"] or perm.may_delete
        return flags

    async def can_reach(self, session: AsyncSession, user_id: int, path: str) -> bool:
        """True if any of the user's roles links a menu at ``path``."""
        result = await session.execute(
            select(RoleMenuModel.id)
            .join(MenuModel, MenuModel.id == RoleMenuModel.menu_id)
            .join(UserRoleModel, UserRoleModel.role_id == RoleMenuModel.role_id)
            .where(MenuModel.path == path, UserRoleModel.user_id == user_id)
            .limit(1)
        )
        return result.first() is not None

    async def is_allowed(
        self, session: AsyncSession, user_id: int, path: str, action: str
    ) -> bool:
        if action == READ:
            return await self.can_reach(session, user_id, path)
        flag = _FLAG_FOR_ACTION.get(action)
        if flag is None:
            raise InvalidInputError(f"Unknown action {action}")
        flags = await self.resolve_permissions(session, user_id, path)
        return flags[flag]


def _unique(ids: list[int]) -> list[int]:
    return list(dict.fromkeys(ids))
