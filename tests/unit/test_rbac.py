"""Tests for roles, menus, link replace-sets and the authorization resolver."""

import pytest

from erp_backoffice.auth.service import UserService
from erp_backoffice.common.config import BackofficeSettings
from erp_backoffice.common.database import DatabaseManager
from erp_backoffice.common.exceptions import ConflictError, InvalidInputError, NotFoundError
from erp_backoffice.rbac.bootstrap import MENU_CATALOG, seed
from erp_backoffice.rbac.models import RolePermissionModel
from erp_backoffice.rbac.service import RbacService


def make_settings(**overrides) -> BackofficeSettings:
    defaults = {
        "access_token_secret": "test-access-secret-for-unit-tests-0123456789",
        "refresh_token_secret": "test-refresh-secret-for-unit-tests-9876543210",
        "db_url": "sqlite+aiosqlite://",
    }
    defaults.update(overrides)
    return BackofficeSettings(**defaults)


@pytest.fixture
async def db():
    manager = DatabaseManager(make_settings())
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def svc():
    return RbacService()


@pytest.fixture
async def catalog(db, svc):
    """Admin group with Users/Roles leaves, Reports group with a Sales leaf, one user."""
    async with db.get_session() as session:
        user = await UserService().create_user(session, None, "bob", "Bob", "pw")
        admin = await svc.create_menu(session, None, "Admin", sort=1)
        users = await svc.create_menu(session, None, "Users", parent_id=admin.id, path="/admin/user", sort=1)
        roles = await svc.create_menu(session, None, "Roles", parent_id=admin.id, path="/admin/role", sort=2)
        reports = await svc.create_menu(session, None, "Reports", sort=2)
        sales = await svc.create_menu(session, None, "Sales", parent_id=reports.id, path="/reports/sales")
        clerk = await svc.create_role(session, None, "CLERK", "Clerk")
        auditor = await svc.create_role(session, None, "AUDIT", "Auditor")
    return {
        "user": user.id,
        "admin": admin.id,
        "users": users.id,
        "roles": roles.id,
        "reports": reports.id,
        "sales": sales.id,
        "clerk": clerk.id,
        "auditor": auditor.id,
    }


class TestMenus:
    async def test_child_of_leaf_rejected(self, db, svc, catalog):
        async with db.get_session() as session:
            with pytest.raises(InvalidInputError):
                await svc.create_menu(session, None, "Nested", parent_id=catalog["users"])

    async def test_missing_parent_rejected(self, db, svc, catalog):
        async with db.get_session() as session:
            with pytest.raises(InvalidInputError):
                await svc.create_menu(session, None, "Orphan", parent_id=9999)

    async def test_duplicate_path_rejected(self, db, svc, catalog):
        async with db.get_session() as session:
            with pytest.raises(ConflictError):
                await svc.create_menu(session, None, "Again", parent_id=catalog["admin"], path="/admin/user")

    async def test_move_under_own_descendant_rejected(self, db, svc, catalog):
        async with db.get_session() as session:
            inner = await svc.create_menu(session, None, "Inner", parent_id=catalog["reports"])
        async with db.get_session() as session:
            with pytest.raises(InvalidInputError):
                await svc.update_menu(session, catalog["reports"], None, {"parent_id": inner.id})

    async def test_move_to_root(self, db, svc, catalog):
        async with db.get_session() as session:
            menu = await svc.update_menu(session, catalog["sales"], None, {"parent_id": None})
            assert menu.parent_id is None
        async with db.get_session() as session:
            forest = await svc.full_forest(session)
        assert catalog["sales"] in [n.id for n in forest]

    async def test_delete_group_with_children_conflicts(self, db, svc, catalog):
        async with db.get_session() as session:
            with pytest.raises(ConflictError):
                await svc.delete_menu(session, catalog["admin"])

    async def test_full_forest_order(self, db, svc, catalog):
        async with db.get_session() as session:
            forest = await svc.full_forest(session)
        assert [n.label for n in forest] == ["Admin", "Reports"]
        assert [c.label for c in forest[0].children] == ["Users", "Roles"]


class TestLinks:
    async def test_replace_user_roles_is_idempotent(self, db, svc, catalog):
        for _ in range(2):
            async with db.get_session() as session:
                roles = await svc.replace_user_roles(
                    session, catalog["user"], [catalog["clerk"], catalog["auditor"], catalog["clerk"]]
                )
        assert [r.id for r in roles] == [catalog["clerk"], catalog["auditor"]]

    async def test_replace_user_roles_with_empty_set(self, db, svc, catalog):
        async with db.get_session() as session:
            await svc.replace_user_roles(session, catalog["user"], [catalog["clerk"]])
        async with db.get_session() as session:
            roles = await svc.replace_user_roles(session, catalog["user"], [])
        assert roles == []

    async def test_unknown_role_rejected_and_previous_set_kept(self, db, svc, catalog):
        async with db.get_session() as session:
            await svc.replace_user_roles(session, catalog["user"], [catalog["clerk"]])
        async with db.get_session() as session:
            with pytest.raises(InvalidInputError):
                await svc.replace_user_roles(session, catalog["user"], [catalog["auditor"], 9999])
        async with db.get_session() as session:
            _, roles = await svc.get_user_roles(session, catalog["user"])
        assert [r.id for r in roles] == [catalog["clerk"]]

    async def test_replace_user_roles_unknown_user(self, db, svc, catalog):
        async with db.get_session() as session:
            with pytest.raises(NotFoundError):
                await svc.replace_user_roles(session, 9999, [catalog["clerk"]])

    async def test_replace_role_menus(self, db, svc, catalog):
        async with db.get_session() as session:
            menus = await svc.replace_role_menus(session, catalog["clerk"], [catalog["sales"], catalog["users"]])
        assert {m.id for m in menus} == {catalog["sales"], catalog["users"]}


class TestResolver:
    async def _grant(self, db, svc, catalog, role, menus):
        async with db.get_session() as session:
            await svc.replace_user_roles(session, catalog["user"], [catalog["clerk"], catalog["auditor"]])
            await svc.replace_role_menus(session, catalog[role], [catalog[m] for m in menus])

    async def test_user_forest_projection(self, db, svc, catalog):
        await self._grant(db, svc, catalog, "clerk", ["users", "admin"])
        async with db.get_session() as session:
            forest = await svc.user_forest(session, catalog["user"])
        assert [n.label for n in forest] == ["Admin"]
        assert [c.label for c in forest[0].children] == ["Users"]

    async def test_group_alone_is_not_enough(self, db, svc, catalog):
        await self._grant(db, svc, catalog, "clerk", ["reports"])
        async with db.get_session() as session:
            assert await svc.user_forest(session, catalog["user"]) == []

    async def test_read_requires_link(self, db, svc, catalog):
        await self._grant(db, svc, catalog, "clerk", ["sales"])
        async with db.get_session() as session:
            assert await svc.is_allowed(session, catalog["user"], "/reports/sales", "read") is True
            assert await svc.is_allowed(session, catalog["user"], "/admin/user", "read") is False

    async def test_flags_are_or_across_roles(self, db, svc, catalog):
        await self._grant(db, svc, catalog, "clerk", ["sales"])
        async with db.get_session() as session:
            await svc.upsert_role_permission(
                session, None, catalog["clerk"], catalog["sales"], True, False, False
            )
            await svc.upsert_role_permission(
                session, None, catalog["auditor"], catalog["sales"], False, False, True
            )
        async with db.get_session() as session:
            flags = await svc.resolve_permissions(session, catalog["user"], "/reports/sales")
            assert flags == {"may_create": True, "may_update": False, "may_delete": True}
            assert await svc.is_allowed(session, catalog["user"], "/reports/sales", "update") is False
            assert await svc.is_allowed(session, catalog["user"], "/reports/sales", "delete") is True

    async def test_no_rows_means_no_flags(self, db, svc, catalog):
        async with db.get_session() as session:
            flags = await svc.resolve_permissions(session, catalog["user"], "/nowhere")
        assert flags == {"may_create": False, "may_update": False, "may_delete": False}

    async def test_upsert_updates_single_row(self, db, svc, catalog):
        async with db.get_session() as session:
            first = await svc.upsert_role_permission(
                session, None, catalog["clerk"], catalog["sales"], True, True, True
            )
        async with db.get_session() as session:
            second = await svc.upsert_role_permission(
                session, None, catalog["clerk"], catalog["sales"], False, False, False
            )
        assert first.id == second.id
        assert (second.may_create, second.may_update, second.may_delete) == (False, False, False)

    async def test_duplicate_permission_row_conflicts(self, db, svc, catalog):
        async with db.get_session() as session:
            await svc.upsert_role_permission(
                session, None, catalog["clerk"], catalog["sales"], True, False, False
            )
        with pytest.raises(ConflictError):
            async with db.get_session() as session:
                session.add(RolePermissionModel(role_id=catalog["clerk"], menu_id=catalog["sales"]))
                await session.flush()

    async def test_permission_tree_annotations(self, db, svc, catalog):
        await self._grant(db, svc, catalog, "clerk", ["sales"])
        async with db.get_session() as session:
            await svc.upsert_role_permission(
                session, None, catalog["clerk"], catalog["sales"], False, True, False
            )
        async with db.get_session() as session:
            tree = await svc.role_permission_tree(session, catalog["clerk"])
        reports = next(n for n in tree if n["label"] == "Reports")
        sales = reports["children"][0]
        assert reports["linked"] is False
        assert sales["linked"] is True
        assert sales["may_update"] is True
        assert sales["may_create"] is False

    async def test_unknown_action(self, db, svc, catalog):
        async with db.get_session() as session:
            with pytest.raises(InvalidInputError):
                await svc.is_allowed(session, catalog["user"], "/reports/sales", "publish")


class TestSeed:
    async def test_seed_is_idempotent(self, db):
        async with db.get_session() as session:
            first = await seed(session, admin_password="pw")
        async with db.get_session() as session:
            second = await seed(session, admin_password="pw")
        expected = sum(1 + len(leaves) for _, _, leaves in MENU_CATALOG)
        assert first.menus_created == expected
        assert first.admin_created is True
        assert second.menus_created == 0
        assert second.admin_created is False
        assert second.admin_user_id == first.admin_user_id

    async def test_admin_can_do_everything(self, db):
        svc = RbacService()
        async with db.get_session() as session:
            result = await seed(session, admin_password="pw")
        async with db.get_session() as session:
            for action in ("read", "create", "update", "delete"):
                assert await svc.is_allowed(session, result.admin_user_id, "/admin/master/role", action)
            forest = await svc.user_forest(session, result.admin_user_id)
        assert [n.label for n in forest] == [group for group, _, _ in MENU_CATALOG]
