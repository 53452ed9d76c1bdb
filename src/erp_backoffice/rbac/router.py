"""RBAC API router: roles, menus, menu trees, link sets and the permission matrix."""

from fastapi import APIRouter, Depends, Query

from erp_backoffice.common.listing import list_params
from erp_backoffice.common.schemas import ApiResponse, ListParams, Page
from erp_backoffice.common.security import get_current_user_id, require_access
from erp_backoffice.rbac.schemas import (
    MenuCreate,
    MenuResponse,
    MenuTreeNode,
    MenuUpdate,
    PermissionFlags,
    PermissionTreeNode,
    RoleCreate,
    RoleMenusResponse,
    RoleMenusUpdate,
    RolePermissionResponse,
    RolePermissionUpsert,
    RoleResponse,
    RoleUpdate,
    UserRolesResponse,
    UserRolesUpdate,
)

router = APIRouter()

ROLE_PATH = "/admin/master/role"
MENU_PATH = "/admin/master/menu"
USER_ROLE_PATH = "/admin/master/user-role"
ROLE_MENU_PATH = "/admin/master/role-menu"
ROLE_PERMISSION_PATH = "/admin/role-permission"


def _get_service():
    from erp_backoffice.deps import get_rbac_service
    return get_rbac_service()


def _get_db():
    from erp_backoffice.deps import get_db
    return get_db()


# ── Roles ──


@router.get(ROLE_PATH, response_model=ApiResponse[Page[RoleResponse]])
async def list_roles(
    params: ListParams = Depends(list_params), _=Depends(require_access(ROLE_PATH, "read"))
):
    svc = _get_service()
    async with _get_db().get_session() as session:
        items, pagination = await svc.list_roles(session, params)
        page = Page[RoleResponse](
            items=[RoleResponse.model_validate(r) for r in items], pagination=pagination
        )
    return ApiResponse(status=200, message="Success", data=page)


@router.get(ROLE_PATH + "/{role_id}", response_model=ApiResponse[RoleResponse])
async def get_role(role_id: int, _=Depends(require_access(ROLE_PATH, "read"))):
    async with _get_db().get_session() as session:
        role = RoleResponse.model_validate(await _get_service().get_role(session, role_id))
    return ApiResponse(status=200, message="Success", data=role)


@router.post(ROLE_PATH, response_model=ApiResponse[RoleResponse], status_code=201)
async def create_role(body: RoleCreate, user_id: int = Depends(require_access(ROLE_PATH, "create"))):
    async with _get_db().get_session() as session:
        role = await _get_service().create_role(session, user_id, body.code, body.name)
        data = RoleResponse.model_validate(role)
    return ApiResponse(status=201, message="Role created", data=data)


@router.put(ROLE_PATH + "/{role_id}", response_model=ApiResponse[RoleResponse])
async def update_role(
    role_id: int, body: RoleUpdate, user_id: int = Depends(require_access(ROLE_PATH, "update"))
):
    async with _get_db().get_session() as session:
        role = await _get_service().update_role(session, role_id, user_id, **body.model_dump())
        data = RoleResponse.model_validate(role)
    return ApiResponse(status=200, message="Role updated", data=data)


@router.delete(ROLE_PATH + "/{role_id}", response_model=ApiResponse[None])
async def delete_role(role_id: int, _=Depends(require_access(ROLE_PATH, "delete"))):
    async with _get_db().get_session() as session:
        await _get_service().delete_role(session, role_id)
    return ApiResponse(status=200, message="Role deleted")


# ── Menus ──


@router.get("/admin/master/tree-menu", response_model=ApiResponse[list[MenuTreeNode]])
async def menu_forest(_=Depends(require_access(MENU_PATH, "read"))):
    async with _get_db().get_session() as session:
        forest = await _get_service().full_forest(session)
    return ApiResponse(
        status=200, message="Success", data=[MenuTreeNode(**n.to_dict()) for n in forest]
    )


@router.get("/admin/master/tree-menu/user", response_model=ApiResponse[list[MenuTreeNode]])
async def user_menu_forest(user_id: int = Depends(get_current_user_id)):
    async with _get_db().get_session() as session:
        forest = await _get_service().user_forest(session, user_id)
    return ApiResponse(
        status=200, message="Success", data=[MenuTreeNode(**n.to_dict()) for n in forest]
    )


@router.get(MENU_PATH, response_model=ApiResponse[Page[MenuResponse]])
async def list_menus(
    params: ListParams = Depends(list_params), _=Depends(require_access(MENU_PATH, "read"))
):
    async with _get_db().get_session() as session:
        items, pagination = await _get_service().list_menus(session, params)
        page = Page[MenuResponse](
            items=[MenuResponse.model_validate(m) for m in items], pagination=pagination
        )
    return ApiResponse(status=200, message="Success", data=page)


@router.get(MENU_PATH + "/{menu_id}", response_model=ApiResponse[MenuResponse])
async def get_menu(menu_id: int, _=Depends(require_access(MENU_PATH, "read"))):
    async with _get_db().get_session() as session:
        menu = MenuResponse.model_validate(await _get_service().get_menu(session, menu_id))
    return ApiResponse(status=200, message="Success", data=menu)


@router.post(MENU_PATH, response_model=ApiResponse[MenuResponse], status_code=201)
async def create_menu(body: MenuCreate, user_id: int = Depends(require_access(MENU_PATH, "create"))):
    async with _get_db().get_session() as session:
        menu = await _get_service().create_menu(session, user_id, **body.model_dump())
        data = MenuResponse.model_validate(menu)
    return ApiResponse(status=201, message="Menu created", data=data)


@router.put(MENU_PATH + "/{menu_id}", response_model=ApiResponse[MenuResponse])
async def update_menu(
    menu_id: int, body: MenuUpdate, user_id: int = Depends(require_access(MENU_PATH, "update"))
):
    async with _get_db().get_session() as session:
        menu = await _get_service().update_menu(
            session, menu_id, user_id, body.model_dump(exclude_unset=True)
        )
        data = MenuResponse.model_validate(menu)
    return ApiResponse(status=200, message="Menu updated", data=data)


@router.delete(MENU_PATH + "/{menu_id}", response_model=ApiResponse[None])
async def delete_menu(menu_id: int, _=Depends(require_access(MENU_PATH, "delete"))):
    async with _get_db().get_session() as session:
        await _get_service().delete_menu(session, menu_id)
    return ApiResponse(status=200, message="Menu deleted")


# ── User roles / role menus ──


@router.get(USER_ROLE_PATH, response_model=ApiResponse[Page[UserRolesResponse]])
async def list_user_roles(
    params: ListParams = Depends(list_params), _=Depends(require_access(USER_ROLE_PATH, "read"))
):
    async with _get_db().get_session() as session:
        rows, pagination = await _get_service().list_user_roles(session, params)
        page = Page[UserRolesResponse](
            items=[_user_roles(user, roles) for user, roles in rows], pagination=pagination
        )
    return ApiResponse(status=200, message="Success", data=page)


@router.get(USER_ROLE_PATH + "/{user_id}", response_model=ApiResponse[UserRolesResponse])
async def get_user_roles(user_id: int, _=Depends(require_access(USER_ROLE_PATH, "read"))):
    async with _get_db().get_session() as session:
        user, roles = await _get_service().get_user_roles(session, user_id)
        data = _user_roles(user, roles)
    return ApiResponse(status=200, message="Success", data=data)


@router.put(USER_ROLE_PATH + "/{user_id}", response_model=ApiResponse[UserRolesResponse])
async def replace_user_roles(
    user_id: int,
    body: UserRolesUpdate,
    _=Depends(require_access(USER_ROLE_PATH, "update")),
):
    svc = _get_service()
    async with _get_db().get_session() as session:
        await svc.replace_user_roles(session, user_id, body.role_ids)
        user, roles = await svc.get_user_roles(session, user_id)
        data = _user_roles(user, roles)
    return ApiResponse(status=200, message="User roles updated", data=data)


@router.get(ROLE_MENU_PATH + "/{role_id}", response_model=ApiResponse[RoleMenusResponse])
async def get_role_menus(role_id: int, _=Depends(require_access(ROLE_MENU_PATH, "read"))):
    async with _get_db().get_session() as session:
        menus = await _get_service().get_role_menus(session, role_id)
        data = RoleMenusResponse(
            role_id=role_id, menus=[MenuResponse.model_validate(m) for m in menus]
        )
    return ApiResponse(status=200, message="Success", data=data)


@router.put(ROLE_MENU_PATH + "/{role_id}", response_model=ApiResponse[RoleMenusResponse])
async def replace_role_menus(
    role_id: int,
    body: RoleMenusUpdate,
    _=Depends(require_access(ROLE_MENU_PATH, "update")),
):
    async with _get_db().get_session() as session:
        menus = await _get_service().replace_role_menus(session, role_id, body.menu_ids)
        data = RoleMenusResponse(
            role_id=role_id, menus=[MenuResponse.model_validate(m) for m in menus]
        )
    return ApiResponse(status=200, message="Role menus updated", data=data)


def _user_roles(user, roles) -> UserRolesResponse:
    return UserRolesResponse(
        user_id=user.id,
        username=user.username,
        name=user.name,
        roles=[RoleResponse.model_validate(r) for r in roles],
    )


# ── Permission matrix ──


@router.get(ROLE_PERMISSION_PATH + "/path", response_model=ApiResponse[PermissionFlags])
async def permissions_for_path(
    path: str = Query(..., min_length=1), user_id: int = Depends(get_current_user_id)
):
    async with _get_db().get_session() as session:
        flags = await _get_service().resolve_permissions(session, user_id, path)
    return ApiResponse(status=200, message="Success", data=PermissionFlags(**flags))


@router.get(
    ROLE_PERMISSION_PATH + "/{role_id}", response_model=ApiResponse[list[PermissionTreeNode]]
)
async def role_permission_tree(
    role_id: int, _=Depends(require_access(ROLE_PERMISSION_PATH, "read"))
):
    async with _get_db().get_session() as session:
        tree = await _get_service().role_permission_tree(session, role_id)
    return ApiResponse(
        status=200, message="Success", data=[PermissionTreeNode(**node) for node in tree]
    )


@router.post(ROLE_PERMISSION_PATH, response_model=ApiResponse[RolePermissionResponse])
async def upsert_role_permission(
    body: RolePermissionUpsert,
    user_id: int = Depends(require_access(ROLE_PERMISSION_PATH, "update")),
):
    async with _get_db().get_session() as session:
        perm = await _get_service().upsert_role_permission(
            session,
            user_id,
            role_id=body.role_id,
            menu_id=body.menu_id,
            may_create=body.may_create,
            may_update=body.may_update,
            may_delete=body.may_delete,
        )
        data = RolePermissionResponse.model_validate(perm)
    return ApiResponse(status=200, message="Role permission saved", data=data)
