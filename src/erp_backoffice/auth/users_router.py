"""User master API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from erp_backoffice.auth.schemas import UserCreate, UserResponse, UserUpdate
from erp_backoffice.common.listing import list_params
from erp_backoffice.common.schemas import ApiResponse, ListParams, Page
from erp_backoffice.common.security import require_access

router = APIRouter()

USER_PATH = "/admin/master/user"


def _get_service():
    from erp_backoffice.deps import get_user_service
    return get_user_service()


def _get_db():
    from erp_backoffice.deps import get_db
    return get_db()


@router.get(USER_PATH, response_model=ApiResponse[Page[UserResponse]])
async def list_users(
    params: ListParams = Depends(list_params),
    is_active: Optional[bool] = Query(None),
    _=Depends(require_access(USER_PATH, "read")),
):
    async with _get_db().get_session() as session:
        items, pagination = await _get_service().list_users(session, params, is_active=is_active)
        page = Page[UserResponse](
            items=[UserResponse.model_validate(u) for u in items], pagination=pagination
        )
    return ApiResponse(status=200, message="Success", data=page)


@router.get(USER_PATH + "/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(user_id: int, _=Depends(require_access(USER_PATH, "read"))):
    async with _get_db().get_session() as session:
        user = UserResponse.model_validate(await _get_service().get_user(session, user_id))
    return ApiResponse(status=200, message="Success", data=user)


@router.post(USER_PATH, response_model=ApiResponse[UserResponse], status_code=201)
async def create_user(body: UserCreate, actor_id: int = Depends(require_access(USER_PATH, "create"))):
    async with _get_db().get_session() as session:
        user = await _get_service().create_user(session, actor_id, **body.model_dump())
        data = UserResponse.model_validate(user)
    return ApiResponse(status=201, message="User created", data=data)


@router.put(USER_PATH + "/{user_id}", response_model=ApiResponse[UserResponse])
async def update_user(
    user_id: int, body: UserUpdate, actor_id: int = Depends(require_access(USER_PATH, "update"))
):
    async with _get_db().get_session() as session:
        user = await _get_service().update_user(
            session, user_id, actor_id, **body.model_dump(exclude_unset=True)
        )
        data = UserResponse.model_validate(user)
    return ApiResponse(status=200, message="User updated", data=data)


@router.delete(USER_PATH + "/{user_id}", response_model=ApiResponse[None])
async def delete_user(user_id: int, actor_id: int = Depends(require_access(USER_PATH, "delete"))):
    async with _get_db().get_session() as session:
        await _get_service().delete_user(session, user_id, actor_id)
    return ApiResponse(status=200, message="User deleted")
