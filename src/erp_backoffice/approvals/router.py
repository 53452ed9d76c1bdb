"""Approval definition and approval workflow API routers."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from erp_backoffice.approvals.schemas import (
    ApprovalCreate,
    ApprovalResponse,
    ApprovalSummary,
    ApprovalUpdate,
    HistoryEvent,
    LevelCreate,
    LevelResponse,
    LevelUser,
    LevelUsersUpdate,
    PendingItem,
    StreamView,
    WorkflowActionRequest,
)
from erp_backoffice.common.listing import list_params
from erp_backoffice.common.schemas import ApiResponse, ListParams, Page
from erp_backoffice.common.security import get_current_user_id, require_access

router = APIRouter()

APPROVAL_PATH = "/admin/approval"


def _get_definitions():
    from erp_backoffice.deps import get_approval_service
    return get_approval_service()


def _get_workflow():
    from erp_backoffice.deps import get_workflow_service
    return get_workflow_service()


def _get_db():
    from erp_backoffice.deps import get_db
    return get_db()


# ── Definitions ──


@router.get(APPROVAL_PATH, response_model=ApiResponse[Page[ApprovalSummary]])
async def list_approvals(
    params: ListParams = Depends(list_params),
    _=Depends(require_access(APPROVAL_PATH, "read")),
):
    svc = _get_definitions()
    async with _get_db().get_session() as session:
        items, pagination = await svc.list_definitions(session, params)
        page = Page[ApprovalSummary](
            items=[ApprovalSummary.model_validate(a) for a in items], pagination=pagination
        )
    return ApiResponse(status=200, message="Success", data=page)


@router.get(APPROVAL_PATH + "/{approval_id}", response_model=ApiResponse[ApprovalResponse])
async def get_approval(approval_id: int, _=Depends(require_access(APPROVAL_PATH, "read"))):
    svc = _get_definitions()
    async with _get_db().get_session() as session:
        approval = await svc.get_approval(session, approval_id)
        data = await svc.describe(session, approval)
    return ApiResponse(status=200, message="Success", data=ApprovalResponse(**data))


@router.get(APPROVAL_PATH + "/{menu_id}/menu", response_model=ApiResponse[ApprovalResponse])
async def get_approval_by_menu(menu_id: int, _=Depends(get_current_user_id)):
    svc = _get_definitions()
    async with _get_db().get_session() as session:
        approval = await svc.get_by_menu(session, menu_id)
        data = await svc.describe(session, approval)
    return ApiResponse(status=200, message="Success", data=ApprovalResponse(**data))


@router.post(APPROVAL_PATH, response_model=ApiResponse[ApprovalResponse], status_code=201)
async def create_approval(
    body: ApprovalCreate, user_id: int = Depends(require_access(APPROVAL_PATH, "create"))
):
    svc = _get_definitions()
    async with _get_db().get_session() as session:
        approval = await svc.create_definition(
            session,
            user_id,
            menu_id=body.menu_id,
            name=body.name,
            levels=[lv.model_dump() for lv in body.levels],
        )
        data = await svc.describe(session, approval)
    return ApiResponse(status=201, message="Approval created", data=ApprovalResponse(**data))


@router.put(APPROVAL_PATH + "/{approval_id}", response_model=ApiResponse[ApprovalResponse])
async def update_approval(
    approval_id: int,
    body: ApprovalUpdate,
    user_id: int = Depends(require_access(APPROVAL_PATH, "update")),
):
    svc = _get_definitions()
    async with _get_db().get_session() as session:
        approval = await svc.update_definition(session, approval_id, user_id, **body.model_dump())
        data = await svc.describe(session, approval)
    return ApiResponse(status=200, message="Approval updated", data=ApprovalResponse(**data))


@router.delete(APPROVAL_PATH + "/{approval_id}", response_model=ApiResponse[None])
async def delete_approval(approval_id: int, _=Depends(require_access(APPROVAL_PATH, "delete"))):
    svc = _get_definitions()
    async with _get_db().get_session() as session:
        await svc.delete_definition(session, approval_id)
    return ApiResponse(status=200, message="Approval deleted")


# ── Levels ──


@router.post(
    APPROVAL_PATH + "/{approval_id}/level",
    response_model=ApiResponse[ApprovalResponse],
    status_code=201,
)
async def append_level(
    approval_id: int,
    body: LevelCreate,
    user_id: int = Depends(require_access(APPROVAL_PATH, "update")),
):
    svc = _get_definitions()
    async with _get_db().get_session() as session:
        await svc.append_level(
            session, approval_id, user_id, level=body.level, name=body.name, user_ids=body.user_ids
        )
        data = await svc.describe(session, await svc.get_approval(session, approval_id))
    return ApiResponse(status=201, message="Approval level added", data=ApprovalResponse(**data))


@router.delete(
    APPROVAL_PATH + "/{approval_id}/level/{level}", response_model=ApiResponse[ApprovalResponse]
)
async def delete_level(
    approval_id: int, level: int, _=Depends(require_access(APPROVAL_PATH, "update"))
):
    svc = _get_definitions()
    async with _get_db().get_session() as session:
        await svc.delete_level(session, approval_id, level)
        data = await svc.describe(session, await svc.get_approval(session, approval_id))
    return ApiResponse(status=200, message="Approval level removed", data=ApprovalResponse(**data))


@router.get("/admin/approval-level/{level_id}/users", response_model=ApiResponse[LevelResponse])
async def get_level_users(level_id: int, _=Depends(require_access(APPROVAL_PATH, "read"))):
    svc = _get_definitions()
    async with _get_db().get_session() as session:
        level = await svc.get_level(session, level_id)
        users = await svc.level_users(session, level_id)
        data = LevelResponse(
            id=level.id,
            level=level.level,
            name=level.name,
            users=[LevelUser.model_validate(u) for u in users],
        )
    return ApiResponse(status=200, message="Success", data=data)


@router.put("/admin/approval-level/{level_id}/users", response_model=ApiResponse[LevelResponse])
async def replace_level_users(
    level_id: int,
    body: LevelUsersUpdate,
    _=Depends(require_access(APPROVAL_PATH, "update")),
):
    svc = _get_definitions()
    async with _get_db().get_session() as session:
        users = await svc.replace_level_users(session, level_id, body.user_ids)
        level = await svc.get_level(session, level_id)
        data = LevelResponse(
            id=level.id,
            level=level.level,
            name=level.name,
            users=[LevelUser.model_validate(u) for u in users],
        )
    return ApiResponse(status=200, message="Approval level users updated", data=data)


# ── Workflow ──


@router.get(
    "/admin/approval-history/notifications", response_model=ApiResponse[list[PendingItem]]
)
async def approval_notifications(user_id: int = Depends(get_current_user_id)):
    svc = _get_workflow()
    async with _get_db().get_session() as session:
        items = await svc.pending_for(session, user_id)
    return ApiResponse(
        status=200, message="Success", data=[PendingItem(**item) for item in items]
    )


@router.get("/admin/approval-history", response_model=ApiResponse[Page[HistoryEvent]])
async def list_approval_history(
    params: ListParams = Depends(list_params),
    ref_table: Optional[str] = Query(None),
    actor_id: Optional[int] = Query(None),
    _=Depends(get_current_user_id),
):
    svc = _get_workflow()
    async with _get_db().get_session() as session:
        items, pagination = await svc.list_history(
            session, params, ref_table=ref_table, actor_id=actor_id
        )
        page = Page[HistoryEvent](
            items=[HistoryEvent.model_validate(e) for e in items], pagination=pagination
        )
    return ApiResponse(status=200, message="Success", data=page)


@router.get(
    "/admin/approval-history/{ref_table}/{ref_id}", response_model=ApiResponse[StreamView]
)
async def get_approval_stream(ref_table: str, ref_id: int, _=Depends(get_current_user_id)):
    svc = _get_workflow()
    async with _get_db().get_session() as session:
        view = await svc.view(session, ref_table, ref_id)
        data = StreamView(
            **{**view, "events": [HistoryEvent.model_validate(e) for e in view["events"]]}
        )
    return ApiResponse(status=200, message="Success", data=data)


@router.post("/admin/approval-history/{action}", response_model=ApiResponse[StreamView])
async def approval_action(
    action: Literal["submit", "approve", "reject", "revise"],
    body: WorkflowActionRequest,
    user_id: int = Depends(get_current_user_id),
):
    svc = _get_workflow()
    async with _get_db().get_session() as session:
        await svc.act(
            session,
            action,
            user_id,
            ref_table=body.ref_table,
            ref_id=body.ref_id,
            note=body.note,
            approval_id=body.approval_id,
            level=body.level,
        )
        view = await svc.view(session, body.ref_table, body.ref_id)
        data = StreamView(
            **{**view, "events": [HistoryEvent.model_validate(e) for e in view["events"]]}
        )
    return ApiResponse(status=200, message=f"Approval {action} recorded", data=data)
