"""Activity log API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from erp_backoffice.activity.schemas import ActivityLogResponse
from erp_backoffice.common.listing import list_params
from erp_backoffice.common.schemas import ApiResponse, ListParams, Page
from erp_backoffice.common.security import require_access

router = APIRouter()

ACTIVITY_PATH = "/admin/activity-log"


def _get_service():
    from erp_backoffice.deps import get_activity_service
    return get_activity_service()


def _get_db():
    from erp_backoffice.deps import get_db
    return get_db()


@router.get(ACTIVITY_PATH, response_model=ApiResponse[Page[ActivityLogResponse]])
async def list_activity(
    params: ListParams = Depends(list_params),
    action: Optional[str] = Query(None),
    is_success: Optional[bool] = Query(None),
    user_id: Optional[int] = Query(None),
    _=Depends(require_access(ACTIVITY_PATH, "read")),
):
    svc = _get_service()
    async with _get_db().get_session() as session:
        items, pagination = await svc.list_entries(
            session, params, action=action, is_success=is_success, user_id=user_id
        )
        page = Page[ActivityLogResponse](
            items=[ActivityLogResponse.model_validate(e) for e in items], pagination=pagination
        )
    return ApiResponse(status=200, message="Success", data=page)
