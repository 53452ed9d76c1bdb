"""Master-data API router: one CRUD template per dictionary plus currency sync."""

from fastapi import APIRouter, Depends

from erp_backoffice.common.schemas import ApiResponse
from erp_backoffice.common.security import require_access
from erp_backoffice.masterdata.crud import build_crud_router
from erp_backoffice.masterdata.resources import RESOURCES, RESOURCES_BY_SLUG
from erp_backoffice.masterdata.schemas import CurrencySyncResult

router = APIRouter()

_CURRENCY_PATH = RESOURCES_BY_SLUG["currency"].path


def _get_sync_service():
    from erp_backoffice.deps import get_currency_sync_service
    return get_currency_sync_service()


def _get_db():
    from erp_backoffice.deps import get_db
    return get_db()


@router.post(_CURRENCY_PATH + "/sync", response_model=ApiResponse[CurrencySyncResult])
async def sync_currencies(user_id: int = Depends(require_access(_CURRENCY_PATH, "create"))):
    svc = _get_sync_service()
    db = _get_db()
    async with db.get_session() as session:
        result = await svc.sync(session, user_id)
    message = "Currencies synced" if not result["failed"] else "Currencies synced with failures"
    return ApiResponse(status=200, message=message, data=CurrencySyncResult(**result))


for _resource in RESOURCES:
    router.include_router(build_crud_router(_resource))
