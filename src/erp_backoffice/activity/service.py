"""Activity log service: append and query authentication and account events."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_backoffice.activity.models import ActivityLogModel
from erp_backoffice.common.listing import paginate
from erp_backoffice.common.schemas import ListParams, Pagination

logger = logging.getLogger(__name__)

LOGIN = "login"
TWO_FA = "two_fa"
LOGOUT = "logout"
CHANGE_PASSWORD = "change_password"
SEND_PASSWORD_RESET = "send_password_reset"
RESET_PASSWORD = "reset_password"


class ActivityService:
    """Append-only log of who did what, from where."""

    SEARCH_COLUMNS = (ActivityLogModel.action, ActivityLogModel.message, ActivityLogModel.ip_address)
    SORT_COLUMNS = {
        "id": ActivityLogModel.id,
        "action": ActivityLogModel.action,
        "created_at": ActivityLogModel.created_at,
        "user_id": ActivityLogModel.user_id,
    }

    async def record(
        self,
        session: AsyncSession,
        action: str,
        *,
        is_success: bool,
        message: str = "",
        user_id: int | None = None,
        ip_address: str = "",
        user_agent: str = "",
    ) -> ActivityLogModel:
        entry = ActivityLogModel(
            user_id=user_id,
            action=action,
            is_success=is_success,
            message=message,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        session.add(entry)
        await session.flush()
        logger.info(
            "activity action=%s user_id=%s success=%s", action, user_id, is_success
        )
        return entry

    async def list_entries(
        self,
        session: AsyncSession,
        params: ListParams,
        action: str | None = None,
        is_success: bool | None = None,
        user_id: int | None = None,
        since: datetime | None = None,
    ) -> tuple[list[ActivityLogModel], Pagination]:
        """Paginated log, newest first unless a sort column is requested."""
        query = select(ActivityLogModel)
        if action:
            query = query.where(ActivityLogModel.action == action)
        if is_success is not None:
            query = query.where(ActivityLogModel.is_success == is_success)
        if user_id is not None:
            query = query.where(ActivityLogModel.user_id == user_id)
        if since is not None:
            query = query.where(ActivityLogModel.created_at >= since)
        if not params.sort_by:
            params = params.model_copy(update={"sort_by": "id", "sort_ascending": False})
        return await paginate(
            session,
            query,
            params,
            search_columns=self.SEARCH_COLUMNS,
            sort_columns=self.SORT_COLUMNS,
            tie_breaker=ActivityLogModel.id,
        )
