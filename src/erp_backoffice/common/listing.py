"""List-endpoint helpers: query params, search, sort and page slicing."""

from typing import Any, Mapping, Sequence

from fastapi import Query
from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_backoffice.common.exceptions import InvalidInputError
from erp_backoffice.common.schemas import ListParams, Pagination


def list_params(
    page: int = Query(1, ge=1),
    rows: int = Query(20, ge=1),
    search: str = Query(""),
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_direction: bool = Query(True, alias="sortDirection"),
) -> ListParams:
    """FastAPI dependency parsing the uniform list query parameters."""
    from erp_backoffice.common.config import get_settings

    rows = min(rows, get_settings().max_page_size)
    return ListParams(
        page=page,
        rows=rows,
        search=search.strip(),
        sort_by=sort_by or None,
        sort_ascending=sort_direction,
    )


def apply_search(query: Select, search: str, columns: Sequence[Any]) -> Select:
    """Case-insensitive substring filter OR-ed across ``columns``."""
    if not search or not columns:
        return query
    escaped = search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    return query.where(or_(*(func.lower(col).like(pattern, escape="\\") for col in columns)))


def apply_sort(
    query: Select,
    sort_by: str | None,
    ascending: bool,
    allowed: Mapping[str, Any],
    tie_breaker: Any,
) -> Select:
    """Order by an allowed column; the tie breaker keeps pages deterministic."""
    if not sort_by:
        return query.order_by(tie_breaker.asc())
    col = allowed.get(sort_by)
    if col is None:
        raise InvalidInputError(f"Invalid sort field {sort_by}")
    return query.order_by(col.asc() if ascending else col.desc(), tie_breaker.asc())


async def paginate(
    session: AsyncSession,
    query: Select,
    params: ListParams,
    *,
    search_columns: Sequence[Any] = (),
    sort_columns: Mapping[str, Any] | None = None,
    tie_breaker: Any,
) -> tuple[list[Any], Pagination]:
    """Run ``query`` filtered, sorted and sliced per ``params``."""
    query = apply_search(query, params.search, search_columns)

    total = (
        await session.execute(
            select(func.count()).select_from(query.order_by(None).subquery())
        )
    ).scalar_one()

    query = apply_sort(
        query, params.sort_by, params.sort_ascending, sort_columns or {}, tie_breaker
    )
    result = await session.execute(query.offset(params.offset).limit(params.rows))
    items = list(result.scalars().unique().all())
    return items, Pagination.build(params, total, len(items))
