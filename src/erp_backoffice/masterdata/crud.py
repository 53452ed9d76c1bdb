"""Generic CRUD service and router template for master-data dictionaries."""

from dataclasses import dataclass, field
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_backoffice.common.exceptions import InvalidInputError, NotFoundError
from erp_backoffice.common.listing import list_params, paginate
from erp_backoffice.common.schemas import ApiResponse, ListParams, Page
from erp_backoffice.common.security import require_access
from erp_backoffice.masterdata.schemas import partial


@dataclass
class Resource:
    """Everything the CRUD template needs to expose one entity."""

    slug: str
    label: str
    model: Any
    create_schema: type[BaseModel]
    response_schema: type[BaseModel]
    search_fields: tuple[str, ...] = ()
    sort_fields: tuple[str, ...] = ()
    update_schema: type[BaseModel] = field(init=False)

    def __post_init__(self):
        self.update_schema = partial(self.create_schema)

    @property
    def path(self) -> str:
        return f"/admin/master/{self.slug}"

    @property
    def table(self) -> str:
        return self.model.__tablename__


class CrudService:
    """List/get/create/update/delete for one model, stamping audit columns."""

    def __init__(self, resource: Resource):
        self.resource = resource
        model = resource.model
        self._search = tuple(getattr(model, name) for name in resource.search_fields)
        self._sort = {name: getattr(model, name) for name in ("id",) + resource.sort_fields}

    async def list_items(self, session: AsyncSession, params: ListParams):
        model = self.resource.model
        return await paginate(
            session,
            select(model),
            params,
            search_columns=self._search,
            sort_columns=self._sort,
            tie_breaker=model.id,
        )

    async def get(self, session: AsyncSession, item_id: int):
        item = await session.get(self.resource.model, item_id)
        if item is None:
            raise NotFoundError(f"{self.resource.label} not found")
        return item

    async def create(self, session: AsyncSession, actor_id: int, data: dict[str, Any]):
        item = self.resource.model(**data, created_by_id=actor_id, updated_by_id=actor_id)
        session.add(item)
        await session.flush()
        return item

    async def update(
        self, session: AsyncSession, item_id: int, actor_id: int, data: dict[str, Any]
    ):
        item = await self.get(session, item_id)
        required = self.resource.create_schema.model_fields
        for key, value in data.items():
            if value is None and required[key].is_required():
                raise InvalidInputError(f"{key} cannot be empty")
            setattr(item, key, value)
        item.updated_by_id = actor_id
        await session.flush()
        return item

    async def delete(self, session: AsyncSession, item_id: int) -> None:
        item = await self.get(session, item_id)
        await session.delete(item)
        await session.flush()


def build_crud_router(resource: Resource, service: CrudService | None = None) -> APIRouter:
    """Mount list/get/create/update/delete for ``resource`` under its menu path.

    Each route is gated by the menu with the same path.
    """
    router = APIRouter()
    svc = service or CrudService(resource)
    Response = resource.response_schema
    Create = resource.create_schema
    Update = resource.update_schema
    path = resource.path

    def _get_db():
        from erp_backoffice.deps import get_db
        return get_db()

    @router.get(path, response_model=ApiResponse[Page[Response]])
    async def list_items(
        params: ListParams = Depends(list_params),
        _=Depends(require_access(path, "read")),
    ):
        async with _get_db().get_session() as session:
            items, pagination = await svc.list_items(session, params)
            page = Page[Response](
                items=[Response.model_validate(i) for i in items], pagination=pagination
            )
        return ApiResponse(status=200, message="Success", data=page)

    @router.get(path + "/{item_id}", response_model=ApiResponse[Response])
    async def get_item(item_id: int, _=Depends(require_access(path, "read"))):
        async with _get_db().get_session() as session:
            item = Response.model_validate(await svc.get(session, item_id))
        return ApiResponse(status=200, message="Success", data=item)

    @router.post(path, response_model=ApiResponse[Response], status_code=201)
    async def create_item(body: Create, user_id: int = Depends(require_access(path, "create"))):
        async with _get_db().get_session() as session:
            item = await svc.create(session, user_id, body.model_dump())
            data = Response.model_validate(item)
        return ApiResponse(status=201, message=f"{resource.label} created", data=data)

    @router.put(path + "/{item_id}", response_model=ApiResponse[Response])
    async def update_item(
        item_id: int, body: Update, user_id: int = Depends(require_access(path, "update"))
    ):
        async with _get_db().get_session() as session:
            item = await svc.update(session, item_id, user_id, body.model_dump(exclude_unset=True))
            data = Response.model_validate(item)
        return ApiResponse(status=200, message=f"{resource.label} updated", data=data)

    @router.delete(path + "/{item_id}", response_model=ApiResponse[None])
    async def delete_item(item_id: int, _=Depends(require_access(path, "delete"))):
        async with _get_db().get_session() as session:
            await svc.delete(session, item_id)
        return ApiResponse(status=200, message=f"{resource.label} deleted")

    return router
