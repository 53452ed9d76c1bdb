"""Pydantic schemas for roles, menus and permission links."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RoleCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)


class RoleUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class RoleResponse(BaseModel):
    id: int
    code: str
    name: str
    created_by_id: Optional[int] = None
    updated_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MenuCreate(BaseModel):
    parent_id: Optional[int] = None
    label: str = Field(..., min_length=1, max_length=255)
    path: Optional[str] = Field(None, max_length=255)
    icon: str = ""
    sort: int = 0


class MenuUpdate(BaseModel):
    parent_id: Optional[int] = None
    label: Optional[str] = Field(None, min_length=1, max_length=255)
    path: Optional[str] = Field(None, max_length=255)
    icon: Optional[str] = None
    sort: Optional[int] = None


class MenuResponse(BaseModel):
    id: int
    parent_id: Optional[int] = None
    label: str
    path: Optional[str] = None
    icon: str = ""
    sort: int = 0
    created_by_id: Optional[int] = None
    updated_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MenuTreeNode(BaseModel):
    id: int
    parent_id: Optional[int] = None
    label: str
    path: Optional[str] = None
    icon: str = ""
    sort: int = 0
    children: list["MenuTreeNode"] = []


class PermissionFlags(BaseModel):
    may_create: bool = False
    may_update: bool = False
    may_delete: bool = False


class PermissionTreeNode(MenuTreeNode):
    """Menu node annotated with a role's link and action flags."""

    linked: bool = False
    may_create: bool = False
    may_update: bool = False
    may_delete: bool = False
    children: list["PermissionTreeNode"] = []


class RolePermissionUpsert(PermissionFlags):
    role_id: int
    menu_id: int


class RolePermissionResponse(PermissionFlags):
    id: int
    role_id: int
    menu_id: int

    model_config = {"from_attributes": True}


class UserRolesUpdate(BaseModel):
    role_ids: list[int] = []


class RoleMenusUpdate(BaseModel):
    menu_ids: list[int] = []


class UserRolesResponse(BaseModel):
    user_id: int
    username: str = ""
    name: str = ""
    roles: list[RoleResponse] = []


class RoleMenusResponse(BaseModel):
    role_id: int
    menus: list[MenuResponse] = []
