"""Pydantic schemas for approval definitions, levels and the workflow."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class LevelUser(BaseModel):
    id: int
    username: str
    name: str

    model_config = {"from_attributes": True}


class LevelCreate(BaseModel):
    level: Optional[int] = Field(None, ge=1)
    name: str = ""
    user_ids: list[int] = []


class LevelResponse(BaseModel):
    id: int
    level: int
    name: str = ""
    users: list[LevelUser] = []


class ApprovalCreate(BaseModel):
    menu_id: int
    name: str = Field(..., min_length=1, max_length=255)
    levels: list[LevelCreate] = Field(..., min_length=1)


class ApprovalUpdate(BaseModel):
    menu_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class ApprovalResponse(BaseModel):
    id: int
    menu_id: int
    name: str
    levels: list[LevelResponse] = []
    created_by_id: Optional[int] = None
    updated_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class ApprovalSummary(BaseModel):
    id: int
    menu_id: int
    name: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class LevelUsersUpdate(BaseModel):
    user_ids: list[int] = []


class WorkflowActionRequest(BaseModel):
    ref_table: str = Field(..., min_length=1, max_length=64)
    ref_id: int
    note: str = ""
    approval_id: Optional[int] = None
    level: Optional[int] = Field(None, ge=1)


class HistoryEvent(BaseModel):
    id: int
    ref_table: str
    ref_id: int
    seq: int
    approval_id: int
    level: int
    actor_id: int
    action: Literal["submit", "approve", "reject", "revise"]
    note: str = ""
    created_at: datetime

    model_config = {"from_attributes": True}


class StreamView(BaseModel):
    ref_table: str
    ref_id: int
    approval_id: Optional[int] = None
    status: str
    current_level: int
    max_level: int = 0
    events: list[HistoryEvent] = []


class PendingItem(BaseModel):
    ref_table: str
    ref_id: int
    approval_id: int
    level: int
    last_action: str
    last_actor_id: int
    last_event_at: datetime
