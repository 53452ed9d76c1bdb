"""Pydantic schemas for activity log responses."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ActivityLogResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    ip_address: str = ""
    user_agent: str = ""
    action: str
    is_success: bool
    message: str = ""
    created_at: datetime

    model_config = {"from_attributes": True}
