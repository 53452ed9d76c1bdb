"""Pydantic schemas for authentication and user administration."""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class TwoFactorRequest(BaseModel):
    username: str = Field(..., min_length=1)
    otp_key: str = Field(..., min_length=1)


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ChangePasswordRequest(BaseModel):
    current: str = Field(..., min_length=1, validation_alias=AliasChoices("current", "current_password"))
    new: str = Field(..., min_length=1, validation_alias=AliasChoices("new", "new_password"))


class SendPasswordResetRequest(BaseModel):
    id: int


class PasswordResetRequest(BaseModel):
    password: str = Field(..., min_length=1)
    confirm: str = Field(..., min_length=1, validation_alias=AliasChoices("confirm", "confirm_password"))


class TwoFactorEnrolment(BaseModel):
    otp_key: str
    otp_url: str
    qr_image: Optional[str] = None


class UserResponse(BaseModel):
    """Public view of a user; hash, secret and rotation slot are never exposed."""

    id: int
    username: str
    name: str
    email: str = ""
    dept_id: Optional[int] = None
    is_active: bool
    is_two_fa: bool
    created_by_id: Optional[int] = None
    updated_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    email: str = ""
    password: str = Field(..., min_length=1)
    dept_id: Optional[int] = None
    is_active: bool = True
    is_two_fa: bool = False


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = None
    password: Optional[str] = Field(None, min_length=1)
    dept_id: Optional[int] = None
    is_active: Optional[bool] = None
    is_two_fa: Optional[bool] = None
