"""Pydantic schemas for the auth and attendees services.

Bodies travel as camelCase JSON (``accessToken``, ``newPassword``,
``isApproved``) while Python code uses snake_case attributes.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from .models import RoleEnum


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str


class AccessToken(CamelModel):
    access_token: str


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: Optional[str] = None


class ResetPasswordRequest(CamelModel):
    id: Optional[Union[int, str]] = None
    token: Optional[str] = None
    new_password: Optional[str] = None


class MessageResponse(CamelModel):
    message: str


class UserCreate(CamelModel):
    """Fields a client may set at registration; role and activity are not among them."""

    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str
    phone: Optional[str] = Field(None, max_length=30)


class UserRead(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    role: RoleEnum
    email_verified: bool
    is_active: bool
    created_at: datetime


class RegisterResponse(CamelModel):
    user: UserRead
    access_token: str
    refresh_token: str


class EventRead(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    title: str
    location: Optional[str] = None
    start_date: datetime
    end_date: datetime
    is_active: bool


class AttendeeRead(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    user_id: int
    event_id: int
    is_approved: Optional[bool] = None
    created_at: datetime
    user: UserRead
    event: EventRead


class AttendeeList(CamelModel):
    attendees: List[AttendeeRead]


class AttendeeEnvelope(CamelModel):
    attendee: AttendeeRead
