"""SQLAlchemy models shared by the auth and attendees services."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Enum as SqlEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


class RoleEnum(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"
    GUEST = "guest"


class TokenPurpose(str, Enum):
    VERIFY_EMAIL = "verify_email"
    RESET_PASSWORD = "reset_password"


# Largest primary key a 64-bit INTEGER column can hold.
MAX_ID = 2**63 - 1


# Every role must appear in both tables; tests/unit/test_roles.py enforces it.
_ADMIN_ACCESS = {
    RoleEnum.ADMIN: True,
    RoleEnum.MEMBER: False,
    RoleEnum.GUEST: False,
}

_EVENT_ELIGIBILITY_REQUIRED = {
    RoleEnum.ADMIN: False,
    RoleEnum.MEMBER: False,
    RoleEnum.GUEST: True,
}


def is_admin(role: RoleEnum) -> bool:
    return _ADMIN_ACCESS[RoleEnum(role)]


def requires_event_eligibility(role: RoleEnum) -> bool:
    """Whether mobile login for this role depends on holding a live event registration."""

    return _EVENT_ELIGIBILITY_REQUIRED[RoleEnum(role)]


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    first_name: Mapped[str] = mapped_column(String(50))
    last_name: Mapped[str] = mapped_column(String(50))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), default=None)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[RoleEnum] = mapped_column(SqlEnum(RoleEnum), default=RoleEnum.GUEST)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    attendances: Mapped[List["EventAttendee"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    tokens: Mapped[List["UserToken"]] = relationship(back_populates="user", cascade="all, delete-orphan")


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(200))
    location: Mapped[Optional[str]] = mapped_column(String(255), default=None)
    start_date: Mapped[datetime] = mapped_column(DateTime, index=True)
    end_date: Mapped[datetime] = mapped_column(DateTime, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    attendees: Mapped[List["EventAttendee"]] = relationship(
        back_populates="event", cascade="all, delete-orphan"
    )


class EventAttendee(Base):
    __tablename__ = "event_attendees"
    __table_args__ = (UniqueConstraint("user_id", "event_id", name="uq_event_attendee_user_event"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), index=True)
    # NULL while pending, True once approved, False once rejected
    is_approved: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, default=None, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user: Mapped[User] = relationship(back_populates="attendances")
    event: Mapped[Event] = relationship(back_populates="attendees")


class UserToken(Base):
    __tablename__ = "user_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    token: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    purpose: Mapped[TokenPurpose] = mapped_column(SqlEnum(TokenPurpose))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)

    user: Mapped[User] = relationship(back_populates="tokens")
