"""Authentication flows: login, registration, token refresh, email verification and password reset.

Each flow validates its inputs before touching the database and returns a
``Result`` holding either the response model or an ``AppError``.
"""
from __future__ import annotations

import logging
from datetime import datetime, time
from typing import Any, Dict, Optional, Union

from fastapi import status
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .config import get_settings
from .errors import AppError, DataValidationError, NotFoundError, database_failure
from .mailer import send_reset_password_email, send_verify_email
from .models import MAX_ID, Event, EventAttendee, TokenPurpose, User, UserToken, requires_event_eligibility
from .result import Err, Ok, Result, run_query
from .schemas import AccessToken, MessageResponse, RegisterResponse, TokenPair, UserCreate, UserRead
from .security import generate_access_token, generate_refresh_token, get_password_hash, verify_password, verify_refresh_token

logger = logging.getLogger(__name__)
settings = get_settings()

INVALID_CREDENTIALS = "Invalid email or password."
# Clients may not choose these at registration.
PROTECTED_FIELDS = frozenset({"role", "isActive", "is_active", "emailVerified", "email_verified"})


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _parse_id(value: Union[int, str, None]) -> Optional[int]:
    """Return ``value`` as a storable primary key, or ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            return None
        value = int(value)
    if isinstance(value, int) and 1 <= value <= MAX_ID:
        return value
    return None


def _password_length_error(password: str) -> Optional[AppError]:
    if settings.password_min_length <= len(password) <= settings.password_max_length:
        return None
    return AppError(
        f"Password must be between {settings.password_min_length} and "
        f"{settings.password_max_length} characters long.",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


def _issue_tokens(user: User) -> TokenPair:
    return TokenPair(access_token=generate_access_token(user), refresh_token=generate_refresh_token(user))


def _find_user_by_email(db: Session, email: str) -> Result[Optional[User], SQLAlchemyError]:
    return run_query(lambda: db.query(User).filter(User.email == _normalize_email(email)).first())


def _find_live_token(
    db: Session, user_id: int, token: str, purpose: TokenPurpose
) -> Result[Optional[UserToken], SQLAlchemyError]:
    return run_query(
        lambda: db.query(UserToken)
        .filter(
            UserToken.user_id == user_id,
            UserToken.token == token,
            UserToken.purpose == purpose,
            UserToken.expires_at > datetime.utcnow(),
        )
        .first()
    )


def _check_credentials(db: Session, email: Optional[str], password: Optional[str]) -> Result[User, AppError]:
    if not email or not password:
        return Err(AppError("Must provide username and password for login.", status.HTTP_400_BAD_REQUEST))

    found = _find_user_by_email(db, email)
    if isinstance(found, Err):
        return Err(database_failure(db, found.error))
    user = found.value

    if user is None:
        return Err(AppError(INVALID_CREDENTIALS, status.HTTP_401_UNAUTHORIZED))
    if not user.email_verified:
        return Err(AppError("Must verify email before logging in.", status.HTTP_403_FORBIDDEN))
    if not verify_password(password, user.hashed_password):
        return Err(AppError(INVALID_CREDENTIALS, status.HTTP_401_UNAUTHORIZED))
    return Ok(user)


def login(db: Session, email: Optional[str], password: Optional[str]) -> Result[TokenPair, AppError]:
    checked = _check_credentials(db, email, password)
    if isinstance(checked, Err):
        return checked
    return Ok(_issue_tokens(checked.value))


def has_live_event(db: Session, user_id: int) -> Result[bool, SQLAlchemyError]:
    """Whether the user is registered for an active event ending today or later."""
    start_of_today = datetime.combine(datetime.utcnow().date(), time.min)
    return run_query(
        lambda: db.query(EventAttendee.id)
        .join(Event, EventAttendee.event_id == Event.id)
        .filter(
            EventAttendee.user_id == user_id,
            Event.is_active.is_(True),
            Event.end_date >= start_of_today,
        )
        .first()
        is not None
    )


def login_mobile(db: Session, email: Optional[str], password: Optional[str]) -> Result[TokenPair, AppError]:
    checked = _check_credentials(db, email, password)
    if isinstance(checked, Err):
        return checked
    user = checked.value

    if requires_event_eligibility(user.role):
        eligible = has_live_event(db, user.id)
        if isinstance(eligible, Err):
            return Err(database_failure(db, eligible.error))
        if not eligible.value:
            return Err(
                AppError(
                    "User must have an active event with a valid end date to log in.",
                    status.HTTP_403_FORBIDDEN,
                )
            )
    return Ok(_issue_tokens(user))


def _delete_user(db: Session, user_id: int) -> None:
    user = db.get(User, user_id)
    if user is not None:
        db.delete(user)
        db.commit()


def register(db: Session, payload: Dict[str, Any]) -> Result[RegisterResponse, AppError]:
    user_data = {key: value for key, value in payload.items() if key not in PROTECTED_FIELDS}

    password = user_data.get("password")
    if isinstance(password, str):
        length_error = _password_length_error(password)
        if length_error is not None:
            return Err(length_error)

    try:
        user_in = UserCreate.model_validate(user_data)
    except ValidationError as exc:
        return Err(DataValidationError(exc))

    user = User(
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        email=_normalize_email(user_in.email),
        phone=user_in.phone,
        hashed_password=get_password_hash(user_in.password),
    )

    def _create() -> User:
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    created = run_query(_create)
    if isinstance(created, Err):
        if isinstance(created.error, IntegrityError):
            db.rollback()
            return Err(AppError("Email already exists. Please use a different email.", status.HTTP_409_CONFLICT))
        return Err(database_failure(db, created.error))

    user_id = user.id
    tokens = _issue_tokens(user)

    sent = send_verify_email(db, user)
    if isinstance(sent, Err):
        db.rollback()
        removed = run_query(lambda: _delete_user(db, user_id))
        if isinstance(removed, Err):
            db.rollback()
            logger.error("Could not roll back registration of user %s: %s", user_id, removed.error)
        else:
            logger.warning("Rolled back registration of user %s after email failure", user_id)
        return sent

    logger.info("Registered user %s", user_id)
    return Ok(
        RegisterResponse(
            user=UserRead.model_validate(user),
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
        )
    )


def refresh(db: Session, refresh_token: Optional[str]) -> Result[AccessToken, AppError]:
    if not refresh_token:
        return Err(AppError("Refresh token required.", status.HTTP_400_BAD_REQUEST))

    verified = verify_refresh_token(refresh_token)
    if isinstance(verified, Err):
        return verified

    found = run_query(lambda: db.get(User, verified.value))
    if isinstance(found, Err):
        return Err(database_failure(db, found.error))
    if found.value is None:
        return Err(NotFoundError("User not found."))

    return Ok(AccessToken(access_token=generate_access_token(found.value)))


def verify_email(db: Session, user_id: Union[int, str, None], token: Optional[str]) -> Result[MessageResponse, AppError]:
    if not token or user_id in (None, ""):
        return Err(AppError("Invalid verification link.", status.HTTP_400_BAD_REQUEST))

    invalid = AppError("Invalid or expired verification link.", status.HTTP_400_BAD_REQUEST)
    parsed_id = _parse_id(user_id)
    if parsed_id is None:
        return Err(invalid)

    found = _find_live_token(db, parsed_id, token, TokenPurpose.VERIFY_EMAIL)
    if isinstance(found, Err):
        return Err(database_failure(db, found.error))
    user_token = found.value
    if user_token is None:
        return Err(invalid)

    def _mark_verified() -> Optional[User]:
        user = db.get(User, parsed_id)
        if user is None:
            return None
        user.email_verified = True
        db.delete(user_token)
        db.commit()
        return user

    updated = run_query(_mark_verified)
    if isinstance(updated, Err):
        return Err(database_failure(db, updated.error))
    if updated.value is None:
        return Err(NotFoundError("User not found."))

    logger.info("Verified email for user %s", parsed_id)
    return Ok(MessageResponse(message="Email verified successfully."))


def forgot_password(db: Session, email: Optional[str]) -> Result[MessageResponse, AppError]:
    if not email:
        return Err(AppError("Email is required.", status.HTTP_400_BAD_REQUEST))

    found = _find_user_by_email(db, email)
    if isinstance(found, Err):
        return Err(database_failure(db, found.error))
    if found.value is None:
        return Err(NotFoundError("No user found with that email address."))

    sent = send_reset_password_email(db, found.value)
    if isinstance(sent, Err):
        return sent
    return Ok(MessageResponse(message="Password reset email sent successfully."))


def reset_password(
    db: Session,
    user_id: Union[int, str, None],
    token: Optional[str],
    new_password: Optional[str],
) -> Result[MessageResponse, AppError]:
    if user_id in (None, "") or not token or not new_password:
        return Err(
            AppError(
                "Invalid request. Please provide id, token, and newPassword in the request body.",
                status.HTTP_400_BAD_REQUEST,
            )
        )

    length_error = _password_length_error(new_password)
    if length_error is not None:
        return Err(length_error)

    invalid = AppError("Invalid or expired token.", status.HTTP_400_BAD_REQUEST)
    parsed_id = _parse_id(user_id)
    if parsed_id is None:
        return Err(invalid)

    found = _find_live_token(db, parsed_id, token, TokenPurpose.RESET_PASSWORD)
    if isinstance(found, Err):
        return Err(database_failure(db, found.error))
    user_token = found.value
    if user_token is None:
        return Err(invalid)

    def _apply() -> Optional[User]:
        user = db.get(User, parsed_id)
        if user is None:
            return None
        user.hashed_password = get_password_hash(new_password)
        db.delete(user_token)
        db.commit()
        return user

    updated = run_query(_apply)
    if isinstance(updated, Err):
        return Err(database_failure(db, updated.error))
    if updated.value is None:
        return Err(NotFoundError("User not found."))

    logger.info("Password reset for user %s", parsed_id)
    return Ok(MessageResponse(message="Password reset successfully."))
