"""Verification and password-reset emails backed by single-use UserTokens."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict
from urllib.parse import urlencode

import httpx
from circuitbreaker import CircuitBreakerError, circuit
from fastapi import status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import get_settings
from .errors import AppError, database_failure
from .models import TokenPurpose, User, UserToken
from .result import Err, Ok, Result, run_query

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class EmailMessage:
    to: str
    subject: str
    template: str
    text: str
    variables: Dict[str, str] = field(default_factory=dict)


def issue_user_token(db: Session, user_id: int, purpose: TokenPurpose) -> Result[UserToken, SQLAlchemyError]:
    def _create() -> UserToken:
        user_token = UserToken(
            user_id=user_id,
            token=secrets.token_hex(32),
            purpose=purpose,
            expires_at=datetime.utcnow() + timedelta(hours=settings.user_token_expire_hours),
        )
        db.add(user_token)
        db.commit()
        db.refresh(user_token)
        return user_token

    return run_query(_create)


@circuit(failure_threshold=5, recovery_timeout=60, expected_exception=httpx.HTTPError)
def _post_to_provider(message: EmailMessage) -> None:
    response = httpx.post(
        settings.email_api_url,
        json={
            "from": settings.email_sender,
            "to": message.to,
            "subject": message.subject,
            "template": message.template,
            "text": message.text,
            "variables": message.variables,
        },
        headers={"Authorization": f"Bearer {settings.email_api_key}"},
        timeout=settings.email_timeout_seconds,
    )
    response.raise_for_status()


def dispatch_email(message: EmailMessage) -> None:
    """Deliver a message; raises ``httpx.HTTPError`` or ``CircuitBreakerError`` on failure."""
    if settings.email_backend == "console":
        logger.info("Email to %s [%s]: %s", message.to, message.template, message.text)
        return
    _post_to_provider(message)


def _link(base_url: str, path: str, user_token: UserToken) -> str:
    query = urlencode({"token": user_token.token, "id": user_token.user_id})
    return f"{base_url.rstrip('/')}{path}?{query}"


def _send_with_token(
    db: Session,
    user: User,
    purpose: TokenPurpose,
    build_message,
    failure_message: str,
) -> Result[None, AppError]:
    user_id = user.id
    issued = issue_user_token(db, user_id, purpose)
    if isinstance(issued, Err):
        return Err(database_failure(db, issued.error))
    user_token = issued.value

    try:
        dispatch_email(build_message(user_token))
    except (httpx.HTTPError, CircuitBreakerError) as exc:
        logger.error("Sending %s email to user %s failed: %s", purpose.value, user_id, exc)
        discarded = run_query(lambda: _discard_token(db, user_token))
        if isinstance(discarded, Err):
            db.rollback()
            logger.error("Could not discard undelivered token for user %s: %s", user_id, discarded.error)
        return Err(AppError(failure_message, status.HTTP_500_INTERNAL_SERVER_ERROR))

    logger.info("Sent %s email to user %s", purpose.value, user_id)
    return Ok(None)


def _discard_token(db: Session, user_token: UserToken) -> None:
    db.delete(user_token)
    db.commit()


def send_verify_email(db: Session, user: User) -> Result[None, AppError]:
    def build(user_token: UserToken) -> EmailMessage:
        link = _link(settings.public_base_url, "/auth/verify", user_token)
        return EmailMessage(
            to=user.email,
            subject="Verify your email address",
            template="verify-email",
            text=f"Hi {user.first_name}, confirm your email address by opening {link}",
            variables={"firstName": user.first_name, "link": link},
        )

    return _send_with_token(
        db, user, TokenPurpose.VERIFY_EMAIL, build, "Failed to send verification email. Please try again later."
    )


def send_reset_password_email(db: Session, user: User) -> Result[None, AppError]:
    def build(user_token: UserToken) -> EmailMessage:
        link = _link(settings.frontend_base_url, "/reset-password", user_token)
        return EmailMessage(
            to=user.email,
            subject="Reset your password",
            template="reset-password",
            text=f"Hi {user.first_name}, choose a new password at {link}",
            variables={"firstName": user.first_name, "link": link},
        )

    return _send_with_token(
        db, user, TokenPurpose.RESET_PASSWORD, build, "Failed to send password reset email. Please try again later."
    )
