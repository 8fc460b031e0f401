import os
from datetime import datetime, timedelta
from typing import Callable, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("EMAIL_BACKEND", "console")

from registration.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from registration import mailer  # noqa: E402
from registration.database import Base, SessionLocal, engine  # noqa: E402
from registration.mailer import EmailMessage  # noqa: E402
from registration.models import Event, EventAttendee, RoleEnum, User  # noqa: E402
from registration.security import generate_access_token, get_password_hash  # noqa: E402
from services.attendees.app import app as attendees_app  # noqa: E402
from services.auth.app import app as auth_app  # noqa: E402

DEFAULT_PASSWORD = "Passw0rd!"


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def outbox(monkeypatch) -> List[EmailMessage]:
    """Capture outgoing email instead of delivering it."""
    sent: List[EmailMessage] = []
    monkeypatch.setattr(mailer, "dispatch_email", sent.append)
    return sent


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def auth_client() -> Generator[TestClient, None, None]:
    with TestClient(auth_app) as client:
        yield client


@pytest.fixture()
def attendees_client() -> Generator[TestClient, None, None]:
    with TestClient(attendees_app) as client:
        yield client


@pytest.fixture()
def user_factory(db_session) -> Callable[..., User]:
    def create(
        email: str = "guest@example.com",
        password: str = DEFAULT_PASSWORD,
        role: RoleEnum = RoleEnum.GUEST,
        email_verified: bool = True,
        first_name: str = "Grace",
        last_name: str = "Guest",
    ) -> User:
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            hashed_password=get_password_hash(password),
            role=role,
            email_verified=email_verified,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return create


@pytest.fixture()
def event_factory(db_session) -> Callable[..., Event]:
    def create(
        title: str = "Spring Summit",
        is_active: bool = True,
        end_date: Optional[datetime] = None,
    ) -> Event:
        end = end_date or datetime.utcnow() + timedelta(days=7)
        event = Event(
            title=title,
            location="Main Hall",
            start_date=end - timedelta(days=1),
            end_date=end,
            is_active=is_active,
        )
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event

    return create


@pytest.fixture()
def attendee_factory(db_session) -> Callable[..., EventAttendee]:
    def create(user: User, event: Event, is_approved: Optional[bool] = None) -> EventAttendee:
        attendee = EventAttendee(user_id=user.id, event_id=event.id, is_approved=is_approved)
        db_session.add(attendee)
        db_session.commit()
        db_session.refresh(attendee)
        return attendee

    return create


@pytest.fixture()
def admin_headers(user_factory) -> dict[str, str]:
    admin = user_factory(email="admin@example.com", role=RoleEnum.ADMIN, first_name="Ada", last_name="Admin")
    return {"Authorization": f"Bearer {generate_access_token(admin)}"}
