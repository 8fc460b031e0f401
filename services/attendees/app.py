from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Path, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.orm import Session

from registration import attendee_service
from registration.config import get_settings
from registration.database import Base, engine, get_db
from registration.dependencies import require_admin
from registration.errors import add_error_handlers
from registration.logging_middleware import add_audit_middleware
from registration.models import MAX_ID, EventAttendee, User
from registration.rate_limit import ADMIN_READ_LIMIT, ADMIN_WRITE_LIMIT, apply_rate_limiter, limiter
from registration.result import unwrap
from registration.schemas import AttendeeEnvelope, AttendeeList, AttendeeRead

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Attendees Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    add_error_handlers(fastapi_app)
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "attendees")
    if settings.metrics_enabled:
        Instrumentator().instrument(fastapi_app).expose(fastapi_app)
    return fastapi_app


app = create_app()


def _envelope(attendee: EventAttendee) -> AttendeeEnvelope:
    return AttendeeEnvelope(attendee=AttendeeRead.model_validate(attendee))


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "attendees"}


@app.get("/attendees", response_model=AttendeeList, tags=["attendees"])
@limiter.limit(ADMIN_READ_LIMIT)
def all_attendees(
    request: Request,
    is_approved: Optional[bool] = Query(None, alias="isApproved"),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AttendeeList:
    attendees = unwrap(attendee_service.list_attendees(db, is_approved))
    return AttendeeList(attendees=[AttendeeRead.model_validate(attendee) for attendee in attendees])


@app.get("/attendees/pending", response_model=AttendeeList, tags=["attendees"])
@limiter.limit(ADMIN_READ_LIMIT)
def pending_attendees(
    request: Request,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AttendeeList:
    attendees = unwrap(attendee_service.list_pending_attendees(db))
    return AttendeeList(attendees=[AttendeeRead.model_validate(attendee) for attendee in attendees])


@app.get("/attendees/{attendee_id}", response_model=AttendeeEnvelope, tags=["attendees"])
@limiter.limit(ADMIN_READ_LIMIT)
def attendee_by_id(
    request: Request,
    attendee_id: int = Path(..., ge=1, le=MAX_ID),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AttendeeEnvelope:
    return _envelope(unwrap(attendee_service.get_attendee(db, attendee_id)))


@app.post("/attendees/{attendee_id}/approve", response_model=AttendeeEnvelope, tags=["attendees"])
@limiter.limit(ADMIN_WRITE_LIMIT)
def approve_attendee(
    request: Request,
    attendee_id: int = Path(..., ge=1, le=MAX_ID),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AttendeeEnvelope:
    return _envelope(unwrap(attendee_service.set_approval(db, attendee_id, True)))


@app.post("/attendees/{attendee_id}/reject", response_model=AttendeeEnvelope, tags=["attendees"])
@limiter.limit(ADMIN_WRITE_LIMIT)
def reject_attendee(
    request: Request,
    attendee_id: int = Path(..., ge=1, le=MAX_ID),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AttendeeEnvelope:
    return _envelope(unwrap(attendee_service.set_approval(db, attendee_id, False)))


@app.delete("/attendees/{attendee_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["attendees"])
@limiter.limit(ADMIN_WRITE_LIMIT)
def delete_attendee(
    request: Request,
    attendee_id: int = Path(..., ge=1, le=MAX_ID),
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Response:
    unwrap(attendee_service.delete_attendee(db, attendee_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
