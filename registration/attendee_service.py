"""Admin operations on event attendees.

Every attendee is returned joined with its user and event so callers never
need a second lookup. Authorization happens in the HTTP layer.
"""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Query, Session, joinedload

from .errors import AppError, NotFoundError, database_failure
from .models import EventAttendee
from .result import Err, Ok, Result, run_query

ATTENDEE_NOT_FOUND = "Attendee not found"


def _joined(db: Session) -> Query:
    return db.query(EventAttendee).options(joinedload(EventAttendee.user), joinedload(EventAttendee.event))


def list_attendees(db: Session, is_approved: Optional[bool] = None) -> Result[List[EventAttendee], AppError]:
    def _load() -> List[EventAttendee]:
        query = _joined(db)
        if is_approved is not None:
            query = query.filter(EventAttendee.is_approved.is_(is_approved))
        return query.order_by(EventAttendee.created_at.desc(), EventAttendee.id.desc()).all()

    loaded = run_query(_load)
    if isinstance(loaded, Err):
        return Err(database_failure(db, loaded.error))
    return Ok(loaded.value)


def list_pending_attendees(db: Session) -> Result[List[EventAttendee], AppError]:
    loaded = run_query(
        lambda: _joined(db)
        .filter(EventAttendee.is_approved.is_(None))
        .order_by(EventAttendee.created_at.asc(), EventAttendee.id.asc())
        .all()
    )
    if isinstance(loaded, Err):
        return Err(database_failure(db, loaded.error))
    return Ok(loaded.value)


def get_attendee(db: Session, attendee_id: int) -> Result[EventAttendee, AppError]:
    found = run_query(lambda: _joined(db).filter(EventAttendee.id == attendee_id).first())
    if isinstance(found, Err):
        return Err(database_failure(db, found.error))
    if found.value is None:
        return Err(NotFoundError(ATTENDEE_NOT_FOUND))
    return Ok(found.value)


def set_approval(db: Session, attendee_id: int, is_approved: bool) -> Result[EventAttendee, AppError]:
    """Approve (``True``) or reject (``False``) an attendee."""

    def _update() -> Optional[EventAttendee]:
        attendee = db.get(EventAttendee, attendee_id)
        if attendee is None:
            return None
        attendee.is_approved = is_approved
        db.commit()
        return _joined(db).filter(EventAttendee.id == attendee_id).first()

    updated = run_query(_update)
    if isinstance(updated, Err):
        return Err(database_failure(db, updated.error))
    if updated.value is None:
        return Err(NotFoundError(ATTENDEE_NOT_FOUND))
    return Ok(updated.value)


def delete_attendee(db: Session, attendee_id: int) -> Result[None, AppError]:
    def _delete() -> bool:
        attendee = db.get(EventAttendee, attendee_id)
        if attendee is None:
            return False
        db.delete(attendee)
        db.commit()
        return True

    deleted = run_query(_delete)
    if isinstance(deleted, Err):
        return Err(database_failure(db, deleted.error))
    if not deleted.value:
        return Err(NotFoundError(ATTENDEE_NOT_FOUND))
    return Ok(None)
