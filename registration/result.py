"""Explicit success/failure values returned by the service layer.

Service functions return ``Ok(value)`` or ``Err(error)`` instead of raising
for expected failures. Callers check with ``isinstance(result, Err)`` at the
call site; HTTP handlers use :func:`unwrap` to hand the error to the
centralized exception handler.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

from sqlalchemy.exc import SQLAlchemyError

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E


Result = Union[Ok[T], Err[E]]


def run_query(operation: Callable[[], T]) -> Result[T, SQLAlchemyError]:
    """Run a database operation, capturing SQLAlchemy failures as ``Err``."""
    try:
        return Ok(operation())
    except SQLAlchemyError as exc:
        return Err(exc)


def unwrap(result: Result[T, Exception]) -> T:
    if isinstance(result, Err):
        raise result.error
    return result.value
