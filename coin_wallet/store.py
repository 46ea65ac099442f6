# coin_wallet/store.py
"""
Thin CRUD layer over the SQLAlchemy session.

Every component goes through these helpers so that a failing database call
always reaches the caller as a StoreError, and a half-done unit of work is
rolled back before the error leaves.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Type

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import StoreError

log = logging.getLogger(__name__)


@contextmanager
def store_errors(db: Session) -> Iterator[Session]:
    try:
        yield db
    except SQLAlchemyError as e:
        db.rollback()
        log.error("store call failed: %s", e)
        raise StoreError(f"Database unavailable: {e.__class__.__name__}") from e
    except Exception:
        db.rollback()
        raise


def _where(model: Type[Any], filters: Dict[str, Any]):
    return [getattr(model, col) == val for col, val in filters.items()]


def insert(db: Session, record: Any) -> Any:
    """Add + flush so generated/default fields are populated. Caller commits."""
    db.add(record)
    db.flush()
    return record


def select_rows(db: Session, model: Type[Any], order_by: Optional[Any] = None, **eq: Any) -> List[Any]:
    stmt = select(model).where(*_where(model, eq))
    if order_by is not None:
        stmt = stmt.order_by(order_by)
    return list(db.execute(stmt).scalars().all())


def update_rows(db: Session, model: Type[Any], filters: Dict[str, Any], patch: Dict[str, Any]) -> int:
    """
    Conditional UPDATE ... WHERE <filters>. Returns the number of rows matched,
    so a filter on the current value works as a compare-and-set.
    Loaded objects are not synchronized; they expire on commit.
    """
    stmt = (
        update(model)
        .where(*_where(model, filters))
        .values(**patch)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount
