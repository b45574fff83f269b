from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.inspection import inspect as sa_inspect
from sqlalchemy.orm import Session

from app.core.errors import DuplicateKeyViolation, EntityNotFound, is_duplicate_key_error


def find_or_404(db: Session, model, row_id: Any, message: str = "not found"):
    if not row_id:
        return None
    pk = sa_inspect(model).primary_key[0]
    value = row_id
    try:
        python_type = pk.type.python_type
    except NotImplementedError:
        python_type = None
    if python_type is not None and not isinstance(row_id, python_type):
        try:
            value = python_type(str(row_id))
        except (TypeError, ValueError):
            raise EntityNotFound(model.__name__, row_id, message)
    row = db.get(model, value)
    if row is None:
        raise EntityNotFound(model.__name__, row_id, message)
    return row


def commit_or_400(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if is_duplicate_key_error(exc):
            raise DuplicateKeyViolation(str(exc.orig)) from exc
        raise
