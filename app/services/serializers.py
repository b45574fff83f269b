from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable

from sqlalchemy.inspection import inspect as sa_inspect

Serializer = Callable[[Any], dict[str, Any]]

DEFAULT_SERIALIZER_KEY = "default"
HIDDEN_FIELDS = {"password_hash"}

_SERIALIZERS: dict[str, Serializer] = {}


def serialize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: serialize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def row_to_dict(row: Any) -> dict[str, Any]:
    mapper = sa_inspect(type(row))
    return {
        column.key: serialize_value(getattr(row, column.key))
        for column in mapper.column_attrs
        if column.key not in HIDDEN_FIELDS
    }


def register_serializer(entity: str) -> Callable[[Serializer], Serializer]:
    def _register(fn: Serializer) -> Serializer:
        _SERIALIZERS[entity] = fn
        return fn

    return _register


def entity_name(model_or_row: Any) -> str:
    cls = model_or_row if isinstance(model_or_row, type) else type(model_or_row)
    return cls.__name__


def resolve_serializer(model_or_row: Any) -> Serializer:
    return _SERIALIZERS.get(entity_name(model_or_row)) or _SERIALIZERS[DEFAULT_SERIALIZER_KEY]


def serialize_collection(model: Any, rows: Iterable[Any]) -> list[dict[str, Any]]:
    serializer = resolve_serializer(model)
    return [serializer(row) for row in rows]


def serialize_one(row: Any) -> dict[str, Any]:
    return resolve_serializer(row)(row)


@register_serializer(DEFAULT_SERIALIZER_KEY)
def default_serializer(row: Any) -> dict[str, Any]:
    return row_to_dict(row)


@register_serializer("Role")
def role_serializer(row: Any) -> dict[str, Any]:
    return {
        "id": serialize_value(row.id),
        "name": row.name,
        "permissions": sorted(p.name for p in row.permissions),
    }


@register_serializer("User")
def user_serializer(row: Any) -> dict[str, Any]:
    payload = row_to_dict(row)
    payload.pop("role_id", None)
    payload["role"] = row.role.name if row.role is not None else None
    return payload


@register_serializer("Student")
def student_serializer(row: Any) -> dict[str, Any]:
    payload = row_to_dict(row)
    payload["agent"] = (
        {"id": serialize_value(row.agent.id), "name": row.agent.name} if row.agent is not None else None
    )
    payload["staff_ids"] = [serialize_value(item.staff_id) for item in row.assign_staffs]
    return payload
