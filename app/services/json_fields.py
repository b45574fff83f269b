from __future__ import annotations

import copy
import json
from typing import Any

from sqlalchemy import JSON, not_, or_
from sqlalchemy.inspection import inspect as sa_inspect

from app.core.errors import ValidationFailure
from app.services.query_builder import PredicateGroup

FORCE_REPLACE = "forceReplace"
JSON_OPERATOR_KEYS = {"operator", "value"}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return isinstance(value, (list, dict)) and not value


def deep_merge(original: dict, new: dict, force_replace: str = FORCE_REPLACE) -> dict:
    """Merge ``new`` into a copy of ``original``.

    A value equal to ``force_replace`` removes the key; blank values never
    overwrite existing data.
    """
    merged = copy.deepcopy(original or {})
    for key, value in (new or {}).items():
        if value == force_replace:
            merged.pop(key, None)
            continue
        if _is_blank(value):
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value, force_replace)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def flatten_keys(data: dict, prefix: str = "") -> list[str]:
    keys: list[str] = []
    for key, value in (data or {}).items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict) and value:
            keys.extend(flatten_keys(value, full_key))
        else:
            keys.append(full_key)
    return keys


def _forget(data: dict, dotted: str) -> bool:
    node = data
    parts = dotted.split(".")
    for part in parts[:-1]:
        node = node.get(part) if isinstance(node, dict) else None
        if not isinstance(node, dict):
            return False
    if isinstance(node, dict) and parts[-1] in node:
        del node[parts[-1]]
        return True
    return False


def json_columns(model) -> list[str]:
    return [attr.key for attr in sa_inspect(model).column_attrs if isinstance(attr.columns[0].type, JSON)]


def update_with_deep_merge(row: Any, attributes: dict[str, Any]) -> Any:
    json_keys = set(json_columns(type(row)))
    for key, value in attributes.items():
        if key in json_keys and isinstance(value, dict):
            value = deep_merge(getattr(row, key) or {}, value)
        setattr(row, key, value)
    return row


def delete_deep_json_field(row: Any, column: str, data: dict) -> list[str]:
    """Remove the dotted keys described by ``data`` from a JSON column.

    Returns the keys that were requested for deletion.
    """
    if column not in json_columns(type(row)):
        raise ValidationFailure(f"Invalid JSON column: {column}")
    current = getattr(row, column)
    if not isinstance(current, dict):
        return []
    keys = flatten_keys(data)
    updated = copy.deepcopy(current)
    for key in keys:
        _forget(updated, key)
    setattr(row, column, updated)
    return keys


def deleted_fields_message(keys: list[str]) -> str:
    grouped: dict[str, list[str]] = {}
    for key in keys:
        parent, _, child = key.partition(".")
        grouped.setdefault(parent, []).append(child)
    formatted = []
    for parent, children in grouped.items():
        children = [c for c in children if c]
        if children:
            formatted.append(f"{', '.join(children)} from {parent}")
    return "successfully deleted " + ", ".join(formatted)


def _is_operator_condition(condition: Any) -> bool:
    return isinstance(condition, dict) and bool(JSON_OPERATOR_KEYS & set(condition))


def _typed(expr, value: Any):
    if isinstance(value, bool):
        return expr.as_boolean()
    if isinstance(value, (int, float)):
        return expr.as_float()
    return expr.as_string()


def _json_condition(expr, operator: str, value: Any):
    text = expr.as_string()
    if operator == "contains":
        return text.like(f"%{value}%")
    if operator == "starts_with":
        return text.like(f"{value}%")
    if operator == "ends_with":
        return text.like(f"%{value}")
    if operator in {"in", "not_in"}:
        if isinstance(value, dict) or value is None:
            raise ValidationFailure(f"{operator} requires a list of values")
        values = list(value) if isinstance(value, (list, tuple)) else [value]
        clause = text.in_([str(v) for v in values])
        return clause if operator == "in" else not_(clause)
    if operator in {"between", "not_between"}:
        if not isinstance(value, (list, tuple)) or len(value) < 2:
            raise ValidationFailure(f"{operator} requires two values")
        low, high = value[0], value[1]
        clause = _typed(expr, low).between(low, high)
        return clause if operator == "between" else not_(clause)
    if operator in {"exists", "not_exists"}:
        encoded = json.dumps(value)
        clause = or_(text == str(value), text.like(f"%{encoded}%"))
        return clause if operator == "exists" else not_(clause)
    if operator == "null":
        return text.is_(None)
    if operator == "not_null":
        return text.is_not(None)
    typed = _typed(expr, value)
    ops = {
        "=": typed.__eq__,
        "!=": typed.__ne__,
        "<": typed.__lt__,
        "<=": typed.__le__,
        ">": typed.__gt__,
        ">=": typed.__ge__,
        "like": typed.like,
    }
    if operator not in ops:
        raise ValidationFailure(f'Unsupported JSON search operator "{operator}"')
    return ops[operator](value)


def _build_json_search(group: PredicateGroup, column, conditions: dict, path: tuple[str, ...] = ()) -> None:
    for key, condition in conditions.items():
        current = path + (str(key),)
        if isinstance(condition, dict) and not _is_operator_condition(condition):
            _build_json_search(group, column, condition, current)
            continue
        expr = column[current]
        if isinstance(condition, dict):
            boolean = str(condition.get("boolean") or "and").lower()
            clause = _json_condition(expr, str(condition.get("operator") or "="), condition.get("value"))
            group.where_raw(clause, "or" if boolean == "or" else "and")
        else:
            group.where_raw(_json_condition(expr, "=", condition), "and")


def json_search(builder: PredicateGroup, column_name: str, conditions: dict) -> PredicateGroup:
    """AND a grouped JSON-path search on ``column_name`` into ``builder``."""
    if column_name not in json_columns(builder.model):
        raise ValidationFailure(f"Invalid JSON column: {column_name}")
    column = getattr(builder.model, column_name)
    return builder.where_group(lambda group: _build_json_search(group, column, conditions or {}))
