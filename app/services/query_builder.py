from __future__ import annotations

import logging
import math
import operator as py_operator
import re
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, NamedTuple

from sqlalchemy import String, and_, asc, cast, desc, or_
from sqlalchemy.inspection import inspect as sa_inspect
from sqlalchemy.orm import Query, Session, selectinload

from app.core.errors import InvalidFilterValue
from app.services.serializers import HIDDEN_FIELDS

_LOG = logging.getLogger("app.query")

LIKE_OPERATORS = {"like", "ilike"}
COMPARISON_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "=": py_operator.eq,
    "!=": py_operator.ne,
    "<": py_operator.lt,
    "<=": py_operator.le,
    ">": py_operator.gt,
    ">=": py_operator.ge,
}
_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


class Page(NamedTuple):
    items: list
    total: int
    last_page: int


def _bad_filter_value(column_key: str, kind: str) -> InvalidFilterValue:
    return InvalidFilterValue(f'Invalid filter value for field "{column_key}" ({kind})')


def _coerce_bool_filter_value(column_key: str, value):
    if isinstance(value, bool):
        return value
    text = str(value or "").strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise _bad_filter_value(column_key, "boolean")


def _coerce_number_filter_value(column_key: str, value, python_type):
    if value is None:
        return None
    if python_type in {int, float} and isinstance(value, (int, float)):
        return python_type(value)
    if python_type is Decimal and isinstance(value, Decimal):
        return value
    text = str(value).strip()
    if not text:
        raise _bad_filter_value(column_key, "number")
    try:
        if python_type is int:
            return int(text)
        if python_type is float:
            return float(text)
        return Decimal(text)
    except (ValueError, TypeError, InvalidOperation):
        raise _bad_filter_value(column_key, "number")


def _coerce_date_filter_value(column_key: str, value):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    text = str(value or "").strip()
    if not text:
        raise _bad_filter_value(column_key, "date")
    try:
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise _bad_filter_value(column_key, "date")


def _coerce_datetime_filter_value(column_key: str, value):
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if not text:
            raise _bad_filter_value(column_key, "datetime")
        try:
            if "T" not in text and " " not in text and len(text) == 10:
                # Date-only literal on a timestamp column -> start of the day.
                parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
            else:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise _bad_filter_value(column_key, "datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _column_python_type(column):
    try:
        return column.property.columns[0].type.python_type
    except Exception:
        return None


def _coerce_filter_value(column, value):
    python_type = _column_python_type(column)
    if python_type is None:
        return value
    if python_type is uuid.UUID:
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value or "").strip())
        except ValueError:
            raise InvalidFilterValue(f'Invalid UUID in filter for field "{column.key}"')
    if python_type is bool:
        return _coerce_bool_filter_value(column.key, value)
    if python_type in {int, float, Decimal}:
        return _coerce_number_filter_value(column.key, value, python_type)
    if python_type is date:
        return _coerce_date_filter_value(column.key, value)
    if python_type is datetime:
        return _coerce_datetime_filter_value(column.key, value)
    return value


def _is_date_only_filter_literal(raw_value) -> bool:
    if isinstance(raw_value, date) and not isinstance(raw_value, datetime):
        return True
    if not isinstance(raw_value, str):
        return False
    text = raw_value.strip()
    if not text or "T" in text or " " in text:
        return False
    try:
        date.fromisoformat(text)
        return True
    except ValueError:
        return False


def _snake(name: str) -> str:
    return _CAMEL_RE.sub("_", name).lower()


def resolve_column(model, name: str):
    keys = set(column_names(model))
    for candidate in (name, _snake(name)):
        if candidate in keys:
            return getattr(model, candidate)
    return None


def resolve_relationship(model, name: str):
    relationships = sa_inspect(model).relationships
    for candidate in (name, _snake(name)):
        if candidate in relationships:
            return getattr(model, candidate), relationships[candidate]
    return None, None


def column_names(model) -> list[str]:
    return [attr.key for attr in sa_inspect(model).column_attrs if attr.key not in HIDDEN_FIELDS]


def comparison(model, column_name: str, op: str, value):
    col = resolve_column(model, column_name)
    if col is None:
        _LOG.debug("skip filter on unknown column %s.%s", model.__name__, column_name)
        return None
    if op in LIKE_OPERATORS:
        target = col if _column_python_type(col) is str else cast(col, String)
        pattern = "" if value is None else str(value)
        return target.ilike(pattern) if op == "ilike" else target.like(pattern)
    compare = COMPARISON_OPERATORS.get(op)
    if compare is None:
        raise InvalidFilterValue(f'Unsupported operator "{op}"')
    if value is None:
        return col.is_(None) if op == "=" else col.is_not(None)
    coerced = _coerce_filter_value(col, value)
    if _column_python_type(col) is datetime and op in {"=", "!="} and _is_date_only_filter_literal(value):
        day_expr = (col >= coerced) & (col < coerced + timedelta(days=1))
        return day_expr if op == "=" else ~day_expr
    return compare(col, coerced)


def relation_exists(model, path, column_name: str, op: str, value):
    """EXISTS predicate over a (possibly nested) relation path."""
    if isinstance(path, str):
        path = [segment for segment in path.split(".") if segment]
    if not path:
        return comparison(model, column_name, op, value)
    attr, rel = resolve_relationship(model, path[0])
    if attr is None:
        _LOG.debug("skip filter on unknown relation %s.%s", model.__name__, path[0])
        return None
    inner = relation_exists(rel.mapper.class_, path[1:], column_name, op, value)
    if inner is None:
        return None
    return attr.any(inner) if rel.uselist else attr.has(inner)


class PredicateGroup:
    """Ordered predicates joined left to right by ``and``/``or``.

    Compiles with SQL precedence: consecutive ``and`` predicates bind first,
    ``or`` separates the resulting groups.
    """

    def __init__(self, model):
        self.model = model
        self._parts: list[tuple[str, Any]] = []

    def where_raw(self, expr, boolean: str = "and") -> "PredicateGroup":
        if expr is not None:
            self._parts.append((boolean, expr))
        return self

    def where(self, column: str, op: str, value) -> "PredicateGroup":
        return self.where_raw(comparison(self.model, column, op, value), "and")

    def or_where(self, column: str, op: str, value) -> "PredicateGroup":
        return self.where_raw(comparison(self.model, column, op, value), "or")

    def where_has(self, relation, column: str, op: str, value) -> "PredicateGroup":
        return self.where_raw(relation_exists(self.model, relation, column, op, value), "and")

    def or_where_has(self, relation, column: str, op: str, value) -> "PredicateGroup":
        return self.where_raw(relation_exists(self.model, relation, column, op, value), "or")

    def where_group(self, build: Callable[["PredicateGroup"], Any], boolean: str = "and") -> "PredicateGroup":
        group = PredicateGroup(self.model)
        build(group)
        return self.where_raw(group.compile(), boolean)

    def or_where_group(self, build: Callable[["PredicateGroup"], Any]) -> "PredicateGroup":
        return self.where_group(build, "or")

    def compile(self):
        if not self._parts:
            return None
        groups: list[list[Any]] = []
        for index, (boolean, expr) in enumerate(self._parts):
            if index == 0 or boolean == "or":
                groups.append([expr])
            else:
                groups[-1].append(expr)
        joined = [g[0] if len(g) == 1 else and_(*g) for g in groups]
        return joined[0] if len(joined) == 1 else or_(*joined)


class QueryBuilder(PredicateGroup):
    """Mutable query over one mapped entity, executed with a SQLAlchemy session."""

    def __init__(self, db: Session, model):
        super().__init__(model)
        self.db = db
        self._eager: list[str] = []
        self._order: list[tuple[Any, str]] = []
        self._select: list[Any] = []

    def with_relations(self, relations) -> "QueryBuilder":
        for relation in relations or ():
            if relation and relation not in self._eager:
                self._eager.append(relation)
        return self

    def order_by(self, column: str, direction: str = "asc") -> "QueryBuilder":
        col = resolve_column(self.model, column)
        if col is None:
            _LOG.debug("skip sort on unknown column %s.%s", self.model.__name__, column)
            return self
        self._order.append((col, "desc" if str(direction).lower() == "desc" else "asc"))
        return self

    def select(self, columns) -> "QueryBuilder":
        for name in columns or ():
            col = resolve_column(self.model, name.strip())
            if col is not None:
                self._select.append(col)
        return self

    @property
    def is_projected(self) -> bool:
        return bool(self._select)

    def _loader_options(self) -> list:
        options = []
        for dotted in self._eager:
            model = self.model
            loader = None
            for segment in dotted.split("."):
                attr, rel = resolve_relationship(model, segment)
                if attr is None:
                    _LOG.debug("skip eager load of unknown relation %s.%s", model.__name__, segment)
                    loader = None
                    break
                loader = selectinload(attr) if loader is None else loader.selectinload(attr)
                model = rel.mapper.class_
            if loader is not None:
                options.append(loader)
        return options

    def to_query(self) -> Query:
        if self._select:
            query = self.db.query(*self._select)
        else:
            query = self.db.query(self.model).options(*self._loader_options())
        criteria = self.compile()
        if criteria is not None:
            query = query.filter(criteria)
        for col, direction in self._order:
            query = query.order_by(asc(col) if direction == "asc" else desc(col))
        return query

    def _rows(self, rows: list) -> list:
        if self._select:
            return [dict(row._mapping) for row in rows]
        return rows

    def fetch_all(self) -> tuple[list, int]:
        items = self._rows(self.to_query().all())
        return items, len(items)

    def paginate(self, limit: int, page: int = 1) -> Page:
        query = self.to_query()
        total = query.order_by(None).count()
        page = max(int(page), 1)
        items = self._rows(query.offset((page - 1) * limit).limit(limit).all())
        return Page(items=items, total=total, last_page=max(math.ceil(total / limit), 1))
