"""Compact ``q`` filter syntax and its merge into ``where``/``orWhere`` buckets.

The frontend sends high level filters such as ``q=status=active|role.name=admin``;
``SearchParamMapper`` rewrites them into the low level ``where``/``orWhere``
clause lists that :func:`app.services.api_query.handle_api_request` consumes.
"""
from __future__ import annotations

from typing import Iterable, Iterator

from app.core.config import settings
from app.schemas.filters import FilterClause, FilterSet, FilterToken

CLAUSE_SEPARATOR = "|"
TRUTHY_FLAGS = {"true", "1"}


def _normalize_key(key: str) -> str:
    return key[:-2] if key.endswith("[]") else key


class RequestParams:
    """Mutable, request-scoped view over the incoming query string.

    Scalars resolve to the last supplied value; ``get_list`` returns every
    value, whether the key was repeated or sent as ``where[]``.
    """

    def __init__(self, items: Iterable[tuple[str, str]] = ()):
        self._data: dict[str, list[str]] = {}
        for key, value in items:
            self._data.setdefault(_normalize_key(key), []).append(value)

    @classmethod
    def from_request(cls, request) -> "RequestParams":
        return cls(request.query_params.multi_items())

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def items(self) -> list[tuple[str, str]]:
        return [(key, values[-1]) for key, values in self._data.items() if values]

    def get(self, key: str, default=None):
        values = self._data.get(key)
        if not values:
            return default
        return values[-1]

    def get_list(self, key: str) -> list[str]:
        return list(self._data.get(key) or [])

    def has(self, key: str) -> bool:
        """True when the key carries at least one non-empty value."""
        return any(str(v).strip() for v in self._data.get(key) or [])

    def set(self, key: str, value) -> None:
        if isinstance(value, (list, tuple)):
            self._data[key] = [str(v) for v in value]
        else:
            self._data[key] = [str(value)]

    def merge(self, values: dict) -> None:
        for key, value in values.items():
            self.set(key, value)

    def flag(self, key: str) -> bool:
        return str(self.get(key, "") or "").strip().lower() in TRUTHY_FLAGS


def parse_compact_query(query: str | None) -> list[FilterToken]:
    if not query:
        return []
    tokens: list[FilterToken] = []
    for raw in query.split(CLAUSE_SEPARATOR):
        key, _, value = raw.partition("=")
        segments = key.split(".")
        tokens.append(FilterToken(path=tuple(segments[:-1]), column=segments[-1], value=value))
    return tokens


def assign_buckets(tokens: list[FilterToken], *, apply_or: bool, has_search_term: bool) -> list[FilterClause]:
    clauses: list[FilterClause] = []
    for index, token in enumerate(tokens):
        if apply_or and has_search_term:
            bucket = "orWhere"
        elif apply_or and index > 0:
            bucket = "orWhere"
        else:
            bucket = "where"
        clauses.append(FilterClause(bucket=bucket, token=token))
    return clauses


class SearchParamMapper:
    def __init__(self, params: RequestParams, marker: str | None = None):
        self.params = params
        self.marker = marker or settings.FILTER_RELATION_MARKER
        self.apply_or_where = params.flag("or")

    def transform(self) -> FilterSet | None:
        if self.params.has("where"):
            return None

        tokens = parse_compact_query(self.params.get("q"))
        clauses = assign_buckets(
            tokens,
            apply_or=self.apply_or_where,
            has_search_term=self.params.has("searchTerm"),
        )
        filter_set = FilterSet(where=[], or_where=self.params.get_list("orWhere"))
        for clause in clauses:
            wire = clause.token.as_clause(self.marker)
            if clause.bucket == "where":
                filter_set.where.append(wire)
            else:
                filter_set.or_where.append(wire)

        self.params.merge({"where": filter_set.where, "orWhere": filter_set.or_where})
        return filter_set
