from __future__ import annotations

import logging
from typing import Any, Iterable

from pydantic import ValidationError

from app.core.config import settings
from app.core.errors import (
    INVALID_OR_WHERE_FORMAT,
    INVALID_WHERE_FORMAT,
    InvalidFilterValue,
    MalformedFilterClause,
    ValidationFailure,
)
from app.schemas.filters import FilterToken, ListingFilterSpec, QuerySpec, RelationFilter
from app.services.query_builder import PredicateGroup, QueryBuilder, column_names
from app.services.search_params import RequestParams, SearchParamMapper
from app.services.serializers import serialize_collection, serialize_value

_LOG = logging.getLogger("app.query")

RESERVED_PARAMS = frozenset(
    {
        "page",
        "limit",
        "search",
        "searchTerm",
        "sortBy",
        "sortDirection",
        "select",
        "where",
        "orWhere",
        "exclude",
        "company",
        "q",
        "or",
        "operator",
        "with",
    }
)
TIEBREAK_COLUMN = "created_at"


def _validation_message(exc: ValidationError) -> str:
    for err in exc.errors():
        loc = err.get("loc") or ()
        if loc and loc[0] == "operator":
            return "The selected operator is invalid."
        if loc:
            return f"The {loc[0]} field is invalid."
    return ValidationFailure.public_message


def _split_csv(raw: str | None) -> list[str]:
    return [part.strip() for part in str(raw or "").split(",") if part.strip()]


def build_query_spec(params: RequestParams) -> QuerySpec:
    exclude = None
    raw_exclude = params.get("exclude")
    if raw_exclude:
        parts = raw_exclude.split(",")
        if len(parts) < 2 or not parts[0].strip():
            raise MalformedFilterClause("Invalid exclude format. Use exclude=column,value")
        exclude = (parts[0].strip(), parts[1])

    select_raw = params.get("select")
    try:
        return QuerySpec(
            page=params.get("page") or 1,
            limit=params.get("limit") or settings.DEFAULT_PAGE_LIMIT,
            sort_by=params.get("sortBy") or None,
            sort_direction=params.get("sortDirection") or "asc",
            select_fields=_split_csv(select_raw) if select_raw is not None else None,
            search_term=params.get("searchTerm") if params.has("searchTerm") else None,
            operator=params.get("operator") or "like",
            exclude=exclude,
        )
    except ValidationError as exc:
        raise ValidationFailure(_validation_message(exc)) from exc


def parse_filter_clause(raw: str, *, marker: str | None = None, message: str = INVALID_WHERE_FORMAT) -> FilterToken:
    """Parse ``[with:relation,...]column,value`` into a token."""
    marker = marker or settings.FILTER_RELATION_MARKER
    parts = str(raw).split(",")
    if len(parts) < 2:
        raise MalformedFilterClause(message)

    path: list[str] = []
    while parts and parts[0].startswith(marker):
        path.append(parts.pop(0)[len(marker):])

    column = parts[0] if parts else ""
    value = parts[1] if len(parts) > 1 else None
    if not column or value is None:
        raise MalformedFilterClause(message)
    return FilterToken(path=tuple(path), column=column, value=value)


def _apply_listing_filters(builder: QueryBuilder, params: RequestParams, listing: ListingFilterSpec) -> None:
    apply_or = params.flag("or")
    applied = 0
    for named in listing.filters:
        value = params.get(named.param)
        if value is None or not str(value).strip():
            continue
        applied += 1
        if isinstance(named, RelationFilter):
            builder.where_has(named.relation, named.column, "=", value)
        elif apply_or and applied > 1:
            builder.or_where(named.column, "=", value)
        else:
            builder.where(named.column, "=", value)


def _apply_direct_filters(builder: QueryBuilder, params: RequestParams) -> None:
    for key, value in params.items():
        if key in RESERVED_PARAMS or not str(value).strip():
            continue
        builder.where(key, "=", value)


def _apply_search(builder: QueryBuilder, spec: QuerySpec, columns: Iterable[str]) -> None:
    pattern = f"%{spec.search_term}%"

    def _search_block(group: PredicateGroup) -> None:
        for column in columns:
            try:
                group.or_where(column, spec.operator, pattern)
            except InvalidFilterValue:
                # The term cannot be compared against this column's type.
                continue

    builder.where_group(_search_block)


def _apply_where(builder: QueryBuilder, clauses: list[str], op: str) -> None:
    tokens = [parse_filter_clause(raw) for raw in clauses]

    def _and_block(group: PredicateGroup) -> None:
        for token in tokens:
            if token.path:
                group.where_has(token.path, token.column, op, token.value)
            else:
                group.where(token.column, op, token.value)

    builder.where_group(_and_block)


def _apply_or_where(builder: QueryBuilder, clauses: list[str], op: str) -> None:
    tokens: list[FilterToken] = []
    for raw in clauses:
        try:
            tokens.append(parse_filter_clause(raw, message=INVALID_OR_WHERE_FORMAT))
        except MalformedFilterClause:
            if settings.FILTER_OR_WHERE_STRICT:
                raise
            _LOG.warning("skip malformed orWhere clause %r", raw)

    def _or_block(group: PredicateGroup) -> None:
        for token in tokens:
            if token.path:
                group.or_where_has(token.path, token.column, op, token.value)
            else:
                group.or_where(token.column, op, token.value)

    builder.or_where_group(_or_block)


def _package(builder: QueryBuilder, spec: QuerySpec) -> dict[str, Any]:
    if spec.limit == "all":
        items, total = builder.fetch_all()
        meta = {"page": spec.page, "limit": total, "total": total, "totalPage": 1}
    else:
        page = builder.paginate(spec.limit, spec.page)
        items, total = page.items, page.total
        meta = {"page": spec.page, "limit": spec.limit, "total": total, "totalPage": page.last_page}

    if builder.is_projected:
        result = [serialize_value(item) for item in items]
    else:
        result = serialize_collection(builder.model, items)
    return {"meta": meta, "result": result}


def handle_api_request(
    params: RequestParams,
    builder: QueryBuilder,
    with_: Iterable[str] = (),
    listing: ListingFilterSpec | None = None,
) -> dict[str, Any]:
    """Apply request query parameters to ``builder``, execute it and package the page.

    ``params`` is rewritten in place: the compact ``q`` syntax is folded into
    ``where``/``orWhere`` before any predicate is added.
    """
    spec = build_query_spec(params)
    SearchParamMapper(params).transform()

    builder.with_relations(list(with_) + params.get_list("with"))

    if listing is not None:
        _apply_listing_filters(builder, params, listing)
    else:
        _apply_direct_filters(builder, params)

    if spec.exclude is not None:
        builder.where(spec.exclude[0], "!=", spec.exclude[1])

    if spec.search_term is not None:
        columns = listing.search_columns if listing and listing.search_columns else column_names(builder.model)
        _apply_search(builder, spec, columns)

    where_clauses = params.get_list("where")
    if where_clauses:
        _apply_where(builder, where_clauses, spec.operator)

    or_where_clauses = params.get_list("orWhere")
    if or_where_clauses:
        _apply_or_where(builder, or_where_clauses, spec.operator)

    if spec.sort_by:
        builder.order_by(spec.sort_by, spec.sort_direction)
    builder.order_by(TIEBREAK_COLUMN, "desc")

    if spec.select_fields is not None:
        builder.select(spec.select_fields)

    return _package(builder, spec)
