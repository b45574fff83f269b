from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Literal, Optional, Tuple, Union

Operator = Literal["=", "!=", "<", "<=", ">", ">=", "like", "ilike"]
Direction = Literal["asc", "desc"]
Bucket = Literal["where", "orWhere"]

RELATION_MARKER = "with:"


class FilterToken(BaseModel):
    path: Tuple[str, ...] = ()
    column: str
    value: str = ""

    @property
    def relation(self) -> str:
        return ".".join(self.path)

    def as_clause(self, marker: str = RELATION_MARKER) -> str:
        parts = [f"{marker}{segment}" for segment in self.path]
        parts.extend([self.column, self.value])
        return ",".join(parts)


class FilterClause(BaseModel):
    bucket: Bucket
    token: FilterToken


class FilterSet(BaseModel):
    where: List[str] = []
    or_where: List[str] = []


class ColumnFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    param: str
    column: str


class RelationFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    param: str
    relation: str
    column: str


class ListingFilterSpec(BaseModel):
    """Endpoint-specific named filters; replaces the generic per-parameter pass."""

    model_config = ConfigDict(frozen=True)

    filters: List[Union[ColumnFilter, RelationFilter]] = []
    search_columns: Optional[List[str]] = None


class QuerySpec(BaseModel):
    page: int = 1
    limit: Union[int, Literal["all"]] = 10
    sort_by: Optional[str] = None
    sort_direction: Direction = "asc"
    select_fields: Optional[List[str]] = None
    search_term: Optional[str] = None
    operator: Operator = "like"
    exclude: Optional[Tuple[str, str]] = None

    @field_validator("page")
    @classmethod
    def _page_positive(cls, value: int) -> int:
        return value if value > 0 else 1

    @field_validator("limit")
    @classmethod
    def _limit_positive(cls, value):
        if value == "all":
            return value
        if value < 1:
            raise ValueError("limit must be a positive integer or 'all'")
        return value

    @field_validator("sort_direction", mode="before")
    @classmethod
    def _lower_direction(cls, value):
        return str(value or "asc").strip().lower()
