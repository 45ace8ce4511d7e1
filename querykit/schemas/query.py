from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

QueryOptions = Dict[str, Any]
Predicate = Dict[str, Any]


class SortDirection(IntEnum):
    ASC = 1
    DESC = -1


SortSpec = Dict[str, SortDirection]


def _ordered_unique(fields: Iterable[str] | None) -> Tuple[str, ...]:
    seen: dict[str, None] = {}
    for name in fields or ():
        text = str(name or "").strip()
        if text:
            seen.setdefault(text, None)
    return tuple(seen)


@dataclass(frozen=True)
class FieldWhitelists:
    """Field names a toolkit instance accepts for each option.

    An empty ``searchable`` or ``filterable`` disables that feature, while an
    empty ``selectable`` or ``expandable`` leaves it unrestricted.
    """

    searchable: Tuple[str, ...] = ()
    filterable: Tuple[str, ...] = ()
    selectable: Tuple[str, ...] = ()
    expandable: Tuple[str, ...] = ()

    @classmethod
    def from_fields(
        cls,
        *,
        searchable: Iterable[str] | None = None,
        filterable: Iterable[str] | None = None,
        selectable: Iterable[str] | None = None,
        expandable: Iterable[str] | None = None,
    ) -> "FieldWhitelists":
        return cls(
            searchable=_ordered_unique(searchable),
            filterable=_ordered_unique(filterable),
            selectable=_ordered_unique(selectable),
            expandable=_ordered_unique(expandable),
        )


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    skip: int


@dataclass(frozen=True)
class TranslatedQuery:
    predicate: Predicate
    sort: SortSpec
    projection: Optional[str]
    expand: List[str] = field(default_factory=list)
    pagination: Optional[Pagination] = None


class PaginationResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    docs: List[Any] = []
    total_docs: int = Field(alias="totalDocs")
    limit: int
    page: int
    total_pages: int = Field(alias="totalPages")
    has_next_page: bool = Field(alias="hasNextPage")
    has_prev_page: bool = Field(alias="hasPrevPage")

    @classmethod
    def build(cls, docs: List[Any], *, total_docs: int, page: int, limit: int) -> "PaginationResult":
        total_pages = math.ceil(total_docs / limit) if limit > 0 else 0
        return cls(
            docs=list(docs),
            total_docs=total_docs,
            limit=limit,
            page=page,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )
