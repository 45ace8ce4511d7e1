from __future__ import annotations

from typing import Any, Iterable, List, Optional

from querykit.core.config import settings
from querykit.schemas.query import (
    FieldWhitelists,
    Pagination,
    Predicate,
    QueryOptions,
    SortDirection,
    SortSpec,
    TranslatedQuery,
)
from querykit.services.errors import InvalidQueryOptionsError

RESERVED_KEYS = frozenset({"q", "page", "limit", "sort", "select", "expand"})


def _split_tokens(raw: Optional[str], delimiter: str | None = None) -> List[str]:
    if not raw:
        return []
    sep = delimiter or settings.LIST_DELIMITER
    return [token.strip() for token in str(raw).split(sep) if token.strip()]


def _strip_exclusion(token: str) -> str:
    return token[1:] if token.startswith("-") else token


def _coerce_positive_int(key: str, value: Any, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise InvalidQueryOptionsError(key, value)
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    else:
        text = str(value).strip()
        if not text:
            return default
        try:
            number = int(text)
        except ValueError:
            raise InvalidQueryOptionsError(key, value)
    if number < 1:
        raise InvalidQueryOptionsError(key, value)
    return number


def build_search_clause(
    term: Optional[str],
    searchable: Iterable[str],
    *,
    regex_options: str | None = None,
) -> Predicate:
    fields = list(searchable or ())
    if not term or not fields:
        return {}
    return {
        "$or": [
            {field: {"$regex": term, "$options": settings.SEARCH_REGEX_OPTIONS if regex_options is None else regex_options}}
            for field in fields
        ]
    }


def build_filter_clause(options: QueryOptions, filterable: Iterable[str]) -> Predicate:
    # Only whitelisted fields are read; input keys are never iterated.
    clause: Predicate = {}
    for field in filterable or ():
        if field in RESERVED_KEYS:
            continue
        value = options.get(field)
        if value is not None:
            clause[field] = value
    return clause


def build_predicate(
    options: QueryOptions,
    whitelists: FieldWhitelists,
    *,
    regex_options: str | None = None,
) -> Predicate:
    return {
        **build_search_clause(options.get("q") or "", whitelists.searchable, regex_options=regex_options),
        **build_filter_clause(options, whitelists.filterable),
    }


def parse_sort(sort: Optional[str], *, delimiter: str | None = None) -> SortSpec:
    spec: SortSpec = {}
    for token in _split_tokens(sort, delimiter):
        name = _strip_exclusion(token).strip()
        if not name:
            continue
        spec[name] = SortDirection.DESC if token.startswith("-") else SortDirection.ASC
    return spec


def build_projection(
    select: Optional[str],
    selectable: Iterable[str],
    *,
    delimiter: str | None = None,
) -> Optional[str]:
    tokens = _split_tokens(select, delimiter)
    allowed = set(selectable or ())
    # Unlike search/filter, an empty selectable list means "any field".
    if allowed:
        tokens = [token for token in tokens if _strip_exclusion(token) in allowed]
    return " ".join(tokens) or None


def build_expansion_list(
    expand: Optional[str],
    expandable: Iterable[str],
    *,
    delimiter: str | None = None,
) -> List[str]:
    tokens = _split_tokens(expand, delimiter)
    allowed = set(expandable or ())
    # Same as select: an empty expandable list leaves expansion unrestricted.
    if not allowed:
        return tokens
    return [token for token in tokens if token in allowed]


def compute_pagination(
    page: Any = None,
    limit: Any = None,
    *,
    default_page: int | None = None,
    default_limit: int | None = None,
) -> Pagination:
    page_value = _coerce_positive_int("page", page, default_page or settings.DEFAULT_PAGE)
    limit_value = _coerce_positive_int("limit", limit, default_limit or settings.DEFAULT_LIMIT)
    return Pagination(page=page_value, limit=limit_value, skip=(page_value - 1) * limit_value)


def translate(
    options: QueryOptions,
    whitelists: FieldWhitelists,
    *,
    default_page: int | None = None,
    default_limit: int | None = None,
    delimiter: str | None = None,
    regex_options: str | None = None,
) -> TranslatedQuery:
    return TranslatedQuery(
        predicate=build_predicate(options, whitelists, regex_options=regex_options),
        sort=parse_sort(options.get("sort"), delimiter=delimiter),
        projection=build_projection(options.get("select"), whitelists.selectable, delimiter=delimiter),
        expand=build_expansion_list(options.get("expand"), whitelists.expandable, delimiter=delimiter),
        pagination=compute_pagination(
            options.get("page"),
            options.get("limit"),
            default_page=default_page,
            default_limit=default_limit,
        ),
    )
