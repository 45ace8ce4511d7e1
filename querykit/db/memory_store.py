from __future__ import annotations

import copy
from datetime import date, datetime
from decimal import Decimal
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional

from querykit.db.store import split_projection
from querykit.schemas.query import Predicate, SortDirection, SortSpec


def _regex_matches(value: Any, condition: Mapping[str, Any]) -> bool:
    if value is None:
        return False
    needle = str(condition.get("$regex") or "")
    haystack = str(value)
    if "i" in str(condition.get("$options") or ""):
        return needle.casefold() in haystack.casefold()
    return needle in haystack


def _value_matches(value: Any, expected: Any) -> bool:
    if isinstance(expected, Mapping) and "$regex" in expected:
        if isinstance(value, list):
            return any(_regex_matches(item, expected) for item in value)
        return _regex_matches(value, expected)
    if isinstance(value, list) and not isinstance(expected, list):
        return expected in value
    return value == expected


def matches(document: Mapping[str, Any], predicate: Predicate) -> bool:
    for key, expected in predicate.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in expected):
                return False
        elif key == "$and":
            if not all(matches(document, sub) for sub in expected):
                return False
        elif not _value_matches(document.get(key), expected):
            return False
    return True


def _type_rank(value: Any) -> int:
    # Missing, numbers, strings, mappings, lists, booleans, dates, then anything else.
    if value is None:
        return 0
    if isinstance(value, bool):
        return 5
    if isinstance(value, (int, float, Decimal)):
        return 1
    if isinstance(value, str):
        return 2
    if isinstance(value, Mapping):
        return 3
    if isinstance(value, (list, tuple)):
        return 4
    if isinstance(value, datetime):
        return 7
    if isinstance(value, date):
        return 6
    return 8


def _sort_key(value: Any):
    rank = _type_rank(value)
    if rank in (0, 3, 4, 8):
        # No natural order inside these groups; compare a stable text form.
        return (rank, "" if value is None else repr(value))
    return (rank, value)


class InMemoryCursor:
    def __init__(self, store: "InMemoryStore", predicate: Predicate):
        self._store = store
        self._predicate = dict(predicate)
        self._sort: SortSpec = {}
        self._projection: Optional[str] = None
        self._expand: List[str] = []
        self._skip = 0
        self._limit: Optional[int] = None

    def sort(self, spec: SortSpec) -> "InMemoryCursor":
        self._sort = dict(spec)
        return self

    def select(self, projection: str) -> "InMemoryCursor":
        self._projection = projection
        return self

    def expand(self, relation: str) -> "InMemoryCursor":
        self._expand.append(relation)
        return self

    def skip(self, count: int) -> "InMemoryCursor":
        self._skip = max(int(count), 0)
        return self

    def limit(self, count: int) -> "InMemoryCursor":
        self._limit = int(count) if count else None
        return self

    async def execute(self) -> List[Dict[str, Any]]:
        rows = [doc for doc in self._store.snapshot() if matches(doc, self._predicate)]
        # Stable sort applied from the lowest-priority key upwards.
        for field, direction in reversed(list(self._sort.items())):
            rows.sort(key=lambda doc: _sort_key(doc.get(field)), reverse=direction == SortDirection.DESC)
        end = None if self._limit is None else self._skip + self._limit
        rows = rows[self._skip:end]
        return [self._expand_relations(self._project(doc)) for doc in rows]

    def _project(self, document: Dict[str, Any]) -> Dict[str, Any]:
        included, excluded = split_projection(self._projection)
        if included:
            keep = [self._store.id_field, *included]
            document = {key: document[key] for key in keep if key in document}
        for key in excluded:
            document.pop(key, None)
        return document

    def _expand_relations(self, document: Dict[str, Any]) -> Dict[str, Any]:
        for relation in self._expand:
            if relation not in document:
                continue
            targets = self._store.relations.get(relation, {})
            ref = document[relation]
            if isinstance(ref, list):
                document[relation] = [copy.deepcopy(targets[item]) for item in ref if item in targets]
            else:
                resolved = targets.get(ref)
                document[relation] = copy.deepcopy(resolved) if resolved is not None else None
        return document


class InMemoryStore:
    """Document store over plain dicts, evaluating the Mongo-style predicates this package emits."""

    def __init__(
        self,
        documents: Iterable[Mapping[str, Any]] = (),
        *,
        relations: Optional[Mapping[str, Mapping[Any, Mapping[str, Any]]]] = None,
        id_field: str = "id",
    ):
        self._documents: List[Dict[str, Any]] = [dict(doc) for doc in documents]
        self.relations: Dict[str, Dict[Any, Dict[str, Any]]] = {
            name: {key: dict(doc) for key, doc in targets.items()} for name, targets in (relations or {}).items()
        }
        self.id_field = id_field
        self._lock = Lock()

    def insert(self, document: Mapping[str, Any]) -> None:
        with self._lock:
            self._documents.append(dict(document))

    def snapshot(self) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._documents)

    def find(self, predicate: Predicate) -> InMemoryCursor:
        return InMemoryCursor(self, predicate)

    async def count_documents(self, predicate: Predicate) -> int:
        return sum(1 for doc in self.snapshot() if matches(doc, predicate))
