from __future__ import annotations

from typing import Any, List, Optional, Protocol

from querykit.schemas.query import Predicate, SortSpec


class Cursor(Protocol):
    def sort(self, spec: SortSpec) -> "Cursor":
        ...

    def select(self, projection: str) -> "Cursor":
        ...

    def expand(self, relation: str) -> "Cursor":
        ...

    def skip(self, count: int) -> "Cursor":
        ...

    def limit(self, count: int) -> "Cursor":
        ...

    async def execute(self) -> List[Any]:
        ...


class DocumentStore(Protocol):
    def find(self, predicate: Predicate) -> Cursor:
        ...

    async def count_documents(self, predicate: Predicate) -> int:
        ...


def split_projection(projection: Optional[str]) -> tuple[list[str], list[str]]:
    """Split a ``"name -email"`` projection into (included, excluded) field names."""
    included: list[str] = []
    excluded: list[str] = []
    for token in str(projection or "").split():
        if token.startswith("-"):
            if token[1:]:
                excluded.append(token[1:])
        else:
            included.append(token)
    return included, excluded
