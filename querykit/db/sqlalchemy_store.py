from __future__ import annotations

import asyncio
import logging
from contextlib import nullcontext
from threading import Lock
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import and_, asc, desc, false, func, inspect as sa_inspect, or_, select
from sqlalchemy.orm import load_only, selectinload, sessionmaker
from sqlalchemy.pool import StaticPool

from querykit.db.store import split_projection
from querykit.schemas.query import Predicate, SortDirection, SortSpec

_LOG = logging.getLogger("querykit.sql")


def _escape_like(value: str) -> str:
    value = value.replace("\\", "\\\\")
    return value.replace("%", "\\%").replace("_", "\\_")


def row_to_dict(row: Any, keys: Optional[List[str]] = None) -> Dict[str, Any]:
    mapper = sa_inspect(type(row))
    names = keys if keys is not None else [column.key for column in mapper.column_attrs]
    return {name: getattr(row, name) for name in names}


class SqlAlchemyCursor:
    def __init__(self, store: "SqlAlchemyStore", predicate: Predicate):
        self._store = store
        self._predicate = dict(predicate)
        self._sort: SortSpec = {}
        self._projection: Optional[str] = None
        self._expand: List[str] = []
        self._skip = 0
        self._limit: Optional[int] = None

    def sort(self, spec: SortSpec) -> "SqlAlchemyCursor":
        self._sort = dict(spec)
        return self

    def select(self, projection: str) -> "SqlAlchemyCursor":
        self._projection = projection
        return self

    def expand(self, relation: str) -> "SqlAlchemyCursor":
        if self._store.relationship(relation) is not None and relation not in self._expand:
            self._expand.append(relation)
        return self

    def skip(self, count: int) -> "SqlAlchemyCursor":
        self._skip = max(int(count), 0)
        return self

    def limit(self, count: int) -> "SqlAlchemyCursor":
        self._limit = int(count) if count else None
        return self

    def _column_keys(self) -> List[str]:
        store = self._store
        included, excluded = split_projection(self._projection)
        included = [name for name in included if name in store.columns]
        if included:
            keys = [*store.primary_keys, *[name for name in included if name not in store.primary_keys]]
        else:
            keys = list(store.columns)
        return [name for name in keys if name not in excluded or name in store.primary_keys]

    def statement(self):
        store = self._store
        model = store.model
        stmt = select(model)
        clauses = store.where_clauses(self._predicate)
        if clauses:
            stmt = stmt.where(*clauses)
        for field, direction in self._sort.items():
            col = store.column(field)
            if col is None:
                continue
            stmt = stmt.order_by(asc(col) if direction == SortDirection.ASC else desc(col))
        keys = self._column_keys()
        for relation in self._expand:
            keys += [name for name in store.relationship_keys[relation] if name not in keys]
        if len(keys) < len(store.columns):
            stmt = stmt.options(load_only(*[getattr(model, name) for name in keys]))
        for relation in self._expand:
            stmt = stmt.options(selectinload(store.relationship(relation)))
        if self._skip:
            stmt = stmt.offset(self._skip)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        return stmt

    def _run(self) -> List[Dict[str, Any]]:
        stmt = self.statement()
        keys = self._column_keys()
        _LOG.debug("find %s", stmt)
        with self._store.reading(), self._store.session_factory() as session:
            rows = session.scalars(stmt).all()
            out = []
            for row in rows:
                item = row_to_dict(row, keys)
                for relation in self._expand:
                    related = getattr(row, relation)
                    if related is None:
                        item[relation] = None
                    elif isinstance(related, (list, tuple, set)):
                        item[relation] = [row_to_dict(child) for child in related]
                    else:
                        item[relation] = row_to_dict(related)
                out.append(item)
            return out

    async def execute(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._run)


class SqlAlchemyStore:
    """Runs translated document queries against a mapped SQLAlchemy model.

    Every read opens its own session on a worker thread, so a find and a
    count issued together do not share a connection. Engines on a
    StaticPool hold a single connection; reads on those take turns.
    Column values are returned as loaded (datetimes, Decimals, UUIDs);
    JSON encoding belongs to the HTTP layer.
    """

    def __init__(self, model, session_factory: sessionmaker):
        self.model = model
        self.session_factory = session_factory
        bind = session_factory.kw.get("bind")
        self._shared_connection = Lock() if isinstance(getattr(bind, "pool", None), StaticPool) else None
        mapper = sa_inspect(model)
        self.columns = {attr.key: attr for attr in mapper.column_attrs}
        self.relationships = {rel.key: rel for rel in mapper.relationships}
        self.primary_keys = [mapper.get_property_by_column(col).key for col in mapper.primary_key]
        self.relationship_keys = {
            rel.key: [mapper.get_property_by_column(col).key for col in rel.local_columns] for rel in mapper.relationships
        }

    def reading(self):
        return self._shared_connection or nullcontext()

    def column(self, name: str):
        if name not in self.columns:
            return None
        return getattr(self.model, name)

    def relationship(self, name: str):
        if name not in self.relationships:
            return None
        return getattr(self.model, name)

    def _condition(self, key: str, expected: Any):
        if key in {"$or", "$and"}:
            parts = [self._combined(sub) for sub in expected or ()]
            parts = [part for part in parts if part is not None]
            if key == "$and":
                return and_(*parts) if parts else None
            return or_(*parts) if parts else false()
        col = self.column(key)
        if col is None:
            return None
        if isinstance(expected, Mapping) and "$regex" in expected:
            pattern = f"%{_escape_like(str(expected.get('$regex') or ''))}%"
            if "i" in str(expected.get("$options") or ""):
                return col.ilike(pattern, escape="\\")
            return col.like(pattern, escape="\\")
        return col == expected

    def _combined(self, predicate: Mapping[str, Any]):
        parts = self.where_clauses(predicate)
        if not parts:
            return None
        return parts[0] if len(parts) == 1 else and_(*parts)

    def where_clauses(self, predicate: Mapping[str, Any]) -> list:
        clauses = []
        for key, expected in predicate.items():
            condition = self._condition(key, expected)
            if condition is not None:
                clauses.append(condition)
        return clauses

    def find(self, predicate: Predicate) -> SqlAlchemyCursor:
        return SqlAlchemyCursor(self, predicate)

    def _count(self, predicate: Predicate) -> int:
        stmt = select(func.count()).select_from(self.model)
        clauses = self.where_clauses(predicate)
        if clauses:
            stmt = stmt.where(*clauses)
        _LOG.debug("count %s", stmt)
        with self.reading(), self.session_factory() as session:
            return int(session.scalar(stmt) or 0)

    async def count_documents(self, predicate: Predicate) -> int:
        return await asyncio.to_thread(self._count, predicate)
