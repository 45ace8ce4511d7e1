from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional

from querykit.core.config import Settings, settings as default_settings
from querykit.db.store import DocumentStore
from querykit.schemas.query import FieldWhitelists, PaginationResult, QueryOptions
from querykit.services import option_translator
from querykit.services.preset_registry import PresetRegistry

_LOG = logging.getLogger("querykit.facade")


class QueryFacade:
    """Translate request options into store queries for one collection.

    Each instance owns its whitelist configuration and its own preset
    registry, so several facades over different collections can coexist.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        searchable: Iterable[str] | None = None,
        filterable: Iterable[str] | None = None,
        selectable: Iterable[str] | None = None,
        expandable: Iterable[str] | None = None,
        registry: PresetRegistry | None = None,
        config: Settings | None = None,
    ):
        self.store = store
        self.whitelists = FieldWhitelists.from_fields(
            searchable=searchable,
            filterable=filterable,
            selectable=selectable,
            expandable=expandable,
        )
        self.presets = registry if registry is not None else PresetRegistry()
        self.config = config or default_settings

    async def find_with_options(self, options: Optional[QueryOptions] = None) -> PaginationResult:
        translated = option_translator.translate(
            dict(options or {}),
            self.whitelists,
            default_page=self.config.DEFAULT_PAGE,
            default_limit=self.config.DEFAULT_LIMIT,
            delimiter=self.config.LIST_DELIMITER,
            regex_options=self.config.SEARCH_REGEX_OPTIONS,
        )
        pagination = translated.pagination
        _LOG.debug(
            "find predicate=%s sort=%s projection=%s expand=%s skip=%s limit=%s",
            translated.predicate,
            dict(translated.sort),
            translated.projection,
            translated.expand,
            pagination.skip,
            pagination.limit,
        )

        cursor = self.store.find(translated.predicate)
        if translated.sort:
            cursor = cursor.sort(translated.sort)
        if translated.projection:
            cursor = cursor.select(translated.projection)
        for relation in translated.expand:
            cursor = cursor.expand(relation)
        cursor = cursor.skip(pagination.skip).limit(pagination.limit)

        docs, total_docs = await asyncio.gather(
            cursor.execute(),
            self.store.count_documents(translated.predicate),
        )
        return PaginationResult.build(
            list(docs),
            total_docs=int(total_docs),
            page=pagination.page,
            limit=pagination.limit,
        )

    async def count_with_options(self, options: Optional[QueryOptions] = None) -> int:
        # Pagination, sort, select and expand have no bearing on a count.
        predicate = option_translator.build_predicate(
            dict(options or {}),
            self.whitelists,
            regex_options=self.config.SEARCH_REGEX_OPTIONS,
        )
        _LOG.debug("count predicate=%s", predicate)
        return await self.store.count_documents(predicate)

    async def find_with_preset(self, name: str, overrides: Optional[QueryOptions] = None) -> PaginationResult:
        return await self.find_with_options(self.presets.resolve(name, overrides))

    async def count_with_preset(self, name: str, overrides: Optional[QueryOptions] = None) -> int:
        return await self.count_with_options(self.presets.resolve(name, overrides))

    def define_preset(self, name: str, options: QueryOptions) -> None:
        self.presets.define(name, options)

    def has_preset(self, name: str) -> bool:
        return self.presets.has(name)

    def get_preset(self, name: str) -> Optional[QueryOptions]:
        return self.presets.get(name)

    def list_presets(self) -> List[str]:
        return self.presets.list()

    def delete_preset(self, name: str) -> bool:
        return self.presets.delete(name)

