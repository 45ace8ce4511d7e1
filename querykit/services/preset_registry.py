from __future__ import annotations

import logging
from typing import Dict, List, Optional

from querykit.schemas.query import QueryOptions
from querykit.services.errors import PresetNotFoundError

_LOG = logging.getLogger("querykit.presets")


class PresetRegistry:
    """Named, reusable option bundles owned by a single toolkit instance."""

    def __init__(self):
        self._presets: Dict[str, QueryOptions] = {}

    def __len__(self) -> int:
        return len(self._presets)

    def __contains__(self, name: object) -> bool:
        return name in self._presets

    def define(self, name: str, options: QueryOptions) -> None:
        replaced = name in self._presets
        # Re-assigning an existing key keeps its position in iteration order.
        self._presets[name] = dict(options or {})
        _LOG.info("preset %s name=%s keys=%s", "replaced" if replaced else "defined", name, sorted(self._presets[name]))

    def get(self, name: str) -> Optional[QueryOptions]:
        stored = self._presets.get(name)
        return dict(stored) if stored is not None else None

    def has(self, name: str) -> bool:
        return name in self._presets

    def delete(self, name: str) -> bool:
        if name not in self._presets:
            return False
        del self._presets[name]
        _LOG.info("preset deleted name=%s", name)
        return True

    def list(self) -> List[str]:
        return list(self._presets)

    def resolve(self, name: str, overrides: Optional[QueryOptions] = None) -> QueryOptions:
        stored = self._presets.get(name)
        if stored is None:
            _LOG.warning("preset lookup failed name=%s available=%s", name, self.list())
            raise PresetNotFoundError(name, self.list())
        return {**stored, **(overrides or {})}
