from __future__ import annotations

from typing import Iterable


class QueryToolkitError(Exception):
    pass


class PresetNotFoundError(QueryToolkitError, LookupError):
    def __init__(self, name: str, available: Iterable[str]):
        self.name = name
        self.available = list(available)
        listed = ", ".join(self.available) if self.available else "(none)"
        super().__init__(f'Preset "{name}" not found. Available presets: {listed}')


class InvalidQueryOptionsError(QueryToolkitError, ValueError):
    def __init__(self, key: str, value):
        self.key = key
        self.value = value
        super().__init__(f'Invalid value for "{key}": expected a positive integer, got {value!r}')
