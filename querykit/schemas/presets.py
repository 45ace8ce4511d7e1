from typing import Any, Dict, List

from pydantic import BaseModel


class PresetOut(BaseModel):
    name: str
    options: Dict[str, Any] = {}


class PresetList(BaseModel):
    presets: List[str] = []


class CountOut(BaseModel):
    total: int
