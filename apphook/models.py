"""Normalized application records and de-duplication helpers."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

APP_TITLE = "Adrenalin App Hook"


class AppSource(str, Enum):
    PACKAGED = "UWP"
    INSTALLED = "Installed"
    MANUAL = "Manual"


class AppRecord(BaseModel):
    """Application found by a discoverer or picked by hand."""

    model_config = ConfigDict(frozen=True)

    name: str
    exe_path: str
    image_path: Optional[str] = None
    publisher: Optional[str] = None
    version: Optional[str] = None
    architecture: Optional[str] = None
    install_location: Optional[str] = None
    source: AppSource = AppSource.INSTALLED

    @field_validator("name", "exe_path")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    def key(self) -> Tuple[str, str]:
        return record_key(self.name, self.exe_path)

    def clone(self, **updates: Any) -> "AppRecord":
        return self.model_copy(update=updates)


def record_key(name: str, exe_path: str) -> Tuple[str, str]:
    return (name.casefold(), exe_path.casefold())


def casefold_set(values: Iterable[Optional[str]]) -> Set[str]:
    return {value.casefold() for value in values if isinstance(value, str) and value.strip()}


def sort_records(records: Iterable[AppRecord]) -> List[AppRecord]:
    return sorted(records, key=lambda record: record.name.casefold())


def dedupe_records(records: Iterable[AppRecord]) -> List[AppRecord]:
    """Drop repeated (name, exe_path) pairs, keeping the first, and sort by name."""

    unique: Dict[Tuple[str, str], AppRecord] = {}
    for record in records:
        unique.setdefault(record.key(), record)
    return sort_records(unique.values())


__all__ = [
    "APP_TITLE",
    "AppSource",
    "AppRecord",
    "record_key",
    "casefold_set",
    "sort_records",
    "dedupe_records",
]
