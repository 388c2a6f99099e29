"""Read-modify-write access to the Adrenalin game database (gmdb.blb)."""
from __future__ import annotations

import copy
import json
import logging
import os
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator

from .models import AppRecord, AppSource, casefold_set

_LOGGER = logging.getLogger(__name__)

GMDB_FILE = "gmdb.blb"
BACKUP_FILE = "backup.blb"
NEW_FILE_MODE = 0o644

# Inert defaults for every field the driver software expects on a game entry.
GAME_ENTRY_TEMPLATE: Dict[str, Any] = {
    "FRAMEGEN_PerfMode": 0,
    "FRAMEGEN_SearchMode": 0,
    "amdId": -1,
    "appDisplayScalingSet": "FALSE",
    "appHistogramCapture": "FALSE",
    "arguments": "",
    "athena_support": "FALSE",
    "auto_enable_ps_state": "USEGLOBAL",
    "averageFPS": -1,
    "color_enabled": "FALSE",
    "colors": [],
    "commandline": "",
    "exe_path": "",
    "eyefinity_enabled": "FALSE",
    "framegen_enabled": 0,
    "freeSyncForceSet": "FALSE",
    "guid": "",
    "has_framegen_profile": "FALSE",
    "has_upscaling_profile": "FALSE",
    "hidden": "FALSE",
    "image_info": "",
    "install_location": "",
    "installer_id": "",
    "is_ai_app": "FALSE",
    "is_appforlink": "FALSE",
    "is_favourite": "FALSE",
    "last_played_mins": 0,
    "lastlaunchtime": "",
    "lastperformancereporttime": "",
    "lnk_path": "",
    "manual": "FALSE",
    "origin_id": -1,
    "overdrive": [],
    "overdrive_enabled": "FALSE",
    "percentile95_msec": -1,
    "profileCustomized": "FALSE",
    "profileEnabled": "TRUE",
    "rayTracing": "FALSE",
    "rendering_process": "",
    "revertuserprofiletype": -1,
    "smartshift_enabled": "FALSE",
    "special_flags": "",
    "steam_id": -1,
    "title": "",
    "total_played_mins": 0,
    "uninstall_location": -1,
    "uninstalled": "FALSE",
    "uplay_id": -1,
    "upscaling_enabled": "FALSE",
    "upscaling_sharpness": 0,
    "upscaling_target_resolution": "",
    "upscaling_use_borderless": "FALSE",
    "useEyefinity": "FALSE",
    "userprofiletype": -1,
    "week_played_mins": 0,
}


class DatabaseError(Exception):
    """The database file exists but cannot be used as a game database."""


class AddResult(NamedTuple):
    added: int
    skipped: int


class VerifyStats(NamedTuple):
    total: int
    missing: int


class GameDatabaseDocument(BaseModel):
    """Top level of gmdb.blb. Unknown keys and entry fields are carried through untouched."""

    model_config = ConfigDict(extra="allow")

    engines: Any = Field(default_factory=list)
    games: List[Any] = Field(default_factory=list)

    _key_order: List[str] = PrivateAttr(default_factory=list)

    @field_validator("games", mode="before")
    @classmethod
    def _games_as_list(cls, value: Any) -> List[Any]:
        if isinstance(value, list):
            return value
        if value is not None:
            _LOGGER.warning("Ignoring non-array games value of type %s", type(value).__name__)
        return []

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "GameDatabaseDocument":
        document = cls.model_validate(payload)
        document._key_order = list(payload)
        return document

    def to_payload(self) -> Dict[str, Any]:
        """Dump with the top-level keys in the order they were read."""
        dumped = self.model_dump()
        ordered = {key: dumped.pop(key) for key in self._key_order if key in dumped}
        ordered.update(dumped)
        return ordered


def _text_field(entry: Any, field: str) -> Optional[str]:
    if not isinstance(entry, dict):
        return None
    value = entry.get(field)
    if isinstance(value, str) and value.strip():
        return value
    return None


def build_game_entry(record: AppRecord) -> Dict[str, Any]:
    entry = copy.deepcopy(GAME_ENTRY_TEMPLATE)
    entry.update(
        {
            "exe_path": record.exe_path,
            "guid": str(uuid.uuid4()),
            "image_info": record.image_path or record.exe_path,
            "manual": "TRUE" if record.source == AppSource.MANUAL else "FALSE",
            "title": record.name,
        }
    )
    return entry


class DatabaseStore:
    """Owns gmdb.blb and its backup.

    Nothing is cached: every call reads the file again so edits made by the
    driver software between calls are picked up.
    """

    def __init__(self, base_dir: Path, filename: str = GMDB_FILE, backup_filename: str = BACKUP_FILE):
        self.base_dir = Path(base_dir)
        self.path = self.base_dir / filename
        self.backup_path = self.base_dir / backup_filename

    # ----- Persistence -------------------------------------------------
    def exists(self) -> bool:
        return self.path.is_file()

    def _load(self) -> Optional[GameDatabaseDocument]:
        if not self.path.is_file():
            return None
        try:
            text = self.path.read_text(encoding="utf-8-sig")
        except OSError as exc:
            raise DatabaseError(f"Cannot read {self.path}: {exc}") from exc
        if not text.strip():
            return None
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise DatabaseError(f"{self.path.name} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise DatabaseError(f"{self.path.name} does not contain a JSON object")
        try:
            return GameDatabaseDocument.from_payload(payload)
        except ValidationError as exc:
            raise DatabaseError(f"{self.path.name} has an unexpected layout: {exc}") from exc

    def _load_or_create(self) -> GameDatabaseDocument:
        return self._load() or GameDatabaseDocument()

    def _save(self, document: GameDatabaseDocument) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(document.to_payload(), indent=2, ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(prefix=".gmdb-", suffix=".tmp", dir=self.base_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(payload)
            # mkstemp creates 0600; keep the mode the driver's file already had.
            if self.path.is_file():
                shutil.copymode(self.path, tmp_name)
            else:
                os.chmod(tmp_name, NEW_FILE_MODE)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def _games_or_empty(self, action: str) -> List[Any]:
        try:
            document = self._load()
        except DatabaseError as exc:
            _LOGGER.error("Failed to %s: %s", action, exc)
            return []
        return document.games if document else []

    # ----- Queries -----------------------------------------------------
    def load_titles(self) -> Set[str]:
        """Titles as stored, original casing kept.

        Compare with ``str.casefold`` (or use :meth:`has_title`); the driver
        software treats titles case-insensitively.
        """
        games = self._games_or_empty("read existing titles")
        return {title for title in (_text_field(entry, "title") for entry in games) if title}

    def has_title(self, title: str) -> bool:
        return title.casefold() in casefold_set(self.load_titles())

    def load_titles_ordered(self) -> List[str]:
        games = self._games_or_empty("load hooked titles")
        titles = [title for title in (_text_field(entry, "title") for entry in games) if title]
        return sorted(titles, key=str.casefold)

    def verify(self) -> VerifyStats:
        games = self._games_or_empty("verify executables")
        exe_paths = [path for path in (_text_field(entry, "exe_path") for entry in games) if path]
        missing = sum(1 for path in exe_paths if not os.path.isfile(path))
        return VerifyStats(len(exe_paths), missing)

    # ----- Mutations ---------------------------------------------------
    def add(self, records: Iterable[AppRecord]) -> AddResult:
        records = list(records)
        if not records:
            return AddResult(0, 0)

        document = self._load_or_create()
        existing_titles = casefold_set(_text_field(entry, "title") for entry in document.games)
        existing_exe = casefold_set(_text_field(entry, "exe_path") for entry in document.games)

        added = skipped = 0
        for record in records:
            title_key = record.name.casefold()
            exe_key = record.exe_path.casefold()
            if title_key in existing_titles or exe_key in existing_exe:
                skipped += 1
                continue
            document.games.append(build_game_entry(record))
            existing_titles.add(title_key)
            existing_exe.add(exe_key)
            added += 1

        self._save(document)
        _LOGGER.info("Added %s game(s), skipped %s already present", added, skipped)
        return AddResult(added, skipped)

    def remove(self, titles: Iterable[str]) -> int:
        to_remove = casefold_set(titles)
        if not to_remove:
            return 0
        document = self._load()
        if document is None or not document.games:
            return 0

        kept = [entry for entry in document.games if (_text_field(entry, "title") or "").casefold() not in to_remove]
        removed = len(document.games) - len(kept)
        document.games = kept
        self._save(document)
        _LOGGER.info("Removed %s game(s)", removed)
        return removed

    def backup(self) -> None:
        if not self.path.is_file():
            raise FileNotFoundError(f"{self.path.name} not found: {self.path}")
        shutil.copyfile(self.path, self.backup_path)
        _LOGGER.info("Backed up %s to %s", self.path, self.backup_path)

    def restore(self) -> None:
        if not self.backup_path.is_file():
            raise FileNotFoundError(f"{self.backup_path.name} not found: {self.backup_path}")
        shutil.copyfile(self.backup_path, self.path)
        _LOGGER.info("Restored %s from %s", self.path, self.backup_path)

    def reset(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        _LOGGER.info("Deleted %s", self.path)

    # ----- Raw editing -------------------------------------------------
    def read_raw(self) -> str:
        if not self.path.is_file():
            return ""
        with open(self.path, "r", encoding="utf-8", newline="") as fh:
            return fh.read()

    def write_raw(self, text: str) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)


__all__ = [
    "GMDB_FILE",
    "BACKUP_FILE",
    "GAME_ENTRY_TEMPLATE",
    "AddResult",
    "DatabaseError",
    "DatabaseStore",
    "GameDatabaseDocument",
    "VerifyStats",
    "build_game_entry",
]
