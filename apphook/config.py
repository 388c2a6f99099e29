"""Settings for scan limits, storage locations and the driver application."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

_LOGGER = logging.getLogger(__name__)

APP_NAME = "apphook"
SETTINGS_FILE = "settings.json"
ENV_DATA_DIR = "APPHOOK_DATA_DIR"


def _local_app_data() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
    else:
        base = os.getenv("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return Path(base or os.path.expanduser("~"))


def app_dir() -> Path:
    return _local_app_data() / APP_NAME


def default_data_dir() -> Path:
    """Directory holding gmdb.blb; the driver software keeps it under AMD\\CN."""
    return _local_app_data() / "AMD" / "CN"


class ScanLimits(BaseModel):
    exe_max_depth: int = Field(default=6, ge=0)
    exe_max_files: int = Field(default=5000, ge=1)
    name_max_depth: int = Field(default=8, ge=0)
    name_max_files: int = Field(default=15000, ge=1)


class HookSettings(BaseModel):
    data_dir: Path = Field(default_factory=default_data_dir)
    log_dir: Path = Field(default_factory=lambda: app_dir() / "logs")
    inventory_timeout: float = Field(default=120.0, gt=0)
    driver_process_name: str = "RadeonSoftware"
    limits: ScanLimits = Field(default_factory=ScanLimits)


def settings_path() -> Path:
    return app_dir() / SETTINGS_FILE


def load_settings(path: Optional[Path] = None) -> HookSettings:
    path = path or settings_path()
    settings = HookSettings()
    if path.exists():
        try:
            settings = HookSettings.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            _LOGGER.warning("Ignoring unreadable settings %s: %s", path, exc)
    override = os.getenv(ENV_DATA_DIR)
    if override:
        settings = settings.model_copy(update={"data_dir": Path(override)})
    return settings


def save_settings(settings: HookSettings, path: Optional[Path] = None) -> None:
    path = path or settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")


__all__ = [
    "ENV_DATA_DIR",
    "ScanLimits",
    "HookSettings",
    "app_dir",
    "default_data_dir",
    "load_settings",
    "save_settings",
    "settings_path",
]
