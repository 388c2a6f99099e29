"""Discovery of packaged (UWP / Game Pass) applications."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .cancel import CancelToken, ProgressCallback, check_cancelled, report
from .config import ScanLimits
from .filesearch import find_file_by_name, find_first_exe
from .inventory import InventorySource, ShellInventoryClient
from .manifest import GAME_CONFIG, read_declared_executable, read_display_name, read_logo_path
from .models import AppRecord, AppSource, dedupe_records

_LOGGER = logging.getLogger(__name__)

PACKAGE_QUERY = (
    "$ErrorActionPreference='SilentlyContinue';"
    "[Console]::OutputEncoding=[System.Text.Encoding]::UTF8;"
    "Get-AppxPackage | Select-Object Name, InstallLocation, Publisher, Version, Architecture"
    " | ConvertTo-Json -Depth 3"
)

NOISE_TOKENS = ("windowsappruntime", "ms-resource", "appmanifest", "displayname")


class PackageInfo(BaseModel):
    """One row of Get-AppxPackage output; field names match the tool exactly."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, alias="Name")
    install_location: Optional[str] = Field(default=None, alias="InstallLocation")
    publisher: Optional[str] = Field(default=None, alias="Publisher")
    version: Optional[str] = Field(default=None, alias="Version")
    architecture: Optional[str] = Field(default=None, alias="Architecture")

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return str(value)


def parse_packages(output: str) -> List[PackageInfo]:
    if not output or not output.strip():
        return []
    try:
        payload = json.loads(output)
    except json.JSONDecodeError as exc:
        _LOGGER.warning("Failed to parse Get-AppxPackage JSON: %s", exc)
        return []
    rows = payload if isinstance(payload, list) else [payload]
    packages: List[PackageInfo] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            packages.append(PackageInfo.model_validate(row))
        except ValidationError as exc:
            _LOGGER.warning("Skipping malformed package row: %s", exc)
    return packages


def normalize_publisher(publisher: Optional[str]) -> Optional[str]:
    if not publisher:
        return publisher
    idx = publisher.casefold().find("cn=")
    if idx >= 0:
        return publisher[idx + 3:]
    return publisher


def is_noise(name: str) -> bool:
    folded = name.casefold()
    return any(token in folded for token in NOISE_TOKENS)


class PackagedAppDiscoverer:
    def __init__(self, inventory: Optional[InventorySource] = None, limits: Optional[ScanLimits] = None) -> None:
        self.inventory = inventory or ShellInventoryClient()
        self.limits = limits or ScanLimits()

    def list_packages(self, cancel: Optional[CancelToken] = None) -> List[PackageInfo]:
        return parse_packages(self.inventory.run(PACKAGE_QUERY, cancel))

    def resolve_exe(self, install: Path, cancel: Optional[CancelToken] = None) -> Optional[Path]:
        limits = self.limits
        if (install / GAME_CONFIG).is_file():
            declared = read_declared_executable(install)
            if declared:
                file_name = declared.replace("\\", "/").rsplit("/", 1)[-1]
                found = find_file_by_name(
                    install, file_name, limits.name_max_depth, limits.name_max_files, cancel
                )
                if found:
                    return found
        return find_first_exe(install, limits.exe_max_depth, limits.exe_max_files, cancel)

    def _to_record(
        self,
        package: PackageInfo,
        term: Optional[str],
        progress: Optional[ProgressCallback],
        cancel: Optional[CancelToken],
    ) -> Optional[AppRecord]:
        if not package.install_location or not package.install_location.strip():
            return None
        install = Path(package.install_location.strip())
        if not install.is_dir():
            return None

        display = read_display_name(install) or (package.name or "").strip()
        if not display or is_noise(display):
            return None

        if term:
            needle = term.casefold()
            if needle not in display.casefold() and needle not in (package.name or "").casefold():
                return None

        report(progress, f"Scanning UWP: {display}")
        exe_path = self.resolve_exe(install, cancel)
        if exe_path is None or not exe_path.is_file():
            return None

        return AppRecord(
            name=display,
            exe_path=str(exe_path),
            image_path=read_logo_path(install),
            publisher=normalize_publisher(package.publisher),
            version=package.version,
            architecture=package.architecture,
            install_location=str(install),
            source=AppSource.PACKAGED,
        )

    def discover(
        self,
        term: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> List[AppRecord]:
        term = (term or "").strip() or None
        records: List[AppRecord] = []
        for package in self.list_packages(cancel):
            check_cancelled(cancel)
            try:
                record = self._to_record(package, term, progress, cancel)
            except (OSError, ValueError) as exc:
                _LOGGER.warning("Skipping package %s: %s", package.name, exc)
                continue
            if record is not None:
                records.append(record)
        return dedupe_records(records)


__all__ = [
    "PACKAGE_QUERY",
    "PackageInfo",
    "PackagedAppDiscoverer",
    "is_noise",
    "normalize_publisher",
    "parse_packages",
]
