"""Discovery of traditionally installed software through the uninstall registry."""
from __future__ import annotations

import logging
import ntpath
import os
import sys
from typing import Dict, Iterator, List, Mapping, Optional, Protocol

from .cancel import CancelToken, ProgressCallback, check_cancelled, report
from .config import ScanLimits
from .filesearch import find_first_exe
from .models import AppRecord, AppSource, dedupe_records

_LOGGER = logging.getLogger(__name__)

UNINSTALL_ROOTS = (
    r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall",
    r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall",
)


class RegistrySource(Protocol):
    def iter_entries(self, root: str) -> Iterator[Dict[str, str]]:
        ...


class WindowsRegistrySource:
    """Reads string values of every subkey below an HKLM path."""

    def iter_entries(self, root: str) -> Iterator[Dict[str, str]]:
        if not sys.platform.startswith("win"):
            return
        try:
            import winreg  # type: ignore
        except ImportError:  # pragma: no cover - depends on platform
            return

        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, root) as base:
            index = 0
            while True:
                try:
                    sub_name = winreg.EnumKey(base, index)
                except OSError:
                    break
                index += 1
                try:
                    with winreg.OpenKey(base, sub_name) as sub:
                        yield self._read_values(winreg, sub)
                except OSError:
                    continue

    @staticmethod
    def _read_values(winreg, key) -> Dict[str, str]:
        values: Dict[str, str] = {}
        index = 0
        while True:
            try:
                name, data, value_type = winreg.EnumValue(key, index)
            except OSError:
                break
            index += 1
            if not isinstance(data, str):
                continue
            if value_type == winreg.REG_EXPAND_SZ:
                data = winreg.ExpandEnvironmentStrings(data)
            values[name] = data
        return values


def expand_path(value: Optional[str]) -> Optional[str]:
    """Expand ``%VAR%`` references left in a registry string."""
    if not value:
        return value
    return ntpath.expandvars(value)


def icon_exe_path(display_icon: Optional[str]) -> Optional[str]:
    """Path portion of a DisplayIcon value such as ``"C:\\app.exe",0``."""
    if not display_icon or not display_icon.strip():
        return None
    path = display_icon.split(",", 1)[0].strip('" ')
    return expand_path(path) or None


class InstalledSoftwareDiscoverer:
    def __init__(self, registry: Optional[RegistrySource] = None, limits: Optional[ScanLimits] = None) -> None:
        self.registry = registry or WindowsRegistrySource()
        self.limits = limits or ScanLimits()

    def _to_record(
        self, entry: Mapping[str, str], term: Optional[str], cancel: Optional[CancelToken]
    ) -> Optional[AppRecord]:
        display_name = (entry.get("DisplayName") or "").strip()
        if not display_name:
            return None
        if term and term.casefold() not in display_name.casefold():
            return None

        install_location = expand_path((entry.get("InstallLocation") or "").strip()) or None
        exe_path: Optional[str] = None
        if install_location and os.path.isdir(install_location):
            found = find_first_exe(
                install_location, self.limits.exe_max_depth, self.limits.exe_max_files, cancel
            )
            exe_path = str(found) if found else None
        if not exe_path:
            exe_path = icon_exe_path(entry.get("DisplayIcon"))
        if not exe_path or not os.path.isfile(exe_path):
            return None

        return AppRecord(
            name=display_name,
            exe_path=exe_path,
            image_path=exe_path,
            install_location=install_location or os.path.dirname(exe_path),
            source=AppSource.INSTALLED,
        )

    def discover(
        self,
        term: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> List[AppRecord]:
        term = (term or "").strip() or None
        records: List[AppRecord] = []
        for root in UNINSTALL_ROOTS:
            check_cancelled(cancel)
            report(progress, f"Scanning registry: {root}")
            try:
                for entry in self.registry.iter_entries(root):
                    check_cancelled(cancel)
                    record = self._to_record(entry, term, cancel)
                    if record is not None:
                        records.append(record)
            except OSError as exc:
                _LOGGER.warning("Could not enumerate %s: %s", root, exc)
                continue
        return dedupe_records(records)


__all__ = [
    "UNINSTALL_ROOTS",
    "RegistrySource",
    "WindowsRegistrySource",
    "InstalledSoftwareDiscoverer",
    "expand_path",
    "icon_exe_path",
]
