"""Entry points used by the CLI and the scan worker."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union

from .cancel import CancelToken, ProgressCallback
from .config import HookSettings
from .installed import InstalledSoftwareDiscoverer, RegistrySource
from .inventory import InventorySource, ShellInventoryClient
from .models import AppRecord, AppSource, dedupe_records
from .packaged import PackagedAppDiscoverer


def _settings(settings: Optional[HookSettings]) -> HookSettings:
    return settings or HookSettings()


def discover_packaged(
    term: Optional[str] = None,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[CancelToken] = None,
    settings: Optional[HookSettings] = None,
    inventory: Optional[InventorySource] = None,
) -> List[AppRecord]:
    settings = _settings(settings)
    inventory = inventory or ShellInventoryClient(read_timeout=settings.inventory_timeout)
    return PackagedAppDiscoverer(inventory, settings.limits).discover(term, progress, cancel)


def discover_installed(
    term: Optional[str] = None,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[CancelToken] = None,
    settings: Optional[HookSettings] = None,
    registry: Optional[RegistrySource] = None,
) -> List[AppRecord]:
    settings = _settings(settings)
    return InstalledSoftwareDiscoverer(registry, settings.limits).discover(term, progress, cancel)


def search_all(
    term: str,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[CancelToken] = None,
    settings: Optional[HookSettings] = None,
    inventory: Optional[InventorySource] = None,
    registry: Optional[RegistrySource] = None,
) -> List[AppRecord]:
    """Search packaged apps and installed software for ``term`` and merge the results."""

    term = (term or "").strip()
    if not term:
        return []
    packaged = discover_packaged(term, progress, cancel, settings, inventory)
    installed = discover_installed(term, progress, cancel, settings, registry)
    return dedupe_records(packaged + installed)


def manual_record(exe_path: Union[str, Path]) -> AppRecord:
    path = Path(exe_path)
    return AppRecord(
        name=path.stem,
        exe_path=str(path),
        image_path=str(path),
        install_location=str(path.parent),
        source=AppSource.MANUAL,
    )


__all__ = ["discover_packaged", "discover_installed", "search_all", "manual_record"]
