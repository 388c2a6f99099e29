"""Start, stop and locate the Adrenalin driver software."""
from __future__ import annotations

import logging
import os
import subprocess
import sys
import webbrowser
from pathlib import Path
from typing import List, Optional, Union

import psutil

_LOGGER = logging.getLogger(__name__)

DOWNLOAD_URL = "https://www.amd.com/en/products/software/adrenalin.html"


def driver_candidates() -> List[Path]:
    program_files = Path(os.environ.get("ProgramFiles", r"C:\Program Files"))
    program_files_x86 = Path(os.environ.get("ProgramFiles(x86)", r"C:\Program Files (x86)"))
    return [
        program_files / "AMD" / "CNext" / "CNext" / "RadeonSoftware.exe",
        program_files / "AMD" / "Radeon Software" / "RadeonSoftware.exe",
        program_files / "AMD" / "CNext" / "CNext" / "AMDRSServ.exe",
        program_files_x86 / "AMD" / "CNext" / "CNext" / "RadeonSoftware.exe",
    ]


def find_driver_app() -> Optional[Path]:
    for candidate in driver_candidates():
        if candidate.is_file():
            return candidate
    return None


def _start(target: Union[str, Path]) -> bool:
    try:
        if sys.platform.startswith("win"):
            os.startfile(str(target))  # type: ignore[attr-defined]
        elif sys.platform == "darwin":
            subprocess.Popen(["open", str(target)])
        else:
            subprocess.Popen(["xdg-open", str(target)])
    except OSError as exc:
        _LOGGER.error("Failed to start %s: %s", target, exc)
        return False
    return True


def launch_driver_app() -> bool:
    """Start the driver software. Returns False when it is not installed or fails to start."""

    found = find_driver_app()
    if found is None:
        _LOGGER.warning("Driver software not found in any known location")
        return False
    if _start(found):
        _LOGGER.info("Launched %s", found)
        return True
    return False


def _matches(process_name: Optional[str], wanted: str) -> bool:
    if not process_name:
        return False
    name = process_name.casefold()
    if name.endswith(".exe"):
        name = name[:-4]
    return name == wanted


def close_driver_app(process_name: str) -> int:
    """Kill every process called ``process_name`` (with or without .exe) and its children.

    The driver software rewrites gmdb.blb on exit, so it has to be closed
    before the database is edited.
    """

    wanted = process_name.casefold()
    if wanted.endswith(".exe"):
        wanted = wanted[:-4]
    killed = 0
    for proc in psutil.process_iter(["name"]):
        if not _matches(proc.info.get("name"), wanted):
            continue
        try:
            for child in proc.children(recursive=True):
                try:
                    child.kill()
                except psutil.Error:
                    continue
            proc.kill()
            killed += 1
        except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
            _LOGGER.debug("Could not kill %s: %s", proc.pid, exc)
    if killed:
        _LOGGER.info("Closed %s instance(s) of %s", killed, process_name)
    return killed


def open_folder_for_path(path: Union[str, Path]) -> bool:
    target = Path(path)
    folder = target if target.is_dir() else target.parent
    if not str(path).strip() or not folder.is_dir():
        return False
    return _start(folder)


def start_file(path: Union[str, Path]) -> bool:
    """Open ``path`` the way the desktop shell would."""
    target = Path(path)
    if not str(path).strip() or not target.exists():
        _LOGGER.warning("Cannot start %s: file not found", path)
        return False
    if _start(target):
        _LOGGER.info("Started %s", target)
        return True
    return False


def open_download_page() -> bool:
    return webbrowser.open(DOWNLOAD_URL)


__all__ = [
    "DOWNLOAD_URL",
    "close_driver_app",
    "driver_candidates",
    "find_driver_app",
    "launch_driver_app",
    "open_download_page",
    "open_folder_for_path",
    "start_file",
]
