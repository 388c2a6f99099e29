"""Best-effort readers for packaged app manifests."""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional, Union

_LOGGER = logging.getLogger(__name__)

APPX_MANIFEST = "AppxManifest.xml"
GAME_CONFIG = "MicrosoftGame.config"

# Display names still holding one of these are indirections we cannot resolve.
PLACEHOLDER_TOKENS = ("ms-resource", "appmanifest", "displayname")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1].casefold()


def _first_element(path: Path, local_name: str) -> Optional[ET.Element]:
    if not path.is_file():
        return None
    try:
        tree = ET.parse(path)
    except (ET.ParseError, OSError) as exc:
        _LOGGER.debug("Could not parse %s: %s", path, exc)
        return None
    wanted = local_name.casefold()
    for element in tree.getroot().iter():
        if isinstance(element.tag, str) and _local_name(element.tag) == wanted:
            return element
    return None


def is_placeholder(value: str) -> bool:
    folded = value.casefold()
    return any(token in folded for token in PLACEHOLDER_TOKENS)


def read_display_name(install_dir: Union[str, Path]) -> Optional[str]:
    element = _first_element(Path(install_dir) / APPX_MANIFEST, "DisplayName")
    if element is None or not element.text:
        return None
    name = element.text.strip()
    if not name or is_placeholder(name):
        return None
    return name


def read_logo_path(install_dir: Union[str, Path]) -> Optional[str]:
    install = Path(install_dir)
    element = _first_element(install / APPX_MANIFEST, "Logo")
    if element is None or not element.text or not element.text.strip():
        return None
    relative = element.text.strip().replace("\\", "/")
    candidate = install.joinpath(*relative.split("/"))
    return str(candidate) if candidate.is_file() else None


def read_declared_executable(install_dir: Union[str, Path]) -> Optional[str]:
    element = _first_element(Path(install_dir) / GAME_CONFIG, "Executable")
    if element is None:
        return None
    for attr, value in element.attrib.items():
        if _local_name(attr) == "name" and value.strip():
            return value.strip()
    text = (element.text or "").strip()
    return text or None


__all__ = [
    "APPX_MANIFEST",
    "GAME_CONFIG",
    "is_placeholder",
    "read_display_name",
    "read_logo_path",
    "read_declared_executable",
]
