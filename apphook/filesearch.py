"""Breadth-first file lookup with depth and file-count caps."""
from __future__ import annotations

import logging
import os
from collections import deque
from pathlib import Path
from typing import Callable, Deque, Optional, Tuple, Union

from .cancel import CancelToken, check_cancelled

_LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]

SKIPPED_DIRS = frozenset({"logs", "crashdumps", "temp"})


def _list_dir(directory: Path) -> Tuple[list, list]:
    files = []
    subdirs = []
    with os.scandir(directory) as entries:
        for entry in sorted(entries, key=lambda item: item.name.casefold()):
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(Path(entry.path))
                elif entry.is_file():
                    files.append(Path(entry.path))
            except OSError:
                continue
    return files, subdirs


def find_first(
    root: Optional[PathLike],
    predicate: Callable[[Path], bool],
    max_depth: int,
    max_scanned: int,
    cancel: Optional[CancelToken] = None,
) -> Optional[Path]:
    """Return the first file under ``root`` accepted by ``predicate``.

    Directories are visited level by level and files directly inside each one
    are tested before descending. Directories deeper than ``max_depth`` are
    never listed, and once more than ``max_scanned`` files have been considered
    the search gives up and returns ``None``.
    """

    if not root or not str(root).strip():
        return None
    start = Path(root)
    if not start.is_dir():
        return None

    queue: Deque[Tuple[Path, int]] = deque([(start, 0)])
    scanned = 0
    while queue:
        check_cancelled(cancel)
        directory, depth = queue.popleft()
        if depth > max_depth:
            continue
        try:
            files, subdirs = _list_dir(directory)
        except OSError as exc:
            _LOGGER.debug("Skipping unreadable directory %s: %s", directory, exc)
            continue
        for path in files:
            scanned += 1
            if scanned > max_scanned:
                _LOGGER.debug("Scan cap of %s files reached under %s", max_scanned, start)
                return None
            if predicate(path):
                return path
        for subdir in subdirs:
            if subdir.name.casefold() in SKIPPED_DIRS:
                continue
            queue.append((subdir, depth + 1))
    return None


def find_first_exe(
    root: Optional[PathLike],
    max_depth: int = 6,
    max_scanned: int = 5000,
    cancel: Optional[CancelToken] = None,
) -> Optional[Path]:
    return find_first(root, lambda path: path.suffix.lower() == ".exe", max_depth, max_scanned, cancel)


def find_file_by_name(
    root: Optional[PathLike],
    file_name: str,
    max_depth: int = 8,
    max_scanned: int = 15000,
    cancel: Optional[CancelToken] = None,
) -> Optional[Path]:
    wanted = file_name.strip().casefold()
    if not wanted:
        return None
    return find_first(root, lambda path: path.name.casefold() == wanted, max_depth, max_scanned, cancel)


__all__ = ["SKIPPED_DIRS", "find_first", "find_first_exe", "find_file_by_name"]
