"""Run inventory scripts through an available PowerShell and capture their output."""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from typing import List, Optional, Protocol, Sequence

import psutil

from .cancel import CancelToken, ScanCancelled

_LOGGER = logging.getLogger(__name__)

# Preferred first; the last entry is used even when it cannot be found on PATH.
SHELL_CANDIDATES = ("pwsh", "powershell")


class InventorySource(Protocol):
    def run(self, script: str, cancel: Optional[CancelToken] = None) -> str:
        ...


def kill_process_tree(pid: int) -> None:
    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.Error:
        return
    for proc in [*children, parent]:
        try:
            proc.kill()
        except psutil.Error:
            continue


class ShellInventoryClient:
    """Invoke a command interpreter non-interactively and return its stdout.

    Failures to start the interpreter or to read its output yield an empty
    string. Cancellation kills the interpreter and everything it spawned, then
    raises :class:`ScanCancelled`.
    """

    def __init__(
        self,
        candidates: Sequence[str] = SHELL_CANDIDATES,
        read_timeout: float = 120.0,
        poll_interval: float = 0.05,
    ) -> None:
        self.candidates = tuple(candidates)
        self.read_timeout = read_timeout
        self.poll_interval = poll_interval

    def select_shell(self) -> str:
        for candidate in self.candidates:
            found = shutil.which(candidate)
            if found:
                return found
        return self.candidates[-1]

    def build_command(self, script: str) -> List[str]:
        return [
            self.select_shell(),
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            script,
        ]

    def run(self, script: str, cancel: Optional[CancelToken] = None) -> str:
        cmd = self.build_command(script)
        creationflags = getattr(subprocess, "CREATE_NO_WINDOW", 0) if os.name == "nt" else 0
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                creationflags=creationflags,
            )
        except OSError as exc:
            _LOGGER.warning("Failed to start %s: %s", cmd[0], exc)
            return ""

        deadline = time.monotonic() + self.read_timeout
        while True:
            if cancel is not None and cancel.cancelled:
                kill_process_tree(proc.pid)
                proc.communicate()
                raise ScanCancelled("Operation cancelled.")
            try:
                stdout, stderr = proc.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if time.monotonic() < deadline:
                    continue
                _LOGGER.warning("%s did not finish within %.0fs; using partial output", cmd[0], self.read_timeout)
                kill_process_tree(proc.pid)
                stdout, stderr = proc.communicate()
                break

        if stderr and stderr.strip():
            _LOGGER.warning("%s stderr: %s", os.path.basename(cmd[0]), stderr.strip())
        return stdout or ""


__all__ = ["SHELL_CANDIDATES", "InventorySource", "ShellInventoryClient", "kill_process_tree"]
