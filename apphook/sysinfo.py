"""Short system summary: GPU, driver, VRAM, OS and running processes."""
from __future__ import annotations

import json
import logging
import platform
from typing import Any, Optional

import psutil
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .inventory import InventorySource, ShellInventoryClient

_LOGGER = logging.getLogger(__name__)

GPU_QUERY = (
    "$ErrorActionPreference='SilentlyContinue';"
    "[Console]::OutputEncoding=[System.Text.Encoding]::UTF8;"
    "$g=Get-CimInstance Win32_VideoController | Select-Object -First 1 Name,DriverVersion,AdapterRAM;"
    "if($null -eq $g){return};"
    "$g | ConvertTo-Json -Depth 2"
)

UNKNOWN = "Unknown"
_GIB = 1024 ** 3


class GpuInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default=UNKNOWN, alias="Name")
    driver_version: str = Field(default=UNKNOWN, alias="DriverVersion")
    adapter_ram: float = Field(default=0.0, alias="AdapterRAM")

    @field_validator("name", "driver_version", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        return UNKNOWN if value is None else str(value)

    @field_validator("adapter_ram", mode="before")
    @classmethod
    def _as_bytes(cls, value: Any) -> float:
        # reported as a number or a string depending on the shell
        try:
            ram = float(value)
        except (TypeError, ValueError):
            return 0.0
        return ram if ram > 0 else 0.0

    @property
    def vram_gb(self) -> float:
        return self.adapter_ram / _GIB


def parse_gpu(output: str) -> GpuInfo:
    if not output or not output.strip():
        return GpuInfo()
    try:
        payload = json.loads(output)
    except json.JSONDecodeError as exc:
        _LOGGER.warning("Failed to parse video controller JSON: %s", exc)
        return GpuInfo()
    if isinstance(payload, list):
        payload = payload[0] if payload else {}
    if not isinstance(payload, dict):
        return GpuInfo()
    try:
        return GpuInfo.model_validate(payload)
    except ValidationError as exc:
        _LOGGER.warning("Unexpected video controller data: %s", exc)
        return GpuInfo()


def query_gpu(inventory: Optional[InventorySource] = None) -> GpuInfo:
    client = inventory or ShellInventoryClient(read_timeout=15.0)
    return parse_gpu(client.run(GPU_QUERY))


def process_count() -> int:
    return len(psutil.pids())


def build_summary(version: str, inventory: Optional[InventorySource] = None) -> str:
    gpu = query_gpu(inventory)
    return "\n".join(
        [
            f"apphook version: {version}",
            f"GPU: {gpu.name}",
            f"Driver: {gpu.driver_version}",
            f"VRAM: {gpu.vram_gb:,.2f} GB",
            f"OS version: {platform.platform()}",
            f"System memory: {psutil.virtual_memory().total / _GIB:,.2f} GB",
            f"Processes: {process_count()} running",
        ]
    )


__all__ = ["GPU_QUERY", "GpuInfo", "build_summary", "parse_gpu", "process_count", "query_gpu"]
