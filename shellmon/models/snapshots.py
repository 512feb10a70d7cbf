"""Monitoring snapshot models built from parsed probe output."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ProcessSortKey(str, Enum):
    """Column the remote process listing is sorted by."""

    CPU = "cpu"
    RAM = "ram"

    @property
    def top_column(self) -> str:
        return "%CPU" if self is ProcessSortKey.CPU else "%MEM"


class MemorySnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    used_gib: float = 0.0
    total_gib: float = 0.0
    used_percent: float = 0.0


class ProcessEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    cpu_percent: float = 0.0
    mem_percent: float = 0.0


class SystemSnapshot(BaseModel):
    """CPU, memory and top-N processes at one point in time."""

    model_config = ConfigDict(frozen=True)

    cpu_usage_percent: float = 0.0
    memory: MemorySnapshot = MemorySnapshot()
    processes: tuple[ProcessEntry, ...] = ()


class DiskSnapshot(BaseModel):
    """Usage of the root filesystem."""

    model_config = ConfigDict(frozen=True)

    used_gib: float = 0.0
    total_gib: float = 0.0
    used_percent: float = 0.0
