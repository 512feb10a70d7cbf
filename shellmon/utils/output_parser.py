"""Utilities for parsing remote probe output.

Parsing is best-effort: malformed numbers become 0.0 and unrecognised lines
are skipped.  Nothing here raises on bad input.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Union

from shellmon.models.snapshots import (
    DiskSnapshot,
    MemorySnapshot,
    ProcessEntry,
    SystemSnapshot,
)

MIB_PER_GIB = 1024.0


def to_float(value: str | None) -> float:
    """Parse a number, accepting a decimal comma; anything else is 0.0."""
    if value is None:
        return 0.0
    text = value.strip().replace(",", ".")
    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def percent(part: float, whole: float) -> float:
    return part / whole * 100.0 if whole > 0 else 0.0


# ---------------------------------------------------------------------------
# Tagged lines
# ---------------------------------------------------------------------------

class CpuLine(NamedTuple):
    usage_percent: float


class MemLine(NamedTuple):
    total_mib: float
    used_mib: float


class ProcLine(NamedTuple):
    name: str
    cpu_percent: float
    mem_percent: float


class UnknownLine(NamedTuple):
    text: str


TaggedLine = Union[CpuLine, MemLine, ProcLine, UnknownLine]


def _field(parts: list[str], index: int) -> str | None:
    return parts[index] if index < len(parts) else None


def parse_line(line: str) -> TaggedLine:
    """Classify one line of system probe output by its first token."""
    parts = line.split()
    tag = parts[0] if parts else ""
    if tag == "CPU":
        return CpuLine(to_float(_field(parts, 1)))
    if tag == "MEM":
        # MEM <total> <used> <free>
        return MemLine(to_float(_field(parts, 1)), to_float(_field(parts, 2)))
    if tag == "PROC" and len(parts) > 1:
        return ProcLine(parts[1], to_float(_field(parts, 2)), to_float(_field(parts, 3)))
    return UnknownLine(line)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

def parse_system_snapshot(output: str) -> SystemSnapshot:
    """Build a SystemSnapshot from CPU/MEM/PROC tagged lines."""
    cpu = 0.0
    total_mib = used_mib = 0.0
    processes: list[ProcessEntry] = []

    for line in output.splitlines():
        tagged = parse_line(line)
        if isinstance(tagged, CpuLine):
            cpu = tagged.usage_percent
        elif isinstance(tagged, MemLine):
            total_mib, used_mib = tagged.total_mib, tagged.used_mib
        elif isinstance(tagged, ProcLine):
            processes.append(
                ProcessEntry(
                    name=tagged.name,
                    cpu_percent=tagged.cpu_percent,
                    mem_percent=tagged.mem_percent,
                ),
            )

    return SystemSnapshot(
        cpu_usage_percent=cpu,
        memory=MemorySnapshot(
            used_gib=used_mib / MIB_PER_GIB,
            total_gib=total_mib / MIB_PER_GIB,
            used_percent=percent(used_mib, total_mib),
        ),
        processes=tuple(processes),
    )


def parse_disk_snapshot(output: str) -> DiskSnapshot:
    """Parse ``used,total,percent`` as printed by the disk probe."""
    fields = output.strip().split(",")
    return DiskSnapshot(
        used_gib=to_float(_field(fields, 0)),
        total_gib=to_float(_field(fields, 1)),
        used_percent=to_float(_field(fields, 2)),
    )
