"""Remote probe commands.

The exact text matters: the parsers in ``output_parser`` expect the line
formats these one-liners print.
"""

from __future__ import annotations

from shellmon.models.snapshots import ProcessSortKey

# top rows 8..17 are the ten busiest processes for the chosen column.
_SYSTEM_PROBE = (
    "top -bn1 -w 150 -o {column} | awk '\n"
    "                /Cpu/ {{\n"
    "                    cpu=$2+$4\n"
    "                    print \"CPU \" cpu\n"
    "                }}\n"
    "                /MiB Mem :/ {{\n"
    "                    total=$4\n"
    "                    free=$6\n"
    "                    used=$8\n"
    "                    print \"MEM \" total \" \" used \" \" free\n"
    "                }}\n"
    "                NR>7 && NR<18 {{\n"
    "                    print \"PROC \" $12 \" \" $9 \" \" $10\n"
    "                }}'"
)

# Prints "used,size,pcent" with units stripped and no trailing newline.
DISK_PROBE = (
    "df -h / --output=size,used,pcent | "
    "awk 'NR==2 { printf \"%s,%s,%s\", $2, $1, $3 }' | tr -d 'G%'"
)

HEARTBEAT_PROBE = "echo heartbeat"
HEARTBEAT_REPLY = "heartbeat"


def system_probe(sort_key: ProcessSortKey) -> str:
    return _SYSTEM_PROBE.format(column=sort_key.top_column)
