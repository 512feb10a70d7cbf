"""Command-related data structures."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class CommandResult(BaseModel):
    """Internal result from one shell command execution."""

    command: str
    output: str
    exit_status: Optional[int] = None
    elapsed_time: float = 0.0


class CommandRequest(BaseModel):
    command: str


class CommandResponse(BaseModel):
    command: str
    output: str
    exit_status: Optional[int] = None
    success: bool
    error: Optional[str] = None
