"""Common API response models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    version: str


class ConnectRequest(BaseModel):
    """Connection target; blank fields fall back to settings."""

    username: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None


class ConnectResponse(BaseModel):
    success: bool
    message: str = ""
    readiness: Optional[str] = None
    error: Optional[str] = None


class DisconnectResponse(BaseModel):
    success: bool
    message: str = ""
    error: Optional[str] = None


class StatusResponse(BaseModel):
    connected: bool
    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    readiness: Optional[str] = None


class HeartbeatResponse(BaseModel):
    alive: bool
    latency_ms: float = 0.0
    error: Optional[str] = None
