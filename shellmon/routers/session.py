"""Connect / disconnect / status endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from shellmon.auth import require_api_key
from shellmon.config import settings
from shellmon.dependencies import get_shell_service
from shellmon.errors import ShellError
from shellmon.models.responses import (
    ConnectRequest,
    ConnectResponse,
    DisconnectResponse,
    HeartbeatResponse,
    StatusResponse,
)
from shellmon.services.shell_service import ShellService

router = APIRouter(
    prefix="/ssh",
    tags=["ssh"],
    dependencies=[Depends(require_api_key)],
)


@router.post("/connect", response_model=ConnectResponse)
async def connect(
    req: ConnectRequest,
    service: ShellService = Depends(get_shell_service),
) -> ConnectResponse:
    """Open the SSH session and its shell channel."""
    try:
        result = await service.connect(
            username=req.username or settings.ssh_username,
            host=req.host or settings.ssh_host,
            port=req.port or settings.ssh_port,
        )
    except ShellError as exc:
        return ConnectResponse(success=False, error=str(exc))
    return ConnectResponse(
        success=True,
        message=result.message,
        readiness=result.readiness.value,
    )


@router.post("/disconnect", response_model=DisconnectResponse)
async def disconnect(
    service: ShellService = Depends(get_shell_service),
) -> DisconnectResponse:
    try:
        message = await service.disconnect()
    except ShellError as exc:
        return DisconnectResponse(success=False, error=str(exc))
    return DisconnectResponse(success=True, message=message)


@router.post("/handshake", response_model=ConnectResponse)
async def handshake(
    service: ShellService = Depends(get_shell_service),
) -> ConnectResponse:
    """Re-run the shell readiness handshake (e.g. after a degraded connect)."""
    try:
        readiness = await service.rehandshake()
    except ShellError as exc:
        return ConnectResponse(success=False, error=str(exc))
    return ConnectResponse(success=True, message="Handshake complete", readiness=readiness.value)


@router.get("/status", response_model=StatusResponse)
async def status(
    service: ShellService = Depends(get_shell_service),
) -> StatusResponse:
    st = service.status()
    return StatusResponse(
        connected=st.connected,
        host=st.host,
        port=st.port,
        username=st.username,
        readiness=st.readiness.value if st.readiness else None,
    )


@router.get("/heartbeat", response_model=HeartbeatResponse)
async def heartbeat(
    service: ShellService = Depends(get_shell_service),
) -> HeartbeatResponse:
    try:
        beat = await service.heartbeat()
    except ShellError as exc:
        return HeartbeatResponse(alive=False, error=str(exc))
    return HeartbeatResponse(alive=beat.alive, latency_ms=beat.latency_ms)
