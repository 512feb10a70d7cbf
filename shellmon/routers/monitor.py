"""System and disk monitoring endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from shellmon.auth import require_api_key
from shellmon.dependencies import get_shell_service
from shellmon.errors import CommandTimeoutError, NotConnectedError, ShellError
from shellmon.models.snapshots import DiskSnapshot, ProcessSortKey, SystemSnapshot
from shellmon.services.shell_service import ShellService

router = APIRouter(
    prefix="/monitor",
    tags=["monitor"],
    dependencies=[Depends(require_api_key)],
)


def _http_error(exc: ShellError) -> HTTPException:
    if isinstance(exc, NotConnectedError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, CommandTimeoutError):
        return HTTPException(status_code=504, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


@router.get("/system", response_model=SystemSnapshot)
async def system_snapshot(
    sort: ProcessSortKey = Query(ProcessSortKey.CPU),
    service: ShellService = Depends(get_shell_service),
) -> SystemSnapshot:
    """CPU, memory and the top processes sorted by *sort*."""
    try:
        return await service.get_system_snapshot(sort)
    except ShellError as exc:
        raise _http_error(exc) from exc


@router.get("/disk", response_model=DiskSnapshot)
async def disk_snapshot(
    service: ShellService = Depends(get_shell_service),
) -> DiskSnapshot:
    try:
        return await service.get_disk_snapshot()
    except ShellError as exc:
        raise _http_error(exc) from exc
