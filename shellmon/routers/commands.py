"""Arbitrary shell command endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from shellmon.auth import require_api_key
from shellmon.dependencies import get_shell_service
from shellmon.errors import ShellError
from shellmon.models.commands import CommandRequest, CommandResponse
from shellmon.services.shell_service import ShellService

router = APIRouter(tags=["commands"], dependencies=[Depends(require_api_key)])


@router.post("/execute", response_model=CommandResponse)
async def execute_command(
    req: CommandRequest,
    service: ShellService = Depends(get_shell_service),
) -> CommandResponse:
    """Run a command on the shared shell and return its output."""
    try:
        result = await service.run(req.command)
        return CommandResponse(
            command=req.command,
            output=result.output,
            exit_status=result.exit_status,
            success=True,
        )
    except ShellError as exc:
        return CommandResponse(
            command=req.command,
            output="",
            success=False,
            error=str(exc),
        )
