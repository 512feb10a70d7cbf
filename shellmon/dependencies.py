"""Request-scoped access to the shared ShellService."""

from __future__ import annotations

from fastapi import Request

from shellmon.services.shell_service import ShellService


def get_shell_service(request: Request) -> ShellService:
    return request.app.state.shell_service
