"""FastAPI application entry-point."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from shellmon import __version__
from shellmon.routers import commands, health, monitor, session
from shellmon.services.shell_service import ShellService
from shellmon.utils.logging import setup_logging


def create_app(service: ShellService | None = None) -> FastAPI:
    """Build the app around *service* (a fresh ShellService by default)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown hooks."""
        setup_logging()
        yield
        # Shutdown: close SSH session
        await app.state.shell_service.disconnect()

    app = FastAPI(
        title="shellmon",
        description="Remote shell commands and system monitoring over SSH",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.shell_service = service or ShellService()

    app.include_router(health.router)
    app.include_router(session.router)
    app.include_router(commands.router)
    app.include_router(monitor.router)
    return app


app = create_app()
