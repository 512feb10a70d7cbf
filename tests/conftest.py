"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Force settings to use test-safe defaults before any import
os.environ.setdefault("SSH_HOST", "127.0.0.1")
os.environ.setdefault("SSH_USERNAME", "tester")
os.environ.setdefault("SSH_KEY_PATH", "/nonexistent/test_key")
os.environ.setdefault("API_KEY", "")

import pytest
from httpx import ASGITransport, AsyncClient

from shellmon.config import Settings
from shellmon.models.snapshots import ProcessSortKey
from shellmon.services.shell_service import ShellService
from shellmon.utils.probes import DISK_PROBE, system_probe
from tests.fake_transport import DISK_OUTPUT, SYSTEM_OUTPUT, FakeTransport


@pytest.fixture
def test_settings():
    """Short timeouts so failure paths finish quickly."""
    return Settings(
        shell_handshake_attempts=3,
        shell_handshake_timeout_seconds=0.05,
        shell_command_timeout_seconds=0.5,
    )


@pytest.fixture
def fake_transport():
    """Provide a FakeTransport with the monitoring probes canned."""
    transport = FakeTransport()
    transport.shell.add_response(system_probe(ProcessSortKey.CPU), SYSTEM_OUTPUT)
    transport.shell.add_response(system_probe(ProcessSortKey.RAM), SYSTEM_OUTPUT)
    transport.shell.add_response(DISK_PROBE, DISK_OUTPUT)
    return transport


@pytest.fixture
def service(test_settings, fake_transport):
    return ShellService(test_settings, transport=fake_transport)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client(service):
    """Async test client around an app wired to the fake transport."""
    from shellmon.main import create_app

    app = create_app(service)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
