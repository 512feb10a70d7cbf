"""Tests for the SSH session lifecycle."""

from __future__ import annotations

import pytest

from shellmon.errors import AuthError, ChannelError, NetworkError
from shellmon.services.session import Session
from shellmon.services.shell_channel import Readiness


async def _connect(transport, test_settings, host="box.example") -> Session:
    return await Session.connect(
        transport, "tester", host, 2222, cfg=test_settings,
    )


@pytest.mark.asyncio
async def test_connect_uses_configured_key(fake_transport, test_settings):
    session = await _connect(fake_transport, test_settings)
    assert fake_transport.connect_calls == [
        ("box.example", 2222, "tester", test_settings.ssh_key_path),
    ]
    assert session.authenticated
    assert session.is_active
    assert session.target == "tester@box.example:2222"


@pytest.mark.asyncio
async def test_connect_explicit_key_path(fake_transport, test_settings):
    await Session.connect(
        fake_transport, "tester", "box.example", 22,
        key_path="/keys/id_rsa", cfg=test_settings,
    )
    assert fake_transport.connect_calls[-1][3] == "/keys/id_rsa"


@pytest.mark.asyncio
async def test_connect_network_error(fake_transport, test_settings):
    with pytest.raises(NetworkError):
        await _connect(fake_transport, test_settings, host="unreachable.invalid")


@pytest.mark.asyncio
async def test_connect_auth_error(fake_transport, test_settings):
    fake_transport.error = AuthError("Authentication rejected")
    with pytest.raises(AuthError):
        await _connect(fake_transport, test_settings)


@pytest.mark.asyncio
async def test_open_shell_channel(fake_transport, test_settings):
    session = await _connect(fake_transport, test_settings)
    channel = await session.open_shell_channel()
    assert channel.readiness is Readiness.READY
    assert session.channel is channel


@pytest.mark.asyncio
async def test_second_channel_rejected(fake_transport, test_settings):
    session = await _connect(fake_transport, test_settings)
    await session.open_shell_channel()
    with pytest.raises(ChannelError):
        await session.open_shell_channel()
    assert len(fake_transport.connections[0].channels) == 1


@pytest.mark.asyncio
async def test_closed_channel_can_be_replaced(fake_transport, test_settings):
    session = await _connect(fake_transport, test_settings)
    first = await session.open_shell_channel()
    await first.close()
    second = await session.open_shell_channel()
    assert second is not first
    assert not second.closed


@pytest.mark.asyncio
async def test_close_releases_channel_and_transport(fake_transport, test_settings):
    session = await _connect(fake_transport, test_settings)
    channel = await session.open_shell_channel()
    await session.close()
    assert channel.closed
    assert not fake_transport.connections[0].is_active
    assert not session.is_active
    assert session.channel is None


@pytest.mark.asyncio
async def test_close_is_idempotent(fake_transport, test_settings):
    session = await _connect(fake_transport, test_settings)
    await session.close()
    await session.close()
    assert not session.authenticated


@pytest.mark.asyncio
async def test_open_channel_after_close_fails(fake_transport, test_settings):
    session = await _connect(fake_transport, test_settings)
    await session.close()
    with pytest.raises(ChannelError):
        await session.open_shell_channel()
