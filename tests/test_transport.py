"""Tests for the paramiko adapter that do not need a live SSH server."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import paramiko
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519
from paramiko.pkey import UnknownKeyType

from shellmon.config import Settings
from shellmon.errors import AuthError, ChannelClosedError
from shellmon.services.transport import (
    ChannelEvent,
    EventKind,
    ParamikoChannel,
    ParamikoTransport,
    load_private_key,
)


class StubParamikoChannel:
    """Just enough of paramiko.Channel for the receive/send paths."""

    def __init__(self, chunks: list[bytes], exit_status: int | None = None) -> None:
        self._chunks = list(chunks)
        self._exit_status = exit_status
        self.closed = False
        self.timeout = None
        self.sent = b""

    def settimeout(self, timeout):
        self.timeout = timeout

    def recv(self, nbytes):
        if self._chunks:
            return self._chunks.pop(0)
        if self._exit_status is None:
            self.closed = True
        return b""

    def exit_status_ready(self):
        return self._exit_status is not None

    def recv_exit_status(self):
        return self._exit_status

    def sendall(self, data):
        if self.closed:
            raise OSError("Socket is closed")
        self.sent += data

    def close(self):
        self.closed = True


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=1)
    yield pool
    pool.shutdown(wait=True)


class TestLoadPrivateKey:
    def test_empty_path(self):
        with pytest.raises(AuthError):
            load_private_key("")

    def test_missing_file(self, tmp_path):
        with pytest.raises(AuthError, match="not found"):
            load_private_key(str(tmp_path / "missing"))

    def test_invalid_format(self, tmp_path):
        path = tmp_path / "garbage"
        path.write_text("this is not a key\n")
        with pytest.raises(AuthError, match="Invalid private key"):
            load_private_key(str(path))

    def test_unknown_key_type(self, tmp_path, monkeypatch):
        def from_path(path):
            raise UnknownKeyType(key_type="ssh-foo", key_bytes=b"")

        monkeypatch.setattr(paramiko.PKey, "from_path", staticmethod(from_path))
        with pytest.raises(AuthError, match="Invalid private key"):
            load_private_key(str(tmp_path / "id_foo"))

    def test_openssh_ed25519(self, tmp_path):
        key = ed25519.Ed25519PrivateKey.generate()
        path = tmp_path / "id_ed25519"
        path.write_bytes(
            key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.OpenSSH,
                serialization.NoEncryption(),
            ),
        )
        assert isinstance(load_private_key(str(path)), paramiko.Ed25519Key)


class TestParamikoChannel:
    @pytest.mark.asyncio
    async def test_data_then_close(self, executor):
        stub = StubParamikoChannel([b"hello\n"])
        chan = ParamikoChannel(stub, executor, 4096)
        assert await chan.recv_event(1.0) == ChannelEvent(EventKind.DATA, data=b"hello\n")
        assert stub.timeout == 1.0
        event = await chan.recv_event(1.0)
        assert event.kind is EventKind.CLOSE
        assert event.is_terminal

    @pytest.mark.asyncio
    async def test_exit_status(self, executor):
        stub = StubParamikoChannel([], exit_status=3)
        chan = ParamikoChannel(stub, executor, 4096)
        event = await chan.recv_event(1.0)
        assert event.kind is EventKind.EXIT_STATUS
        assert event.exit_status == 3

    @pytest.mark.asyncio
    async def test_send(self, executor):
        stub = StubParamikoChannel([])
        chan = ParamikoChannel(stub, executor, 4096)
        await chan.send(b"uptime\n")
        assert stub.sent == b"uptime\n"

    @pytest.mark.asyncio
    async def test_send_after_close(self, executor):
        stub = StubParamikoChannel([])
        chan = ParamikoChannel(stub, executor, 4096)
        await chan.close()
        assert chan.closed
        with pytest.raises(ChannelClosedError):
            await chan.send(b"uptime\n")


class TestParamikoTransport:
    @pytest.mark.asyncio
    async def test_missing_key_is_auth_error(self, tmp_path):
        transport = ParamikoTransport(Settings())
        with pytest.raises(AuthError):
            await transport.connect("127.0.0.1", 22, "tester", str(tmp_path / "nope"))
