"""SSH transport adapter.

Thin wrapper around paramiko exposing the handful of operations the shell
protocol needs: open an authenticated connection, open a shell channel, send
bytes, receive the next channel event and close.  paramiko is blocking, so
every call runs inside a single-thread executor per connection and the event
loop is never blocked.  Close calls go to the loop's default executor so they
are never queued behind a receive that is waiting for data.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

import paramiko
from paramiko.pkey import UnknownKeyType

from shellmon.config import Settings, settings
from shellmon.errors import (
    AuthError,
    ChannelClosedError,
    ChannelError,
    NetworkError,
)
from shellmon.utils.logging import get_logger

log = get_logger(__name__)


class EventKind(str, Enum):
    DATA = "data"
    EXIT_STATUS = "exit_status"
    EOF = "eof"
    CLOSE = "close"


@dataclass(frozen=True)
class ChannelEvent:
    """One inbound event on a channel."""

    kind: EventKind
    data: bytes = b""
    exit_status: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind is not EventKind.DATA


# ── interfaces ────────────────────────────────────────────────────────────


class TransportChannel(Protocol):
    @property
    def closed(self) -> bool: ...

    async def send(self, data: bytes) -> None: ...

    async def recv_event(self, timeout: float) -> ChannelEvent:
        """Wait for the next event; raise TimeoutError after *timeout* seconds."""
        ...

    async def close(self) -> None: ...


class TransportConnection(Protocol):
    @property
    def is_active(self) -> bool: ...

    async def open_shell(self) -> TransportChannel: ...

    async def close(self) -> None: ...


class Transport(Protocol):
    async def connect(
        self, host: str, port: int, username: str, key_path: str,
    ) -> TransportConnection: ...


# ── key material ──────────────────────────────────────────────────────────


def load_private_key(key_path: str) -> paramiko.PKey:
    """Load an unencrypted private key of any type paramiko supports."""
    if not key_path:
        raise AuthError("No private key configured")
    path = Path(key_path).expanduser()
    try:
        return paramiko.PKey.from_path(path)
    except FileNotFoundError as exc:
        raise AuthError(f"Private key not found: {path}") from exc
    except paramiko.PasswordRequiredException as exc:
        raise AuthError(f"Private key {path} is encrypted; passphrases are not supported") from exc
    except (paramiko.SSHException, UnknownKeyType, ValueError, TypeError, OSError) as exc:
        raise AuthError(f"Invalid private key {path}: {exc}") from exc


# ── paramiko implementation ───────────────────────────────────────────────


class ParamikoChannel:
    """A paramiko channel running a remote shell (no pty)."""

    def __init__(
        self,
        chan: paramiko.Channel,
        executor: ThreadPoolExecutor,
        recv_bytes: int,
    ) -> None:
        self._chan = chan
        self._executor = executor
        self._recv_bytes = recv_bytes

    @property
    def closed(self) -> bool:
        return self._chan.closed

    async def _run(self, fn, *args):
        if self._chan.closed:
            raise ChannelClosedError("Channel closed")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    async def send(self, data: bytes) -> None:
        await self._run(self._send_sync, data)

    async def recv_event(self, timeout: float) -> ChannelEvent:
        return await self._run(self._recv_sync, timeout)

    async def close(self) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._chan.close)

    def _send_sync(self, data: bytes) -> None:
        try:
            self._chan.sendall(data)
        except OSError as exc:
            raise ChannelClosedError(f"Channel closed while sending: {exc}") from exc

    def _recv_sync(self, timeout: float) -> ChannelEvent:
        chan = self._chan
        chan.settimeout(timeout)
        # socket.timeout (an alias of TimeoutError) propagates to the caller
        data = chan.recv(self._recv_bytes)
        if data:
            return ChannelEvent(EventKind.DATA, data=data)
        if chan.exit_status_ready():
            return ChannelEvent(EventKind.EXIT_STATUS, exit_status=chan.recv_exit_status())
        return ChannelEvent(EventKind.CLOSE if chan.closed else EventKind.EOF)


class ParamikoConnection:
    """An authenticated paramiko client plus its executor."""

    def __init__(
        self,
        client: paramiko.SSHClient,
        executor: ThreadPoolExecutor,
        cfg: Settings,
    ) -> None:
        self._client = client
        self._executor = executor
        self._cfg = cfg

    @property
    def is_active(self) -> bool:
        transport = self._client.get_transport()
        return transport is not None and transport.is_active()

    async def open_shell(self) -> ParamikoChannel:
        loop = asyncio.get_running_loop()
        chan = await loop.run_in_executor(self._executor, self._open_shell_sync)
        return ParamikoChannel(chan, self._executor, self._cfg.shell_recv_bytes)

    def _open_shell_sync(self) -> paramiko.Channel:
        transport = self._client.get_transport()
        if transport is None or not transport.is_active():
            raise ChannelClosedError("Transport is not active")
        try:
            chan = transport.open_session(timeout=self._cfg.ssh_connect_timeout_seconds)
            chan.set_combine_stderr(True)
            chan.invoke_shell()
        except (paramiko.SSHException, OSError) as exc:
            raise ChannelError(f"Could not open shell channel: {exc}") from exc
        return chan

    async def close(self) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._client.close)
        self._executor.shutdown(wait=False)


class ParamikoTransport:
    """Opens authenticated paramiko connections using public-key auth."""

    def __init__(self, cfg: Settings | None = None) -> None:
        self._cfg = cfg or settings

    async def connect(
        self, host: str, port: int, username: str, key_path: str,
    ) -> ParamikoConnection:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ssh")
        loop = asyncio.get_running_loop()
        try:
            client = await loop.run_in_executor(
                executor, self._connect_sync, host, port, username, key_path,
            )
        except BaseException:
            executor.shutdown(wait=False)
            raise
        return ParamikoConnection(client, executor, self._cfg)

    def _connect_sync(
        self, host: str, port: int, username: str, key_path: str,
    ) -> paramiko.SSHClient:
        pkey = load_private_key(key_path)

        client = paramiko.SSHClient()
        if self._cfg.ssh_strict_host_key:
            client.load_system_host_keys()
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        timeout = self._cfg.ssh_connect_timeout_seconds
        try:
            client.connect(
                hostname=host,
                port=port,
                username=username,
                pkey=pkey,
                timeout=timeout,
                banner_timeout=timeout,
                auth_timeout=timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except paramiko.AuthenticationException as exc:
            client.close()
            raise AuthError(f"Authentication rejected for {username}@{host}: {exc}") from exc
        except (paramiko.SSHException, OSError) as exc:
            client.close()
            raise NetworkError(f"Could not connect to {host}:{port}: {exc}") from exc

        transport = client.get_transport()
        if transport is not None and self._cfg.ssh_keepalive_seconds > 0:
            transport.set_keepalive(self._cfg.ssh_keepalive_seconds)
        log.debug("ssh.transport_open", host=host, port=port)
        return client
