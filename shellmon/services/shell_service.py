"""Command facade over one shared SSH session and shell channel.

The session slot and the channel slot are guarded by separate locks.
Commands hold only the channel lock for their whole send-and-collect cycle,
so concurrent callers queue up behind each other.  Disconnect takes the
session lock first and closes the transport, which wakes any command still
waiting on the channel, then clears the channel slot.  A command that
leaves the channel closed (timeout, shell exit, cancellation) clears both
slots and closes the session.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from pydantic import BaseModel

from shellmon.config import Settings, settings
from shellmon.errors import NotConnectedError, ShellError
from shellmon.models.commands import CommandResult
from shellmon.models.snapshots import DiskSnapshot, ProcessSortKey, SystemSnapshot
from shellmon.services.session import Session
from shellmon.services.shell_channel import InteractiveShellChannel, Readiness
from shellmon.services.transport import ParamikoTransport, Transport
from shellmon.utils.logging import get_logger
from shellmon.utils.output_parser import parse_disk_snapshot, parse_system_snapshot
from shellmon.utils.probes import (
    DISK_PROBE,
    HEARTBEAT_PROBE,
    HEARTBEAT_REPLY,
    system_probe,
)

log = get_logger(__name__)


class ConnectResult(BaseModel):
    message: str = "Connected"
    readiness: Readiness


class Heartbeat(BaseModel):
    alive: bool
    latency_ms: float


class ServiceStatus(BaseModel):
    connected: bool
    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    readiness: Optional[Readiness] = None


class ShellService:
    """Single logical SSH shell session shared by all API callers."""

    def __init__(
        self,
        cfg: Settings | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self._transport = transport or ParamikoTransport(self._cfg)
        self._session: Optional[Session] = None
        self._channel: Optional[InteractiveShellChannel] = None
        self._session_lock = asyncio.Lock()
        self._channel_lock = asyncio.Lock()

    # ── connection lifecycle ──────────────────────────────────────────

    async def connect(self, username: str, host: str, port: int) -> ConnectResult:
        """Connect, open the shell channel and publish both slots together."""
        async with self._session_lock, self._channel_lock:
            await self._teardown(self._session, self._channel)
            self._session = self._channel = None

            session = await Session.connect(
                self._transport, username, host, port, cfg=self._cfg,
            )
            try:
                channel = await session.open_shell_channel()
            except BaseException:
                await session.close()
                raise

            self._session, self._channel = session, channel
            return ConnectResult(readiness=channel.readiness)

    async def disconnect(self) -> str:
        """Close the session if there is one.  Safe to call repeatedly."""
        async with self._session_lock:
            session, self._session = self._session, None
            if session is not None:
                log.info("ssh.disconnecting", target=session.target)
                await session.close()
        async with self._channel_lock:
            channel, self._channel = self._channel, None
            if channel is not None:
                await channel.close()
        return "Disconnected"

    async def rehandshake(self) -> Readiness:
        """Re-run the readiness handshake on the held channel."""
        async with self._held_channel() as channel:
            return await channel.handshake()

    # ── commands ──────────────────────────────────────────────────────

    async def run(self, command: str) -> CommandResult:
        """Run an arbitrary command on the shared shell."""
        async with self._held_channel() as channel:
            return await channel.send_command(command)

    async def get_system_snapshot(
        self, sort_key: ProcessSortKey = ProcessSortKey.CPU,
    ) -> SystemSnapshot:
        result = await self.run(system_probe(sort_key))
        return parse_system_snapshot(result.output)

    async def get_disk_snapshot(self) -> DiskSnapshot:
        result = await self.run(DISK_PROBE)
        return parse_disk_snapshot(result.output)

    async def heartbeat(self) -> Heartbeat:
        started = time.monotonic()
        result = await self.run(HEARTBEAT_PROBE)
        return Heartbeat(
            alive=result.output.strip() == HEARTBEAT_REPLY,
            latency_ms=(time.monotonic() - started) * 1000.0,
        )

    def status(self) -> ServiceStatus:
        session, channel = self._session, self._channel
        if session is None or channel is None or channel.closed:
            return ServiceStatus(connected=False)
        return ServiceStatus(
            connected=session.is_active,
            host=session.host,
            port=session.port,
            username=session.username,
            readiness=channel.readiness,
        )

    @property
    def is_connected(self) -> bool:
        return self.status().connected

    # ── helpers ───────────────────────────────────────────────────────

    def _require_channel(self) -> InteractiveShellChannel:
        if self._channel is None:
            raise NotConnectedError()
        return self._channel

    @asynccontextmanager
    async def _held_channel(self) -> AsyncIterator[InteractiveShellChannel]:
        """Hold the channel lock around one use of the channel.

        A channel that ends up closed is dropped from its slot and its
        session is closed too.  The session lock is only taken after the
        channel lock is released, keeping the session-then-channel order
        that connect and disconnect use.
        """
        channel: Optional[InteractiveShellChannel] = None
        try:
            async with self._channel_lock:
                channel = self._require_channel()
                try:
                    yield channel
                finally:
                    self._drop_if_closed(channel)
        finally:
            if channel is not None and channel.closed:
                await asyncio.shield(self._close_session_of(channel))

    def _drop_if_closed(self, channel: InteractiveShellChannel) -> None:
        if channel.closed and self._channel is channel:
            log.info("shell.channel_dropped")
            self._channel = None

    async def _close_session_of(self, channel: InteractiveShellChannel) -> None:
        async with self._session_lock:
            session = self._session
            # A reconnect may already have replaced the session
            if session is None or session.channel is not channel:
                return
            self._session = None
            log.info("ssh.session_dropped", target=session.target)
            await self._teardown(session, None)

    async def _teardown(
        self,
        session: Optional[Session],
        channel: Optional[InteractiveShellChannel],
    ) -> None:
        try:
            if channel is not None:
                await channel.close()
            if session is not None:
                await session.close()
        except ShellError as exc:
            log.warning("ssh.teardown_failed", error=str(exc))
