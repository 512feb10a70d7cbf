"""One authenticated SSH connection and the shell channel it owns."""

from __future__ import annotations

from typing import Optional

from shellmon.config import Settings, settings
from shellmon.errors import ChannelError
from shellmon.services.shell_channel import InteractiveShellChannel
from shellmon.services.transport import Transport, TransportConnection
from shellmon.utils.logging import get_logger

log = get_logger(__name__)


class Session:
    """Owns exactly one transport connection and at most one live channel."""

    def __init__(
        self,
        connection: TransportConnection,
        host: str,
        port: int,
        username: str,
        cfg: Settings | None = None,
    ) -> None:
        self._connection: Optional[TransportConnection] = connection
        self._cfg = cfg or settings
        self.host = host
        self.port = port
        self.username = username
        self.authenticated = True
        self.channel: Optional[InteractiveShellChannel] = None

    @classmethod
    async def connect(
        cls,
        transport: Transport,
        username: str,
        host: str,
        port: int,
        key_path: str | None = None,
        cfg: Settings | None = None,
    ) -> Session:
        """Open and authenticate a connection.

        Raises NetworkError or AuthError from the transport.
        """
        cfg = cfg or settings
        log.info("ssh.connecting", host=host, port=port, username=username)
        connection = await transport.connect(
            host, port, username, key_path if key_path is not None else cfg.ssh_key_path,
        )
        log.info("ssh.connected", host=host, port=port)
        return cls(connection, host, port, username, cfg)

    @property
    def is_active(self) -> bool:
        return self._connection is not None and self._connection.is_active

    @property
    def target(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"

    async def open_shell_channel(self) -> InteractiveShellChannel:
        """Open a shell channel and run the readiness handshake.

        Single-channel model: a second call while the first channel is still
        open raises ChannelError.  A closed channel may be replaced.
        """
        if self._connection is None:
            raise ChannelError("Session is closed")
        if self.channel is not None and not self.channel.closed:
            raise ChannelError("Session already has an open shell channel")

        raw = await self._connection.open_shell()
        try:
            shell = await InteractiveShellChannel.open(raw, self._cfg)
        except BaseException:
            if not raw.closed:
                await raw.close()
            raise
        self.channel = shell
        return shell

    async def close(self) -> None:
        """Close the owned channel and the transport.  Idempotent."""
        connection, self._connection = self._connection, None
        channel, self.channel = self.channel, None
        self.authenticated = False
        if connection is None:
            return
        if channel is not None:
            await channel.close()
        await connection.close()
        log.info("ssh.closed", host=self.host, port=self.port)
