"""Error taxonomy shared by the transport, session, channel and service layers."""

from __future__ import annotations


class ShellError(Exception):
    """Base class for every error surfaced to API callers."""


class NetworkError(ShellError):
    """Endpoint unreachable or the transport failed."""


class AuthError(ShellError):
    """Private key could not be loaded or authentication was rejected."""


class ChannelError(ShellError):
    """Opening, handshaking, sending on or reading from a channel failed."""


class ChannelClosedError(ChannelError):
    """The channel was closed; a new one must be opened."""


class CommandTimeoutError(ChannelError):
    """A command did not signal completion in time."""


class NotConnectedError(ShellError):
    def __init__(self, message: str = "SSH session not connected") -> None:
        super().__init__(message)
