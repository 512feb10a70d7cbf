"""Request/response protocol on top of an interactive shell channel.

The shell is a plain byte stream, so command boundaries are invented here:

* On open, a readiness probe is echoed and the stream is scanned for its
  sentinel for a bounded number of receive attempts.  If it never shows up
  the channel is still usable but reported as ``degraded``.
* Each command is followed by an ``echo`` of a unique end marker and the
  command's exit status.  Output is accumulated across as many data events as
  it takes for that marker to appear, then everything before it is returned.

Only one command is in flight per channel; the channel lock is held for the
full send-and-collect cycle.
"""

from __future__ import annotations

import asyncio
import codecs
import re
import time
from enum import Enum
from typing import Optional
from uuid import uuid4

from shellmon.config import Settings, settings
from shellmon.errors import ChannelClosedError, ChannelError, CommandTimeoutError
from shellmon.models.commands import CommandResult
from shellmon.services.transport import ChannelEvent, EventKind, TransportChannel
from shellmon.utils.logging import get_logger

log = get_logger(__name__)

# Empty quotes split each token so an echoed command line never matches.
READY_PROBE = "echo SHELLMON''_READY"
READY_SENTINEL = "SHELLMON_READY"

_MARKER_HEAD = "__SHELLMON_"
_MARKER_TAIL = "END_"


class ChannelState(str, Enum):
    OPENING = "opening"
    AWAITING_SENTINEL = "awaiting_sentinel"
    READY = "ready"
    CLOSED = "closed"


class Readiness(str, Enum):
    READY = "ready"
    DEGRADED = "degraded"


def end_marker(token: str) -> tuple[str, str]:
    """Return ``(marker, echo_line)`` for a completion token."""
    marker = f"{_MARKER_HEAD}{_MARKER_TAIL}{token}__"
    echo_line = f"echo {_MARKER_HEAD}''{_MARKER_TAIL}{token}__ $?"
    return marker, echo_line


def _clean_output(text: str) -> str:
    return text.replace("\r", "").rstrip("\n")


def _closed_reason(event: ChannelEvent) -> str:
    if event.kind is EventKind.EXIT_STATUS:
        return f"Shell exited with status {event.exit_status}"
    if event.kind is EventKind.EOF:
        return "Channel reached EOF"
    return "Channel closed"


class InteractiveShellChannel:
    """One opened shell channel plus the command protocol state machine."""

    def __init__(self, channel: TransportChannel, cfg: Settings | None = None) -> None:
        self._channel = channel
        self._cfg = cfg or settings
        self._lock = asyncio.Lock()
        self.state = ChannelState.OPENING
        self.readiness: Optional[Readiness] = None
        self._sentinel_pending = False
        self._handshake_tail = ""

    @classmethod
    async def open(
        cls, channel: TransportChannel, cfg: Settings | None = None,
    ) -> InteractiveShellChannel:
        """Wrap *channel* and run the readiness handshake."""
        shell = cls(channel, cfg)
        await shell.handshake()
        return shell

    @property
    def closed(self) -> bool:
        return self.state is ChannelState.CLOSED or self._channel.closed

    @property
    def is_ready(self) -> bool:
        return self.state is ChannelState.READY and not self._channel.closed

    # ── readiness handshake ───────────────────────────────────────────

    async def handshake(self) -> Readiness:
        """Probe the shell until the sentinel is seen or attempts run out.

        Safe to call again on a ready or degraded channel.
        """
        async with self._lock:
            if self.closed:
                raise ChannelClosedError("Channel closed")
            self.state = ChannelState.AWAITING_SENTINEL
            try:
                readiness, attempt, seen = await self._await_sentinel()
            except asyncio.CancelledError:
                await self._abandon()
                log.warning("shell.handshake_cancelled")
                raise

            self.state = ChannelState.READY
            self.readiness = readiness
            self._sentinel_pending = readiness is Readiness.DEGRADED
            # A sentinel split across the last handshake chunk and the
            # first command chunk is matched against this tail.
            self._handshake_tail = (
                seen[-(len(READY_SENTINEL) - 1):] if self._sentinel_pending else ""
            )
            if readiness is Readiness.DEGRADED:
                log.warning("shell.handshake_degraded", attempts=attempt)
            else:
                log.info("shell.ready", attempts=attempt)
            return readiness

    async def _await_sentinel(self) -> tuple[Readiness, int, str]:
        await self._send(f"{READY_PROBE}\n")

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        seen = ""
        attempt = 0
        for attempt in range(1, self._cfg.shell_handshake_attempts + 1):
            try:
                event = await self._channel.recv_event(
                    self._cfg.shell_handshake_timeout_seconds,
                )
            except TimeoutError:
                log.debug("shell.handshake_wait", attempt=attempt)
                continue
            if event.is_terminal:
                await self._mark_closed()
                raise ChannelClosedError(
                    f"{_closed_reason(event)} during handshake",
                )
            seen += decoder.decode(event.data)
            if READY_SENTINEL in seen:
                return Readiness.READY, attempt, seen
        return Readiness.DEGRADED, attempt, seen

    # ── command execution ─────────────────────────────────────────────

    async def send_command(self, command: str) -> CommandResult:
        """Run *command* and return its complete output.

        Raises ChannelClosedError if the channel closes before the end marker
        arrives and CommandTimeoutError if it does not arrive in time.  In
        both cases, and when the caller is cancelled while waiting, the
        channel is closed afterwards.
        """
        async with self._lock:
            if self.closed:
                raise ChannelClosedError("Channel closed")
            if self.state is not ChannelState.READY:
                raise ChannelError("Shell handshake has not completed")

            started = time.monotonic()
            try:
                output, exit_status, chunks = await self._exchange(command, started)
            except asyncio.CancelledError:
                # Late output of the abandoned command would be read as the
                # next command's reply.
                await self._abandon()
                log.warning("shell.command_cancelled", command=command)
                raise

            if self._sentinel_pending:
                # Shell input is processed in order, so a late probe reply
                # can only precede this command's output.
                _, found, rest = (self._handshake_tail + output).partition(READY_SENTINEL)
                if found:
                    output = rest.lstrip("\r\n")
                self._sentinel_pending = False
                self._handshake_tail = ""

            elapsed = time.monotonic() - started
            log.debug(
                "shell.command_done",
                command=command,
                chunks=chunks,
                exit_status=exit_status,
                elapsed=round(elapsed, 3),
            )
            return CommandResult(
                command=command,
                output=_clean_output(output),
                exit_status=exit_status,
                elapsed_time=elapsed,
            )

    async def _exchange(self, command: str, started: float) -> tuple[str, Optional[int], int]:
        """Send *command* plus its end marker and collect up to the marker."""
        marker, echo_line = end_marker(uuid4().hex)
        done_re = re.compile(re.escape(marker) + r"(?: (-?\d+))?[ \t]*\r?\n")
        timeout = self._cfg.shell_command_timeout_seconds
        deadline = started + timeout

        await self._send(f"{command}\n{echo_line}\n")
        log.debug("shell.command_sent", command=command)

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buf = ""
        scan_from = 0
        chunks = 0
        while True:
            remaining = deadline - time.monotonic()
            try:
                if remaining <= 0:
                    raise TimeoutError
                event = await self._channel.recv_event(remaining)
            except TimeoutError:
                await self._mark_closed()
                log.warning("shell.command_timeout", command=command, timeout=timeout)
                raise CommandTimeoutError(
                    f"Command did not complete within {timeout:g}s: {command}",
                ) from None
            if event.is_terminal:
                await self._mark_closed()
                log.warning("shell.closed_mid_command", command=command, kind=event.kind.value)
                raise ChannelClosedError(_closed_reason(event))

            chunks += 1
            buf += decoder.decode(event.data)
            match = done_re.search(buf, scan_from)
            if match:
                break
            # The marker may straddle the next chunk boundary
            scan_from = max(0, len(buf) - len(marker) - 16)

        exit_status = int(match.group(1)) if match.group(1) is not None else None
        return buf[: match.start()], exit_status, chunks

    # ── lifecycle ─────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close the underlying channel.  Idempotent."""
        if self.state is ChannelState.CLOSED:
            return
        await self._mark_closed()

    async def _abandon(self) -> None:
        """Close after the caller was cancelled mid-exchange."""
        self.state = ChannelState.CLOSED
        await asyncio.shield(self._mark_closed())

    async def _mark_closed(self) -> None:
        self.state = ChannelState.CLOSED
        if not self._channel.closed:
            await self._channel.close()

    async def _send(self, text: str) -> None:
        try:
            await self._channel.send(text.encode())
        except ChannelClosedError:
            await self._mark_closed()
            raise
