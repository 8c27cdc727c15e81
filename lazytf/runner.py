"""Spawn external commands, stream their output and honour cancellation."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from .errors import SpawnError
from .events import EventChannel
from .models import CancelSignal, RunOutcome
from .signals import CancelReceiver
from .streams import STREAM_LIMIT, pump_lines

logger = logging.getLogger(__name__)

INTERRUPT_SENT_LINE = "Sent SIGINT to running command."
INTERRUPT_UNSUPPORTED_LINE = "Interrupt is not supported on this platform. Press `c` again to force kill."
FORCE_KILL_LINE = "Force kill signal sent to running command."


@dataclass(frozen=True)
class CommandSpec:
    """Program, arguments, working directory and extra environment for one run."""

    program: str
    args: Tuple[str, ...] = ()
    cwd: Optional[Path] = None
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def argv(self) -> Tuple[str, ...]:
        return (self.program,) + tuple(self.args)

    def full_env(self) -> Dict[str, str]:
        merged = dict(os.environ)
        merged.update(self.env)
        return merged

    def display(self) -> str:
        return " ".join(self.argv)


@dataclass(frozen=True)
class CapturedOutput:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def success(self) -> bool:
        return self.returncode == 0


async def _spawn(spec: CommandSpec) -> asyncio.subprocess.Process:
    try:
        process = await asyncio.create_subprocess_exec(
            *spec.argv,
            cwd=str(spec.cwd) if spec.cwd is not None else None,
            env=spec.full_env(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LIMIT,
        )
    except OSError as exc:
        raise SpawnError(f"Failed to spawn `{spec.program}`: {exc}") from exc
    logger.debug("spawned pid %s: %s (cwd=%s)", process.pid, spec.display(), spec.cwd)
    return process


async def run_captured(spec: CommandSpec) -> CapturedOutput:
    """Run ``spec`` to completion and return its exit status and captured output."""
    process = await _spawn(spec)
    stdout, stderr = await process.communicate()
    returncode = process.returncode if process.returncode is not None else -1
    logger.debug("pid %s exited with %s", process.pid, returncode)
    return CapturedOutput(returncode=returncode, stdout=stdout or b"", stderr=stderr or b"")


def send_interrupt(process: asyncio.subprocess.Process) -> bool:
    """Deliver SIGINT to ``process``. Returns False where signals are unavailable."""
    if os.name != "posix":
        return False
    with suppress(ProcessLookupError):
        process.send_signal(signal.SIGINT)
    return True


def force_kill(process: asyncio.subprocess.Process) -> None:
    with suppress(ProcessLookupError):
        process.kill()


class _Escalation:
    """Fire-once bookkeeping for the interrupt and kill actions of one run."""

    def __init__(self, process: asyncio.subprocess.Process, channel: EventChannel) -> None:
        self.process = process
        self.channel = channel
        self.cancelled = False
        self.interrupt_sent = False
        self.kill_sent = False

    def _interrupt(self) -> None:
        if self.interrupt_sent:
            return
        self.interrupt_sent = True
        if send_interrupt(self.process):
            logger.info("sent SIGINT to pid %s", self.process.pid)
            self.channel.line(INTERRUPT_SENT_LINE)
        else:
            self.channel.line(INTERRUPT_UNSUPPORTED_LINE)

    def observe(self, value: CancelSignal) -> None:
        if value is CancelSignal.NONE:
            return
        self.cancelled = True
        # FORCE can arrive without GRACEFUL having been observed; the interrupt always goes first.
        self._interrupt()
        if value is CancelSignal.FORCE and not self.kill_sent:
            self.kill_sent = True
            logger.info("force killing pid %s", self.process.pid)
            self.channel.line(FORCE_KILL_LINE)
            force_kill(self.process)


async def run_streaming(spec: CommandSpec, cancel: CancelReceiver, channel: EventChannel) -> RunOutcome:
    """Run ``spec`` while streaming stdout/stderr lines onto ``channel``.

    The wait loop races process exit against changes of the cancel signal.
    It only ends when the process exits, and it returns only after both
    stream pumps have drained, so every output line is queued before the
    caller reports completion.

    Raises:
        SpawnError: the program could not be launched.
    """
    process = await _spawn(spec)
    assert process.stdout is not None and process.stderr is not None

    pumps = [
        asyncio.ensure_future(pump_lines(process.stdout, channel, "stdout")),
        asyncio.ensure_future(pump_lines(process.stderr, channel, "stderr")),
    ]
    escalation = _Escalation(process, channel)
    exit_wait = asyncio.ensure_future(process.wait())

    try:
        while not exit_wait.done():
            change = asyncio.ensure_future(cancel.changed())
            done, _ = await asyncio.wait({exit_wait, change}, return_when=asyncio.FIRST_COMPLETED)
            if change in done:
                escalation.observe(change.result())
            else:
                change.cancel()
                with suppress(asyncio.CancelledError):
                    await change
    except asyncio.CancelledError:
        # Caller went away mid-run; never leave an orphaned child behind.
        force_kill(process)
        exit_wait.cancel()
        for pump in pumps:
            pump.cancel()
        raise

    returncode = exit_wait.result()

    # Intent that arrived while the process was already exiting still counts.
    if cancel.borrow() is not CancelSignal.NONE:
        escalation.cancelled = True

    for result in await asyncio.gather(*pumps, return_exceptions=True):
        if isinstance(result, BaseException):
            logger.warning("output stream of pid %s failed: %r", process.pid, result)

    logger.debug(
        "pid %s finished: returncode=%s cancelled=%s", process.pid, returncode, escalation.cancelled
    )
    return RunOutcome(success=returncode == 0, cancelled=escalation.cancelled, exit_code=returncode)
