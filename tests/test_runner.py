import asyncio
from pathlib import Path

import pytest

from helpers import collect_until, lines_of, posix_only, python_command
from lazytf.errors import SpawnError
from lazytf.events import EventChannel
from lazytf.models import CancelSignal, OperationKind, RunOutcome
from lazytf.runner import FORCE_KILL_LINE, INTERRUPT_SENT_LINE, CommandSpec, run_captured, run_streaming
from lazytf.signals import CancelWatch
from lazytf.streams import TRUNCATED_MARKER, decode_line, pump_lines, split_output
from lazytf.supervisor import OperationSupervisor

CHATTY_SCRIPT = """
import sys
for i in range(50):
    print(f"line {i}")
sys.stdout.flush()
sys.stdout.buffer.write(b"bad \\xff byte\\n")
sys.stdout.buffer.write(b"windows\\r\\n")
sys.stdout.buffer.write(b"no newline at end")
"""

STUBBORN_SCRIPT = """
import signal
import time

def on_interrupt(signum, frame):
    print("got SIGINT", flush=True)

signal.signal(signal.SIGINT, on_interrupt)
print("ready", flush=True)
while True:
    time.sleep(0.05)
"""


def spec_for(script: str, **kwargs) -> CommandSpec:
    argv = python_command(script)
    return CommandSpec(argv[0], tuple(argv[1:]), **kwargs)


def test_decode_line_strips_line_endings():
    assert decode_line(b"plain\n") == "plain"
    assert decode_line(b"crlf\r\n") == "crlf"
    assert decode_line(b"caf\xc3\xa9") == "café"
    assert decode_line(b"\xfe") == "\ufffd"


def test_split_output_matches_line_pump():
    assert split_output(b"") == []
    assert split_output(b"a\nb\r\n\nc") == ["a", "b", "", "c"]
    assert split_output(b"one\n") == ["one"]


def test_command_spec_environment_overrides(monkeypatch):
    monkeypatch.setenv("LAZYTF_TEST_KEEP", "kept")
    monkeypatch.setenv("AWS_PROFILE", "outer")
    spec = CommandSpec("terraform", ("plan",), env={"AWS_PROFILE": "inner"})

    env = spec.full_env()
    assert env["LAZYTF_TEST_KEEP"] == "kept"
    assert env["AWS_PROFILE"] == "inner"
    assert spec.argv == ("terraform", "plan")
    assert spec.display() == "terraform plan"


@pytest.mark.asyncio
async def test_streaming_preserves_order_and_replaces_invalid_bytes():
    channel = EventChannel()
    cancel = CancelWatch().subscribe()

    outcome = await run_streaming(spec_for(CHATTY_SCRIPT), cancel, channel)

    lines = lines_of(channel.drain())
    assert outcome.success
    assert not outcome.cancelled
    assert outcome.exit_code == 0
    assert lines[:50] == [f"line {i}" for i in range(50)]
    assert lines[50:] == ["bad \ufffd byte", "windows", "no newline at end"]


@pytest.mark.asyncio
async def test_streaming_reports_nonzero_exit():
    channel = EventChannel()
    script = "import sys\nprint('boom', file=sys.stderr)\nsys.exit(3)"

    outcome = await run_streaming(spec_for(script), CancelWatch().subscribe(), channel)

    assert outcome == RunOutcome(success=False, cancelled=False, exit_code=3)
    assert lines_of(channel.drain()) == ["boom"]


@pytest.mark.asyncio
async def test_oversize_line_becomes_marker():
    channel = EventChannel()
    script = "import sys\nsys.stdout.write('x' * (3 * 1024 * 1024) + '\\n')\nprint('after')"

    outcome = await run_streaming(spec_for(script), CancelWatch().subscribe(), channel)

    lines = lines_of(channel.drain())
    assert outcome.success
    assert lines == [TRUNCATED_MARKER, "after"]


@pytest.mark.asyncio
async def test_working_directory_and_env_reach_the_child(tmp_path: Path):
    channel = EventChannel()
    script = "import os\nprint(os.getcwd())\nprint(os.environ['TF_IN_AUTOMATION'])"
    spec = spec_for(script, cwd=tmp_path, env={"TF_IN_AUTOMATION": "1"})

    await run_streaming(spec, CancelWatch().subscribe(), channel)

    assert lines_of(channel.drain()) == [str(tmp_path.resolve()), "1"]


@pytest.mark.asyncio
async def test_missing_program_raises_spawn_error():
    with pytest.raises(SpawnError):
        await run_streaming(
            CommandSpec("lazytf-definitely-not-installed"), CancelWatch().subscribe(), EventChannel()
        )
    with pytest.raises(SpawnError):
        await run_captured(CommandSpec("lazytf-definitely-not-installed"))


@pytest.mark.asyncio
async def test_run_captured_collects_both_streams():
    script = "import sys\nprint('out')\nprint('err', file=sys.stderr)\nsys.exit(1)"
    result = await run_captured(spec_for(script))
    assert not result.success
    assert result.returncode == 1
    assert split_output(result.stdout) == ["out"]
    assert split_output(result.stderr) == ["err"]


@posix_only
@pytest.mark.asyncio
async def test_escalation_interrupts_once_then_kills_once():
    channel = EventChannel()
    supervisor = OperationSupervisor()
    cancel = supervisor.try_start(OperationKind.TERRAFORM_APPLY, 0)
    seen = []

    task = asyncio.create_task(run_streaming(spec_for(STUBBORN_SCRIPT), cancel, channel))
    await collect_until(channel, lambda line: line == "ready", seen)

    supervisor.request_cancel()
    await collect_until(channel, lambda line: line == "got SIGINT", seen)

    supervisor.request_cancel()
    supervisor.request_cancel()
    outcome = await asyncio.wait_for(task, 10)

    lines = seen + lines_of(channel.drain())
    assert lines.count(INTERRUPT_SENT_LINE) == 1
    assert lines.count(FORCE_KILL_LINE) == 1
    assert lines.index(INTERRUPT_SENT_LINE) < lines.index(FORCE_KILL_LINE)
    assert outcome.cancelled
    assert not outcome.success


@posix_only
@pytest.mark.asyncio
async def test_graceful_cancel_of_cooperative_process():
    channel = EventChannel()
    watch = CancelWatch()
    seen = []
    script = "import time\nprint('ready', flush=True)\ntime.sleep(30)"

    task = asyncio.create_task(run_streaming(spec_for(script), watch.subscribe(), channel))
    await collect_until(channel, lambda line: line == "ready", seen)
    watch.send(CancelSignal.GRACEFUL)
    outcome = await asyncio.wait_for(task, 10)

    assert outcome.cancelled
    assert not outcome.success
    assert INTERRUPT_SENT_LINE in lines_of(channel.drain())


@posix_only
@pytest.mark.asyncio
async def test_cancelling_the_task_kills_the_child():
    channel = EventChannel()
    seen = []
    script = "import time\nprint('ready', flush=True)\ntime.sleep(30)"

    task = asyncio.create_task(run_streaming(spec_for(script), CancelWatch().subscribe(), channel))
    await collect_until(channel, lambda line: line == "ready", seen)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_pump_lines_truncates_once_per_oversize_line():
    reader = asyncio.StreamReader()
    reader.feed_data(b"short\n" + b"y" * 50 + b"\nnext\npartial")
    reader.feed_eof()
    channel = EventChannel()

    count = await pump_lines(reader, channel, limit=20)

    assert lines_of(channel.drain()) == ["short", TRUNCATED_MARKER, "next", "partial"]
    assert count == 4


@pytest.mark.asyncio
async def test_pump_lines_drops_tail_of_line_split_across_reads():
    reader = asyncio.StreamReader()
    channel = EventChannel()
    task = asyncio.create_task(pump_lines(reader, channel, limit=8))

    reader.feed_data(b"ok\n")
    await asyncio.sleep(0)
    reader.feed_data(b"z" * 30)
    await asyncio.sleep(0)
    reader.feed_data(b"z" * 30)
    await asyncio.sleep(0)
    reader.feed_data(b"zz\nafter\n")
    reader.feed_eof()

    assert await task == 3
    assert lines_of(channel.drain()) == ["ok", TRUNCATED_MARKER, "after"]


@posix_only
@pytest.mark.asyncio
async def test_back_to_back_cancels_still_interrupt_before_kill():
    channel = EventChannel()
    supervisor = OperationSupervisor()
    cancel = supervisor.try_start(OperationKind.TERRAFORM_APPLY, 0)
    seen = []

    task = asyncio.create_task(run_streaming(spec_for(STUBBORN_SCRIPT), cancel, channel))
    await collect_until(channel, lambda line: line == "ready", seen)

    # no await between the two requests: the runner only ever observes FORCE
    supervisor.request_cancel()
    supervisor.request_cancel()
    outcome = await asyncio.wait_for(task, 10)

    lines = seen + lines_of(channel.drain())
    assert lines.count(INTERRUPT_SENT_LINE) == 1
    assert lines.count(FORCE_KILL_LINE) == 1
    assert lines.index(INTERRUPT_SENT_LINE) < lines.index(FORCE_KILL_LINE)
    assert outcome.cancelled
    assert not outcome.success
