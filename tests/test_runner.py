import asyncio
import gc
import os

import pytest

from fakes import FakeProcess, make_runner
from passerelle.claude import ProcessRunner
from passerelle.errors import ClaudeError


@pytest.mark.asyncio
async def test_run_captures_both_channels() -> None:
    process = FakeProcess(stdout=b'{"ok": true}', stderr=b"warn", returncode=0)
    runner, spawner = make_runner(process)

    result = await runner.run(["-p", "hi"])

    assert result.returncode == 0
    assert result.stdout == '{"ok": true}'
    assert result.stderr == "warn"
    assert result.timed_out is False
    assert spawner.calls == [(["claude", "-p", "hi"], os.getcwd())]


@pytest.mark.asyncio
async def test_run_uses_given_working_dir(tmp_path) -> None:
    runner, spawner = make_runner(FakeProcess(stdout=b"{}"))

    await runner.run(["-p", "hi"], working_dir=str(tmp_path))

    assert spawner.calls[0][1] == str(tmp_path)


@pytest.mark.asyncio
async def test_run_kills_process_on_deadline() -> None:
    process = FakeProcess(stdout=b'{"partial": ', hang=True)
    runner, _ = make_runner(process, timeout=0.05)

    result = await runner.run(["-p", "hi"])

    assert result.timed_out is True
    assert result.stdout == ""
    assert process.killed is True


@pytest.mark.asyncio
async def test_missing_binary_is_upstream_error() -> None:
    async def spawn(argv, cwd):
        raise FileNotFoundError(argv[0])

    runner = ProcessRunner(binary="claude-absent", spawn=spawn)

    with pytest.raises(ClaudeError, match="claude-absent"):
        await runner.run(["-p", "hi"])


@pytest.mark.asyncio
async def test_stream_yields_blocks_then_exit_status() -> None:
    process = FakeProcess(stdout=[b"abc", b"def\n"], stderr=b"ignored", returncode=0)
    runner, _ = make_runner(process)

    async with runner.open_stream(["-p", "hi"]) as stream:
        blocks = [block async for block in stream]
        result = await stream.wait()

    assert blocks == [b"abc", b"def\n"]
    assert result.returncode == 0
    # stderr only enriches failures
    assert result.stderr == ""
    assert process.killed is False


@pytest.mark.asyncio
async def test_stream_reports_stderr_on_failure() -> None:
    process = FakeProcess(stdout=[b"x"], stderr=b"boom", returncode=2)
    runner, _ = make_runner(process)

    async with runner.open_stream(["-p", "hi"]) as stream:
        _ = [block async for block in stream]
        result = await stream.wait()

    assert result.returncode == 2
    assert result.stderr == "boom"


@pytest.mark.asyncio
async def test_stream_deadline_stops_iteration_and_kills() -> None:
    process = FakeProcess(stdout=[b"first\n"], hang=True)
    runner, _ = make_runner(process, timeout=0.05)

    async with runner.open_stream(["-p", "hi"]) as stream:
        blocks = [block async for block in stream]
        result = await stream.wait()

    assert blocks == [b"first\n"]
    assert result.timed_out is True
    assert process.killed is True


@pytest.mark.asyncio
async def test_leaving_stream_early_kills_running_process() -> None:
    process = FakeProcess(stdout=[b"a", b"b"], hang=True)
    runner, _ = make_runner(process)

    with pytest.raises(RuntimeError):
        async with runner.open_stream(["-p", "hi"]) as stream:
            async for _ in stream:
                raise RuntimeError("decoder failure")

    assert process.killed is True
    assert stream.timed_out is False


@pytest.mark.asyncio
async def test_stream_cancellation_kills_process() -> None:
    process = FakeProcess(stdout=[b"a"], hang=True)
    runner, _ = make_runner(process)
    started = asyncio.Event()

    async def consume() -> None:
        async with runner.open_stream(["-p", "hi"]) as stream:
            async for _ in stream:
                started.set()

    task = asyncio.ensure_future(consume())
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert process.killed is True


@pytest.mark.asyncio
async def test_completed_stream_cancels_deadline_timer() -> None:
    process = FakeProcess(stdout=[b"ok\n"], returncode=0)
    runner, _ = make_runner(process, timeout=0.05)

    async with runner.open_stream(["-p", "hi"]) as stream:
        _ = [block async for block in stream]
        await stream.wait()

    await asyncio.sleep(0.1)
    assert stream.timed_out is False
    assert process.killed is False


class _BrokenStderr:
    async def read(self, n: int = -1) -> bytes:
        raise OSError("stderr pipe closed")


@pytest.mark.asyncio
async def test_failed_stderr_read_is_consumed_on_clean_exit() -> None:
    process = FakeProcess(stdout=[b"ok"])
    process.stderr = _BrokenStderr()
    runner, _ = make_runner(process)
    loop = asyncio.get_running_loop()
    unhandled = []
    loop.set_exception_handler(lambda _loop, context: unhandled.append(context))

    try:
        async with runner.open_stream(["-p", "hi"]) as stream:
            blocks = [block async for block in stream]
            result = await stream.wait()
        await asyncio.sleep(0)
        del stream
        gc.collect()
    finally:
        loop.set_exception_handler(None)

    assert blocks == [b"ok"]
    assert result.returncode == 0
    assert unhandled == []
