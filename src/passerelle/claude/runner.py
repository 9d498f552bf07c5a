"""
Exécution du processus Claude.

Un processus par invocation. Deux variantes :
- `run()` : attend la fin et capture stdout/stderr (mode JSON)
- `open_stream()` : expose stdout bloc par bloc (mode stream-json)

Le délai est imposé en tuant le processus ; le minuteur est toujours
annulé quand l'invocation se termine avant lui.
"""

import asyncio
import os
from typing import Any, Awaitable, Callable, Sequence

from loguru import logger

from ..errors import ClaudeError
from .base import ProcessResult

# (argv, cwd) -> objet compatible asyncio.subprocess.Process
SpawnFn = Callable[[list[str], str], Awaitable[Any]]

READ_SIZE = 64 * 1024


async def spawn_subprocess(argv: list[str], cwd: str) -> asyncio.subprocess.Process:
    """Lance le processus avec stdout/stderr en pipe."""
    return await asyncio.create_subprocess_exec(
        *argv,
        cwd=cwd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


async def _kill(process: Any) -> None:
    """Tue le processus s'il tourne encore et attend sa fin."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


def _consume_stderr_error(task: asyncio.Task) -> None:
    """Récupère l'exception d'une lecture stderr qui ne sera jamais attendue."""
    if not task.cancelled() and task.exception() is not None:
        logger.debug("claude.stream.stderr_error error={}", task.exception())


class ProcessRunner:
    """Lance le CLI Claude et applique le délai d'exécution."""

    def __init__(
        self,
        binary: str = "claude",
        timeout: float = 120.0,
        spawn: SpawnFn | None = None,
    ):
        self.binary = binary
        self.timeout = timeout
        self._spawn_fn = spawn or spawn_subprocess

    async def spawn(self, args: Sequence[str], working_dir: str | None = None) -> Any:
        """Lance un processus. Le répertoire est supposé déjà validé."""
        argv = [self.binary, *args]
        cwd = working_dir or os.getcwd()
        logger.debug("claude.spawn argv={} cwd={}", argv, cwd)
        try:
            return await self._spawn_fn(argv, cwd)
        except FileNotFoundError as e:
            raise ClaudeError(
                f"Claude CLI not found: {self.binary}. Is it installed and on PATH?"
            ) from e
        except OSError as e:
            raise ClaudeError(f"Failed to spawn Claude CLI: {e}") from e

    async def run(self, args: Sequence[str], working_dir: str | None = None) -> ProcessResult:
        """
        Exécute le CLI jusqu'à la fin.

        Returns:
            ProcessResult ; en cas de délai dépassé, `timed_out=True` et
            la sortie partielle est jetée.
        """
        process = await self.spawn(args, working_dir)

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            await _kill(process)
            logger.warning("claude.timeout after={}s", self.timeout)
            return ProcessResult(returncode=process.returncode, timed_out=True)
        except asyncio.CancelledError:
            await _kill(process)
            raise

        return ProcessResult(
            returncode=process.returncode,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
        )

    def open_stream(self, args: Sequence[str], working_dir: str | None = None) -> "ProcessStream":
        """
        Prépare une exécution en streaming.

        Usage:
            async with runner.open_stream(args) as stream:
                async for block in stream:
                    ...
                result = await stream.wait()
        """
        return ProcessStream(self, args, working_dir)


class ProcessStream:
    """
    Exécution en cours, lue bloc par bloc.

    Quitter le contexte tue le processus s'il tourne encore : erreur
    de décodage, annulation, client déconnecté.
    """

    def __init__(self, runner: ProcessRunner, args: Sequence[str], working_dir: str | None):
        self._runner = runner
        self._args = list(args)
        self._working_dir = working_dir
        self._process: Any = None
        self._timer: asyncio.TimerHandle | None = None
        self._stderr_task: asyncio.Task | None = None
        self.timed_out = False

    @property
    def pid(self) -> int | None:
        return getattr(self._process, "pid", None)

    async def __aenter__(self) -> "ProcessStream":
        self._process = await self._runner.spawn(self._args, self._working_dir)
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._runner.timeout, self._expire)
        # stderr est vidé en parallèle pour ne jamais bloquer le processus
        # sur un pipe plein ; il n'est lu qu'en cas d'échec
        self._stderr_task = asyncio.ensure_future(self._process.stderr.read())
        self._stderr_task.add_done_callback(_consume_stderr_error)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._cancel_timer()
        if self._process.returncode is None:
            logger.debug("claude.stream.kill pid={}", self.pid)
        await _kill(self._process)
        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()
        return False

    def __aiter__(self) -> "ProcessStream":
        return self

    async def __anext__(self) -> bytes:
        if self.timed_out:
            raise StopAsyncIteration
        block = await self._process.stdout.read(READ_SIZE)
        if not block or self.timed_out:
            raise StopAsyncIteration
        return block

    async def wait(self) -> ProcessResult:
        """Attend la fin du processus (stdout doit être épuisé)."""
        returncode = await self._process.wait()
        self._cancel_timer()

        stderr = ""
        if returncode != 0 and not self.timed_out and self._stderr_task is not None:
            stderr = _decode(await self._stderr_task)

        return ProcessResult(returncode=returncode, stderr=stderr, timed_out=self.timed_out)

    def _expire(self) -> None:
        self._timer = None
        if self._process.returncode is not None:
            return
        self.timed_out = True
        logger.warning("claude.stream.timeout pid={} after={}s", self.pid, self._runner.timeout)
        try:
            self._process.kill()
        except ProcessLookupError:
            pass

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
