"""Client Claude : point d'entrée unique du serveur HTTP vers le CLI."""

import time
from typing import AsyncIterator

from loguru import logger

from ..config import PasserelleConfig, config as passerelle_config
from .args import build_cli_args
from .base import AssistantReply, InvocationRequest, StreamChunk
from .decoder import decode_result, decode_stream
from .runner import ProcessRunner


class ClaudeClient:
    """Invoque le CLI Claude en mode JSON ou stream-json."""

    def __init__(
        self,
        settings: PasserelleConfig | None = None,
        runner: ProcessRunner | None = None,
    ):
        self.settings = settings or passerelle_config
        self.runner = runner or ProcessRunner(
            binary=self.settings.claude_binary,
            timeout=self.settings.timeout_seconds,
        )

    def build_args(self, request: InvocationRequest) -> list[str]:
        """Arguments CLI avec les valeurs par défaut du service."""
        return build_cli_args(
            request,
            default_model=self.settings.claude_model,
            default_allowed_tools=self.settings.default_allowed_tools,
        )

    async def invoke(self, request: InvocationRequest) -> AssistantReply:
        """Invocation non-streaming : un document JSON final."""
        if request.stream:
            raise ValueError("invoke() attend une requête non-streaming")

        args = self.build_args(request)
        started = time.monotonic()
        result = await self.runner.run(args, request.working_dir)
        reply = decode_result(result, timeout=self.runner.timeout)

        logger.info(
            "claude.invoke.done session_id={} turns={} elapsed_ms={}",
            reply.session_id,
            reply.num_turns,
            int((time.monotonic() - started) * 1000),
        )
        return reply

    async def invoke_streaming(self, request: InvocationRequest) -> AsyncIterator[StreamChunk]:
        """
        Invocation streaming.

        Le processus est tué dès que l'itération s'arrête avant la fin
        (erreur, annulation, client déconnecté).
        """
        if not request.stream:
            raise ValueError("invoke_streaming() attend une requête streaming")

        args = self.build_args(request)
        async with self.runner.open_stream(args, request.working_dir) as stream:
            async for chunk in decode_stream(stream, timeout=self.runner.timeout):
                if chunk.type == "done":
                    logger.info(
                        "claude.stream.done session_id={} duration_ms={}",
                        chunk.session_id,
                        chunk.duration_ms,
                    )
                yield chunk
