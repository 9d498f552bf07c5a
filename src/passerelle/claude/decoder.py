"""
Décodage des sorties du CLI Claude.

- `decode_result()` : document JSON unique (`--output-format json`)
- `StreamDecoder` : NDJSON incrémental (`--output-format stream-json`)

Format stream-json (avec --include-partial-messages) :
    {"type": "system", "subtype": "init", "session_id": "..."}
    {"type": "stream_event", "event": {"type": "content_block_delta",
        "delta": {"type": "text_delta", "text": "..."}}, "session_id": "..."}
    {"type": "result", "is_error": false, "duration_ms": 1234,
        "usage": {...}, "session_id": "..."}
Les autres types (assistant, user, message_stop...) sont ignorés.
"""

import codecs
import json
from typing import AsyncIterator, Iterator

from loguru import logger

from ..errors import ClaudeError, ClaudeTimeoutError
from .base import AssistantReply, ProcessResult, StreamChunk, TokenUsage
from .runner import ProcessStream


def decode_result(result: ProcessResult, timeout: float | None = None) -> AssistantReply:
    """
    Convertit le résultat d'un `run()` en réponse typée.

    Raises:
        ClaudeTimeoutError: délai dépassé
        ClaudeError: code de sortie non nul, sortie vide ou illisible,
            ou réponse marquée en erreur
    """
    if result.timed_out:
        raise ClaudeTimeoutError(_timeout_message(timeout))

    if result.stderr:
        logger.debug("claude.stderr {}", result.stderr)

    if result.returncode != 0:
        raise ClaudeError(
            f"Claude CLI exited with code {result.returncode}",
            result.stderr or result.stdout,
        )

    if not result.stdout.strip():
        raise ClaudeError("Claude CLI returned empty output")

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError:
        raise ClaudeError("Failed to parse Claude CLI output", result.stdout) from None

    if not isinstance(data, dict):
        raise ClaudeError("Failed to parse Claude CLI output", result.stdout)

    reply = AssistantReply.from_dict(data)
    if reply.is_error:
        raise ClaudeError(reply.result or "Claude returned an error", result.stdout)

    logger.debug(
        "claude.reply session_id={} duration_ms={}",
        reply.session_id,
        reply.duration_ms,
    )
    return reply


def _timeout_message(timeout: float | None) -> str:
    if timeout is None:
        return "Claude CLI timed out"
    return f"Claude CLI timed out after {int(timeout * 1000)}ms"


class StreamDecoder:
    """
    Machine à états du flux stream-json.

    Accepte des blocs d'octets découpés n'importe où (y compris au milieu
    d'un caractère UTF-8) : seule une ligne terminée par un saut de ligne
    est analysée. Une ligne illisible est ignorée, jamais fatale.
    """

    def __init__(self):
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.session_id: str | None = None
        self.usage: TokenUsage | None = None
        self.duration_ms: int | None = None

    def feed(self, block: bytes) -> Iterator[StreamChunk]:
        """
        Ajoute un bloc et produit les fragments de texte complets.

        Chaque fragment sort dès que sa ligne est analysée : une erreur
        sur une ligne suivante du même bloc ne fait pas perdre le texte
        déjà décodé.
        """
        self._buffer += self._utf8.decode(block)
        if "\n" not in self._buffer:
            return

        *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            chunk = self._handle_line(line)
            if chunk is not None:
                yield chunk

    def close(self) -> Iterator[StreamChunk]:
        """Fin des données : la ligne restante est complète par définition."""
        rest = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        for line in rest.split("\n"):
            chunk = self._handle_line(line)
            if chunk is not None:
                yield chunk

    def done(self) -> StreamChunk:
        """Le chunk terminal, avec le dernier usage et la dernière durée vus."""
        return StreamChunk(
            type="done",
            session_id=self.session_id,
            usage=self.usage,
            duration_ms=self.duration_ms,
        )

    def _handle_line(self, line: str) -> StreamChunk | None:
        line = line.strip()
        if not line:
            return None

        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("claude.stream.skip line={!r}", line[:200])
            return None

        if not isinstance(event, dict):
            return None

        event_type = event.get("type")

        if event_type == "system":
            if event.get("subtype") == "init" and event.get("session_id"):
                self.session_id = event["session_id"]
            return None

        if event_type == "stream_event":
            inner = event.get("event") or {}
            if inner.get("type") != "content_block_delta":
                return None
            delta = inner.get("delta") or {}
            if delta.get("type") != "text_delta":
                return None
            return StreamChunk(
                type="text",
                session_id=self.session_id,
                text=delta.get("text", ""),
            )

        if event_type == "result":
            if event.get("session_id"):
                self.session_id = event["session_id"]
            if event.get("is_error"):
                raise ClaudeError(event.get("result") or "Claude returned an error", line)
            self.usage = TokenUsage.from_dict(event.get("usage"), event.get("total_cost_usd"))
            if event.get("duration_ms") is not None:
                self.duration_ms = int(event["duration_ms"])
            return None

        return None


async def decode_stream(
    stream: ProcessStream,
    timeout: float | None = None,
) -> AsyncIterator[StreamChunk]:
    """
    Décode un `ProcessStream` ouvert.

    Yields:
        Les fragments de texte, puis un unique chunk `done` si le
        processus s'est terminé proprement.

    Raises:
        ClaudeError / ClaudeTimeoutError (les chunks déjà émis restent valides)
    """
    decoder = StreamDecoder()

    async for block in stream:
        for chunk in decoder.feed(block):
            yield chunk

    result = await stream.wait()
    if result.timed_out:
        raise ClaudeTimeoutError(_timeout_message(timeout))
    if result.returncode != 0:
        raise ClaudeError(f"Claude CLI exited with code {result.returncode}", result.stderr)

    for chunk in decoder.close():
        yield chunk
    yield decoder.done()
