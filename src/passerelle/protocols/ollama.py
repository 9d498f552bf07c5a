"""
Adaptateur Ollama.

Streaming en NDJSON brut (un objet JSON par ligne, pas de SSE), comme
`ollama serve` : les fragments portent `done: false`, le dernier objet
`done: true` avec les compteurs de tokens et la durée en nanosecondes.
"""

import json
import time
from contextlib import aclosing
from datetime import datetime, timezone
from typing import AsyncIterator, Callable

from loguru import logger

from ..claude.base import AssistantReply, StreamChunk, TokenUsage

MEDIA_TYPE = "application/x-ndjson"

# Builders du contenu selon l'endpoint
FieldsFn = Callable[[str], dict]


def chat_fields(content: str) -> dict:
    """Champs de contenu pour /api/chat."""
    return {"message": {"role": "assistant", "content": content}}


def generate_fields(content: str) -> dict:
    """Champs de contenu pour /api/generate."""
    return {"response": content}


def _now() -> str:
    """Horodatage ISO-8601 UTC (millisecondes, suffixe Z)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _line(data: dict) -> str:
    return json.dumps(data) + "\n"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def final_record(
    model: str,
    fields: dict,
    usage: TokenUsage | None,
    duration_ms: int,
    session_id: str | None,
) -> dict:
    """Objet final `done: true` (commun au streaming et au non-streaming)."""
    usage = usage or TokenUsage()
    return {
        "model": model,
        "created_at": _now(),
        **fields,
        "done": True,
        "done_reason": "stop",
        "total_duration": duration_ms * 1_000_000,
        "prompt_eval_count": usage.input_tokens,
        "eval_count": usage.output_tokens,
        "session_id": session_id,
    }


async def stream(
    chunks: AsyncIterator[StreamChunk],
    model: str,
    started: float,
    fields: FieldsFn = chat_fields,
) -> AsyncIterator[str]:
    """
    Traduit les chunks normalisés en lignes NDJSON.

    Une erreur en cours de flux devient un dernier objet `done: true`
    avec le message d'erreur : les en-têtes sont déjà partis.
    """
    try:
        async with aclosing(chunks):
            async for chunk in chunks:
                if chunk.type == "text":
                    if not chunk.text:
                        continue
                    yield _line({
                        "model": model,
                        "created_at": _now(),
                        **fields(chunk.text),
                        "done": False,
                    })
                elif chunk.type == "done":
                    yield _line(final_record(
                        model,
                        fields(""),
                        chunk.usage,
                        chunk.duration_ms or _elapsed_ms(started),
                        chunk.session_id,
                    ))
    except Exception as e:
        logger.error("ollama.stream.error model={} error={}", model, e)
        message = str(e)
        yield _line({
            "model": model,
            "created_at": _now(),
            **fields(f"Error: {message}"),
            "done": True,
            "done_reason": "error",
            "error": message,
        })


def stream_chat(chunks: AsyncIterator[StreamChunk], model: str, started: float) -> AsyncIterator[str]:
    """NDJSON pour /api/chat."""
    return stream(chunks, model, started, chat_fields)


def stream_generate(chunks: AsyncIterator[StreamChunk], model: str, started: float) -> AsyncIterator[str]:
    """NDJSON pour /api/generate."""
    return stream(chunks, model, started, generate_fields)


def chat_response(reply: AssistantReply, model: str, started: float) -> dict:
    """Réponse non-streaming de /api/chat."""
    return final_record(model, chat_fields(reply.result), reply.usage, _elapsed_ms(started), reply.session_id)


def generate_response(reply: AssistantReply, model: str, started: float) -> dict:
    """Réponse non-streaming de /api/generate."""
    return final_record(model, generate_fields(reply.result), reply.usage, _elapsed_ms(started), reply.session_id)


def tags(model: str) -> dict:
    """Liste des modèles au format /api/tags."""
    return {
        "models": [
            {
                "name": model,
                "model": f"{model}:latest",
                "modified_at": _now(),
                "size": 0,
                "digest": model,
                "details": {
                    "parent_model": "",
                    "format": "claude",
                    "family": "claude",
                    "families": ["claude"],
                    "parameter_size": "unknown",
                    "quantization_level": "none",
                },
            }
        ],
    }
