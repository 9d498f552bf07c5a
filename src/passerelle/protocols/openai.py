"""
Adaptateur OpenAI (chat.completions).

Streaming en SSE : une trame `data: {...}` par chunk, terminée par
`data: [DONE]`.
"""

import json
import time
import uuid
from contextlib import aclosing
from typing import AsyncIterator

from loguru import logger

from ..claude.base import AssistantReply, StreamChunk, TokenUsage

MEDIA_TYPE = "text/event-stream"

DONE_FRAME = "data: [DONE]\n\n"


def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4()}"


def usage_dict(usage: TokenUsage | None) -> dict:
    """Bloc `usage` OpenAI (absent = 0)."""
    usage = usage or TokenUsage()
    return {
        "prompt_tokens": usage.input_tokens,
        "completion_tokens": usage.output_tokens,
        "total_tokens": usage.total_tokens,
    }


def _frame(data: dict) -> str:
    return f"data: {json.dumps(data)}\n\n"


def _chunk(chat_id: str, created: int, model: str, delta: dict, finish_reason: str | None) -> dict:
    return {
        "id": chat_id,
        "object": "chat.completion.chunk",
        "created": created,
        "model": model,
        "choices": [{
            "index": 0,
            "delta": delta,
            "finish_reason": finish_reason,
        }],
    }


async def stream_chat(
    chunks: AsyncIterator[StreamChunk],
    model: str,
    completion_id: str | None = None,
) -> AsyncIterator[str]:
    """
    Traduit les chunks normalisés en trames SSE.

    Une erreur en cours de flux devient une trame `{"error": {...}}` :
    les en-têtes sont déjà partis.
    """
    chat_id = completion_id or new_completion_id()
    created = int(time.time())

    # Premier chunk (role)
    yield _frame(_chunk(chat_id, created, model, {"role": "assistant", "content": ""}, None))

    try:
        async with aclosing(chunks):
            async for chunk in chunks:
                if chunk.type == "text":
                    if not chunk.text:
                        continue
                    yield _frame(_chunk(chat_id, created, model, {"content": chunk.text}, None))
                elif chunk.type == "done":
                    final = _chunk(chat_id, created, model, {}, "stop")
                    final["usage"] = usage_dict(chunk.usage)
                    yield _frame(final)
                    yield DONE_FRAME
    except Exception as e:
        logger.error("openai.stream.error model={} error={}", model, e)
        yield _frame({
            "error": {
                "message": str(e),
                "type": "server_error",
            },
        })


def chat_response(reply: AssistantReply, model: str) -> dict:
    """Réponse non-streaming `chat.completion`."""
    return {
        "id": f"chatcmpl-{reply.session_id or uuid.uuid4()}",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model,
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": reply.result},
            "finish_reason": "stop",
        }],
        "usage": usage_dict(reply.usage),
    }


def models(model: str) -> dict:
    """Liste des modèles au format /v1/models."""
    return {
        "object": "list",
        "data": [{
            "id": model,
            "object": "model",
            "created": int(time.time()),
            "owned_by": "anthropic",
        }],
    }
