"""
Routes de compatibilité Ollama et OpenAI.

Permet à l'intégration Ollama de Home Assistant (ou à tout client
OpenAI) de parler au CLI Claude sans modification.
"""

import time

from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from loguru import logger

from ..claude import ClaudeClient, InvocationRequest
from ..errors import ValidationError
from ..protocols import messages_to_prompt, ollama, openai
from .models import ChatMessage, OllamaChatRequest, OllamaGenerateRequest, OpenAIChatRequest

DEFAULT_MODEL_NAME = "claude-code"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _compose(messages: list[ChatMessage]) -> tuple[str, str | None]:
    """Prompt + prompt système depuis l'historique."""
    if not any(msg.role == "user" for msg in messages):
        raise ValidationError("No user message found")
    return messages_to_prompt([msg.model_dump() for msg in messages])


def register_ollama_routes(app: FastAPI, client: ClaudeClient) -> None:
    """Ajoute /api/chat, /api/generate, /api/tags, /v1/chat/completions, /v1/models et /."""

    @app.post("/api/chat")
    async def ollama_chat(body: OllamaChatRequest):
        """Endpoint Ollama /api/chat (NDJSON en streaming)."""
        model_name = body.model or DEFAULT_MODEL_NAME
        logger.debug(
            "ollama.chat model={} messages={} stream={}",
            model_name, len(body.messages), body.stream,
        )

        prompt, system_prompt = _compose(body.messages)
        started = time.monotonic()

        if body.stream:
            chunks = client.invoke_streaming(
                InvocationRequest(prompt=prompt, system_prompt=system_prompt, stream=True)
            )
            return StreamingResponse(
                ollama.stream_chat(chunks, model_name, started),
                media_type=ollama.MEDIA_TYPE,
            )

        reply = await client.invoke(InvocationRequest(prompt=prompt, system_prompt=system_prompt))
        return JSONResponse(content=ollama.chat_response(reply, model_name, started))

    @app.post("/api/generate")
    async def ollama_generate(body: OllamaGenerateRequest):
        """Endpoint Ollama /api/generate (prompt brut)."""
        model_name = body.model or DEFAULT_MODEL_NAME
        if not body.prompt:
            raise ValidationError("Prompt is required")

        logger.debug("ollama.generate model={} stream={}", model_name, body.stream)
        started = time.monotonic()

        if body.stream:
            chunks = client.invoke_streaming(
                InvocationRequest(prompt=body.prompt, system_prompt=body.system, stream=True)
            )
            return StreamingResponse(
                ollama.stream_generate(chunks, model_name, started),
                media_type=ollama.MEDIA_TYPE,
            )

        reply = await client.invoke(InvocationRequest(prompt=body.prompt, system_prompt=body.system))
        return JSONResponse(content=ollama.generate_response(reply, model_name, started))

    @app.post("/v1/chat/completions")
    async def chat_completions(body: OpenAIChatRequest):
        """
        Endpoint de chat compatible OpenAI.

        Supporte le streaming SSE et les réponses synchrones.
        """
        model_name = body.model or DEFAULT_MODEL_NAME
        logger.debug(
            "openai.chat model={} messages={} stream={}",
            model_name, len(body.messages), body.stream,
        )

        prompt, system_prompt = _compose(body.messages)

        if body.stream:
            chunks = client.invoke_streaming(
                InvocationRequest(prompt=prompt, system_prompt=system_prompt, stream=True)
            )
            return StreamingResponse(
                openai.stream_chat(chunks, model_name),
                media_type=openai.MEDIA_TYPE,
                headers=SSE_HEADERS,
            )

        reply = await client.invoke(InvocationRequest(prompt=prompt, system_prompt=system_prompt))
        return JSONResponse(content=openai.chat_response(reply, model_name))

    @app.get("/api/tags")
    async def tags():
        """Liste des modèles (requis par certains clients Ollama)."""
        return ollama.tags(DEFAULT_MODEL_NAME)

    @app.get("/v1/models")
    async def list_models():
        """Liste des modèles au format OpenAI."""
        return openai.models(DEFAULT_MODEL_NAME)

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        """Health check attendu par les clients Ollama."""
        return "Ollama is running"
