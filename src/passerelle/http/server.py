"""
Serveur HTTP FastAPI pour PASSERELLE.

API native (/v1/chat, /v1/sessions) et, si activée, compatibilité
Ollama / OpenAI.
"""

import os
import time
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .. import __version__
from ..claude import ClaudeClient, InvocationRequest
from ..config import PasserelleConfig, config as passerelle_config
from ..errors import NotFoundError
from ..sessions import MemorySessionStore
from .middleware import configure_exception_handlers, install_middlewares
from .models import ChatRequest, ChatResponse, UsageInfo
from .ollama import register_ollama_routes


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# === FACTORY ===

def create_app(
    settings: PasserelleConfig | None = None,
    client: ClaudeClient | None = None,
    sessions: MemorySessionStore | None = None,
) -> FastAPI:
    """
    Crée l'application FastAPI PASSERELLE.

    Args:
        settings: Configuration (défaut : configuration globale)
        client: Client Claude (défaut : CLI réel)
        sessions: Registre des sessions (défaut : en mémoire)

    Returns:
        Instance FastAPI configurée.
    """
    settings = settings or passerelle_config
    client = client or ClaudeClient(settings)
    sessions = sessions or MemorySessionStore()

    app = FastAPI(
        title="PASSERELLE API",
        description="Passerelle HTTP vers le CLI Claude (API native, Ollama, OpenAI)",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.client = client
    app.state.sessions = sessions

    install_middlewares(app, settings)
    configure_exception_handlers(app)

    # === ROUTES ===

    @app.get("/health")
    async def health():
        """Health check."""
        return {"status": "ok", "timestamp": _timestamp()}

    @app.get("/ready")
    async def ready():
        """Readiness check."""
        return {"status": "ready", "timestamp": _timestamp()}

    @app.post("/v1/chat")
    async def chat(body: ChatRequest):
        """Invocation non-streaming, avec reprise de session possible."""
        started = time.monotonic()

        reply = await client.invoke(InvocationRequest(
            prompt=body.prompt,
            session_id=body.session_id,
            model=body.model,
            system_prompt=body.system_prompt,
            allowed_tools=body.allowed_tools,
            working_dir=body.working_directory,
        ))

        await sessions.touch(
            reply.session_id,
            working_directory=body.working_directory or os.getcwd(),
            message_count=reply.num_turns,
        )

        response = ChatResponse(
            session_id=reply.session_id,
            result=reply.result,
            duration_ms=int((time.monotonic() - started) * 1000),
            usage=UsageInfo(
                input_tokens=reply.usage.input_tokens,
                output_tokens=reply.usage.output_tokens,
                total_cost_usd=reply.total_cost_usd,
            ),
        )
        return JSONResponse(content=response.model_dump(by_alias=True))

    @app.get("/v1/sessions")
    async def list_sessions():
        """Liste les sessions connues."""
        return {
            "success": True,
            "sessions": [info.to_dict() for info in await sessions.list()],
        }

    @app.get("/v1/sessions/{session_id}")
    async def get_session(session_id: str):
        """Détails d'une session."""
        info = await sessions.get(session_id)
        if info is None:
            raise NotFoundError(f"Session {session_id} not found")
        return {"success": True, "session": info.to_dict()}

    @app.delete("/v1/sessions/{session_id}")
    async def delete_session(session_id: str):
        """Oublie une session (la conversation reste côté Claude)."""
        if not await sessions.delete(session_id):
            raise NotFoundError(f"Session {session_id} not found")
        return {"success": True, "message": f"Session {session_id} deleted"}

    if settings.ollama_api_enabled:
        register_ollama_routes(app, client)

    return app
