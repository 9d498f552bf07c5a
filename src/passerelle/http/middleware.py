"""
Middlewares et handlers d'exception du serveur.

Ordre (extérieur -> intérieur) : request id, log d'accès, authentification.
Toutes les erreurs sortent au même format :
    {"success": false, "error": "...", "code": "...", "requestId": "..."}
"""

import hmac
import time
import uuid
from typing import Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from loguru import logger

from ..config import PasserelleConfig
from ..errors import AppError, AuthenticationError

CallNext = Callable[[Request], Awaitable[Response]]

# Toujours publics
PUBLIC_PATHS = ("/health", "/ready", "/docs", "/redoc", "/openapi.json")

# Publics si l'API Ollama est activée (réseau local de confiance, Home Assistant)
OLLAMA_PUBLIC_PATHS = (
    "/api/chat",
    "/api/tags",
    "/api/generate",
    "/v1/chat/completions",
    "/v1/models",
)


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def error_body(message: str, code: str, request_id: str | None) -> dict:
    return {
        "success": False,
        "error": message,
        "code": code,
        "requestId": request_id,
    }


def is_valid_api_key(provided: str, api_keys: list[str]) -> bool:
    """Compare à chaque clé en temps constant, sans sortie anticipée."""
    valid = False
    for key in api_keys:
        if hmac.compare_digest(provided.encode(), key.encode()):
            valid = True
    return valid


def is_public_path(path: str, ollama_api_enabled: bool) -> bool:
    if path in PUBLIC_PATHS:
        return True
    if not ollama_api_enabled:
        return False
    if path == "/":
        return True
    return path in OLLAMA_PUBLIC_PATHS


def extract_api_key(request: Request) -> str | None:
    """Clé depuis X-API-Key, sinon Authorization: Bearer."""
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return api_key
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[len("Bearer "):]
    return None


def install_middlewares(app: FastAPI, settings: PasserelleConfig) -> None:
    """Enregistre les middlewares (le dernier ajouté est le plus extérieur)."""

    @app.middleware("http")
    async def auth(request: Request, call_next: CallNext) -> Response:
        if is_public_path(request.url.path, settings.ollama_api_enabled):
            return await call_next(request)

        api_key = extract_api_key(request)
        if not api_key:
            error = AuthenticationError("API key required")
        elif not is_valid_api_key(api_key, settings.api_keys):
            error = AuthenticationError("Invalid API key")
        else:
            return await call_next(request)

        request_id = _request_id(request)
        logger.warning("auth.rejected path={} request_id={}", request.url.path, request_id)
        return JSONResponse(
            status_code=error.status_code,
            content=error_body(error.message, error.code, request_id),
        )

    @app.middleware("http")
    async def access_log(request: Request, call_next: CallNext) -> Response:
        start = time.monotonic()
        method = request.method
        path = request.url.path
        request_id = _request_id(request)

        logger.info("--> {} {} request_id={}", method, path, request_id)
        response = await call_next(request)
        duration = int((time.monotonic() - start) * 1000)
        logger.info(
            "<-- {} {} {} {}ms request_id={}",
            method, path, response.status_code, duration, request_id,
        )
        return response

    @app.middleware("http")
    async def request_id(request: Request, call_next: CallNext) -> Response:
        request.state.request_id = str(uuid.uuid4())
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response


# === HANDLERS D'EXCEPTION ===

async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """AppError et dérivées : code HTTP de l'erreur."""
    request_id = _request_id(request)
    cli_output = getattr(exc, "cli_output", None)
    logger.error(
        "{} request_id={} code={} status={}",
        exc.message, request_id, exc.code, exc.status_code,
    )
    if cli_output:
        logger.debug("claude.output request_id={} output={}", request_id, cli_output[:2000])
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.code, request_id),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Corps de requête invalide : 400."""
    request_id = _request_id(request)
    details = [
        {"path": ".".join(str(p) for p in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    logger.warning("validation.error request_id={} details={}", request_id, details)
    body = error_body("Invalid request", "VALIDATION_ERROR", request_id)
    body["details"] = details
    return JSONResponse(status_code=400, content=body)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Toute autre exception : 500 générique."""
    request_id = _request_id(request)
    logger.opt(exception=exc).error("Unhandled error request_id={}", request_id)
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "INTERNAL_ERROR", request_id),
    )


def configure_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
