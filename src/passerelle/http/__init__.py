"""
Serveur HTTP pour PASSERELLE.

Expose le CLI Claude via une API REST, plus les protocoles Ollama et
OpenAI pour les clients existants (Home Assistant, etc.)

Usage:
    passerelle serve --port 3000

Endpoints:
    POST /v1/chat              - Invocation native (reprise de session)
    GET  /v1/sessions          - Sessions connues
    POST /api/chat             - Ollama (NDJSON)
    POST /api/generate         - Ollama (NDJSON)
    POST /v1/chat/completions  - OpenAI (SSE)
    GET  /health               - Health check
"""

from .server import create_app

__all__ = ["create_app"]
