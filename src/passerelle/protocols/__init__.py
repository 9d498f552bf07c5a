"""
Protocoles exposés par PASSERELLE.

Supporte :
- Ollama (NDJSON) - /api/chat, /api/generate
- OpenAI (SSE) - /v1/chat/completions
"""

from . import ollama, openai
from .prompt import messages_to_prompt

__all__ = ["ollama", "openai", "messages_to_prompt"]
