"""Modèles Pydantic des requêtes et réponses HTTP."""

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Répertoires système interdits comme répertoire de travail
FORBIDDEN_DIRS = ["/etc", "/root", "/var", "/usr", "/bin", "/sbin", "/boot", "/sys", "/proc"]

# Outils Claude Code reconnus (plus tout outil MCP "mcp__*")
VALID_TOOLS = [
    "WebSearch",
    "WebFetch",
    "Read",
    "Write",
    "Edit",
    "Bash",
    "Glob",
    "Grep",
    "Task",
    "TodoWrite",
    "NotebookEdit",
]


class CamelModel(BaseModel):
    """Modèle dont le JSON utilise des clés camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# === API NATIVE ===

class ChatRequest(CamelModel):
    """Requête POST /v1/chat."""

    prompt: str = Field(..., min_length=1, max_length=100_000, description="Prompt utilisateur")
    session_id: str | None = Field(default=None, description="Session à reprendre")
    working_directory: str | None = Field(default=None, description="Répertoire de travail")
    model: str | None = Field(default=None, description="Modèle Claude")
    system_prompt: str | None = Field(default=None, max_length=50_000, description="Prompt système")
    allowed_tools: list[str] | None = Field(default=None, description="Outils autorisés")

    @field_validator("working_directory")
    @classmethod
    def check_working_directory(cls, value: str | None) -> str | None:
        if value is None:
            return None
        resolved = os.path.abspath(value)
        if not os.path.exists(resolved):
            raise ValueError("Working directory does not exist or is not accessible")
        for forbidden in FORBIDDEN_DIRS:
            if resolved == forbidden or resolved.startswith(forbidden + "/"):
                raise ValueError("Working directory is not allowed")
        return resolved

    @field_validator("allowed_tools")
    @classmethod
    def check_allowed_tools(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        for tool in value:
            if tool not in VALID_TOOLS and not tool.startswith("mcp__"):
                raise ValueError(f"Invalid tool name. Valid tools: {', '.join(VALID_TOOLS)}")
        return value


class UsageInfo(CamelModel):
    """Consommation d'une invocation."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_cost_usd: float | None = None


class ChatResponse(CamelModel):
    """Réponse POST /v1/chat."""

    success: bool = True
    session_id: str
    result: str
    duration_ms: int
    usage: UsageInfo | None = None


# === COMPATIBILITÉ OLLAMA / OPENAI ===

class ChatMessage(BaseModel):
    """Un message dans la conversation."""

    role: str = Field(..., description="Role: system, user, assistant")
    content: str = Field(default="", description="Contenu du message")
    images: list[str] | None = None


class OllamaChatRequest(BaseModel):
    """Requête Ollama /api/chat."""

    model: str | None = None
    messages: list[ChatMessage] = Field(default_factory=list)
    stream: bool = False
    format: Any = None
    options: dict[str, Any] | None = None
    keep_alive: str | int | None = None


class OllamaGenerateRequest(BaseModel):
    """Requête Ollama /api/generate."""

    model: str | None = None
    prompt: str = ""
    system: str | None = None
    stream: bool = False
    options: dict[str, Any] | None = None
    keep_alive: str | int | None = None


class OpenAIChatRequest(BaseModel):
    """Requête de chat compatible OpenAI."""

    model: str | None = None
    messages: list[ChatMessage] = Field(default_factory=list)
    stream: bool = False
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = None
