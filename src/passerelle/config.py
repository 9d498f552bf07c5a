"""Configuration de PASSERELLE."""

import os
from dataclasses import dataclass, field
from typing import Literal

from dotenv import load_dotenv

load_dotenv()

LogLevel = Literal["debug", "info", "warn", "error"]

LOG_LEVELS = ("debug", "info", "warn", "error")


def _split_list(value: str | None) -> list[str]:
    """Découpe une variable d'environnement "a, b,c" en liste."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() == "true"


@dataclass
class PasserelleConfig:
    """Configuration principale, lue depuis l'environnement (.env inclus)."""

    # Serveur
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3000")))
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))

    # Clés acceptées par X-API-Key / Authorization: Bearer
    api_keys: list[str] = field(default_factory=lambda: _split_list(os.getenv("API_KEYS")))

    # Claude CLI
    claude_binary: str = field(default_factory=lambda: os.getenv("CLAUDE_BINARY", "claude"))
    claude_timeout_ms: int = field(
        default_factory=lambda: int(os.getenv("CLAUDE_TIMEOUT_MS", "120000"))
    )
    claude_model: str | None = field(default_factory=lambda: os.getenv("CLAUDE_MODEL") or None)
    default_allowed_tools: list[str] = field(
        default_factory=lambda: _split_list(os.getenv("DEFAULT_ALLOWED_TOOLS"))
    )

    # Compatibilité Ollama / OpenAI (routes publiques pour Home Assistant)
    ollama_api_enabled: bool = field(default_factory=lambda: _env_bool("OLLAMA_API_ENABLED", True))

    # Logs
    log_level: LogLevel = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "info").lower()  # type: ignore[return-value]
    )

    @property
    def timeout_seconds(self) -> float:
        """Délai d'une invocation Claude, en secondes."""
        return self.claude_timeout_ms / 1000

    def validate(self) -> None:
        """Valide la configuration."""
        if not self.api_keys:
            raise ValueError(
                "API_KEYS non définie. "
                "Exportez-la (liste séparée par des virgules) ou créez un fichier .env"
            )
        if self.claude_timeout_ms <= 0:
            raise ValueError(f"CLAUDE_TIMEOUT_MS invalide: {self.claude_timeout_ms}")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL invalide: {self.log_level}. Options: {', '.join(LOG_LEVELS)}"
            )


# Configuration globale
config = PasserelleConfig()
