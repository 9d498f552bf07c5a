"""
Types du cœur d'invocation Claude.

Un enregistrement par invocation, jeté à la fin de la réponse HTTP.
Seul le `session_id` survit : il est renvoyé au client pour reprendre
la conversation plus tard.
"""

from dataclasses import dataclass, field
from typing import Literal


@dataclass(frozen=True)
class InvocationRequest:
    """Paramètres d'une invocation du CLI Claude."""

    prompt: str
    session_id: str | None = None
    model: str | None = None
    system_prompt: str | None = None
    allowed_tools: tuple[str, ...] | None = None
    working_dir: str | None = None
    stream: bool = False

    def __post_init__(self):
        if not self.prompt:
            raise ValueError("prompt vide")
        # Les listes sont converties pour garder la requête immuable
        if self.allowed_tools is not None and not isinstance(self.allowed_tools, tuple):
            object.__setattr__(self, "allowed_tools", tuple(self.allowed_tools))


@dataclass
class ProcessResult:
    """Résultat brut d'une exécution du processus."""

    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False


@dataclass
class TokenUsage:
    """Consommation de tokens d'une réponse."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_cost_usd: float | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @classmethod
    def from_dict(cls, usage: dict | None, cost: float | None = None) -> "TokenUsage":
        """Crée depuis le bloc `usage` du CLI (champs absents = 0)."""
        usage = usage or {}
        return cls(
            input_tokens=int(usage.get("input_tokens") or 0),
            output_tokens=int(usage.get("output_tokens") or 0),
            total_cost_usd=cost,
        )


@dataclass
class AssistantReply:
    """Réponse finale du CLI en mode `--output-format json`."""

    is_error: bool
    result: str
    session_id: str
    num_turns: int = 0
    duration_ms: int = 0
    usage: TokenUsage = field(default_factory=TokenUsage)
    total_cost_usd: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "AssistantReply":
        """Crée depuis le document JSON du CLI."""
        cost = data.get("total_cost_usd")
        return cls(
            is_error=bool(data.get("is_error", False)),
            result=data.get("result") or "",
            session_id=data.get("session_id") or "",
            num_turns=int(data.get("num_turns") or 0),
            duration_ms=int(data.get("duration_ms") or 0),
            usage=TokenUsage.from_dict(data.get("usage"), cost),
            total_cost_usd=cost,
        )


@dataclass
class StreamChunk:
    """
    Un chunk normalisé du flux.

    `text` : fragment de texte. `done` : marqueur terminal, toujours le
    dernier et unique par flux, avec usage et durée.
    """

    type: Literal["text", "done"]
    session_id: str | None = None
    text: str = ""
    usage: TokenUsage | None = None
    duration_ms: int | None = None
