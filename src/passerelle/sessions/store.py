"""
Registre des sessions PASSERELLE.

Simple table session_id -> infos, en mémoire, sans éviction.
La conversation elle-même est conservée par le CLI Claude.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionInfo:
    """Une session connue du serveur."""

    session_id: str
    working_directory: str
    created_at: datetime = field(default_factory=_utcnow)
    last_accessed_at: datetime = field(default_factory=_utcnow)
    message_count: int = 0

    def to_dict(self) -> dict:
        """Convertit en dictionnaire (clés camelCase de l'API)."""
        return {
            "sessionId": self.session_id,
            "createdAt": self.created_at.isoformat(),
            "lastAccessedAt": self.last_accessed_at.isoformat(),
            "workingDirectory": self.working_directory,
            "messageCount": self.message_count,
        }


class MemorySessionStore:
    """Stockage en mémoire des sessions."""

    def __init__(self):
        self._sessions: dict[str, SessionInfo] = {}
        self._lock = asyncio.Lock()

    async def get(self, session_id: str) -> SessionInfo | None:
        return self._sessions.get(session_id)

    async def set(self, session_id: str, info: SessionInfo) -> None:
        async with self._lock:
            self._sessions[session_id] = info

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            return self._sessions.pop(session_id, None) is not None

    async def list(self) -> list[SessionInfo]:
        return list(self._sessions.values())

    async def touch(self, session_id: str, working_directory: str, message_count: int) -> SessionInfo:
        """Crée ou met à jour une session après une invocation."""
        async with self._lock:
            existing = self._sessions.get(session_id)
            info = SessionInfo(
                session_id=session_id,
                working_directory=working_directory,
                created_at=existing.created_at if existing else _utcnow(),
                message_count=message_count,
            )
            self._sessions[session_id] = info
            return info
