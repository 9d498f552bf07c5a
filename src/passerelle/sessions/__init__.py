"""
Gestion des sessions PASSERELLE.

Registre des sessions Claude créées via /v1/chat.
"""

from .store import MemorySessionStore, SessionInfo

__all__ = ["MemorySessionStore", "SessionInfo"]
