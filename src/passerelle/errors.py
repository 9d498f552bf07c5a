"""
Erreurs applicatives de PASSERELLE.

Chaque erreur porte son code HTTP et un code machine, utilisés par les
handlers d'exception du serveur pour formater la réponse.
"""

from typing import Any


class AppError(Exception):
    """Erreur de base, convertie en réponse JSON par le serveur."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class AuthenticationError(AppError):
    """Clé API absente ou invalide."""

    status_code = 401
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Invalid or missing API key"):
        super().__init__(message)


class ValidationError(AppError):
    """Requête mal formée ou paramètres interdits."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


class NotFoundError(AppError):
    """Ressource inconnue (session, ...)."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ClaudeError(AppError):
    """
    Échec du processus Claude.

    Sortie non nulle, sortie illisible ou drapeau d'erreur dans le
    résultat. `cli_output` garde le texte brut pour le diagnostic.
    """

    status_code = 502
    code = "CLAUDE_ERROR"

    def __init__(self, message: str, cli_output: str | None = None):
        super().__init__(message)
        self.cli_output = cli_output


class ClaudeTimeoutError(AppError):
    """Le processus Claude a dépassé son délai."""

    status_code = 504
    code = "TIMEOUT_ERROR"

    def __init__(self, message: str = "Claude CLI timed out"):
        super().__init__(message)
