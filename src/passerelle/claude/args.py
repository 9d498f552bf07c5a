"""Construction des arguments du CLI Claude."""

from typing import Sequence

from .base import InvocationRequest


def build_cli_args(
    request: InvocationRequest,
    default_model: str | None = None,
    default_allowed_tools: Sequence[str] | None = None,
) -> list[str]:
    """
    Construit la liste d'arguments pour une invocation.

    Args:
        request: Paramètres de l'invocation
        default_model: Modèle du service si la requête n'en précise pas
        default_allowed_tools: Outils du service si la requête n'en précise pas

    Returns:
        Arguments ordonnés (sans le nom du binaire)
    """
    args = ["-p", request.prompt]

    if request.stream:
        # stream-json exige --verbose en mode print
        args += [
            "--output-format", "stream-json",
            "--verbose",
            "--include-partial-messages",
        ]
    else:
        args += ["--output-format", "json"]

    if request.session_id:
        args += ["--resume", request.session_id]

    model = request.model or default_model
    if model:
        args += ["--model", model]

    if request.system_prompt:
        args += ["--system-prompt", request.system_prompt]

    allowed_tools = request.allowed_tools or default_allowed_tools
    if allowed_tools:
        args += ["--allowedTools", ",".join(allowed_tools)]

    return args
