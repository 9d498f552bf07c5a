"""Conversion d'une liste de messages en prompt unique pour le CLI."""

CONTINUE_CUE = "Assistant:"


def messages_to_prompt(messages: list[dict]) -> tuple[str, str | None]:
    """
    Aplatit une conversation en un seul prompt.

    Le CLI n'accepte qu'un prompt par appel pour une nouvelle session :
    l'historique est donc rendu en texte "User: ... / Assistant: ...".

    Args:
        messages: Liste de messages au format {"role": str, "content": str}

    Returns:
        (prompt, system_prompt) ; le dernier message system l'emporte
    """
    system_prompt: str | None = None
    parts: list[str] = []
    user_messages: list[str] = []
    has_assistant = False

    for msg in messages:
        role = msg.get("role")
        content = msg.get("content") or ""

        if role == "system":
            system_prompt = content
        elif role == "user":
            user_messages.append(content)
            parts.append(f"User: {content}")
        elif role == "assistant":
            has_assistant = True
            parts.append(f"Assistant: {content}")

    # Un seul message utilisateur sans historique : tel quel
    if len(user_messages) == 1 and not has_assistant:
        return user_messages[0], system_prompt

    return "\n\n".join(parts) + f"\n\n{CONTINUE_CUE}", system_prompt
