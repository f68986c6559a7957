"""Input validation — checks host-supplied text before it enters project state."""


def validate_prompt(prompt: str) -> str:
    """Validate that the session prompt is a non-empty string.

    Returns the stripped input on success.
    Raises ValueError if input is empty or whitespace-only.
    """
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValueError("Project prompt must be a non-empty string.")
    return prompt.strip()


def validate_event(text: str) -> str:
    """Validate an injected director event. Same rules as the prompt."""
    if not isinstance(text, str) or not text.strip():
        raise ValueError("Injected event must be a non-empty string.")
    return text.strip()
