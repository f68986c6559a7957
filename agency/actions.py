"""Action boundary: turns an untrusted oracle dict into a typed Action.

Wire shape requested from the oracle (see ACTION_SCHEMA):
{
  "speaker": "kevin | ramona | rich | nonsense | marc | system",
  "thinking": "string",
  "message": "string",
  "emotion": "happy | angry | celebrate | confused | tired | working",
  "action": "update_brief | add_task | move_task | update_code | add_moodboard | generate_image | switch_tab | wait",
  "actionPayload": {"content", "title", "titles", "column", "taskId", "type", "prompt", "tabId"}
}

Only the payload fields the action kind declares survive coercion, so the
reducer never sees stray data.
"""

from agency.characters import CHARACTERS, EMOTIONS, NARRATOR
from agency.state import Action
from agency.utils.parsing import parse_json_object

ACTION_KINDS = (
    "update_brief",
    "add_task",
    "move_task",
    "update_code",
    "add_moodboard",
    "generate_image",
    "switch_tab",
    "wait",
)

# Payload fields each action kind carries.
PAYLOAD_FIELDS = {
    "update_brief": ("content",),
    "add_task": ("title", "titles", "column"),
    "move_task": ("task_id", "column"),
    "update_code": ("content",),
    "add_moodboard": ("content", "kind"),
    "generate_image": ("prompt",),
    "switch_tab": ("tab_id",),
    "wait": (),
}

# Wire (camelCase) → internal field names. "type" collides with too much, so it becomes "kind".
_WIRE_ALIASES = {
    "taskId": "task_id",
    "tabId": "tab_id",
    "type": "kind",
}

FALLBACK_MESSAGE = "Network jitter detected. Re-calibrating..."

ACTION_SCHEMA = {
    "type": "object",
    "properties": {
        "speaker": {"type": "string", "enum": list(CHARACTERS)},
        "thinking": {"type": "string"},
        "message": {"type": "string"},
        "emotion": {"type": "string", "enum": list(EMOTIONS)},
        "action": {"type": "string", "enum": list(ACTION_KINDS)},
        "actionPayload": {
            "type": "object",
            "properties": {
                "content": {"type": "string"},
                "title": {"type": "string"},
                "titles": {"type": "array", "items": {"type": "string"}},
                "column": {"type": "string"},
                "taskId": {"type": "string"},
                "type": {"type": "string"},
                "prompt": {"type": "string"},
                "tabId": {"type": "string"},
            },
        },
    },
    "required": ["speaker", "message", "action"],
}


def _coerce_payload(kind: str, raw) -> dict:
    if not isinstance(raw, dict):
        return {}
    normalized = {_WIRE_ALIASES.get(key, key): value for key, value in raw.items()}
    payload = {}
    for field in PAYLOAD_FIELDS[kind]:
        value = normalized.get(field)
        if field == "titles":
            if isinstance(value, list):
                titles = [str(t).strip() for t in value if isinstance(t, (str, int, float)) and str(t).strip()]
                if titles:
                    payload["titles"] = titles
            continue
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)  # Task ids sometimes come back as numbers.
        if isinstance(value, str) and value.strip():
            payload[field] = value if field == "content" else value.strip()
    return payload


def coerce_action(data: dict) -> Action:
    """Validate and normalize an oracle dict into an Action.

    Raises ValueError when the dict cannot be trusted at all (unknown action
    kind, missing message). Softer problems are normalized: unknown speakers
    become the narrator, unknown emotions are dropped.
    """
    if not isinstance(data, dict):
        raise ValueError("Oracle response is not a JSON object.")

    kind = data.get("action", "wait")
    if not isinstance(kind, str) or kind.strip().lower() not in ACTION_KINDS:
        raise ValueError(f"Invalid action '{kind}'. Must be one of: {ACTION_KINDS}")
    kind = kind.strip().lower()

    message = data.get("message")
    if not isinstance(message, str):
        raise ValueError("Oracle response missing 'message' field.")

    speaker = data.get("speaker")
    speaker = speaker.strip().lower() if isinstance(speaker, str) else ""
    if speaker not in CHARACTERS:
        speaker = NARRATOR

    thinking = data.get("thinking")
    action: Action = {
        "speaker": speaker,
        "message": message.strip(),
        "thinking": thinking if isinstance(thinking, str) else "",
        "action": kind,
        "payload": _coerce_payload(kind, data.get("actionPayload", data.get("payload"))),
    }

    emotion = data.get("emotion")
    if isinstance(emotion, str) and emotion.strip().lower() in EMOTIONS:
        action["emotion"] = emotion.strip().lower()

    return action


def parse_action(text: str | None) -> Action | None:
    """Parse raw oracle text into an Action, or None if it cannot be trusted."""
    data = parse_json_object(text)
    if data is None:
        return None
    try:
        return coerce_action(data)
    except ValueError:
        return None


def fallback_action() -> Action:
    """The scripted turn used when the oracle cannot be reached or understood."""
    return {
        "speaker": NARRATOR,
        "message": FALLBACK_MESSAGE,
        "thinking": "System recovery",
        "emotion": "tired",
        "action": "wait",
        "payload": {},
    }
