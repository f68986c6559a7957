"""State reducer — the only code that produces a new ProjectState.

Every function here is pure with respect to its input: the state passed in is
never mutated, a new dict is returned. apply_action is total; malformed or
inconsistent payloads degrade to no-ops (logged) instead of raising.
"""

import random
import sys
import time
import uuid

from agency.characters import INITIAL_CODE, NARRATOR, PRODUCT_MANAGER, display_name
from agency.state import (
    MOODBOARD_KINDS,
    TAB_IDS,
    TASK_STATUSES,
    Action,
    Message,
    MoodboardItem,
    Notification,
    ProjectState,
    SideEffect,
    Task,
)
from agency.utils.validator import validate_event, validate_prompt

DEFAULT_POSITION = (50.0, 50.0)
BOOT_MESSAGE = "OS Booted. Project Initialized."

# Column names the oracle uses that are not our statuses.
_COLUMN_ALIASES = {
    "to do": "todo",
    "to-do": "todo",
    "backlog": "todo",
    "in progress": "doing",
    "in_progress": "doing",
    "in-progress": "doing",
    "wip": "doing",
    "complete": "done",
    "completed": "done",
}


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


def normalize_column(column: str | None) -> str | None:
    """Map a free-form column name onto a task status, or None if unrecognized."""
    if not column:
        return None
    key = column.strip().lower()
    key = _COLUMN_ALIASES.get(key, key)
    return key if key in TASK_STATUSES else None


def _message(speaker_id: str, text: str, now: float, emotion: str | None = None) -> Message:
    message: Message = {
        "id": _new_id("msg"),
        "speaker_id": speaker_id,
        "text": text,
        "timestamp": now,
    }
    if emotion:
        message["emotion"] = emotion
    return message


def _notification(title: str, message: str, level: str, now: float) -> Notification:
    return {
        "id": _new_id("note"),
        "title": title,
        "message": message,
        "level": level,
        "timestamp": now,
    }


def initial_state(prompt: str, now: float | None = None) -> ProjectState:
    """Create the session state: brief = the user's prompt, placeholder code, boot message."""
    now = time.time() if now is None else now
    brief = validate_prompt(prompt)
    return {
        "brief": brief,
        "code": INITIAL_CODE,
        "tasks": [],
        "moodboard": [],
        "messages": [_message(NARRATOR, BOOT_MESSAGE, now)],
        "notifications": [
            _notification("System Online", "The Agency OS is initialized and running.", "success", now)
        ],
        "turn_count": 0,
        "consecutive_chat_turns": 0,
        "pending_event": None,
        "current_tab": "brief",
        "last_speaker": None,
        "image_requests": 0,
        "is_thinking": False,
        "typing_speaker_id": None,
        "typing_buffer": "",
    }


# --- Per-kind effects. Each takes (state copy, action) and returns the side effects. ---


def _update_brief(next_state: ProjectState, action: Action) -> list[SideEffect]:
    content = action["payload"].get("content")
    if content:
        next_state["brief"] = content
        next_state["current_tab"] = "brief"
    return []


def _add_task(next_state: ProjectState, action: Action) -> list[SideEffect]:
    payload = action["payload"]
    titles = list(payload.get("titles", []))
    if payload.get("title"):
        titles.insert(0, payload["title"])
    if not titles:
        print("[Agency] add_task without a title. Ignoring.", file=sys.stderr)
        return []

    status = normalize_column(payload.get("column")) or "todo"
    new_tasks = []
    for title in titles:
        task: Task = {"id": _new_id("task"), "title": title, "status": status}
        if action["speaker"] not in (PRODUCT_MANAGER, NARRATOR):
            task["assignee"] = action["speaker"]
        new_tasks.append(task)

    next_state["tasks"] = next_state["tasks"] + new_tasks
    next_state["current_tab"] = "board"
    return []


def _move_task(next_state: ProjectState, action: Action) -> list[SideEffect]:
    payload = action["payload"]
    task_id = payload.get("task_id")
    column = normalize_column(payload.get("column"))

    if column is None:
        print(f"[Agency] move_task with invalid column {payload.get('column')!r}. Ignoring.", file=sys.stderr)
        return []
    if not any(t["id"] == task_id for t in next_state["tasks"]):
        print(f"[Agency] move_task references unknown task {task_id!r}. Ignoring.", file=sys.stderr)
        return []

    next_state["tasks"] = [
        {**t, "status": column} if t["id"] == task_id else t
        for t in next_state["tasks"]
    ]
    next_state["current_tab"] = "board"
    return []


def _update_code(next_state: ProjectState, action: Action) -> list[SideEffect]:
    content = action["payload"].get("content")
    if content:
        next_state["code"] = content
        next_state["current_tab"] = "live"
    return []


def _add_moodboard(next_state: ProjectState, action: Action) -> list[SideEffect]:
    payload = action["payload"]
    content = payload.get("content")
    if not content:
        return []
    kind = payload.get("kind", "note").lower()
    item: MoodboardItem = {
        "id": _new_id("mood"),
        "kind": kind if kind in MOODBOARD_KINDS else "note",
        "content": content,
        "x": DEFAULT_POSITION[0],
        "y": DEFAULT_POSITION[1],
        "rotation": 0.0,
        "owner": action["speaker"],
    }
    next_state["moodboard"] = next_state["moodboard"] + [item]
    next_state["current_tab"] = "moodboard"
    return []


def _generate_image(next_state: ProjectState, action: Action) -> list[SideEffect]:
    prompt = action["payload"].get("prompt")
    if not prompt:
        return []
    next_state["image_requests"] = next_state.get("image_requests", 0) + 1
    return [{"kind": "generate_image", "prompt": prompt, "requester": action["speaker"]}]


def _switch_tab(next_state: ProjectState, action: Action) -> list[SideEffect]:
    tab_id = action["payload"].get("tab_id", "").lower()
    if tab_id in TAB_IDS:
        next_state["current_tab"] = tab_id
    return []


def _wait(next_state: ProjectState, action: Action) -> list[SideEffect]:
    return []


_EFFECTS = {
    "update_brief": _update_brief,
    "add_task": _add_task,
    "move_task": _move_task,
    "update_code": _update_code,
    "add_moodboard": _add_moodboard,
    "generate_image": _generate_image,
    "switch_tab": _switch_tab,
    "wait": _wait,
}


def apply_action(
    state: ProjectState, action: Action, now: float | None = None
) -> tuple[ProjectState, list[SideEffect]]:
    """Apply one turn's Action. Returns the new state and any side effects to run.

    Always appends exactly one Message, bumps turn_count, and clears the
    pending event, whatever the action kind does.
    """
    now = time.time() if now is None else now
    next_state: ProjectState = {**state}
    action = {**action, "payload": action.get("payload") or {}}

    effect = _EFFECTS.get(action.get("action"), _wait)
    side_effects = effect(next_state, action)

    next_state["messages"] = state["messages"] + [
        _message(action["speaker"], action["message"], now, action.get("emotion"))
    ]
    next_state["turn_count"] = state["turn_count"] + 1
    if action.get("action") == "wait":
        next_state["consecutive_chat_turns"] = state["consecutive_chat_turns"] + 1
    else:
        next_state["consecutive_chat_turns"] = 0
    next_state["pending_event"] = None
    next_state["last_speaker"] = action["speaker"]
    return next_state, side_effects


def apply_image_result(
    state: ProjectState, effect: SideEffect, image: str | None, now: float | None = None
) -> ProjectState:
    """Fold the outcome of an image-generation side effect back into state.

    Success appends an image to the moodboard plus a narrator line; failure
    only narrates and raises an error notification.
    """
    now = time.time() if now is None else now
    requester = display_name(effect["requester"])
    next_state: ProjectState = {**state}

    if not image:
        next_state["messages"] = state["messages"] + [
            _message(NARRATOR, f"{requester}'s render crashed the GPU. No image this time.", now)
        ]
        next_state["notifications"] = state["notifications"] + [
            _notification("Generation Failed", "Image generation service returned no data.", "error", now)
        ]
        return next_state

    item: MoodboardItem = {
        "id": _new_id("mood"),
        "kind": "image",
        "content": image,
        "x": random.uniform(20, 80),
        "y": random.uniform(20, 80),
        "rotation": random.uniform(-10, 10),
        "owner": effect["requester"],
    }
    next_state["moodboard"] = state["moodboard"] + [item]
    next_state["messages"] = state["messages"] + [
        _message(NARRATOR, f'generated image for "{effect["prompt"]}"', now)
    ]
    next_state["notifications"] = state["notifications"] + [
        _notification("Asset Created", f"New image generated by {requester}.", "success", now)
    ]
    next_state["current_tab"] = "moodboard"
    return next_state


# --- Host intents and transient markers ---


def inject_event(state: ProjectState, text: str, now: float | None = None) -> ProjectState:
    """Queue a one-shot director event for the next turn to react to."""
    now = time.time() if now is None else now
    event = validate_event(text)
    return {
        **state,
        "pending_event": event,
        "messages": state["messages"] + [_message(NARRATOR, f"DIRECTOR NOTE: {event}", now)],
        "notifications": state["notifications"] + [
            _notification("Director Note", "Injecting new event parameters...", "warning", now)
        ],
    }


def move_moodboard_item(state: ProjectState, item_id: str, x: float, y: float) -> ProjectState:
    """Reposition a moodboard item (percent coordinates, clamped to the board)."""
    if not any(item["id"] == item_id for item in state["moodboard"]):
        return state
    x = max(0.0, min(100.0, float(x)))
    y = max(0.0, min(100.0, float(y)))
    return {
        **state,
        "moodboard": [
            {**item, "x": x, "y": y} if item["id"] == item_id else item
            for item in state["moodboard"]
        ],
    }


def notify(state: ProjectState, title: str, message: str, level: str = "info", now: float | None = None) -> ProjectState:
    now = time.time() if now is None else now
    return {**state, "notifications": state["notifications"] + [_notification(title, message, level, now)]}


def mark_thinking(state: ProjectState, thinking: bool) -> ProjectState:
    return {**state, "is_thinking": thinking}


def mark_typing(state: ProjectState, speaker_id: str | None, buffer: str = "") -> ProjectState:
    return {**state, "typing_speaker_id": speaker_id, "typing_buffer": buffer}
