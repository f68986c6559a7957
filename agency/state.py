"""Agency State — the project record shared by every turn of the simulation."""

from typing import Literal, NotRequired, TypedDict

TaskStatus = Literal["todo", "doing", "done"]
MoodboardKind = Literal["image", "note", "color"]
NotificationLevel = Literal["info", "success", "warning", "error"]
ActionKind = Literal[
    "update_brief",
    "add_task",
    "move_task",
    "update_code",
    "add_moodboard",
    "generate_image",
    "switch_tab",
    "wait",
]
Phase = Literal["event", "briefing", "ideation", "planning", "execution", "pickup", "banter"]
ModelTier = Literal["fast", "standard", "coding"]

TASK_STATUSES = ("todo", "doing", "done")
MOODBOARD_KINDS = ("image", "note", "color")
TAB_IDS = ("brief", "moodboard", "board", "code", "live")


class Task(TypedDict):
    id: str
    title: str
    status: TaskStatus
    assignee: NotRequired[str]


class MoodboardItem(TypedDict):
    id: str
    kind: MoodboardKind
    content: str  # Text, hex color, or data URI for images.
    x: float  # Percent of board width.
    y: float  # Percent of board height.
    rotation: float
    owner: NotRequired[str]


class Message(TypedDict):
    id: str
    speaker_id: str
    text: str
    emotion: NotRequired[str]
    timestamp: float


class Notification(TypedDict):
    id: str
    title: str
    message: str
    level: NotificationLevel
    timestamp: float


class ActionPayload(TypedDict, total=False):
    content: str
    title: str
    titles: list[str]
    column: str
    task_id: str
    kind: str
    prompt: str
    tab_id: str


class Action(TypedDict):
    speaker: str
    message: str
    thinking: str
    emotion: NotRequired[str]
    action: ActionKind
    payload: ActionPayload


class Strategy(TypedDict):
    phase: Phase
    speaker: str | None  # None = the oracle picks.
    forced_action: ActionKind | None
    prompt_context: str
    model_tier: ModelTier
    task_id: str | None  # Target of a forced move_task.


class SideEffect(TypedDict):
    kind: Literal["generate_image"]
    prompt: str
    requester: str


class ProjectState(TypedDict):
    brief: str  # Starts as the user prompt, grows via update_brief.
    code: str  # The single build artifact, replaced wholesale.
    tasks: list[Task]
    moodboard: list[MoodboardItem]
    messages: list[Message]  # Append-only.
    notifications: list[Notification]
    turn_count: int
    consecutive_chat_turns: int
    pending_event: str | None  # One-shot, cleared by the turn that consumes it.
    current_tab: str
    last_speaker: str | None
    image_requests: int
    # Transient turn-in-progress markers.
    is_thinking: bool
    typing_speaker_id: str | None
    typing_buffer: str
