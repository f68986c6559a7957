"""Director Agent — asks the oracle for the next turn and forces it into shape.

The director never trusts the model: the strategy decides who must speak and
what they must do, the model only supplies the words and the payload. Bad
answers are retried with a linear backoff; when every attempt fails the
director returns a scripted narrator line so the simulation keeps moving.
"""

import json
import sys

from langchain_anthropic import ChatAnthropic
from langchain_google_genai import ChatGoogleGenerativeAI
from tenacity import AsyncRetrying, RetryError, stop_after_attempt, wait_incrementing

from agency.actions import ACTION_SCHEMA, fallback_action, parse_action
from agency.characters import ENGINEER, display_name, render_cast
from agency.config import get_config
from agency.reducer import normalize_column
from agency.state import Action, ProjectState, Strategy
from agency.strategy import build_phase, determine_strategy
from agency.utils.parsing import describe_failure, extract_document

BRIEF_PLACEHOLDER = "Error: Brief content missing."

SYSTEM_PROMPT = """\
You are the SHOWRUNNER of "THE AGENCY", a workplace simulation where five characters build \
a world-class single-page website together. Every reply you give is ONE turn: one character \
speaks one chat line and performs exactly one action.

THE CAST:
{cast}

THE PIPELINE (strict order):
1. BRIEF: Kevin turns the prompt into a detailed PRD ('update_brief').
2. VIBE: Ramona fills the moodboard ('generate_image' / 'add_moodboard').
3. PLAN: Kevin adds tickets to the board ('add_task').
4. BUILD: tickets move todo -> doing -> done ('move_task'); Rich writes the code ('update_code').

CODING GUIDELINES:
- Single HTML file, all CSS/JS embedded. Tailwind, GSAP and Lenis from CDNs.
- Awwwards-level: bold typography, noise textures, glassmorphism, smooth motion.
- Add to the existing page; do not delete sections unless refactoring.

You MUST respond with valid JSON matching this exact schema:
{schema}

Payload rules:
- 'update_brief': actionPayload.content is the FULL new brief (markdown).
- 'add_task': actionPayload.titles is a list of 3-4 concrete task titles (or a single actionPayload.title).
- 'move_task': actionPayload.taskId is an existing task ID, actionPayload.column is todo | doing | done.
- 'update_code': actionPayload.content is the FULL HTML document, never a diff.
- 'add_moodboard': actionPayload.content is the note text or hex color, actionPayload.type is note | color.
- 'generate_image': actionPayload.prompt is a vivid, specific image prompt.
- 'switch_tab': actionPayload.tabId is brief | moodboard | board | code | live.
- 'wait': no payload, just talk.
- message is a short, in-character chat line (1-3 sentences).
- Respond ONLY with the JSON object. No markdown fences, no commentary.
"""


def _make_llm(tier: str, config: dict):
    """Build the chat model for a tier. Only the coding tier gets a big thinking budget."""
    provider = config.get("provider", "google")
    model_name = config["models"][provider][tier]
    temperature = config.get("temperature", 0.9)

    if provider == "anthropic":
        return ChatAnthropic(model=model_name, temperature=temperature, max_tokens=16000)

    kwargs = {}
    budget = config.get("thinking_budget", {}).get(tier)
    if budget is not None:
        kwargs["thinking_budget"] = budget
    return ChatGoogleGenerativeAI(
        model=model_name,
        temperature=temperature,
        response_mime_type="application/json",
        **kwargs,
    )


def _response_text(response) -> str:
    """Flatten a chat model response to text (Gemini may return a list of parts)."""
    content = response.content
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def _build_system_prompt() -> str:
    return SYSTEM_PROMPT.format(cast=render_cast(), schema=json.dumps(ACTION_SCHEMA, indent=2))


def _build_user_prompt(state: ProjectState, strategy: Strategy, config: dict) -> str:
    """Construct the compact state summary the oracle works from."""
    window = config.get("history_window", 8)
    excerpt_chars = config.get("brief_excerpt_chars", 500)

    chat = "\n".join(
        f"{display_name(m['speaker_id'])}: {m['text']}" for m in state["messages"][-window:]
    )
    tasks = ", ".join(f"[{t['status'].upper()}] ID:{t['id']} {t['title']}" for t in state["tasks"])
    moodboard = ", ".join(
        f"[Image by {display_name(i.get('owner', '?'))}]" if i["kind"] == "image" else f"[{i['kind'].title()}: {i['content']}]"
        for i in state["moodboard"]
    )
    brief = state["brief"]
    if len(brief) > excerpt_chars:
        brief = brief[:excerpt_chars] + "..."

    parts = [
        "## Current State",
        f"- Turn: {state['turn_count']}",
        f"- Tasks (KANBAN): {tasks or 'EMPTY BOARD'}",
        f"- Moodboard: {moodboard or 'EMPTY'}",
        f"- Code Size: {len(state['code'])} chars",
        f"- Urgent Event: {state.get('pending_event') or 'None'}",
        f"\n## Brief (excerpt)\n{brief}",
        f"\n## Recent Chat\n{chat or '(silence)'}",
        f"\n## Directive\n{strategy['prompt_context']}",
        f"REQUIRED SPEAKER: {strategy['speaker'] or 'Any'}",
        f"REQUIRED ACTION: {strategy['forced_action'] or 'Any'}",
    ]
    if strategy["forced_action"] == "update_code":
        parts.append(f"\n## Current Code\n```html\n{state['code']}\n```")
    return "\n".join(parts)


def _rescue_document(text: str, strategy: Strategy) -> Action | None:
    """Synthesize an update_code turn around an HTML document the model pasted raw."""
    document = extract_document(text)
    if not document:
        return None
    print("[Agency] Unparseable response carried an HTML document. Rescuing it as update_code.", file=sys.stderr)
    return {
        "speaker": strategy["speaker"] or ENGINEER,
        "message": "Pushed a fresh build. Check localhost.",
        "thinking": "Recovered from raw document output",
        "action": "update_code",
        "payload": {"content": document},
    }


def _repair_move(action: Action, state: ProjectState, strategy: Strategy) -> None:
    payload = action["payload"]

    if strategy["forced_action"] == "move_task" and strategy["task_id"]:
        payload["task_id"] = strategy["task_id"]
        payload["column"] = "doing" if strategy["phase"] == "pickup" else "done"
        return

    tasks = state["tasks"]
    column = normalize_column(payload.get("column"))
    existing = next((t for t in tasks if t["id"] == payload.get("task_id")), None)
    if existing is not None:
        if column is None:
            payload["column"] = "doing" if existing["status"] == "todo" else "done"
        return

    # Unknown id: substitute the earliest task that can legally move into the target column.
    column = column or "doing"
    source = {"doing": ("todo",), "done": ("doing", "todo")}.get(column, ())
    for status in source:
        candidate = next((t for t in tasks if t["status"] == status), None)
        if candidate is not None:
            print(
                f"[Agency] move_task referenced unknown task {payload.get('task_id')!r}; "
                f"using {candidate['id']!r} instead.",
                file=sys.stderr,
            )
            payload["task_id"] = candidate["id"]
            payload["column"] = column
            return


def enforce_contract(action: Action, state: ProjectState, strategy: Strategy) -> Action:
    """Make the oracle's action obey the strategy. Policy wins over the model."""
    action = {**action, "payload": dict(action["payload"])}

    if strategy["speaker"] and action["speaker"] != strategy["speaker"]:
        action["speaker"] = strategy["speaker"]

    forced = strategy["forced_action"]
    if forced and action["action"] != forced:
        print(
            f"[Agency] Oracle chose '{action['action']}' during {strategy['phase']}; forcing '{forced}'.",
            file=sys.stderr,
        )
        # A payload written for another kind never carries over, even where field names overlap.
        action["action"] = forced
        action["payload"] = {}

    kind = action["action"]
    payload = action["payload"]
    if kind == "update_brief" and not payload.get("content"):
        payload["content"] = BRIEF_PLACEHOLDER
    elif kind == "update_code" and not payload.get("content"):
        payload["content"] = state["code"]
    elif kind == "move_task":
        _repair_move(action, state, strategy)
    elif kind == "add_task" and not (payload.get("title") or payload.get("titles")):
        completed = sum(1 for t in state["tasks"] if t["status"] == "done")
        payload["title"] = f"{build_phase(completed)[0]}: next milestone"
    elif kind == "generate_image" and not payload.get("prompt"):
        payload["prompt"] = f"Abstract high-fashion moodboard texture inspired by: {state['brief'][:200]}"

    return action


def _interpret(text: str, state: ProjectState, strategy: Strategy) -> Action:
    """Parse, rescue and enforce one raw response. Raises ValueError to trigger a retry."""
    if not text.strip():
        raise ValueError("Oracle returned empty content (possible safety refusal).")

    action = parse_action(text)
    if action is None and strategy["forced_action"] in ("update_code", None):
        action = _rescue_document(text, strategy)
    if action is None:
        raise ValueError(f"Oracle response did not match the action schema: {text[:100]!r}")

    return enforce_contract(action, state, strategy)


async def generate_turn(state: ProjectState, strategy: Strategy | None = None) -> Action:
    """Produce the next turn's Action for the given state.

    Never raises for oracle problems: after max_attempts failures the
    scripted fallback action is returned instead.
    """
    config = get_config()
    strategy = strategy or determine_strategy(state, config)
    llm = _make_llm(strategy["model_tier"], config)
    attempts = config.get("max_attempts", 3)

    messages = [
        {"role": "system", "content": _build_system_prompt()},
        {"role": "user", "content": _build_user_prompt(state, strategy, config)},
    ]

    def _log_retry(retry_state):
        exc = retry_state.outcome.exception()
        print(
            f"[Agency] Turn generation failed ({describe_failure(exc)}: {exc!r}). "
            f"Retrying in {retry_state.next_action.sleep:.1f}s "
            f"(attempt {retry_state.attempt_number}/{attempts})...",
            file=sys.stderr,
        )

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_incrementing(
                start=config.get("retry_delay_seconds", 1.0),
                increment=config.get("retry_delay_increment", 1.0),
            ),
            before_sleep=_log_retry,
        ):
            with attempt:
                response = await llm.ainvoke(messages)
                action = _interpret(_response_text(response), state, strategy)
    except RetryError as exc:
        print(
            f"[Agency] Turn generation gave up after {attempts} attempts: "
            f"{exc.last_attempt.exception()!r}. Using fallback turn.",
            file=sys.stderr,
        )
        return fallback_action()

    return action
