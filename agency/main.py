"""Entry point: validates the prompt, runs the agency, writes the artifacts."""

import asyncio
import random
import sys

from agency.characters import DEFAULT_PROMPTS, PRESET_EVENTS, display_name
from agency.config import get_config
from agency.graph import run_headless
from agency.reducer import initial_state, inject_event
from agency.scheduler import TurnScheduler
from agency.state import ProjectState
from agency.utils.formatter import write_artifacts
from agency.utils.validator import validate_prompt


class ChatPrinter:
    """Host callback: prints each chat line once, as it lands in the log."""

    def __init__(self):
        self._seen = 0

    def __call__(self, state: ProjectState) -> None:
        for message in state["messages"][self._seen:]:
            print(f"[Agency] {display_name(message['speaker_id'])}: {message['text']}")
        self._seen = len(state["messages"])


async def _run_realtime(prompt: str, max_turns: int, event: str | None) -> ProjectState:
    scheduler = TurnScheduler(on_change=ChatPrinter(), max_turns=max_turns)
    scheduler.start_session(prompt)
    if event:
        scheduler.inject_event(event)
    return await scheduler.run()


async def _run_headless(prompt: str, max_turns: int, event: str | None) -> ProjectState:
    printer = ChatPrinter()
    state = initial_state(prompt)
    if event:
        state = inject_event(state, event)
    final_state = await run_headless(state, max_turns)
    printer(final_state)
    return final_state


def run(prompt: str, headless: bool = False, turns: int | None = None, event: str | None = None) -> None:
    """Run a full agency session on a prompt string.

    Args:
        prompt: The client's one-line project prompt.
        headless: Skip pacing and typing; run turns back to back.
        turns: Turn budget. None uses config default.
        event: Optional director event (preset key or free text) queued before the first turn.
    """
    config = get_config()
    max_turns = turns if turns is not None else config.get("max_turns", 40)
    validated = validate_prompt(prompt)
    if event:
        event = PRESET_EVENTS.get(event, event)

    runner = _run_headless if headless else _run_realtime
    try:
        final_state = asyncio.run(runner(validated, max_turns, event))
    except KeyboardInterrupt:
        print("\n[Agency] Interrupted.", file=sys.stderr)
        return

    output_dir = write_artifacts(final_state)
    done = sum(1 for t in final_state["tasks"] if t["status"] == "done")
    print(f"[Agency] Turns: {final_state['turn_count']}")
    print(f"[Agency] Tasks done: {done}/{len(final_state['tasks'])}")
    print(f"[Agency] Output written to: {output_dir}")


def main() -> None:
    """CLI entry point — accepts the prompt as argument or from stdin."""
    args = sys.argv[1:]
    headless = False
    turns = None
    event = None

    if "--headless" in args:
        headless = True
        args.remove("--headless")

    if "--turns" in args:
        idx = args.index("--turns")
        try:
            turns = int(args[idx + 1])
        except (IndexError, ValueError):
            print("--turns expects an integer.", file=sys.stderr)
            sys.exit(2)
        del args[idx:idx + 2]

    if "--event" in args:
        idx = args.index("--event")
        if idx + 1 >= len(args):
            print(f"--event expects text or one of: {', '.join(PRESET_EVENTS)}", file=sys.stderr)
            sys.exit(2)
        event = args[idx + 1]
        del args[idx:idx + 2]

    if args:
        prompt = " ".join(args)
    elif sys.stdin.isatty():
        print("Enter your project prompt (Ctrl+D / Ctrl+Z to submit, empty for a random one):")
        prompt = sys.stdin.read()
    else:
        prompt = sys.stdin.read()

    if not prompt.strip():
        prompt = random.choice(DEFAULT_PROMPTS)
        print(f"[Agency] No prompt given. Using: {prompt}")

    run(prompt, headless=headless, turns=turns, event=event)


if __name__ == "__main__":
    main()
