"""Turn scheduler — the real-time loop that drives the agency.

Per turn: idle -> thinking -> typing -> applying -> idle. The scheduler owns
the ProjectState and is its only writer: every change goes through a reducer
function and then _commit, which hands the snapshot to the host.

A watchdog runs alongside the loop. It abandons turns stuck in "thinking"
(bumping the epoch so a late answer is discarded) and kicks the loop when it
has been idle for too long.
"""

import asyncio
import sys
import time
from typing import Callable

from agency.agents.director import generate_turn
from agency.agents.illustrator import generate_image
from agency.characters import NARRATOR
from agency.config import get_config
from agency.reducer import (
    apply_action,
    apply_image_result,
    initial_state,
    inject_event,
    mark_thinking,
    mark_typing,
    move_moodboard_item,
    notify,
)
from agency.state import Action, ProjectState, SideEffect

IDLE = "idle"
THINKING = "thinking"
TYPING = "typing"
APPLYING = "applying"


class TurnScheduler:
    """Drives turns in real time and exposes the host intents."""

    def __init__(
        self,
        on_change: Callable[[ProjectState], None] | None = None,
        config: dict | None = None,
        max_turns: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config or get_config()
        self._on_change = on_change
        self._max_turns = max_turns
        self._clock = clock

        self._state: ProjectState | None = None
        self.phase = IDLE
        self.active = False
        self.paused = False

        self._epoch = 0
        self._thinking_since: float | None = None
        self._last_activity = clock()
        self._timer: asyncio.Task | None = None
        self._turn_task: asyncio.Task | None = None
        self._watchdog_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._stopped = asyncio.Event()

    @property
    def state(self) -> ProjectState | None:
        return self._state

    def _commit(self, new_state: ProjectState) -> None:
        self._state = new_state
        if self._on_change is not None:
            self._on_change(new_state)

    # --- Host intents ---

    def start_session(self, prompt: str) -> None:
        """Reset the project to the given prompt and arm the loop."""
        self._commit(initial_state(prompt))
        self.active = True
        self.paused = False
        self.phase = IDLE
        self._last_activity = self._clock()

    def pause(self) -> None:
        self.paused = True
        self._cancel_timer()

    def resume(self) -> None:
        if not self.paused:
            return
        self.paused = False
        self._last_activity = self._clock()
        if self.active and self.phase == IDLE:
            self._schedule_next(self._config.get("turn_delay", 3.5))

    def stop(self) -> None:
        self.active = False
        self._cancel_timer()
        self._stopped.set()

    def inject_event(self, text: str) -> None:
        self._commit(inject_event(self._state, text))

    def move_moodboard_item(self, item_id: str, x: float, y: float) -> None:
        self._commit(move_moodboard_item(self._state, item_id, x, y))

    # --- Loop ---

    async def run(self) -> ProjectState:
        """Run until stop() is called or max_turns is reached. Returns the final state."""
        if self._state is None:
            raise RuntimeError("start_session() must be called before run().")

        self._stopped.clear()
        self._watchdog_task = asyncio.create_task(self._watchdog())
        if self._state["turn_count"] == 0:
            self._schedule_next(self._config.get("first_turn_delay", 0.5))
        else:
            self._schedule_next(self._config.get("turn_delay", 3.5))
        try:
            await self._stopped.wait()
        finally:
            self._cancel_timer()
            self._watchdog_task.cancel()
            if self._turn_task is not None and not self._turn_task.done():
                if self.phase == THINKING:
                    self._turn_task.cancel()
                    self._commit(mark_thinking(self._state, False))
                else:
                    # A decided action still lands; typing stops on the next character.
                    await self._turn_task
            for task in list(self._background):
                task.cancel()
        return self._state

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            if self._timer is not asyncio.current_task():
                self._timer.cancel()
            self._timer = None

    def _schedule_next(self, delay: float) -> None:
        self._cancel_timer()
        self._timer = asyncio.create_task(self._fire_after(delay))

    async def _fire_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._timer = None
        self.trigger_turn()

    def _turns_exhausted(self) -> bool:
        return self._max_turns is not None and self._state["turn_count"] >= self._max_turns

    def trigger_turn(self) -> bool:
        """Start a turn now if the loop is idle. Returns False when the guard refuses."""
        if not self.active or self.paused or self.phase != IDLE:
            return False
        if self._turns_exhausted():
            self.stop()
            return False

        self._cancel_timer()
        self.phase = THINKING
        self._epoch += 1
        self._turn_task = asyncio.create_task(self._run_turn(self._epoch))
        return True

    async def _run_turn(self, epoch: int) -> None:
        try:
            await self._take_turn(epoch)
        except Exception as exc:
            print(f"[Agency] Critical loop error: {exc!r}", file=sys.stderr)
            if epoch == self._epoch:
                recovered = mark_typing(mark_thinking(self._state, False), None)
                self._commit(notify(recovered, "System Error", "Simulation loop encountered a critical error.", "error"))
        finally:
            if epoch == self._epoch:
                self.phase = IDLE
                self._thinking_since = None
                self._last_activity = self._clock()
                self._after_turn()

    def _after_turn(self) -> None:
        if self._turns_exhausted():
            self.stop()
        elif self.active and not self.paused:
            self._schedule_next(self._config.get("turn_delay", 3.5))

    async def _take_turn(self, epoch: int) -> None:
        self._thinking_since = self._clock()
        self._last_activity = self._thinking_since
        self._commit(mark_thinking(self._state, True))

        action = await generate_turn(self._state)

        if epoch != self._epoch:
            print("[Agency] Discarding late response from an abandoned turn.", file=sys.stderr)
            return

        self._thinking_since = None
        self._last_activity = self._clock()
        self._commit(mark_thinking(self._state, False))

        self.phase = TYPING
        if action["message"] and action["speaker"] != NARRATOR:
            await self._type_out(action, epoch)
        if epoch != self._epoch:
            return

        self.phase = APPLYING
        new_state, side_effects = apply_action(mark_typing(self._state, None), action)
        self._commit(new_state)
        self._last_activity = self._clock()
        for effect in side_effects:
            self._spawn(self._run_side_effect(effect))

    async def _type_out(self, action: Action, epoch: int) -> None:
        """Reveal the message one character at a time; stops early on pause or stop."""
        speaker = action["speaker"]
        interval = self._config.get("typing_interval", 0.03)
        self._commit(mark_typing(self._state, speaker, ""))
        await asyncio.sleep(self._config.get("typing_start_delay", 0.5))

        buffer = ""
        for char in action["message"]:
            if not self.active or self.paused or epoch != self._epoch:
                break
            buffer += char
            self._commit(mark_typing(self._state, speaker, buffer))
            self._last_activity = self._clock()
            await asyncio.sleep(interval)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run_side_effect(self, effect: SideEffect) -> None:
        image = await generate_image(effect["prompt"])
        self._commit(apply_image_result(self._state, effect, image))

    # --- Watchdog ---

    async def _watchdog(self) -> None:
        interval = self._config.get("watchdog_interval", 5)
        while self.active:
            await asyncio.sleep(interval)
            self.check_liveness()

    def check_liveness(self) -> None:
        """One watchdog tick: reset a hung turn or kick an idle loop."""
        if not self.active or self.paused:
            return
        now = self._clock()

        max_thinking = self._config.get("max_thinking_seconds", 60)
        if self.phase == THINKING and self._thinking_since is not None and now - self._thinking_since > max_thinking:
            print("[Agency] Watchdog: turn stuck in thinking. Forcing reset.", file=sys.stderr)
            self._epoch += 1
            if self._turn_task is not None:
                self._turn_task.cancel()
            self.phase = IDLE
            self._thinking_since = None
            self._last_activity = now
            self._commit(notify(mark_thinking(self._state, False), "System", "Agent computation timed out. Resetting...", "warning"))
            self._after_turn()
            return

        if self.phase == IDLE and now - self._last_activity > self._config.get("idle_timeout_seconds", 30):
            print("[Agency] Watchdog: loop idle. Forcing a turn.", file=sys.stderr)
            self.trigger_turn()
