"""Tests for the turn scheduler: turn lifecycle, typing, watchdog, host intents."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from agency.scheduler import IDLE, THINKING, TurnScheduler


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _settle():
    """Give queued tasks a chance to run (all configured delays are zero)."""
    return asyncio.sleep(0.05)


def _scheduler(config, **kwargs):
    scheduler = TurnScheduler(config=config, **kwargs)
    scheduler.start_session("a simple portfolio site")
    return scheduler


class TestRun:
    def test_run_without_session_raises(self, test_config):
        scheduler = TurnScheduler(config=test_config)
        with pytest.raises(RuntimeError):
            asyncio.run(scheduler.run())

    def test_runs_until_max_turns(self, test_config, make_action):
        fake = AsyncMock(return_value=make_action("wait", message="Standup?"))
        with patch("agency.scheduler.generate_turn", new=fake):
            scheduler = _scheduler(test_config, max_turns=3)
            final_state = asyncio.run(scheduler.run())

        assert final_state["turn_count"] == 3
        assert fake.await_count == 3
        assert [m["text"] for m in final_state["messages"][1:]] == ["Standup?"] * 3
        assert scheduler.active is False

    def test_turn_applies_action_and_clears_markers(self, test_config, make_action):
        action = make_action("update_brief", speaker="kevin", message="PRD is up.", content="# Full PRD")
        with patch("agency.scheduler.generate_turn", new=AsyncMock(return_value=action)):
            final_state = asyncio.run(_scheduler(test_config, max_turns=1).run())

        assert final_state["brief"] == "# Full PRD"
        assert final_state["messages"][-1]["speaker_id"] == "kevin"
        assert final_state["is_thinking"] is False
        assert final_state["typing_speaker_id"] is None
        assert final_state["typing_buffer"] == ""

    def test_stop_while_thinking_abandons_turn(self, test_config, make_action):
        async def never_answers(state):
            await asyncio.Event().wait()

        scheduler = None

        def on_change(state):
            if state["is_thinking"]:
                scheduler.stop()

        with patch("agency.scheduler.generate_turn", new=never_answers):
            scheduler = _scheduler(test_config, on_change=on_change)
            final_state = asyncio.run(scheduler.run())

        assert final_state["turn_count"] == 0
        assert final_state["is_thinking"] is False
        assert scheduler.phase == IDLE


class TestTyping:
    def test_message_revealed_character_by_character(self, test_config, make_action):
        snapshots = []
        action = make_action("wait", speaker="rich", message="Ship")
        with patch("agency.scheduler.generate_turn", new=AsyncMock(return_value=action)):
            scheduler = _scheduler(
                test_config, max_turns=1,
                on_change=lambda s: snapshots.append((s["typing_speaker_id"], s["typing_buffer"])),
            )
            asyncio.run(scheduler.run())

        typed = [buffer for speaker, buffer in snapshots if speaker == "rich"]
        assert typed == ["", "S", "Sh", "Shi", "Ship"]

    def test_narrator_lines_skip_typing(self, test_config, make_action):
        snapshots = []
        action = make_action("wait", speaker="system", message="Network jitter detected.")
        with patch("agency.scheduler.generate_turn", new=AsyncMock(return_value=action)):
            scheduler = _scheduler(test_config, max_turns=1, on_change=snapshots.append)
            final_state = asyncio.run(scheduler.run())

        assert all(s["typing_speaker_id"] is None for s in snapshots)
        assert final_state["messages"][-1]["text"] == "Network jitter detected."

    def test_pause_mid_typing_still_applies_full_message(self, test_config, make_action):
        action = make_action("wait", speaker="rich", message="This message is long enough to interrupt.")
        scheduler = None

        def on_change(state):
            if len(state["typing_buffer"]) == 3 and not scheduler.paused:
                scheduler.pause()

        async def scenario():
            scheduler.trigger_turn()
            await _settle()

        with patch("agency.scheduler.generate_turn", new=AsyncMock(return_value=action)):
            scheduler = _scheduler(test_config, on_change=on_change)
            asyncio.run(scenario())

        assert scheduler.state["messages"][-1]["text"] == action["message"]
        assert scheduler.state["turn_count"] == 1
        assert scheduler.state["typing_speaker_id"] is None
        assert scheduler.phase == IDLE


class TestGuards:
    def test_trigger_refused_while_paused(self, test_config):
        scheduler = _scheduler(test_config)
        scheduler.pause()
        assert scheduler.trigger_turn() is False

    def test_trigger_refused_when_not_started(self, test_config):
        assert TurnScheduler(config=test_config).trigger_turn() is False

    def test_trigger_refused_mid_turn(self, test_config, make_action):
        gate = asyncio.Event()

        async def slow(state):
            await gate.wait()
            return make_action()

        async def scenario(scheduler):
            assert scheduler.trigger_turn() is True
            assert scheduler.phase == THINKING
            assert scheduler.trigger_turn() is False
            scheduler.pause()
            gate.set()
            await _settle()

        with patch("agency.scheduler.generate_turn", new=slow):
            scheduler = _scheduler(test_config)
            asyncio.run(scenario(scheduler))

        assert scheduler.state["turn_count"] == 1

    def test_resume_schedules_next_turn(self, test_config, make_action):
        async def scenario(scheduler):
            scheduler.pause()
            scheduler.resume()
            await _settle()

        with patch("agency.scheduler.generate_turn", new=AsyncMock(return_value=make_action())):
            scheduler = _scheduler(test_config, max_turns=1)
            asyncio.run(scenario(scheduler))

        assert scheduler.state["turn_count"] == 1

    def test_host_intents_commit_state(self, test_config):
        seen = []
        scheduler = _scheduler(test_config, on_change=seen.append)
        scheduler.inject_event("CLIENT EMAIL: bigger logo")
        assert scheduler.state["pending_event"] == "CLIENT EMAIL: bigger logo"
        assert seen[-1] is scheduler.state


class TestWatchdog:
    def test_stuck_thinking_is_reset_and_late_answer_ignored(self, test_config, make_action):
        clock = FakeClock()
        gate = asyncio.Event()
        calls = []
        abandoned = []

        async def fake_generate(state):
            calls.append(len(calls))
            if len(calls) == 1:
                try:
                    await gate.wait()
                except asyncio.CancelledError:
                    abandoned.append(True)
                    raise
                return make_action("wait", message="late answer")
            return make_action("wait", message="fresh answer")

        async def scenario(scheduler):
            scheduler.trigger_turn()
            await asyncio.sleep(0)
            clock.now += test_config["max_thinking_seconds"] + 1
            scheduler.check_liveness()
            assert scheduler.state["is_thinking"] is False
            await _settle()
            gate.set()
            await _settle()

        with patch("agency.scheduler.generate_turn", new=fake_generate):
            scheduler = _scheduler(test_config, max_turns=1, clock=clock)
            asyncio.run(scenario(scheduler))

        texts = [m["text"] for m in scheduler.state["messages"]]
        assert "fresh answer" in texts
        assert "late answer" not in texts
        assert abandoned == [True]
        assert len(calls) == 2
        assert scheduler.state["turn_count"] == 1
        assert any(
            n["message"] == "Agent computation timed out. Resetting..." for n in scheduler.state["notifications"]
        )

    def test_thinking_within_limit_left_alone(self, test_config, make_action):
        clock = FakeClock()
        gate = asyncio.Event()

        async def slow(state):
            await gate.wait()
            return make_action()

        async def scenario(scheduler):
            scheduler.trigger_turn()
            await asyncio.sleep(0)
            clock.now += test_config["max_thinking_seconds"] - 1
            scheduler.check_liveness()
            assert scheduler.phase == THINKING
            gate.set()
            await _settle()

        with patch("agency.scheduler.generate_turn", new=slow):
            scheduler = _scheduler(test_config, max_turns=1, clock=clock)
            asyncio.run(scenario(scheduler))

        assert scheduler.state["turn_count"] == 1

    def test_idle_loop_gets_kicked(self, test_config, make_action):
        clock = FakeClock()
        fake = AsyncMock(return_value=make_action())

        async def scenario(scheduler):
            clock.now += test_config["idle_timeout_seconds"] + 1
            scheduler.check_liveness()
            await _settle()

        with patch("agency.scheduler.generate_turn", new=fake):
            scheduler = _scheduler(test_config, max_turns=1, clock=clock)
            asyncio.run(scenario(scheduler))

        assert fake.await_count == 1
        assert scheduler.state["turn_count"] == 1

    def test_paused_loop_not_kicked(self, test_config):
        clock = FakeClock()
        scheduler = _scheduler(test_config, clock=clock)
        scheduler.pause()
        clock.now += 1000
        scheduler.check_liveness()
        assert scheduler.phase == IDLE


class TestSideEffectsAndErrors:
    def test_generated_image_lands_on_moodboard(self, test_config, make_action):
        action = make_action("generate_image", speaker="ramona", message="Rendering.", prompt="chrome orchid")
        image = AsyncMock(return_value="data:image/png;base64,AAAA")

        async def scenario(scheduler):
            scheduler.trigger_turn()
            await _settle()

        with patch("agency.scheduler.generate_turn", new=AsyncMock(return_value=action)), \
                patch("agency.scheduler.generate_image", new=image):
            scheduler = _scheduler(test_config, max_turns=1)
            asyncio.run(scenario(scheduler))

        image.assert_awaited_once_with("chrome orchid")
        assert scheduler.state["moodboard"][-1]["content"] == "data:image/png;base64,AAAA"
        assert scheduler.state["moodboard"][-1]["owner"] == "ramona"

    def test_failed_image_adds_error_notification(self, test_config, make_action):
        action = make_action("generate_image", speaker="marc", message="Uh oh.", prompt="mockup")

        async def scenario(scheduler):
            scheduler.trigger_turn()
            await _settle()

        with patch("agency.scheduler.generate_turn", new=AsyncMock(return_value=action)), \
                patch("agency.scheduler.generate_image", new=AsyncMock(return_value=None)):
            scheduler = _scheduler(test_config, max_turns=1)
            asyncio.run(scenario(scheduler))

        assert scheduler.state["moodboard"] == []
        assert scheduler.state["notifications"][-1]["title"] == "Generation Failed"

    def test_loop_error_notifies_and_returns_to_idle(self, test_config):
        test_config["turn_delay"] = 30

        async def scenario(scheduler):
            scheduler.trigger_turn()
            await _settle()

        with patch("agency.scheduler.generate_turn", new=AsyncMock(side_effect=RuntimeError("boom"))):
            scheduler = _scheduler(test_config)
            asyncio.run(scenario(scheduler))

        assert scheduler.phase == IDLE
        assert scheduler.state["is_thinking"] is False
        assert scheduler.state["notifications"][-1]["title"] == "System Error"
        assert scheduler.state["turn_count"] == 0
