"""Shared fixtures for the agency test suite."""

import pytest
from unittest.mock import patch

from agency.characters import INITIAL_CODE

LONG_BRIEF = (
    "# VOID: Product Requirements\n\n"
    "A brutalist, monochromatic portfolio for a fashion house. Goals: showcase the "
    "collection, tell the brand story, capture press inquiries. Sections: hero with "
    "oversized type, lookbook grid, manifesto, contact. Visual direction: black, white, "
    "one acid accent, scroll-triggered reveals."
)


@pytest.fixture
def base_state():
    """Minimal valid ProjectState at session start."""
    return {
        "brief": "a simple portfolio site",
        "code": INITIAL_CODE,
        "tasks": [],
        "moodboard": [],
        "messages": [
            {"id": "msg-0", "speaker_id": "system", "text": "OS Booted. Project Initialized.", "timestamp": 0.0}
        ],
        "notifications": [],
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


@pytest.fixture
def briefed_state(base_state):
    """State past briefing and ideation: long brief, three moodboard images."""
    base_state["brief"] = LONG_BRIEF
    base_state["moodboard"] = [
        {"id": f"mood-{i}", "kind": "image", "content": "data:image/png;base64,AAAA",
         "x": 50.0, "y": 50.0, "rotation": 0.0, "owner": "ramona"}
        for i in range(3)
    ]
    base_state["image_requests"] = 3
    return base_state


@pytest.fixture
def test_config():
    """Config with instant pacing and no retry delay."""
    return {
        "provider": "google",
        "models": {
            "google": {"fast": "gemini-fast", "standard": "gemini-std", "coding": "gemini-pro"},
            "anthropic": {"fast": "claude-fast", "standard": "claude-std", "coding": "claude-pro"},
        },
        "temperature": 0.9,
        "thinking_budget": {"fast": 0, "standard": 1024, "coding": 4096},
        "image_model": "gemini-image",
        "image_timeout_seconds": 1,
        "max_attempts": 3,
        "retry_delay_seconds": 0,
        "retry_delay_increment": 0,
        "history_window": 8,
        "brief_excerpt_chars": 500,
        "brief_threshold": 200,
        "min_moodboard_images": 3,
        "max_image_requests": 6,
        "continue_probability": 0.6,
        "first_turn_delay": 0,
        "turn_delay": 0,
        "typing_start_delay": 0,
        "typing_interval": 0,
        "watchdog_interval": 60,
        "max_thinking_seconds": 60,
        "idle_timeout_seconds": 30,
        "max_turns": 5,
        "output_dir": "./output",
    }


@pytest.fixture
def mock_config(test_config):
    """Patch the config singleton with test-friendly values."""
    with patch("agency.config._config", test_config):
        yield test_config


@pytest.fixture
def make_action():
    """Factory for normalized Action dicts."""
    def _make(action="wait", speaker="rich", message="On it.", **payload):
        return {
            "speaker": speaker,
            "message": message,
            "thinking": "",
            "action": action,
            "payload": payload,
        }
    return _make
