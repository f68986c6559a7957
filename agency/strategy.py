"""Strategy engine: decides what the next turn must accomplish.

determine_strategy is pure. Given the same state (and config) it always
returns the same Strategy; the "keep building vs. ship it" choice during
execution is seeded from the task id and turn count instead of a global RNG.
"""

import random

from agency.characters import (
    ART_DIRECTOR,
    COPY_KEYWORDS,
    COPYWRITER,
    ENGINEER,
    INTERN,
    PRODUCT_MANAGER,
    VISUAL_KEYWORDS,
    display_name,
)
from agency.config import get_config
from agency.state import ProjectState, Strategy, Task

# Completed-task thresholds for the fixed build phases.
BUILD_PHASES = [
    (3, "Phase 1: Foundation",
     "Setup Hero Section, Navigation Bar, Responsive Grid, and Typography variables."),
    (6, "Phase 2: Core Content",
     "Add 'About', 'Services', or 'Features' sections. Use bento grids. Populate with "
     "real text (no Lorem Ipsum)."),
    (9, "Phase 3: Motion & Physics",
     "Implement smooth scrolling (Lenis), reveal animations (GSAP ScrollTrigger), and "
     "parallax effects."),
    (12, "Phase 4: Visual Polish",
     "Add noise textures, radial gradients, glassmorphism overlays, custom cursors, and "
     "refine padding/margins."),
]

# Open-ended phases cycled once the fixed ones are exhausted.
LOOP_PHASES = [
    ("Phase 5: Expansion",
     "Add a new page section (e.g. Testimonials, FAQ, Pricing, or Blog Preview) to make "
     "the page longer and richer."),
    ("Phase 6: Micro-Interactions",
     "Add magnetic buttons, custom tooltips, text reveal animations on hover, or "
     "interactive cards."),
    ("Phase 7: Conversion",
     "Add a Newsletter signup, Call-to-Action buttons, or a Contact Form with validation "
     "styles."),
    ("Phase 8: Experimental",
     "Try something weird. WebGL distortion, ASCII art footer, Marquee text, or a Konami "
     "code easter egg."),
]
TASKS_PER_LOOP_PHASE = 3


def build_phase(completed: int) -> tuple[str, str]:
    """Return (phase name, phase context) for the given number of done tasks."""
    for limit, name, context in BUILD_PHASES:
        if completed < limit:
            return name, context
    past_fixed = completed - BUILD_PHASES[-1][0]
    name, context = LOOP_PHASES[(past_fixed // TASKS_PER_LOOP_PHASE) % len(LOOP_PHASES)]
    return name, context


def route_task(task: Task) -> str:
    """Pick the character who owns a task, by case-insensitive keyword match on its title."""
    title = task["title"].lower()
    if any(keyword in title for keyword in COPY_KEYWORDS):
        return COPYWRITER
    if any(keyword in title for keyword in VISUAL_KEYWORDS):
        return INTERN
    return ENGINEER


def should_continue_task(task: Task, turn_count: int, continue_probability: float) -> bool:
    """Weighted choice between "keep building" (True) and "declare done" (False).

    Seeded from the task id and turn count so the decision is reproducible.
    """
    rng = random.Random(f"{task['id']}:{turn_count}")
    return rng.random() < continue_probability


def _strategy(phase, speaker, forced_action, prompt_context, model_tier="fast", task_id=None) -> Strategy:
    return {
        "phase": phase,
        "speaker": speaker,
        "forced_action": forced_action,
        "prompt_context": prompt_context,
        "model_tier": model_tier,
        "task_id": task_id,
    }


def _execution_strategy(task: Task, state: ProjectState, config: dict) -> Strategy:
    speaker = route_task(task)
    name = display_name(speaker)
    keep_going = should_continue_task(
        task, state["turn_count"], config.get("continue_probability", 0.6)
    )

    if not keep_going:
        return _strategy(
            "execution", speaker, "move_task",
            f"{name} has finished the task: \"{task['title']}\". Announce it is done and move "
            f"task {task['id']} to the 'done' column.",
            task_id=task["id"],
        )

    if speaker == INTERN:
        return _strategy(
            "execution", speaker, "generate_image",
            f"{name} is working on the active task: \"{task['title']}\". Generate an image "
            "asset for it. Provide a vivid, specific image prompt.",
            task_id=task["id"],
        )

    if speaker == COPYWRITER:
        context = (
            f"{name} is working on the active task: \"{task['title']}\". Rewrite the copy "
            "directly in the page and return the FULL updated HTML document."
        )
    else:
        context = (
            f"{name} is working on the active task: \"{task['title']}\". Write or update "
            "the code to implement this feature fully. Make it look amazing (GSAP, "
            "Tailwind). Return the FULL updated HTML document."
        )
    return _strategy("execution", speaker, "update_code", context, model_tier="coding", task_id=task["id"])


def determine_strategy(state: ProjectState, config: dict | None = None) -> Strategy:
    """Inspect project state and return the next actionable step.

    Priority order (first match wins):
    1. pending event → react to it (nobody forced)
    2. brief still short → product manager writes the PRD
    3. not enough moodboard images → art director generates one
    4. empty board → product manager plans the next build phase
    5. a task is doing → its owner keeps building or ships it
    6. todo has entries → its owner picks up the earliest one
    7. banter
    """
    config = config or get_config()

    if state.get("pending_event"):
        return _strategy(
            "event", None, None,
            f"URGENT EVENT: {state['pending_event']}. The team must react immediately.",
        )

    if len(state["brief"]) < config.get("brief_threshold", 200):
        return _strategy(
            "briefing", PRODUCT_MANAGER, "update_brief",
            "The brief is too short. Kevin needs to expand the raw prompt into a detailed "
            "PRD (goals, audience, sections, visual direction, tech constraints).",
            model_tier="standard",
        )

    images = sum(1 for item in state["moodboard"] if item["kind"] == "image")
    if (
        images < config.get("min_moodboard_images", 3)
        and state.get("image_requests", 0) < config.get("max_image_requests", 6)
    ):
        return _strategy(
            "ideation", ART_DIRECTOR, "generate_image",
            "We need visual direction before anyone writes code. Ramona generates a "
            "high-fashion abstract moodboard asset that matches the brief.",
        )

    todo = [t for t in state["tasks"] if t["status"] == "todo"]
    doing = [t for t in state["tasks"] if t["status"] == "doing"]

    if not todo and not doing:
        completed = sum(1 for t in state["tasks"] if t["status"] == "done")
        phase_name, phase_context = build_phase(completed)
        return _strategy(
            "planning", PRODUCT_MANAGER, "add_task",
            f"The board is empty. We are entering **{phase_name}**. Kevin adds 3-4 "
            f"specific technical tasks to the board (use actionPayload.titles). "
            f"Context: {phase_context}",
        )

    if doing:
        return _execution_strategy(doing[0], state, config)

    if todo:
        task = todo[0]
        speaker = route_task(task)
        return _strategy(
            "pickup", speaker, "move_task",
            f"{display_name(speaker)} picks up the next priority task: \"{task['title']}\". "
            f"Move task {task['id']} to 'doing' and announce the start.",
            task_id=task["id"],
        )

    return banter_strategy()


def banter_strategy() -> Strategy:
    """Unforced chatter: anyone speaks, nothing changes."""
    return _strategy("banter", None, "wait", "Casual workspace banter about the project.")
