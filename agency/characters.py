"""The cast of the agency, plus the fixed starting material of a session.

Persona text is injected verbatim into the director's system prompt, so it is
written for LLM consumption rather than for humans.
"""

PRODUCT_MANAGER = "kevin"
ART_DIRECTOR = "ramona"
ENGINEER = "rich"
COPYWRITER = "nonsense"
INTERN = "marc"
NARRATOR = "system"

CHARACTERS = {
    PRODUCT_MANAGER: {
        "name": "Kevin",
        "role": "Head of Product",
        "bio": (
            'Deeply anxious about "scope creep". Speaks in corporate metaphors. Obsessed '
            "with the Kanban board. His superpower is turning a 1-sentence prompt into a "
            'detailed PRD. Always prioritizes "MVP" but secretly wants to be cool.'
        ),
    },
    ART_DIRECTOR: {
        "name": "Ramona",
        "role": "Art Director",
        "bio": (
            'Avant-garde visionary. Hates "user friendly" if it means "ugly". Finds '
            "inspiration in brutalism, print design, and 90s anime. Will not let Rich code "
            "until the vibe is correct. Demands at least 3 mockups before a single div is "
            "rendered."
        ),
    },
    ENGINEER: {
        "name": "Rich",
        "role": "Design Engineer",
        "bio": (
            "A god-tier creative developer. Obsessed with WebGL, shaders, and frame rates. "
            'Writes code that looks like poetry. Thinks React is "too heavy". Believes a '
            "website is never finished, only abandoned. Constantly iterating."
        ),
    },
    COPYWRITER: {
        "name": "0xNonSense",
        "role": "Growth Hacker",
        "bio": (
            'Terminally online. Obsessed with "dopamine loops" and "narrative". Speaks '
            "entirely in internet slang. Writes copy that converts."
        ),
    },
    INTERN: {
        "name": "Marc",
        "role": "Intern",
        "bio": (
            "Trying his best. Uses AI for everything. Generates weird images. Just happy "
            'to be here. The designated "Mockup Generator".'
        ),
    },
    NARRATOR: {
        "name": "System",
        "role": "OS",
        "bio": "The Agency Operating System.",
    },
}

EMOTIONS = ("happy", "angry", "celebrate", "confused", "tired", "working")

# Task-title keywords that route work away from the engineer.
COPY_KEYWORDS = ("copy", "headline", "tagline", "wording", "text", "slogan", "microcopy")
VISUAL_KEYWORDS = ("image", "visual", "asset", "mockup", "illustration", "photo", "texture")

INITIAL_CODE = """\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>The Agency Workspace</title>
    <script src="https://cdn.tailwindcss.com"></script>
</head>
<body class="bg-neutral-950 text-neutral-200 flex items-center justify-center h-screen">
    <div class="uppercase tracking-widest text-xs opacity-40 animate-pulse">Waiting for Rich to cook...</div>
</body>
</html>
"""

DEFAULT_PROMPTS = [
    "A brutalist, monochromatic portfolio for a fashion house called 'VOID' that uses "
    "large typography and scroll-triggered reveals.",
    "A retro-futuristic dashboard for a space mining corp called 'HELION'. Neon oranges, "
    "grid lines, and data visualization.",
    "An ethereal, calming landing page for a meditation app called 'OOM'. Soft gradients, "
    "blur effects, and floating elements.",
    "A high-energy, glitch-art promotional site for a cyberpunk rave called 'NEURO-DANCE'. "
    "Strobe effects and aggressive typography.",
    "A clean, swiss-style layout for an architectural firm. Grid-based, heavy use of "
    "whitespace, and smooth page transitions.",
]

PRESET_EVENTS = {
    "client_rage": "CLIENT EMAIL: 'This looks too boring! Make it POP! I want animations everywhere!'",
    "viral_trend": "TREND ALERT: Neumorphism is back? The team needs to debate this.",
    "server_crash": "CRITICAL: The dev server just crashed. Rich needs to fix the config.",
    "pivot": "STRATEGY CHANGE: The client wants to pivot from B2B to D2C immediately.",
}


def display_name(character_id: str) -> str:
    """Return the display name for a character id, or the id itself if unknown."""
    return CHARACTERS.get(character_id, {}).get("name", character_id)


def render_cast() -> str:
    """Render the cast as a prompt-ready bullet list (narrator excluded)."""
    lines = []
    for cid, info in CHARACTERS.items():
        if cid == NARRATOR:
            continue
        lines.append(f"- **{info['name']}** (id: `{cid}`, {info['role']}): {info['bio']}")
    return "\n".join(lines)
