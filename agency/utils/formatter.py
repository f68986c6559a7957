"""Output Formatter — writes the session's artifacts: the built page and a transcript."""

from pathlib import Path

from agency.characters import display_name
from agency.config import get_config
from agency.state import ProjectState


def render_transcript(state: ProjectState) -> str:
    """Render the brief, board, moodboard and chat log as Markdown."""
    lines = ["# Agency Session Transcript", ""]

    lines.append("## Brief")
    lines.append("")
    lines.append(state["brief"])
    lines.append("")

    # Board
    if state["tasks"]:
        lines.append("## Board")
        lines.append("")
        lines.append("| ID | Status | Title | Assignee |")
        lines.append("|----|--------|-------|----------|")
        for task in state["tasks"]:
            title = task["title"].replace("|", "\\|")
            assignee = display_name(task["assignee"]) if task.get("assignee") else ""
            lines.append(f"| `{task['id']}` | {task['status']} | {title} | {assignee} |")
        lines.append("")

    # Moodboard: images are data URIs, so only count them
    if state["moodboard"]:
        images = sum(1 for item in state["moodboard"] if item["kind"] == "image")
        lines.append("## Moodboard")
        lines.append("")
        lines.append(f"- {images} generated image(s)")
        for item in state["moodboard"]:
            if item["kind"] != "image":
                lines.append(f"- **{item['kind']}**: {item['content']}")
        lines.append("")

    lines.append("## Chat")
    lines.append("")
    for message in state["messages"]:
        emotion = f" *({message['emotion']})*" if message.get("emotion") else ""
        lines.append(f"- **{display_name(message['speaker_id'])}**: {message['text']}{emotion}")
    lines.append("")

    lines.append(f"*{state['turn_count']} turns, {len(state['code'])} chars of code.*")
    lines.append("")
    return "\n".join(lines)


def write_artifacts(state: ProjectState, output_dir: str | None = None) -> Path:
    """Write index.html and transcript.md into the output directory. Returns the directory."""
    config = get_config()
    directory = Path(output_dir or config.get("output_dir", "./output"))
    directory.mkdir(parents=True, exist_ok=True)

    (directory / "index.html").write_text(state["code"], encoding="utf-8")
    (directory / "transcript.md").write_text(render_transcript(state), encoding="utf-8")
    return directory
