"""Claude Code transcript reading and serialization.

Transcripts are JSONL files, one entry per line. Entries of type "user"
and "assistant" carry the conversation; "summary" entries name the
session; "system", "progress" and "file-history-snapshot" are skipped.

Everything the handoff needs from the session (conversation text, model,
tools, last skill, thinking level) is derived here from the transcript
and handed to the pipeline by value.
"""
import json
import logging
import re
from collections import deque
from typing import Optional

logger = logging.getLogger("jarvis-handoff.transcript")

# Most recent entries kept when a transcript is very long
MAX_TRANSCRIPT_LINES = 5000

_SKIP_TYPES = ("system", "progress", "file-history-snapshot")
_TOOL_INPUT_PREVIEW = 200
_TOOL_RESULT_PREVIEW = 500
_SKILL_COMMAND_RE = re.compile(r"^/skill:(\S+)")
_SKILL_TOOL = "Skill"
_THINKING_OFF = ("none", "off")


def truncate(text: str, max_chars: int) -> str:
    """Truncate text to max_chars with ellipsis if needed."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def read_transcript(transcript_path: str, max_lines: int = MAX_TRANSCRIPT_LINES) -> list[dict]:
    """Read transcript entries, keeping the last `max_lines` valid ones.

    Blank and malformed lines are skipped. An unreadable file yields [].
    """
    entries = deque(maxlen=max_lines)
    try:
        with open(transcript_path, encoding="utf-8") as f:
            for line in f:
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    entry = json.loads(stripped)
                except (json.JSONDecodeError, ValueError):
                    continue
                if isinstance(entry, dict):
                    entries.append(entry)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read transcript {transcript_path}: {e}")
        return []
    return list(entries)


def _message(entry: dict) -> dict:
    message = entry.get("message")
    return message if isinstance(message, dict) else {}


def _content_blocks(entry: dict) -> list:
    content = _message(entry).get("content", [])
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    if isinstance(content, list):
        return [block for block in content if isinstance(block, dict)]
    return []


def _block_text(blocks: list) -> str:
    return "\n".join(
        block.get("text", "") for block in blocks if block.get("type") == "text"
    ).strip()


def _tool_result_text(block: dict) -> str:
    content = block.get("content", "")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return _block_text([b for b in content if isinstance(b, dict)])
    return json.dumps(content, default=str)


def _conversation_entries(entries: list[dict]):
    for entry in entries:
        if entry.get("type") in _SKIP_TYPES or entry.get("isMeta"):
            continue
        if entry.get("type") in ("user", "assistant"):
            yield entry


def serialize_conversation(entries: list[dict]) -> str:
    """Render transcript entries as plain text for the extraction prompt.

    Format, one block per item, blocks separated by blank lines:
        USER: ...
        ASSISTANT: ...
        TOOL CALL: Name({...input...})
        TOOL RESULT: ...
    """
    parts = []

    for entry in _conversation_entries(entries):
        blocks = _content_blocks(entry)
        text = _block_text(blocks)

        if entry["type"] == "user":
            if text:
                parts.append(f"USER: {text}")
            for block in blocks:
                if block.get("type") == "tool_result":
                    preview = truncate(_tool_result_text(block), _TOOL_RESULT_PREVIEW)
                    parts.append(f"TOOL RESULT: {preview}")
            continue

        if text:
            parts.append(f"ASSISTANT: {text}")
        for block in blocks:
            if block.get("type") == "tool_use":
                tool_input = truncate(json.dumps(block.get("input", {}), default=str), _TOOL_INPUT_PREVIEW)
                parts.append(f"TOOL CALL: {block.get('name', 'unknown')}({tool_input})")

    return "\n\n".join(parts)


def detect_session_model(entries: list[dict]) -> Optional[str]:
    """Model id of the most recent assistant message."""
    for entry in reversed(entries):
        if entry.get("type") != "assistant":
            continue
        model = _message(entry).get("model")
        # Synthetic assistant messages (e.g. interrupted turns) carry "<synthetic>"
        if isinstance(model, str) and model and not model.startswith("<"):
            return model
    return None


def collect_tool_names(entries: list[dict]) -> list[str]:
    """Unique tool names used in the session, in first-use order."""
    seen = set()
    tools = []
    for entry in _conversation_entries(entries):
        if entry["type"] != "assistant":
            continue
        for block in _content_blocks(entry):
            if block.get("type") != "tool_use":
                continue
            name = block.get("name", "")
            if name and name not in seen:
                seen.add(name)
                tools.append(name)
    return tools


def find_last_skill(entries: list[dict]) -> Optional[str]:
    """Name of the last skill used, from `/skill:<name>` input or a Skill tool call."""
    last_skill = None
    for entry in _conversation_entries(entries):
        blocks = _content_blocks(entry)
        if entry["type"] == "user":
            match = _SKILL_COMMAND_RE.match(_block_text(blocks))
            if match:
                last_skill = match.group(1)
            continue

        for block in blocks:
            if block.get("type") != "tool_use" or block.get("name") != _SKILL_TOOL:
                continue
            tool_input = block.get("input", {})
            if not isinstance(tool_input, dict):
                continue
            name = tool_input.get("skill") or tool_input.get("command")
            if isinstance(name, str) and name.strip():
                last_skill = name.strip()
    return last_skill


def find_session_name(entries: list[dict]) -> Optional[str]:
    """Title from the most recent summary entry."""
    for entry in reversed(entries):
        if entry.get("type") == "summary":
            summary = entry.get("summary")
            if isinstance(summary, str) and summary.strip():
                return summary.strip()
    return None


def detect_thinking_level(entries: list[dict]) -> Optional[str]:
    """Thinking level of the most recent user turn, None when off."""
    for entry in reversed(entries):
        if entry.get("type") != "user":
            continue
        thinking = entry.get("thinkingMetadata")
        if not isinstance(thinking, dict):
            continue
        level = thinking.get("level")
        if thinking.get("disabled") or not isinstance(level, str) or level.lower() in _THINKING_OFF:
            return None
        return level
    return None
