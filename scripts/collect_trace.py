#!/usr/bin/env python3
"""Turn a Claude Code session transcript into an eval trace.

Usage:
    python3 scripts/collect_trace.py <transcript.jsonl> <goal> [--id CASE_ID] [--evals-dir DIR]

Writes the serialized conversation to <evals-dir>/conversations/<id>.txt and a
trace summary to <evals-dir>/traces/<id>.json, then prints a dataset entry
template to paste into dataset.jsonl once the expected_* fields are edited.
"""
import json
import re
import sys
import time
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from handoff.transcript import (
    collect_tool_names,
    detect_session_model,
    find_session_name,
    read_transcript,
    serialize_conversation,
)

DEFAULT_EVALS_DIR = PROJECT_ROOT / "evals"
MAX_MENTIONED_FILES = 50
PREVIEW_CHARS = 500

_FILE_MENTION_RE = re.compile(r"[\w\-./]+\.(?:py|ts|tsx|js|jsx|json|md|toml|yaml|yml|rs|go|rb|sh)\b")


def find_mentioned_files(conversation_text: str) -> list[str]:
    """File-like tokens in the conversation, unique, in first-mention order."""
    seen = set()
    files = []
    for match in _FILE_MENTION_RE.finditer(conversation_text):
        path = match.group(0)
        if path not in seen:
            seen.add(path)
            files.append(path)
    return files[:MAX_MENTIONED_FILES]


def session_length(user_messages: int) -> str:
    if user_messages > 30:
        return "long"
    if user_messages > 10:
        return "medium"
    return "short"


def build_trace(entries: list[dict], transcript_path: str, goal: str, case_id: str,
                conversation_text: str) -> dict:
    user_messages = sum(1 for e in entries if e.get("type") == "user" and not e.get("isMeta"))
    assistant_messages = sum(1 for e in entries if e.get("type") == "assistant")
    return {
        "trace_id": case_id,
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S"),
        "session_file": transcript_path,
        "goal": goal,
        "metadata": {
            "session_name": find_session_name(entries),
            "model": detect_session_model(entries),
            "tools": collect_tool_names(entries),
            "user_messages": user_messages,
            "assistant_messages": assistant_messages,
            "mentioned_files": find_mentioned_files(conversation_text),
        },
        "conversation_length": len(conversation_text),
        "conversation_preview": conversation_text[:PREVIEW_CHARS],
    }


def dataset_entry_template(trace: dict, conversation_file: str) -> dict:
    """Dataset case skeleton; expected_* fields still need a human pass."""
    metadata = trace["metadata"]
    return {
        "id": trace["trace_id"],
        "session_length": session_length(metadata["user_messages"]),
        "goal": trace["goal"],
        "conversation_file": conversation_file,
        "expected_files": metadata["mentioned_files"][:5],
        "expected_context": [],
        "pass_criteria": {
            "files_coverage": 0.8,
            "context_coverage": 0.7,
            "no_hallucinated_files": True,
            "no_completed_tasks_in_context": True,
        },
    }


def collect_trace(transcript_path: str, goal: str, case_id: str, evals_dir: Path) -> dict:
    """Write the conversation and trace files and return the dataset template.

    Raises:
        ValueError: If the transcript holds no conversation
    """
    entries = read_transcript(transcript_path)
    conversation_text = serialize_conversation(entries)
    if not conversation_text:
        raise ValueError(f"No conversation found in {transcript_path}")

    conversation_file = f"conversations/{case_id}.txt"
    conversation_path = evals_dir / conversation_file
    conversation_path.parent.mkdir(parents=True, exist_ok=True)
    conversation_path.write_text(conversation_text, encoding="utf-8")

    trace = build_trace(entries, transcript_path, goal, case_id, conversation_text)
    trace_path = evals_dir / "traces" / f"{case_id}.json"
    trace_path.parent.mkdir(parents=True, exist_ok=True)
    trace_path.write_text(json.dumps(trace, indent=2), encoding="utf-8")

    print(f"Saved conversation to: {conversation_path}")
    print(f"Saved trace to: {trace_path}")
    return dataset_entry_template(trace, conversation_file)


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Collect a handoff eval trace from a session transcript")
    parser.add_argument("transcript", help="Session transcript JSONL path")
    parser.add_argument("goal", help="Goal the handoff should serve")
    parser.add_argument("--id", dest="case_id", default=None, help="Case id (default: handoff_<timestamp>)")
    parser.add_argument("--evals-dir", default=str(DEFAULT_EVALS_DIR), help="Evals directory")
    args = parser.parse_args()

    if not Path(args.transcript).is_file():
        print(f"Transcript not found: {args.transcript}", file=sys.stderr)
        sys.exit(1)

    case_id = args.case_id or f"handoff_{int(time.time())}"
    try:
        entry = collect_trace(args.transcript, args.goal, case_id, Path(args.evals_dir))
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    print("\n--- Dataset Entry Template ---\n")
    print(json.dumps(entry))
    print("\nEdit expected_files and expected_context, then append it to dataset.jsonl")


if __name__ == "__main__":
    main()
