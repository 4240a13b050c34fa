"""Pytest fixtures for Jarvis Handoff tests."""
import json
import os
from pathlib import Path

import pytest


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Empty project directory (no settings file, not a git repo)."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def settings(project_dir: Path):
    """Helper to write the project's .jarvis/settings.json."""

    class SettingsHelper:
        def __init__(self):
            self.cwd = str(project_dir)
            self.path = project_dir / ".jarvis" / "settings.json"

        def set(self, **kwargs):
            """Update keys in the `handoff` section."""
            data = json.loads(self.path.read_text()) if self.path.exists() else {}
            data.setdefault("handoff", {}).update(kwargs)
            self.write_raw(json.dumps(data))

        def write_raw(self, text: str):
            """Write the settings file verbatim (for corrupt-file tests)."""
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(text)

        def delete_file(self):
            if self.path.exists():
                self.path.unlink()

    return SettingsHelper()


@pytest.fixture
def git_repo(project_dir: Path) -> Path:
    """Project directory initialized as a git repo on branch feature/handoff."""
    os.system(f"cd {project_dir} && git init -q")
    os.system(f'cd {project_dir} && git config user.email "test@example.com"')
    os.system(f'cd {project_dir} && git config user.name "Test User"')

    readme = project_dir / "README.md"
    readme.write_text("# Test project\n")
    os.system(f'cd {project_dir} && git add README.md && git commit -q -m "Initial commit"')
    os.system(f"cd {project_dir} && git checkout -q -b feature/handoff")

    return project_dir


def user_entry(text, **extra) -> dict:
    entry = {"type": "user", "message": {"role": "user", "content": text}}
    entry.update(extra)
    return entry


def assistant_entry(text="", tool_uses=(), model="claude-sonnet-4-5-20250929") -> dict:
    content = []
    if text:
        content.append({"type": "text", "text": text})
    for name, tool_input in tool_uses:
        content.append({"type": "tool_use", "id": f"toolu_{name}", "name": name, "input": tool_input})
    return {"type": "assistant", "message": {"role": "assistant", "model": model, "content": content}}


def tool_result_entry(text: str) -> dict:
    return {
        "type": "user",
        "message": {
            "role": "user",
            "content": [{"type": "tool_result", "tool_use_id": "toolu_x", "content": text}],
        },
    }


@pytest.fixture
def entries():
    """Builders for transcript entries."""

    class Entries:
        user = staticmethod(user_entry)
        assistant = staticmethod(assistant_entry)
        tool_result = staticmethod(tool_result_entry)

    return Entries()


@pytest.fixture
def sample_entries() -> list:
    """A short coding session touching handoff/parser.py."""
    return [
        {"type": "summary", "summary": "Parser hardening"},
        user_entry("Fix the JSON recovery in handoff/parser.py so fenced output parses.",
                   thinkingMetadata={"level": "high", "disabled": False}),
        assistant_entry(
            "Looking at the parser first.",
            tool_uses=[("Read", {"file_path": "handoff/parser.py"})],
        ),
        tool_result_entry("def extract_json_from_text(text): ..."),
        assistant_entry(
            "The fence regex is too strict. Running the tests.",
            tool_uses=[("Bash", {"command": "pytest tests/test_parser.py"})],
        ),
        tool_result_entry("4 passed"),
        assistant_entry("Fence handling fixed; tests pass."),
    ]


@pytest.fixture
def write_transcript(tmp_path: Path):
    """Write a list of entries as a JSONL transcript and return its path."""

    def _write(transcript_entries, name="session.jsonl", extra_lines=()):
        path = tmp_path / name
        lines = [json.dumps(entry) for entry in transcript_entries]
        lines.extend(extra_lines)
        path.write_text("\n".join(lines) + "\n")
        return str(path)

    return _write


@pytest.fixture
def fake_backend():
    """Factory for a backend that replays scripted ModelResponses and records calls."""
    from handoff.backends import ModelResponse

    class FakeBackend:
        name = "Fake"

        def __init__(self, responses):
            self.responses = list(responses)
            self.calls = []

        async def complete(self, system_prompt, messages, cancel_event=None):
            self.calls.append({"system_prompt": system_prompt, "messages": list(messages)})
            if not self.responses:
                return ModelResponse.failed("no scripted response left")
            response = self.responses.pop(0)
            if isinstance(response, str):
                return ModelResponse(text=response, content=[{"type": "text", "text": response}])
            return response

    return FakeBackend


@pytest.fixture
def no_backends(monkeypatch):
    """Environment with neither an API key nor a claude binary."""
    import shutil

    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.setattr(shutil, "which", lambda name: None)
