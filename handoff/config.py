"""Handoff configuration loader and goal validation.

Settings live in a project-local `.jarvis/settings.json` under the
`handoff` key. Only the keys listed in SETTINGS_KEYS are ever read;
anything else in the file is ignored so a corrupt or stale settings
file can never change pipeline behavior or crash it.
"""
import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

logger = logging.getLogger("jarvis-handoff.config")

SETTINGS_DIR = ".jarvis"
SETTINGS_FILE = "settings.json"
SETTINGS_SECTION = "handoff"


@dataclass(frozen=True)
class HandoffConfig:
    """Resolved handoff options for a single invocation."""
    max_files: int = 20
    max_commands: int = 10
    max_information_items: int = 12
    max_decision_items: int = 8
    max_open_questions: int = 6
    min_goal_length: int = 12
    include_metadata: bool = True
    include_skill: bool = True
    include_file_reasons: bool = True
    include_handoff_preamble: bool = True
    use_current_model: bool = True
    model: Optional[str] = None  # "provider/model-id", used when use_current_model is off
    show_progress_phases: bool = True
    validate_files: bool = True


DEFAULT_CONFIG = HandoffConfig()

# Settings file key -> HandoffConfig attribute
SETTINGS_KEYS = {
    "maxFiles": "max_files",
    "maxCommands": "max_commands",
    "maxInformationItems": "max_information_items",
    "maxDecisionItems": "max_decision_items",
    "maxOpenQuestions": "max_open_questions",
    "minGoalLength": "min_goal_length",
    "includeMetadata": "include_metadata",
    "includeSkill": "include_skill",
    "includeFileReasons": "include_file_reasons",
    "includeHandoffPreamble": "include_handoff_preamble",
    "useCurrentModel": "use_current_model",
    "model": "model",
    "showProgressPhases": "show_progress_phases",
    "validateFiles": "validate_files",
}


def merge_config(overrides: Optional[dict] = None) -> HandoffConfig:
    """Overlay settings-file overrides onto the defaults.

    Only known keys are applied, and only when their value is not null.
    Values are not type-checked; callers own correct usage.

    Args:
        overrides: The raw `handoff` object from the settings file (or None)

    Returns:
        A fresh HandoffConfig
    """
    if not isinstance(overrides, dict):
        return DEFAULT_CONFIG

    values = {}
    for key, attribute in SETTINGS_KEYS.items():
        if key in overrides and overrides[key] is not None:
            values[attribute] = overrides[key]

    return replace(DEFAULT_CONFIG, **values)


def get_settings_path(cwd: str) -> Path:
    """Path to the project-local settings file."""
    return Path(cwd) / SETTINGS_DIR / SETTINGS_FILE


def read_settings_file(cwd: str) -> Optional[dict]:
    """Read the `handoff` section from the project settings file.

    Returns:
        The handoff dict, or None if the file is missing, unreadable,
        not valid JSON, or has no object under `handoff`.
    """
    settings_path = get_settings_path(cwd)
    if not settings_path.exists():
        return None

    try:
        with open(settings_path, encoding="utf-8") as f:
            settings = json.load(f)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError, ValueError) as e:
        logger.debug(f"Ignoring unreadable settings file {settings_path}: {e}")
        return None

    if not isinstance(settings, dict):
        return None

    section = settings.get(SETTINGS_SECTION)
    if isinstance(section, dict):
        return section
    return None


def load_config(cwd: str) -> HandoffConfig:
    """Load handoff config for a project directory, merged with defaults."""
    return merge_config(read_settings_file(cwd))


def config_to_settings(config: HandoffConfig) -> dict:
    """Render a config back into settings-file keys (for display)."""
    return {key: getattr(config, attribute) for key, attribute in SETTINGS_KEYS.items()}


# --- Goal validation ---

VAGUE_GOALS = frozenset({
    "continue",
    "keep going",
    "more",
    "next",
    "proceed",
    "go on",
    "resume",
    "carry on",
})


@dataclass(frozen=True)
class GoalValidation:
    """Result of validating a handoff goal."""
    valid: bool
    error: Optional[str] = None


def validate_goal(goal: str, min_length: int) -> GoalValidation:
    """Validate the user's goal for the next session.

    Checks run in order and the first failure wins. A short vague goal
    reports vagueness rather than length.

    Args:
        goal: Goal text as typed by the user
        min_length: Minimum length after trimming

    Returns:
        GoalValidation with an error message when invalid
    """
    trimmed = goal.strip()

    if not trimmed:
        return GoalValidation(
            valid=False,
            error="Goal is required. What should the next thread accomplish?",
        )

    if trimmed.lower() in VAGUE_GOALS:
        return GoalValidation(
            valid=False,
            error=(
                f'"{trimmed}" is too vague. Be specific: what should the next thread '
                'accomplish? Example: "implement team-level handoff, update tests, document API."'
            ),
        )

    if len(trimmed) < min_length:
        return GoalValidation(
            valid=False,
            error=(
                f"Goal is too short ({len(trimmed)} chars, minimum {min_length}). "
                "Be more specific about what should be accomplished."
            ),
        )

    return GoalValidation(valid=True)
