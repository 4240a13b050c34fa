"""Tests for handoff config loading and goal validation."""
import dataclasses

import pytest

from handoff.config import (
    DEFAULT_CONFIG,
    SETTINGS_KEYS,
    HandoffConfig,
    config_to_settings,
    get_settings_path,
    load_config,
    merge_config,
    read_settings_file,
    validate_goal,
)


# ──────────────────────────────────────────────
# TestMergeConfig
# ──────────────────────────────────────────────


class TestMergeConfig:
    """Tests for merge_config(): settings overlay onto defaults."""

    def test_defaults(self):
        """No overrides yields the documented defaults."""
        config = merge_config(None)
        assert config.max_files == 20
        assert config.max_commands == 10
        assert config.max_information_items == 12
        assert config.max_decision_items == 8
        assert config.max_open_questions == 6
        assert config.min_goal_length == 12
        assert config.include_metadata is True
        assert config.include_skill is True
        assert config.include_file_reasons is True
        assert config.include_handoff_preamble is True
        assert config.use_current_model is True
        assert config.model is None
        assert config.show_progress_phases is True
        assert config.validate_files is True

    def test_known_key_applied(self):
        """Known camelCase keys override the matching attribute."""
        config = merge_config({"maxFiles": 3, "includeMetadata": False})
        assert config.max_files == 3
        assert config.include_metadata is False
        assert config.max_commands == 10

    def test_unknown_keys_ignored(self):
        """Keys outside the known set never change anything."""
        config = merge_config({"maxFiles": 5, "bogusKey": 1, "max_files": 99})
        assert config.max_files == 5
        assert not hasattr(config, "bogusKey")

    def test_null_value_keeps_default(self):
        """A null value is treated as absent."""
        config = merge_config({"maxFiles": None, "model": None})
        assert config.max_files == 20
        assert config.model is None

    def test_non_dict_overrides(self):
        """A non-object `handoff` section yields defaults."""
        assert merge_config(["maxFiles", 3]) == DEFAULT_CONFIG
        assert merge_config("maxFiles") == DEFAULT_CONFIG

    def test_returns_fresh_config_without_mutating_defaults(self):
        """Overrides never leak into DEFAULT_CONFIG."""
        merge_config({"maxFiles": 1})
        assert DEFAULT_CONFIG.max_files == 20

    def test_config_is_frozen(self):
        """HandoffConfig instances are immutable."""
        config = HandoffConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.max_files = 1  # type: ignore[misc]


# ──────────────────────────────────────────────
# TestLoadConfig
# ──────────────────────────────────────────────


class TestLoadConfig:
    """Tests for load_config() / read_settings_file() against a project dir."""

    def test_settings_path(self, project_dir):
        """Settings live at <cwd>/.jarvis/settings.json."""
        assert get_settings_path(str(project_dir)) == project_dir / ".jarvis" / "settings.json"

    def test_missing_file_uses_defaults(self, settings):
        """No settings file means defaults."""
        assert read_settings_file(settings.cwd) is None
        assert load_config(settings.cwd) == DEFAULT_CONFIG

    def test_reads_handoff_section(self, settings):
        """Values under `handoff` are applied."""
        settings.set(maxCommands=2, validateFiles=False, model="anthropic/claude-sonnet-4-5")
        config = load_config(settings.cwd)
        assert config.max_commands == 2
        assert config.validate_files is False
        assert config.model == "anthropic/claude-sonnet-4-5"

    def test_corrupt_json_uses_defaults(self, settings):
        """Unparseable settings never crash, they fall back to defaults."""
        settings.write_raw("{not json")
        assert load_config(settings.cwd) == DEFAULT_CONFIG

    def test_non_object_root_uses_defaults(self, settings):
        """A settings file whose root isn't an object is ignored."""
        settings.write_raw("[1, 2, 3]")
        assert load_config(settings.cwd) == DEFAULT_CONFIG

    def test_non_object_section_uses_defaults(self, settings):
        """`handoff` must be an object to be read."""
        settings.write_raw('{"handoff": "maxFiles=3"}')
        assert read_settings_file(settings.cwd) is None

    def test_other_sections_ignored(self, settings):
        """Only the `handoff` section is read."""
        settings.write_raw('{"memory": {"maxFiles": 1}, "handoff": {"maxFiles": 4}}')
        assert load_config(settings.cwd).max_files == 4


class TestConfigToSettings:
    """Tests for config_to_settings()."""

    def test_round_trips_known_keys(self):
        """Every settings key is rendered back with its value."""
        rendered = config_to_settings(merge_config({"maxOpenQuestions": 2}))
        assert set(rendered) == set(SETTINGS_KEYS)
        assert rendered["maxOpenQuestions"] == 2
        assert rendered["model"] is None


# ──────────────────────────────────────────────
# TestValidateGoal
# ──────────────────────────────────────────────


class TestValidateGoal:
    """Tests for validate_goal(): gate before any model call."""

    def test_empty_goal(self):
        """Empty or whitespace goal is required."""
        for goal in ("", "   ", "\n\t"):
            result = validate_goal(goal, 12)
            assert result.valid is False
            assert result.error.startswith("Goal is required")

    def test_vague_goal(self):
        """Vague phrases are rejected, case-insensitively, with the goal quoted."""
        result = validate_goal("  Continue ", 12)
        assert result.valid is False
        assert result.error.startswith('"Continue" is too vague')
        assert "Example:" in result.error

    def test_vague_wins_over_short(self):
        """A short vague goal reports vagueness, not length."""
        result = validate_goal("next", 12)
        assert "too vague" in result.error
        assert "too short" not in result.error

    def test_short_goal(self):
        """Goals under min_length report both lengths."""
        result = validate_goal("fix tests", 12)
        assert result.valid is False
        assert result.error == (
            "Goal is too short (9 chars, minimum 12). "
            "Be more specific about what should be accomplished."
        )

    def test_length_measured_after_trim(self):
        """Surrounding whitespace doesn't count toward length."""
        assert validate_goal("   fix tests   ", 12).valid is False
        assert validate_goal("   fix the tests   ", 12).valid is True

    def test_valid_goal(self):
        """A specific goal passes with no error."""
        result = validate_goal("implement team-level handoff and update tests", 12)
        assert result.valid is True
        assert result.error is None

    def test_vague_phrase_inside_longer_goal_is_fine(self):
        """Only an exact vague phrase is rejected."""
        assert validate_goal("continue the parser refactor in handoff/parser.py", 12).valid is True

    def test_custom_min_length(self):
        """min_length comes from config."""
        assert validate_goal("fix tests", 5).valid is True
