"""Tests for the extraction output schema."""
import pytest
from pydantic import ValidationError

from handoff.schema import ExtractionOutput, RelevantFile, empty_extraction


def wire(**overrides) -> dict:
    data = {
        "relevantFiles": [{"path": "handoff/parser.py", "reason": "JSON recovery"}],
        "relevantCommands": ["pytest tests/"],
        "relevantInformation": ["Fences may omit the json tag"],
        "decisions": ["Keep greedy brace matching"],
        "openQuestions": ["Handle nested fences?"],
    }
    data.update(overrides)
    return data


class TestExtractionOutput:
    """Tests for ExtractionOutput validation."""

    def test_valid_wire_object(self):
        """camelCase wire keys map to snake_case attributes."""
        output = ExtractionOutput.model_validate(wire())
        assert output.relevant_files == [RelevantFile(path="handoff/parser.py", reason="JSON recovery")]
        assert output.relevant_commands == ["pytest tests/"]
        assert output.relevant_information == ["Fences may omit the json tag"]
        assert output.decisions == ["Keep greedy brace matching"]
        assert output.open_questions == ["Handle nested fences?"]

    def test_missing_key_rejected(self):
        """All five keys are required."""
        data = wire()
        del data["openQuestions"]
        with pytest.raises(ValidationError):
            ExtractionOutput.model_validate(data)

    def test_number_not_coerced_to_string(self):
        """Strings must be real strings."""
        with pytest.raises(ValidationError):
            ExtractionOutput.model_validate(wire(relevantCommands=[42]))

    def test_file_requires_reason(self):
        """relevantFiles entries need both path and reason."""
        with pytest.raises(ValidationError):
            ExtractionOutput.model_validate(wire(relevantFiles=[{"path": "a.py"}]))

    def test_extra_keys_ignored(self):
        """Unknown keys don't fail validation."""
        output = ExtractionOutput.model_validate(wire(summary="ignored"))
        assert "summary" not in output.to_dict()

    def test_to_dict_uses_wire_keys(self):
        """to_dict() emits camelCase keys."""
        assert ExtractionOutput.model_validate(wire()).to_dict() == wire()

    def test_empty_extraction(self):
        """empty_extraction() has every list empty."""
        assert empty_extraction().to_dict() == {
            "relevantFiles": [],
            "relevantCommands": [],
            "relevantInformation": [],
            "decisions": [],
            "openQuestions": [],
        }
