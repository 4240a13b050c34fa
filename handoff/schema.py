"""Extraction output schema: the JSON object the model must return."""
from pydantic import BaseModel, Field, StrictStr


class RelevantFile(BaseModel):
    """A file the next session should know about."""
    path: StrictStr = Field(description="File path relative to project root")
    reason: StrictStr = Field(description="Why this file is relevant to the handoff")


class ExtractionOutput(BaseModel):
    """Structured context extracted from a conversation.

    Wire keys are camelCase (what the model emits); construct with the
    camelCase names and read through the snake_case attributes.
    """
    relevant_files: list[RelevantFile] = Field(
        alias="relevantFiles", description="Files relevant to the next task")
    relevant_commands: list[StrictStr] = Field(
        alias="relevantCommands", description="Commands that were run or should be run")
    relevant_information: list[StrictStr] = Field(
        alias="relevantInformation", description="Key context facts for the next thread")
    decisions: list[StrictStr] = Field(
        description="Important decisions made during the session")
    open_questions: list[StrictStr] = Field(
        alias="openQuestions", description="Unresolved questions or risks")

    def to_dict(self) -> dict:
        """Serialize with the wire (camelCase) keys."""
        return self.model_dump(by_alias=True)


def empty_extraction() -> ExtractionOutput:
    """An extraction with every list empty."""
    return ExtractionOutput(
        relevantFiles=[],
        relevantCommands=[],
        relevantInformation=[],
        decisions=[],
        openQuestions=[],
    )
