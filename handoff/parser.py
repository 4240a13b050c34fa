"""Model response parsing and extraction normalization.

Parsing recovers a JSON object from free-form model text and validates it
against ExtractionOutput. Normalization then cleans the validated output:

1. Strip `@` prefixes from file paths and dedupe files by path
2. Drop files never mentioned in the conversation (when validate_files is on)
3. Drop blank entries, dedupe commands
4. Cap every list to its configured maximum

Filtering and dedup always run before capping, so caps apply to the
cleaned lists.
"""
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError

from .config import HandoffConfig
from .schema import ExtractionOutput, RelevantFile

logger = logging.getLogger("jarvis-handoff.parser")

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

# Number of schema errors reported back in a failed ParseResult
_MAX_REPORTED_ERRORS = 3


@dataclass
class ParseResult:
    """Outcome of parsing a model response."""
    success: bool
    data: Optional[ExtractionOutput] = None
    error: Optional[str] = None


def _try_json(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None


def extract_json_from_text(text: str) -> Any:
    """Recover a JSON value from text that may wrap it in prose or fences.

    Strategies, first success wins:
    1. Content of the first markdown code block (``` or ```json)
    2. The span from the first `{` to the last `}`
    3. The whole text, trimmed

    Returns:
        The parsed JSON value, or None if nothing parsed
    """
    block = _CODE_BLOCK_RE.search(text)
    if block:
        parsed = _try_json(block.group(1).strip())
        if parsed is not None:
            return parsed

    span = _JSON_OBJECT_RE.search(text)
    if span:
        parsed = _try_json(span.group(0))
        if parsed is not None:
            return parsed

    return _try_json(text.strip())


def _format_error_path(loc: tuple) -> str:
    return "/" + "/".join(str(part) for part in loc)


def parse_extraction_response(text: str) -> ParseResult:
    """Parse a model response and validate it against the extraction schema."""
    parsed = extract_json_from_text(text)

    if parsed is None:
        return ParseResult(
            success=False,
            error="Could not extract valid JSON from response",
        )

    try:
        data = ExtractionOutput.model_validate(parsed)
    except ValidationError as e:
        messages = [
            f"{_format_error_path(err['loc'])}: {err['msg']}"
            for err in e.errors(include_url=False)[:_MAX_REPORTED_ERRORS]
        ]
        return ParseResult(
            success=False,
            error=f"Schema validation failed: {'; '.join(messages)}",
        )

    return ParseResult(success=True, data=data)


def validate_files_against_conversation(files: list[RelevantFile],
                                        conversation_text: str) -> list[RelevantFile]:
    """Keep only files the conversation actually mentions.

    A file survives when its full path, or just its filename (last `/`
    segment), appears in the conversation. Matching is case-insensitive.
    The filename fallback can admit a same-named file from a different
    directory.

    Args:
        files: Files extracted by the model
        conversation_text: The serialized conversation

    Returns:
        Files mentioned in the conversation, in original order
    """
    lower_conversation = conversation_text.lower()
    kept = []

    for file in files:
        path = file.path.lower()
        if path in lower_conversation:
            kept.append(file)
            continue

        filename = path.split("/")[-1]
        if filename and filename in lower_conversation:
            kept.append(file)
            continue

        logger.debug(f"Dropping file not mentioned in conversation: {file.path}")

    return kept


def _non_blank(items: list[str]) -> list[str]:
    return [item for item in items if item.strip()]


def _dedupe(items: list[str]) -> list[str]:
    seen = set()
    unique = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def normalize_extraction(extraction: ExtractionOutput, config: HandoffConfig,
                         conversation_text: Optional[str] = None) -> ExtractionOutput:
    """Dedupe, filter and cap an extraction.

    Deterministic, and a fixed point: normalizing an already-normalized
    extraction with the same config returns it unchanged.

    Every leading `@` is stripped from file paths, not just the first one,
    so `@@a.py` and `a.py` collapse and a second pass has nothing to strip.
    Paths left blank after stripping are dropped.

    Args:
        extraction: Validated model output
        config: Caps and the validate_files toggle
        conversation_text: Conversation to check file mentions against

    Returns:
        A new, normalized ExtractionOutput
    """
    seen_paths = set()
    files = []
    for file in extraction.relevant_files:
        path = file.path.lstrip("@")
        if not path.strip() or path in seen_paths:
            continue
        seen_paths.add(path)
        files.append(RelevantFile(path=path, reason=file.reason))

    if config.validate_files and conversation_text:
        files = validate_files_against_conversation(files, conversation_text)

    return ExtractionOutput(
        relevantFiles=files[:config.max_files],
        relevantCommands=_dedupe(_non_blank(extraction.relevant_commands))[:config.max_commands],
        relevantInformation=_non_blank(extraction.relevant_information)[:config.max_information_items],
        decisions=_non_blank(extraction.decisions)[:config.max_decision_items],
        openQuestions=_non_blank(extraction.open_questions)[:config.max_open_questions],
    )
