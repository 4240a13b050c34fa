"""Handoff extraction: one model call, at most one corrective retry.

Attempt loop (MAX_ATTEMPTS = 2):

    BUILD_PROMPT -> CALL_MODEL -> parse ok?      -> normalize -> done
                                  parse failed?  -> RETRY (replay request +
                                                    failed reply + JSON-only
                                                    reminder) -> CALL_MODEL
                                                 -> parse ok? -> done
                                                 -> terminal parse failure

Cancellation and model errors end the run immediately; only parse or
schema failures earn the retry.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .backends import ABORTED, ERROR
from .config import HandoffConfig
from .parser import normalize_extraction, parse_extraction_response
from .schema import ExtractionOutput

logger = logging.getLogger("jarvis-handoff.extraction")

MAX_ATTEMPTS = 2

EXTRACTION_PHASES = (
    "Analyzing conversation...",
    "Extracting relevant context...",
    "Assembling handoff prompt...",
)
RETRY_PHASE = "Retrying extraction..."

EXTRACTION_SYSTEM_PROMPT = """\
You are a context extraction assistant. Your task is to analyze a conversation and extract the most relevant context for continuing work in a new thread.

Given the conversation history and the user's goal for the next thread, extract:
1. **relevantFiles**: Files that were ACTUALLY MENTIONED in the conversation that are relevant to the goal. Include a brief reason for each.
2. **relevantCommands**: Commands that were run and may need to be run again
3. **relevantInformation**: Key context for accomplishing the goal
4. **decisions**: Important decisions made during the conversation
5. **openQuestions**: Unresolved questions, risks, or blockers

## Output Format

Respond with ONLY a valid JSON object in this exact format:

```json
{
  "relevantFiles": [
    { "path": "path/to/file.py", "reason": "Brief reason why this file matters" }
  ],
  "relevantCommands": ["pytest tests/", "git status"],
  "relevantInformation": [
    "Key fact or context point",
    "Another important detail"
  ],
  "decisions": [
    "Decision that was made and why"
  ],
  "openQuestions": [
    "Question that remains unanswered"
  ]
}
```

## What to Extract

**relevantInformation** - Focus on:
- Project conventions learned (e.g., "Config defaults live in one dataclass")
- Runtime behaviors discovered (e.g., "The MCP server must be restarted to pick up changes")
- Gotchas that could trip up the next agent (e.g., "Tests must run from the repo root")
- Technical constraints or requirements
- Key findings from exploration

**relevantFiles** - Only include files that:
- Were EXPLICITLY MENTIONED in the conversation (by path or filename)
- Are directly related to accomplishing the goal
- Contain patterns to follow or will need to be modified

## What NOT to Extract

- Completed tasks or work history ("We implemented X, then Y, then Z")
- Obvious actions the agent will do anyway (running tests, building, linting)
- Generic observations that don't help the specific goal
- Files that were NOT mentioned in the conversation (do not invent paths)

## Guidelines

- Be GOAL-FOCUSED: extract what helps accomplish the user's stated goal
- Be FUTURE-ORIENTED: what does the NEXT agent need to know?
- Be CONCISE: one line per entry, no fluff
- ONLY include files that were actually discussed - never invent file paths
- If a category has no relevant items, use an empty array
- Do NOT include any text outside the JSON block
- Do NOT explain your reasoning - just output the JSON"""

EXTRACTION_RETRY_PROMPT = """\
Your previous response was not valid JSON. Please output ONLY a valid JSON object with this structure:

{
  "relevantFiles": [{ "path": "string", "reason": "string" }],
  "relevantCommands": ["string"],
  "relevantInformation": ["string"],
  "decisions": ["string"],
  "openQuestions": ["string"]
}

No explanations, no markdown, no text before or after - ONLY the JSON object."""


def build_extraction_user_message(conversation_text: str, goal: str) -> str:
    """Build the user message for the extraction call."""
    return (
        "## Conversation History\n\n"
        f"{conversation_text}\n\n"
        "## User's Goal for New Thread\n\n"
        f"{goal}\n\n"
        "Extract the relevant context for this goal and output ONLY the JSON object."
    )


@dataclass
class ExtractionResult:
    """Outcome of an extraction run."""
    success: bool
    extraction: Optional[ExtractionOutput] = None
    error: Optional[str] = None
    retried: bool = False
    cancelled: bool = False


class ExtractionOrchestrator:
    """Drives the extraction call and its single retry.

    Args:
        backend: Object with `complete(system_prompt, messages, cancel_event)`
        config: Handoff config (caps and file validation for normalization)
        on_phase: Optional callback receiving progress phase labels
        cancel_event: Optional event; once set, no further model calls are made
    """

    def __init__(self, backend, config: HandoffConfig,
                 on_phase: Optional[Callable[[str], None]] = None,
                 cancel_event: Optional[asyncio.Event] = None):
        self.backend = backend
        self.config = config
        self.on_phase = on_phase
        self.cancel_event = cancel_event

    def _phase(self, label: str) -> None:
        if self.on_phase is not None:
            self.on_phase(label)

    async def run(self, conversation_text: str, goal: str) -> ExtractionResult:
        self._phase(EXTRACTION_PHASES[0])
        messages = [{
            "role": "user",
            "content": [{"type": "text", "text": build_extraction_user_message(conversation_text, goal)}],
        }]
        parse_error = None

        for attempt in range(MAX_ATTEMPTS):
            retried = attempt > 0
            self._phase(RETRY_PHASE if retried else EXTRACTION_PHASES[1])

            if self.cancel_event is not None and self.cancel_event.is_set():
                return ExtractionResult(success=False, error="Cancelled",
                                        retried=retried, cancelled=True)

            response = await self.backend.complete(
                EXTRACTION_SYSTEM_PROMPT, messages, self.cancel_event)

            if response.stop_reason == ABORTED:
                return ExtractionResult(success=False, error="Cancelled",
                                        retried=retried, cancelled=True)

            if response.stop_reason == ERROR:
                default = "LLM error on retry" if retried else "LLM error"
                return ExtractionResult(success=False,
                                        error=response.error_message or default,
                                        retried=retried)

            self._phase(EXTRACTION_PHASES[2])
            result = parse_extraction_response(response.text)
            if result.success:
                normalized = normalize_extraction(result.data, self.config, conversation_text)
                return ExtractionResult(success=True, extraction=normalized, retried=retried)

            parse_error = result.error
            logger.info(f"Extraction attempt {attempt + 1} unparseable: {parse_error}")
            replay = response.content or [{"type": "text", "text": response.text or "(empty response)"}]
            messages = messages + [
                {"role": "assistant", "content": replay},
                {"role": "user", "content": [{"type": "text", "text": EXTRACTION_RETRY_PROMPT}]},
            ]

        return ExtractionResult(
            success=False,
            error=f"Failed to parse extraction after retry: {parse_error}",
            retried=True,
        )
