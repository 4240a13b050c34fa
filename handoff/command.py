"""End-to-end handoff: transcript + goal -> handoff document.

Shared by the MCP server and the command-line handler. Returns
{"success": bool, ...} dicts and never raises for pipeline failures.

Flow:
1. Load config from the project settings file
2. Validate goal (before any model call)
3. Read and serialize the transcript
4. Collect session metadata (model, tools, skill, git)
5. Resolve extraction model and backend
6. Extract (one call, at most one retry)
7. Assemble the document
"""
import asyncio
import logging
import os
from typing import Callable, Optional

from .backends import resolve_extraction_model, select_backend
from .config import HandoffConfig, load_config, validate_goal
from .extraction import ExtractionOrchestrator
from .metadata import collect_session_metadata
from .prompt import assemble_handoff_prompt
from .transcript import (
    collect_tool_names,
    detect_session_model,
    detect_thinking_level,
    find_last_skill,
    find_session_name,
    read_transcript,
    serialize_conversation,
)

logger = logging.getLogger("jarvis-handoff.command")

MODEL_PROVIDER = "anthropic"


async def run_handoff(goal: str,
                      transcript_path: Optional[str] = None,
                      cwd: Optional[str] = None,
                      mode: str = "auto",
                      backend=None,
                      config: Optional[HandoffConfig] = None,
                      on_phase: Optional[Callable[[str], None]] = None,
                      cancel_event: Optional[asyncio.Event] = None) -> dict:
    """Generate a handoff document for a session transcript.

    Args:
        goal: What the next session should accomplish
        transcript_path: Claude Code transcript (JSONL)
        cwd: Project directory (settings file and git state); defaults to os.getcwd()
        mode: Backend mode ("auto", "api", "cli") when `backend` is not given
        backend: Explicit backend, bypassing mode selection
        config: Explicit config, bypassing the settings file
        on_phase: Progress callback; only used when show_progress_phases is on
        cancel_event: Cancels in-flight model and git calls when set

    Returns:
        {"success": True, "prompt", "retried", "model", "backend", "metadata"}
        or {"success": False, "error", "cancelled"}
    """
    cwd = cwd or os.getcwd()
    config = config or load_config(cwd)

    goal_validation = validate_goal(goal, config.min_goal_length)
    if not goal_validation.valid:
        return {"success": False, "error": goal_validation.error, "cancelled": False}

    entries = read_transcript(transcript_path) if transcript_path else []
    conversation_text = serialize_conversation(entries)
    if not conversation_text:
        return {"success": False, "error": "No conversation to hand off.", "cancelled": False}

    session_model = detect_session_model(entries)
    metadata = await collect_session_metadata(
        model=f"{MODEL_PROVIDER}/{session_model}" if session_model else None,
        thinking_level=detect_thinking_level(entries),
        tools=collect_tool_names(entries),
        session_name=find_session_name(entries),
        last_skill=find_last_skill(entries),
        cwd=cwd,
        cancel_event=cancel_event,
    )

    extraction_model = resolve_extraction_model(config, session_model)
    if backend is None:
        backend = select_backend(mode, extraction_model)
    if backend is None:
        return {"success": False, "error": "No model available for extraction.", "cancelled": False}

    backend_name = getattr(backend, "name", type(backend).__name__)
    logger.info(f"Extracting handoff context with {extraction_model} via {backend_name}")
    orchestrator = ExtractionOrchestrator(
        backend,
        config,
        on_phase=on_phase if config.show_progress_phases else None,
        cancel_event=cancel_event,
    )
    result = await orchestrator.run(conversation_text, goal)

    if not result.success:
        logger.warning(f"Handoff extraction failed: {result.error}")
        return {
            "success": False,
            "error": result.error or "Failed to generate handoff context",
            "cancelled": result.cancelled,
        }

    prompt = assemble_handoff_prompt(result.extraction, goal, metadata, config)
    return {
        "success": True,
        "prompt": prompt,
        "retried": result.retried,
        "model": extraction_model,
        "backend": backend_name,
        "metadata": metadata.to_dict(),
    }
