#!/usr/bin/env python3
"""
Jarvis Handoff MCP Server

Local stdio MCP server that turns the current Claude Code session into a
focused "new thread" prompt: the model extracts relevant files, commands,
context, decisions and open questions for a stated goal, and the result is
assembled into an editable markdown handoff document.

Tools:
- handoff_generate: Build the handoff document for a transcript + goal
- handoff_validate_goal: Check a goal before generating
- handoff_get_config: Show resolved handoff settings and backend availability
"""
import asyncio
import inspect
import json
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from handoff.backends import BACKEND_MODES, backend_status
from handoff.command import run_handoff
from handoff.config import config_to_settings, get_settings_path, load_config, validate_goal

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("jarvis-handoff")

server = Server("handoff")

# Default backend mode when a tool call doesn't name one
BACKEND_ENV_VAR = "JARVIS_HANDOFF_BACKEND"

TOOLS = [
    Tool(
        name="handoff_generate",
        description=(
            "Generate a handoff prompt for continuing the current session's work in a new "
            "session. Extracts relevant files, commands, context, decisions and open questions "
            "for the goal and returns an editable markdown document ending with the goal."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "goal": {
                    "type": "string",
                    "description": "What the next session should accomplish (specific, not 'continue').",
                },
                "transcript_path": {
                    "type": "string",
                    "description": "Path to the session transcript (JSONL).",
                },
                "cwd": {
                    "type": "string",
                    "description": "Project directory for settings and git state (default: server cwd).",
                },
                "backend": {
                    "type": "string",
                    "enum": list(BACKEND_MODES),
                    "description": "Extraction backend: api (Anthropic SDK), cli (claude -p), or auto.",
                },
            },
            "required": ["goal", "transcript_path"],
        },
    ),
    Tool(
        name="handoff_validate_goal",
        description="Check whether a handoff goal is specific enough before generating.",
        inputSchema={
            "type": "object",
            "properties": {
                "goal": {"type": "string", "description": "Goal text to validate."},
                "cwd": {"type": "string", "description": "Project directory (for minGoalLength)."},
            },
            "required": ["goal"],
        },
    ),
    Tool(
        name="handoff_get_config",
        description="Show resolved handoff settings for a project and which extraction backends are available.",
        inputSchema={
            "type": "object",
            "properties": {
                "cwd": {"type": "string", "description": "Project directory (default: server cwd)."},
            },
        },
    ),
]


async def handle_generate(args: dict) -> dict:
    """Handle handoff_generate."""
    goal = args.get("goal", "")
    transcript_path = args.get("transcript_path", "")
    if not transcript_path:
        return {"success": False, "error": "transcript_path is required"}

    mode = args.get("backend") or os.environ.get(BACKEND_ENV_VAR, "auto")
    return await run_handoff(
        goal,
        transcript_path=os.path.expanduser(transcript_path),
        cwd=args.get("cwd") or os.getcwd(),
        mode=mode,
    )


def handle_validate_goal(args: dict) -> dict:
    """Handle handoff_validate_goal."""
    config = load_config(args.get("cwd") or os.getcwd())
    validation = validate_goal(args.get("goal", ""), config.min_goal_length)
    result = {"success": True, "valid": validation.valid}
    if validation.error:
        result["error"] = validation.error
    return result


def handle_get_config(args: dict) -> dict:
    """Handle handoff_get_config."""
    cwd = args.get("cwd") or os.getcwd()
    settings_path = get_settings_path(cwd)
    return {
        "success": True,
        "settings_path": str(settings_path),
        "settings_exists": settings_path.exists(),
        "config": config_to_settings(load_config(cwd)),
        "backend_mode": os.environ.get(BACKEND_ENV_VAR, "auto"),
        **backend_status(),
    }


HANDLERS = {
    "handoff_generate": handle_generate,
    "handoff_validate_goal": handle_validate_goal,
    "handoff_get_config": handle_get_config,
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    return TOOLS


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    logger.info(f"Tool: {name}, args: {sorted((arguments or {}).keys())}")

    try:
        handler = HANDLERS.get(name)
        if handler:
            result = handler(arguments or {})
            if inspect.isawaitable(result):
                result = await result
        else:
            result = {"success": False, "error": f"Unknown tool: {name}"}

        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)
        return [TextContent(type="text", text=json.dumps({"success": False, "error": str(e)}))]


async def main():
    logger.info("Starting Jarvis Handoff MCP Server")
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main_sync():
    """Synchronous entry point for uvx/pip scripts."""
    asyncio.run(main())


if __name__ == "__main__":
    main_sync()
