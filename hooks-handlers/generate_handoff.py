#!/usr/bin/env python3
"""Handoff command: turn the current session into a new-thread prompt.

Usage: python3 generate_handoff.py <mcp_server_dir> <mode> <transcript_path> <goal...>

Invoked by the /handoff command with the session transcript. The goal is
everything after the transcript path, joined with spaces. The generated
document goes to stdout so the caller can place it in the editor;
progress phases (when showProgressPhases is on) and errors go to stderr.

Exit codes:
    0  document printed
    1  usage error, invalid goal, no backend, extraction failure
    130 cancelled (Ctrl-C)
"""
import asyncio
import os
import sys

EXIT_CANCELLED = 130


def print_phase(phase: str) -> None:
    print(f"[handoff] {phase}", file=sys.stderr, flush=True)


async def _run(goal: str, transcript_path: str, mode: str) -> dict:
    from handoff.command import run_handoff

    cancel_event = asyncio.Event()
    task = asyncio.ensure_future(run_handoff(
        goal,
        transcript_path=transcript_path,
        cwd=os.getcwd(),
        mode=mode,
        on_phase=print_phase,
        cancel_event=cancel_event,
    ))
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        # Let the pipeline kill its subprocesses and report a cancelled result
        cancel_event.set()
        return await task


def main():
    # Args: <mcp_server_dir> <mode> <transcript_path> <goal...>
    if len(sys.argv) < 5:
        print("Usage: generate_handoff.py <mcp_server_dir> <mode> <transcript_path> <goal...>", file=sys.stderr)
        sys.exit(1)

    mcp_server_dir = sys.argv[1]
    mode = sys.argv[2]
    transcript_path = sys.argv[3]
    goal = " ".join(sys.argv[4:]).strip()
    sys.path.insert(0, mcp_server_dir)

    try:
        result = asyncio.run(_run(goal, transcript_path, mode))
    except KeyboardInterrupt:
        print("Handoff cancelled", file=sys.stderr)
        sys.exit(EXIT_CANCELLED)

    if not result.get("success"):
        print(result.get("error", "Handoff failed"), file=sys.stderr)
        sys.exit(EXIT_CANCELLED if result.get("cancelled") else 1)

    if result.get("retried"):
        print_phase("Extraction needed a retry")
    print(result["prompt"])


if __name__ == "__main__":
    main()
