"""Session metadata for the handoff document.

Git facts come from two read-only commands run in the project directory,
each bounded by GIT_TIMEOUT. Any git failure (not a repo, git missing,
timeout, cancellation) just means no git line in the document.
"""
import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from .cancellation import OperationCancelled, run_cancellable

logger = logging.getLogger("jarvis-handoff.metadata")

# Environment that disables git pager to prevent hanging on interactive prompts
GIT_ENV = {**os.environ, "GIT_PAGER": ""}

GIT_TIMEOUT = 5  # seconds


@dataclass(frozen=True)
class GitMetadata:
    """Branch and working-tree state. branch is None on detached HEAD."""
    branch: Optional[str]
    is_dirty: bool


@dataclass(frozen=True)
class SessionMetadata:
    """Facts about the session being handed off."""
    model: Optional[str] = None
    thinking_level: Optional[str] = None
    tools: Tuple[str, ...] = ()
    session_name: Optional[str] = None
    git: Optional[GitMetadata] = None
    last_skill: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "model": self.model,
            "thinking_level": self.thinking_level,
            "tools": list(self.tools),
            "session_name": self.session_name,
            "git": {"branch": self.git.branch, "is_dirty": self.git.is_dirty} if self.git else None,
            "last_skill": self.last_skill,
        }


def parse_git_branch(output: str, exit_code: Optional[int]) -> Optional[str]:
    """Parse `git rev-parse --abbrev-ref HEAD` output.

    Returns:
        Branch name, or None outside a repo or on detached HEAD
    """
    if exit_code != 0:
        return None

    branch = output.strip()
    if not branch or branch == "HEAD":
        return None
    return branch


def parse_git_dirty(output: str, exit_code: Optional[int]) -> bool:
    """Parse `git status --porcelain` output; any entry means dirty."""
    if exit_code != 0:
        return False
    return bool(output.strip())


async def run_git(args: list[str], cwd: str, timeout: float = GIT_TIMEOUT,
                  cancel_event: Optional[asyncio.Event] = None) -> Tuple[Optional[int], str]:
    """Run a git command in `cwd`.

    Returns:
        Tuple of (exit_code, stdout). exit_code is None when the command
        could not run to completion.

    Raises:
        OperationCancelled: cancel_event was set
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            "git", *args,
            cwd=cwd,
            env=GIT_ENV,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.debug(f"Could not run git: {e}")
        return None, ""

    try:
        stdout, _ = await run_cancellable(
            asyncio.wait_for(proc.communicate(), timeout), cancel_event)
    except (OperationCancelled, asyncio.TimeoutError) as e:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        if isinstance(e, OperationCancelled):
            raise
        logger.error(f"Git command timed out: git {' '.join(args)}")
        return None, ""

    return proc.returncode, stdout.decode("utf-8", errors="replace")


async def collect_git_metadata(cwd: str,
                               cancel_event: Optional[asyncio.Event] = None) -> Optional[GitMetadata]:
    """Collect branch and dirty state for the repository at `cwd`.

    Returns:
        GitMetadata, or None when `cwd` is not a git repo or git is unavailable
    """
    try:
        code, output = await run_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd,
                                     cancel_event=cancel_event)
        branch = parse_git_branch(output, code)
        if branch is None and code != 0:
            return None

        code, output = await run_git(["status", "--porcelain"], cwd,
                                     cancel_event=cancel_event)
        return GitMetadata(branch=branch, is_dirty=parse_git_dirty(output, code))
    except OperationCancelled:
        logger.info("Git metadata collection cancelled")
        return None


async def collect_session_metadata(model: Optional[str] = None,
                                   thinking_level: Optional[str] = None,
                                   tools: Optional[list[str]] = None,
                                   session_name: Optional[str] = None,
                                   last_skill: Optional[str] = None,
                                   cwd: Optional[str] = None,
                                   cancel_event: Optional[asyncio.Event] = None) -> SessionMetadata:
    """Build SessionMetadata, collecting git state when `cwd` is given."""
    git = None
    if cwd:
        git = await collect_git_metadata(cwd, cancel_event=cancel_event)

    return SessionMetadata(
        model=model or None,
        thinking_level=thinking_level or None,
        tools=tuple(tools or ()),
        session_name=session_name or None,
        git=git,
        last_skill=last_skill or None,
    )
