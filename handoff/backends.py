"""Model backends for handoff extraction.

Two ways to reach a Claude model, mirroring the auto-extract worker:
- API: Anthropic SDK (fast, requires ANTHROPIC_API_KEY)
- CLI: `claude -p` in non-interactive mode (uses the user's Claude Code login)

Every backend exposes the same coroutine:

    complete(system_prompt, messages, cancel_event) -> ModelResponse

and never raises for model-side failures; they come back as a response
with stop_reason "error". Cancellation comes back as stop_reason "aborted".
"""
import asyncio
import logging
import os
import shutil
from dataclasses import dataclass, field
from typing import Optional

import anthropic

from .cancellation import OperationCancelled, run_cancellable
from .config import HandoffConfig

logger = logging.getLogger("jarvis-handoff.backends")

DEFAULT_EXTRACTION_MODEL = "claude-haiku-4-5-20251001"
EXTRACTION_MAX_TOKENS = 4096
CLI_TIMEOUT = 120  # seconds; long sessions make for long prompts

# Set in the environment of spawned `claude -p` processes so Jarvis hooks
# running inside them can recognize the extraction call and stay quiet.
EXTRACTING_ENV_VAR = "JARVIS_HANDOFF_EXTRACTING"

BACKEND_MODES = ("auto", "api", "cli")

STOP = "stop"
ABORTED = "aborted"
ERROR = "error"


@dataclass
class ModelResponse:
    """One assistant reply (or the reason there isn't one)."""
    text: str = ""
    stop_reason: str = STOP
    error_message: Optional[str] = None
    content: list = field(default_factory=list)
    model: Optional[str] = None

    @classmethod
    def aborted(cls) -> "ModelResponse":
        return cls(stop_reason=ABORTED)

    @classmethod
    def failed(cls, message: str) -> "ModelResponse":
        return cls(stop_reason=ERROR, error_message=message)


def _message_text(message: dict) -> str:
    content = message.get("content", "")
    if isinstance(content, str):
        return content
    return "\n".join(
        block.get("text", "")
        for block in content
        if isinstance(block, dict) and block.get("type") == "text"
    )


def render_messages_for_cli(messages: list[dict]) -> str:
    """Flatten a message history into one prompt for `claude -p`.

    A single user message passes through unchanged. Longer histories
    (the retry) are laid out as labelled sections so the model still
    sees its own failed reply before the correction.
    """
    if len(messages) == 1:
        return _message_text(messages[0])

    sections = []
    for message in messages:
        label = "Your Previous Response" if message.get("role") == "assistant" else "User"
        sections.append(f"## {label}\n\n{_message_text(message)}")
    return "\n\n".join(sections)


class AnthropicBackend:
    """Extraction via the Anthropic Messages API."""

    name = "API"

    def __init__(self, model: str, api_key: Optional[str] = None,
                 client: Optional[anthropic.AsyncAnthropic] = None,
                 max_tokens: int = EXTRACTION_MAX_TOKENS):
        self.model = model
        self.max_tokens = max_tokens
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key or os.environ.get("ANTHROPIC_API_KEY"))
        return self._client

    async def complete(self, system_prompt: str, messages: list[dict],
                       cancel_event: Optional[asyncio.Event] = None) -> ModelResponse:
        try:
            response = await run_cancellable(
                self._get_client().messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=0,
                    system=system_prompt,
                    messages=messages,
                ),
                cancel_event,
            )
        except OperationCancelled:
            logger.info("Anthropic API call cancelled")
            return ModelResponse.aborted()
        except anthropic.AnthropicError as e:
            logger.warning(f"Anthropic API call failed: {e}")
            return ModelResponse.failed(str(e))

        content = [
            {"type": "text", "text": block.text}
            for block in response.content
            if getattr(block, "type", None) == "text"
        ]
        return ModelResponse(
            text="\n".join(block["text"] for block in content),
            content=content,
            model=getattr(response, "model", self.model),
        )


def _terminate(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass


class ClaudeCliBackend:
    """Extraction via the Claude Code CLI (`claude -p`)."""

    name = "CLI"

    def __init__(self, model: str, claude_bin: Optional[str] = None,
                 timeout: float = CLI_TIMEOUT):
        self.model = model
        self.claude_bin = claude_bin
        self.timeout = timeout

    async def complete(self, system_prompt: str, messages: list[dict],
                       cancel_event: Optional[asyncio.Event] = None) -> ModelResponse:
        if cancel_event is not None and cancel_event.is_set():
            return ModelResponse.aborted()

        claude_bin = self.claude_bin or shutil.which("claude")
        if not claude_bin:
            return ModelResponse.failed("claude binary not found on PATH")

        # --no-session-persistence keeps the spawned session from writing a
        # transcript of its own.
        env = os.environ.copy()
        env[EXTRACTING_ENV_VAR] = "1"

        try:
            proc = await asyncio.create_subprocess_exec(
                claude_bin, "-p",
                "--model", self.model,
                "--no-session-persistence",
                "--system-prompt", system_prompt,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            logger.error(f"Could not start Claude CLI: {e}")
            return ModelResponse.failed(f"Could not start Claude CLI: {e}")

        prompt = render_messages_for_cli(messages)
        try:
            stdout, stderr = await run_cancellable(
                asyncio.wait_for(proc.communicate(prompt.encode("utf-8")), self.timeout),
                cancel_event,
            )
        except OperationCancelled:
            _terminate(proc)
            await proc.wait()
            logger.info("Claude CLI call cancelled")
            return ModelResponse.aborted()
        except asyncio.TimeoutError:
            _terminate(proc)
            await proc.wait()
            logger.warning(f"Claude CLI timed out after {self.timeout}s")
            return ModelResponse.failed(f"Claude CLI timed out after {self.timeout}s")

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[:200]
            logger.warning(f"Claude CLI exited with code {proc.returncode}: {detail}")
            message = f"Claude CLI exited with code {proc.returncode}"
            return ModelResponse.failed(f"{message}: {detail}" if detail else message)

        text = stdout.decode("utf-8", errors="replace")
        return ModelResponse(
            text=text,
            content=[{"type": "text", "text": text}],
            model=self.model,
        )


def resolve_extraction_model(config: HandoffConfig,
                             current_model: Optional[str] = None) -> str:
    """Pick the model id used for extraction.

    The session's own model is used unless use_current_model is off and a
    `provider/model-id` override is configured. Overrides that are
    malformed or name a provider other than anthropic fall back to the
    session model.
    """
    fallback = current_model or DEFAULT_EXTRACTION_MODEL

    if config.use_current_model or not config.model:
        return fallback

    provider, _, model_id = config.model.partition("/")
    if not provider or not model_id:
        return fallback

    if provider != "anthropic":
        logger.warning(f"Handoff: Model {config.model} not available, using current model")
        return fallback

    return model_id


def backend_status() -> dict:
    """Report which extraction backends can run in this environment."""
    has_api_key = bool(os.environ.get("ANTHROPIC_API_KEY"))
    has_claude_cli = shutil.which("claude") is not None
    available = []
    if has_api_key:
        available.append("API")
    if has_claude_cli:
        available.append("CLI")
    return {
        "has_api_key": has_api_key,
        "has_claude_cli": has_claude_cli,
        "available_backends": available,
    }


def select_backend(mode: str, model: str):
    """Build the backend for a mode, or None if it can't run here.

    Modes:
        - "api": Anthropic SDK (requires ANTHROPIC_API_KEY)
        - "cli": Claude CLI (requires `claude` on PATH)
        - "auto": API when a key is set, otherwise CLI
    """
    if mode not in BACKEND_MODES:
        logger.error(f"Unknown backend mode '{mode}', valid modes: {', '.join(BACKEND_MODES)}")
        return None

    has_api_key = bool(os.environ.get("ANTHROPIC_API_KEY"))
    claude_bin = shutil.which("claude")

    if mode in ("api", "auto") and has_api_key:
        return AnthropicBackend(model)
    if mode in ("cli", "auto") and claude_bin:
        return ClaudeCliBackend(model, claude_bin=claude_bin)

    logger.warning(f"No extraction backend available for mode '{mode}'")
    return None
