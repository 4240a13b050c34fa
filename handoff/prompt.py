"""Handoff prompt assembly.

Section order:
1. Skill prefix (if enabled and present)
2. Handoff preamble (if enabled)
3. Context / relevant information
4. Key decisions
5. Open questions / risks
6. Relevant files
7. Relevant commands
8. Session metadata (if enabled)
9. Next goal (verbatim, always last)

Empty sections are omitted. The goal always terminates the document.
"""
from typing import Optional

from .config import HandoffConfig
from .metadata import SessionMetadata
from .schema import ExtractionOutput

HANDOFF_PREAMBLE = """\
# Handoff Context
You are continuing work from a previous thread. Use the context below and focus only on the goal at the bottom. Do not mention the handoff itself.
"""


def _bullet_section(title: str, items: list[str]) -> str:
    bullets = "\n".join(f"- {item}" for item in items)
    return f"## {title}\n{bullets}\n"


def has_relevant_metadata(metadata: SessionMetadata) -> bool:
    """Whether metadata has anything worth a Session Metadata section."""
    return bool(
        metadata.model
        or metadata.thinking_level
        or metadata.tools
        or (metadata.git and metadata.git.branch)
        or metadata.last_skill
    )


def _metadata_lines(metadata: SessionMetadata, config: HandoffConfig) -> list[str]:
    lines = []

    if metadata.model:
        model_line = f"- Model: {metadata.model}"
        if metadata.thinking_level:
            model_line += f" (thinking: {metadata.thinking_level})"
        lines.append(model_line)

    if metadata.tools:
        lines.append(f"- Tools: {', '.join(metadata.tools)}")

    if metadata.git and metadata.git.branch:
        dirty_flag = " (dirty)" if metadata.git.is_dirty else ""
        lines.append(f"- Git: {metadata.git.branch}{dirty_flag}")

    if config.include_skill and metadata.last_skill:
        lines.append(f"- Prior skill: /skill:{metadata.last_skill}")

    return lines


def assemble_handoff_prompt(extraction: ExtractionOutput, goal: str,
                            metadata: Optional[SessionMetadata],
                            config: HandoffConfig) -> str:
    """Render the handoff document.

    Args:
        extraction: Normalized extraction
        goal: The user's goal, reproduced exactly as given
        metadata: Session metadata, or None
        config: Section toggles

    Returns:
        The markdown document
    """
    sections = []

    if config.include_skill and metadata and metadata.last_skill:
        sections.append(f"/skill:{metadata.last_skill}\n")

    if config.include_handoff_preamble:
        sections.append(HANDOFF_PREAMBLE)

    if extraction.relevant_information:
        sections.append(_bullet_section("Context (from previous thread)", extraction.relevant_information))

    if extraction.decisions:
        sections.append(_bullet_section("Key Decisions", extraction.decisions))

    if extraction.open_questions:
        sections.append(_bullet_section("Open Questions / Risks", extraction.open_questions))

    if extraction.relevant_files:
        if config.include_file_reasons:
            file_lines = [f"{file.path} - {file.reason}" for file in extraction.relevant_files]
        else:
            file_lines = [file.path for file in extraction.relevant_files]
        sections.append(_bullet_section("Relevant Files", file_lines))

    if extraction.relevant_commands:
        sections.append(_bullet_section("Relevant Commands", extraction.relevant_commands))

    if config.include_metadata and metadata and has_relevant_metadata(metadata):
        lines = _metadata_lines(metadata, config)
        if lines:
            sections.append("## Session Metadata\n" + "\n".join(lines) + "\n")

    sections.append(f"## Next Goal (verbatim)\n{goal}\n")

    return "\n".join(sections)
