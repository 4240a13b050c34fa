"""Extraction quality scoring against a labelled dataset.

Each dataset case (one JSON object per line) looks like:

    {
      "id": "case-001",
      "goal": "...",
      "conversation_file": "conversations/case-001.txt",
      "expected_files": ["src/a.py", ...],
      "expected_context": ["fact the extraction should carry", ...],
      "pass_criteria": {
        "files_coverage": 0.8,
        "context_coverage": 0.5,
        "no_hallucinated_files": true,
        "no_completed_tasks_in_context": true
      }
    }

Scoring is keyword based; there is no semantic similarity.
"""
import re
import time

# Phrasing that signals a work-history dump instead of forward-looking context
HISTORY_PATTERNS = (
    re.compile(r"we (implemented|added|created|built|completed)", re.IGNORECASE),
    re.compile(r"was (implemented|added|created|completed)", re.IGNORECASE),
    re.compile(r"the following (was|were) (done|completed|implemented)", re.IGNORECASE),
)

# Keywords shorter than this are ignored when matching expected context
_MIN_KEYWORD_CHARS = 5
_KEYWORD_MATCH_RATIO = 0.5


def _basename(path: str) -> str:
    return path.split("/")[-1]


def find_hallucinated_files(paths: list[str], conversation_text: str) -> list[str]:
    """Paths whose full path and filename are both absent from the conversation."""
    lower_conversation = conversation_text.lower()
    hallucinated = []
    for path in paths:
        lower_path = path.lower()
        filename = _basename(lower_path)
        if lower_path in lower_conversation:
            continue
        if filename and filename in lower_conversation:
            continue
        hallucinated.append(path)
    return hallucinated


def _context_found(expected: str, info_text: str) -> bool:
    keywords = [word for word in expected.lower().split() if len(word) >= _MIN_KEYWORD_CHARS]
    if not keywords:
        return False
    found = sum(1 for keyword in keywords if keyword in info_text)
    return found / len(keywords) > _KEYWORD_MATCH_RATIO


def evaluate_extraction(case: dict, extraction: dict, conversation_text: str) -> dict:
    """Score one extraction (wire-format dict) against a dataset case.

    Returns:
        Dict with id, goal, scores, pass and a critique string
    """
    criteria = case.get("pass_criteria", {})
    expected_files = case.get("expected_files", [])
    expected_context = case.get("expected_context", [])
    critiques = []

    got_paths = [f.get("path", "") for f in extraction.get("relevantFiles", [])]
    got_basenames = {_basename(p) for p in got_paths}
    files_found = [
        f for f in expected_files
        if f in got_paths or _basename(f) in got_basenames
    ]
    files_coverage = len(files_found) / len(expected_files) if expected_files else 1.0
    min_files_coverage = criteria.get("files_coverage", 0.0)
    if files_coverage < min_files_coverage:
        missing = [f for f in expected_files if f not in files_found]
        critiques.append(
            f"File coverage {files_coverage * 100:.0f}% < {min_files_coverage * 100:.0f}%. "
            f"Missing: {', '.join(missing)}"
        )

    hallucinated = find_hallucinated_files(got_paths, conversation_text)
    if hallucinated and criteria.get("no_hallucinated_files"):
        critiques.append(f"Hallucinated files: {', '.join(hallucinated)}")

    info_text = " ".join(extraction.get("relevantInformation", [])).lower()
    context_found = [c for c in expected_context if _context_found(c, info_text)]
    context_missing = [c for c in expected_context if c not in context_found]
    context_coverage = len(context_found) / len(expected_context) if expected_context else 1.0
    min_context_coverage = criteria.get("context_coverage", 0.0)
    if context_coverage < min_context_coverage:
        critiques.append(
            f"Context coverage {context_coverage * 100:.0f}% < {min_context_coverage * 100:.0f}%. "
            f"Missing: {'; '.join(context_missing)}"
        )

    all_info = " ".join(extraction.get("relevantInformation", []))
    has_history_dump = any(pattern.search(all_info) for pattern in HISTORY_PATTERNS)
    if has_history_dump and criteria.get("no_completed_tasks_in_context"):
        critiques.append("Contains history dump pattern (lists completed work)")

    passed = (
        files_coverage >= min_files_coverage
        and (not hallucinated or not criteria.get("no_hallucinated_files"))
        and context_coverage >= min_context_coverage
        and (not has_history_dump or not criteria.get("no_completed_tasks_in_context"))
    )

    return {
        "id": case.get("id", ""),
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "goal": case.get("goal", ""),
        "extraction": extraction,
        "scores": {
            "files_coverage": files_coverage,
            "context_coverage": context_coverage,
            "context_found": context_found,
            "context_missing": context_missing,
            "hallucinated_files": hallucinated,
            "has_history_dump": has_history_dump,
        },
        "pass": passed,
        "critique": "\n".join(critiques) if critiques else "All checks passed",
    }
