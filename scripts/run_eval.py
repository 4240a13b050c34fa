#!/usr/bin/env python3
"""Run handoff extraction evaluation over a labelled dataset.

Usage:
    python3 scripts/run_eval.py [--smoke | --full] [--dataset PATH] [--backend auto|api|cli]

--smoke (default) runs the first 5 cases; --full runs all of them.
Results are written as JSONL next to the dataset.
"""
import asyncio
import json
import sys
import time
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from handoff.backends import BACKEND_MODES, DEFAULT_EXTRACTION_MODEL, select_backend
from handoff.config import DEFAULT_CONFIG
from handoff.evaluation import evaluate_extraction
from handoff.extraction import ExtractionOrchestrator

DEFAULT_DATASET = PROJECT_ROOT / "evals" / "dataset.jsonl"
SMOKE_CASES = 5


def load_dataset(path: Path) -> list[dict]:
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def load_conversation(dataset_path: Path, case: dict) -> str | None:
    conversation_path = dataset_path.parent / case.get("conversation_file", "")
    if not conversation_path.is_file():
        return None
    return conversation_path.read_text(encoding="utf-8")


async def run_case(backend, case: dict, conversation_text: str) -> dict:
    orchestrator = ExtractionOrchestrator(backend, DEFAULT_CONFIG)
    result = await orchestrator.run(conversation_text, case.get("goal", ""))
    if not result.success:
        return {
            "id": case.get("id", ""),
            "goal": case.get("goal", ""),
            "extraction": None,
            "pass": False,
            "critique": f"Extraction failed: {result.error}",
        }
    return evaluate_extraction(case, result.extraction.to_dict(), conversation_text)


async def run_cases(backend, dataset_path: Path, cases: list[dict]) -> list[dict]:
    """Run cases in order on the caller's event loop."""
    results = []
    for case in cases:
        conversation_text = load_conversation(dataset_path, case)
        if conversation_text is None:
            print(f"  SKIP {case.get('id', '?')}: conversation file not found")
            continue
        result = await run_case(backend, case, conversation_text)
        results.append(result)
        status = "PASS" if result["pass"] else "FAIL"
        print(f"  {status} {result['id']}")
        if not result["pass"]:
            for line in result["critique"].splitlines():
                print(f"       {line}")
    return results


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Handoff extraction eval runner")
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument("--smoke", action="store_true", help=f"Run the first {SMOKE_CASES} cases (default)")
    scope.add_argument("--full", action="store_true", help="Run every case")
    parser.add_argument("--dataset", default=str(DEFAULT_DATASET), help="Dataset JSONL path")
    parser.add_argument("--backend", default="auto", choices=BACKEND_MODES)
    parser.add_argument("--model", default=DEFAULT_EXTRACTION_MODEL)
    args = parser.parse_args()

    dataset_path = Path(args.dataset)
    if not dataset_path.is_file():
        print(f"Dataset not found: {dataset_path}", file=sys.stderr)
        sys.exit(1)

    backend = select_backend(args.backend, args.model)
    if backend is None:
        print("No extraction backend available (set ANTHROPIC_API_KEY or install claude)", file=sys.stderr)
        sys.exit(1)

    dataset = load_dataset(dataset_path)
    cases = dataset if args.full else dataset[:SMOKE_CASES]
    print(f"\nHandoff Eval Runner ({'full' if args.full else 'smoke'} mode)")
    print("=" * 50)
    print(f"Running {len(cases)} test cases...\n")

    results = asyncio.run(run_cases(backend, dataset_path, cases))

    passed = sum(1 for r in results if r["pass"])
    print("\n" + "=" * 50)
    print(f"Passed {passed}/{len(results)}")

    results_path = dataset_path.parent / f"results-{time.strftime('%Y%m%dT%H%M%S')}.jsonl"
    with open(results_path, "w", encoding="utf-8") as f:
        for result in results:
            f.write(json.dumps(result, default=str) + "\n")
    print(f"Results written to {results_path}")


if __name__ == "__main__":
    main()
