"""
Main entry point for the PD classification service.

Usage:
    python main.py serve                         # Start the FastAPI service
    python main.py evaluate <payload.json>       # Offline evaluation, prints the result JSON
    python main.py prompts                       # List prompt templates
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)


def _run_evaluate(args: list[str]) -> int:
    from agents.evaluation.agent import evaluate, validate_request

    if not args:
        print("evaluate requires a payload file")
        return 1

    payload = json.loads(Path(args[0]).read_text(encoding="utf-8"))
    try:
        outcome = evaluate(validate_request(payload))
    except ValueError as exc:
        print(f"❌ {exc}")
        return 1

    print(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
    failed = [name for name, passed in outcome.eval_results.items() if not passed]
    if failed:
        print(f"❌ Hard checks failed: {', '.join(failed)}", file=sys.stderr)
        return 2
    return 0


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    command = sys.argv[1]

    if command in {"serve", "server"}:
        from app import run_server
        run_server()

    elif command == "evaluate":
        sys.exit(_run_evaluate(sys.argv[2:]))

    elif command == "prompts":
        from core.prompts import list_prompts

        for name in list_prompts():
            print(name)

    else:
        print(f"Unknown command: {command}")
        print(__doc__)
        sys.exit(1)


if __name__ == "__main__":
    main()
