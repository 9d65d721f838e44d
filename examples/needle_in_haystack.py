"""Needle-in-a-haystack demo for the Lua RLM.

Hides a magic number in a large block of random text and asks the model to
find it. The model never sees the full context; it has to search it with Lua
and may delegate chunks to sub-queries.

Usage:
    export ANTHROPIC_API_KEY=...
    python examples/needle_in_haystack.py [--lines 100000] [--model anthropic/claude-sonnet-4-5-20250929]
"""

import argparse
import os
import random
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from rlm_lua import MaxIterationsReached, complete
from rlm_lua.completion import make_dspy_completion

WORDS = ["blah", "random", "text", "data", "content", "information", "sample"]


def build_haystack(num_lines: int, magic_number: int) -> str:
    lines = []
    for _ in range(num_lines):
        lines.append(" ".join(random.choice(WORDS) for _ in range(random.randint(3, 8))))

    position = random.randint(int(num_lines * 0.4), int(num_lines * 0.6))
    lines.insert(position, f"The magic number is {magic_number}")
    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(description="Find a magic number hidden in a large context")
    parser.add_argument("--lines", type=int, default=100_000)
    parser.add_argument("--model", default="anthropic/claude-sonnet-4-5-20250929")
    parser.add_argument("--max-iterations", type=int, default=15)
    parser.add_argument("--max-context-chars", type=int, default=200_000)
    parser.add_argument("--log-path", default=str(project_root / "needle_trajectory.jsonl"))
    args = parser.parse_args()

    if not os.environ.get("ANTHROPIC_API_KEY") and args.model.startswith("anthropic/"):
        print("ERROR: ANTHROPIC_API_KEY not set")
        return 1

    magic_number = random.randint(1_000_000, 9_999_999)
    haystack = build_haystack(args.lines, magic_number)
    print(f"Context: {len(haystack):,} chars, magic number {magic_number}")

    try:
        answer = complete(
            "I'm looking for a magic number. What is it?",
            make_dspy_completion(args.model),
            context=haystack,
            max_iterations=args.max_iterations,
            max_context_chars=args.max_context_chars,
            log_path=args.log_path,
            verbose=True,
        )
    except MaxIterationsReached as e:
        print(f"No answer: {e}")
        return 1

    print(f"\nAnswer: {answer}")
    print("✓ Correct" if str(magic_number) in answer else "✗ Wrong")
    return 0


if __name__ == "__main__":
    sys.exit(main())
