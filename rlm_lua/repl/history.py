"""Interaction history for one RLM session.

Interactions are stored newest-first (O(1) push) and rendered oldest-first for
re-injection into prompts. Rendering is a pure function of the stored entries.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from rlm_lua.config import DEFAULT_OUTPUT_TRUNCATION_LENGTH

TRUNCATION_MARKER = "..."


class InteractionKind(str, Enum):
    SCRIPT = "script"
    OUTPUT = "output"


@dataclass(frozen=True)
class Interaction:
    """One recorded script or output entry."""

    kind: InteractionKind
    content: str

    def format(self, truncation_length: int = DEFAULT_OUTPUT_TRUNCATION_LENGTH) -> str:
        """Render for an LLM prompt.

        Scripts are never truncated. Outputs longer than ``truncation_length``
        keep their first ``truncation_length`` characters plus a ``...`` marker.
        """
        if self.kind is InteractionKind.SCRIPT:
            return f"CODE:\n\n```lua\n{self.content}\n```"

        content = truncate_output(self.content, truncation_length)
        return f"OUTPUT:\n\n```\n{content}\n```"


def truncate_output(content: str, limit: int = DEFAULT_OUTPUT_TRUNCATION_LENGTH) -> str:
    if len(content) > limit:
        return content[:limit] + TRUNCATION_MARKER
    return content


class History:
    """Append-only log of interactions for one session."""

    def __init__(self, truncation_length: int = DEFAULT_OUTPUT_TRUNCATION_LENGTH):
        self.truncation_length = truncation_length
        self._entries: deque[Interaction] = deque()

    def push(self, kind: InteractionKind | str, content: str) -> "History":
        """Record an interaction; returns self so pushes can be chained."""
        self._entries.appendleft(Interaction(InteractionKind(kind), content))
        return self

    def push_script(self, script: str) -> "History":
        return self.push(InteractionKind.SCRIPT, script)

    def push_output(self, output: str) -> "History":
        return self.push(InteractionKind.OUTPUT, output)

    @property
    def latest(self) -> Interaction | None:
        return self._entries[0] if self._entries else None

    def chronological(self) -> list[Interaction]:
        """Entries oldest-first."""
        return list(reversed(self._entries))

    def format(self) -> str:
        """Render all entries oldest-first, separated by newlines."""
        return "\n".join(
            entry.format(self.truncation_length) for entry in reversed(self._entries)
        )

    def to_trajectory(self) -> list[dict[str, str]]:
        """Pair scripts with their outputs as ``{"code", "output"}`` dicts."""
        steps: list[dict[str, str]] = []
        for entry in self.chronological():
            if entry.kind is InteractionKind.SCRIPT:
                steps.append({"code": entry.content, "output": ""})
            elif steps:
                steps[-1]["output"] = entry.content
        return steps

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Interaction]:
        """Iterate newest-first (storage order)."""
        return iter(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)
