"""Configuration for RLM sessions.

Resource bounds for a completion: iteration budget, recursion depth,
context-size admission and output truncation, plus the sandbox deny-list.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace as _replace
from typing import Any, Optional

from rlm_lua.interpreter.sandbox import DEFAULT_DENYLIST, split_qualified_name

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_MAX_DEPTH = 10
DEFAULT_OUTPUT_TRUNCATION_LENGTH = 100_000


@dataclass(frozen=True)
class RLMConfig:
    """Resource bounds and sandbox policy for one completion.

    Attributes:
        max_iterations: Loop passes per session before giving up (also the
            ceiling handed to every sub-query session)
        max_depth: Session levels allowed, counting the top-level session;
            1 means ``llm_query`` is always refused
        max_context_chars: Admission limit for ``len(query) + len(context)`` of
            a sub-query (None = unlimited)
        output_truncation_length: Max chars of a single output entry when
            history is rendered into a prompt
        denylist: Qualified Lua names made unreachable from scripts
    """

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_depth: int = DEFAULT_MAX_DEPTH
    max_context_chars: Optional[int] = None
    output_truncation_length: int = DEFAULT_OUTPUT_TRUNCATION_LENGTH
    denylist: tuple[str, ...] = field(default=DEFAULT_DENYLIST)

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")
        if self.max_context_chars is not None and self.max_context_chars <= 0:
            raise ValueError(f"max_context_chars must be > 0, got {self.max_context_chars}")
        if self.output_truncation_length <= 0:
            raise ValueError(
                f"output_truncation_length must be > 0, got {self.output_truncation_length}"
            )
        # Accept any iterable of names, store a tuple
        object.__setattr__(self, "denylist", tuple(self.denylist))
        for name in self.denylist:
            split_qualified_name(name)

    def replace(self, **changes: Any) -> "RLMConfig":
        """Return a copy with the given fields changed."""
        return _replace(self, **changes)

    @classmethod
    def from_env(cls, prefix: str = "RLM_", **overrides: Any) -> "RLMConfig":
        """Build a config from environment variables.

        Reads ``{prefix}MAX_ITERATIONS``, ``{prefix}MAX_DEPTH``,
        ``{prefix}MAX_CONTEXT_CHARS`` and ``{prefix}OUTPUT_TRUNCATION_LENGTH``.
        Keyword overrides take precedence over the environment.

        Raises:
            ValueError: If a variable is not an integer or a bound is invalid

        Example:
            # RLM_MAX_ITERATIONS=15 RLM_MAX_CONTEXT_CHARS=50000
            config = RLMConfig.from_env(max_depth=3)
        """
        env_fields = {
            "max_iterations": "MAX_ITERATIONS",
            "max_depth": "MAX_DEPTH",
            "max_context_chars": "MAX_CONTEXT_CHARS",
            "output_truncation_length": "OUTPUT_TRUNCATION_LENGTH",
        }

        values: dict[str, Any] = {}
        for field_name, suffix in env_fields.items():
            raw = os.environ.get(f"{prefix}{suffix}")
            if raw is None or raw.strip() == "":
                continue
            try:
                values[field_name] = int(raw)
            except ValueError as e:
                raise ValueError(f"{prefix}{suffix} must be an integer, got {raw!r}") from e

        values.update(overrides)
        return cls(**values)
