"""Exception hierarchy for RLM execution.

Only CompletionError and MaxIterationsReached escape a top-level completion.
Script faults are recovered by the executor and shown to the model as output.
"""

from __future__ import annotations

from typing import Any


class RLMError(Exception):
    """Base class for all rlm_lua errors."""


class CompletionError(RLMError):
    """The completion callback failed (network, auth, rate limit, provider)."""

    def __init__(self, reason: Any):
        self.reason = reason
        super().__init__(str(reason))


class MaxIterationsReached(RLMError):
    """A session used its full iteration budget without returning an answer."""

    def __init__(self, iterations: int):
        self.iterations = iterations
        super().__init__(f"max number of iterations reached ({iterations})")


class ScriptFault(RLMError):
    """A script failed to compile or run inside the sandbox."""

    label = "Lua error"

    def __str__(self) -> str:
        return f"{self.label}: {self.args[0] if self.args else ''}"


class ScriptSyntaxError(ScriptFault):
    label = "Lua syntax error"


class ScriptRuntimeError(ScriptFault):
    label = "Lua runtime error"
