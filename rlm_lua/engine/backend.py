"""Backend abstraction for RLM execution.

Provides a common result type and backend protocol, plus the Lua REPL backend
that runs ``rlm_lua`` sessions behind it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from rlm_lua.config import RLMConfig
from rlm_lua.errors import MaxIterationsReached


@dataclass
class RLMResult:
    """Base result class for RLM execution.

    Attributes:
        answer: Rendered final answer ("" when the session did not converge)
        trajectory: List of ``{"code", "output"}`` steps of the top-level session
        iteration_count: Number of non-final iterations taken
        converged: Whether a script returned an answer within budget
        metadata: Additional backend-specific metadata
    """

    answer: str
    trajectory: list[dict]
    iteration_count: int
    converged: bool
    metadata: dict[str, Any]

    def __post_init__(self):
        if self.trajectory is None:
            self.trajectory = []
        if self.metadata is None:
            self.metadata = {}


@runtime_checkable
class RLMBackend(Protocol):
    """Protocol for RLM execution backends.

    Backends must implement the run() method to execute queries
    and return structured results.
    """

    def run(
        self,
        query: str,
        context: str,
        *,
        max_iterations: int = 10,
        max_llm_calls: Optional[int] = None,
        verbose: bool = False,
        **kwargs: Any,
    ) -> RLMResult:
        """Execute an RLM query.

        Args:
            query: User question to answer
            context: Context string made available to the model's code
            max_iterations: Maximum RLM iterations
            max_llm_calls: Maximum LLM calls (backend-specific, may be ignored)
            verbose: Whether to print execution trace
            **kwargs: Backend-specific parameters

        Returns:
            RLMResult with answer, trajectory, and metadata
        """
        ...


def is_rlm_backend(obj: Any) -> bool:
    """Check if an object implements the RLMBackend protocol."""
    return isinstance(obj, RLMBackend)


class LuaRLMBackend:
    """Lua REPL backend.

    Budget exhaustion is reported as ``converged=False`` instead of raising;
    completion callback failures still propagate as CompletionError.

    Attributes:
        completion_callback: ``(messages) -> Response | str``
        config: Default bounds, overridable per run
    """

    def __init__(self, completion_callback: Callable[..., Any], config: Optional[RLMConfig] = None):
        self.completion_callback = completion_callback
        self.config = config or RLMConfig()

    def run(
        self,
        query: str,
        context: str,
        *,
        max_iterations: int = 10,
        max_llm_calls: Optional[int] = None,  # Not used by the Lua backend
        verbose: bool = False,
        **kwargs: Any,
    ) -> RLMResult:
        """Execute an RLM query in a fresh top-level session.

        Args:
            query: User question to answer
            context: Context string exposed as the ``context`` global
            max_iterations: Maximum RLM iterations per session
            max_llm_calls: Ignored
            verbose: Whether to print iteration headers
            **kwargs: ``max_depth``, ``max_context_chars`` and ``callbacks``

        Returns:
            RLMResult with answer, trajectory, and metadata

        Raises:
            CompletionError: If the completion callback fails
        """
        from rlm_lua.engine.session import Session

        changes = {"max_iterations": max_iterations}
        for key in ("max_depth", "max_context_chars"):
            if kwargs.get(key) is not None:
                changes[key] = kwargs[key]
        config = self.config.replace(**changes)

        session = Session(
            self.completion_callback,
            context=context,
            depth=config.max_depth,
            config=config,
            callbacks=kwargs.get("callbacks") or (),
            verbose=verbose,
        )

        try:
            answer = session.run(query)
            converged = True
        except MaxIterationsReached:
            answer = ""
            converged = False

        return RLMResult(
            answer=answer,
            trajectory=session.history.to_trajectory(),
            iteration_count=session.iterations_used,
            converged=converged,
            metadata={
                "backend": "lua",
                "max_iterations": config.max_iterations,
                "max_depth": config.max_depth,
                "max_context_chars": config.max_context_chars,
            },
        )
