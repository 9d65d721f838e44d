"""RLM session orchestration.

Drives the loop: prompt the model with the query, the REPL history and the
iterations remaining; run the returned Lua script; stop on an explicit
``return``, otherwise record the script and its output (or fault) and go
again until the iteration budget is spent.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from rlm_lua.completion.llm import coerce_content
from rlm_lua.config import RLMConfig
from rlm_lua.engine.prompts import build_messages
from rlm_lua.errors import CompletionError, MaxIterationsReached
from rlm_lua.interpreter.lua_interpreter import LuaSandboxInterpreter
from rlm_lua.repl.executor import Continue, Fault, Halt, ScriptExecutor
from rlm_lua.repl.history import History
from rlm_lua.repl.parser import extract_script
from rlm_lua.tools.delegation_tools import make_llm_query_tool
from rlm_lua.tools.instrumentation import emit

logger = logging.getLogger(__name__)


class Session:
    """One run of the RLM loop with its own interpreter, history and budget.

    Created fresh for the top-level query and for every ``llm_query`` call.
    The interpreter is shut down when ``run()`` returns or raises.

    Attributes:
        depth: Recursion depth remaining (1 = may not spawn sub-queries)
        iterations_remaining: Loop passes left; decremented on every
            Continue or Fault, never on Halt
        history: Scripts and outputs of completed passes
    """

    def __init__(
        self,
        completion_callback: Callable[..., Any],
        *,
        context: str = "",
        depth: int,
        config: RLMConfig,
        callbacks: Sequence[Any] = (),
        verbose: bool = False,
    ):
        if not callable(completion_callback):
            raise TypeError("completion_callback must be callable")

        self.completion_callback = completion_callback
        self.context = context
        self.depth = depth
        self.config = config
        self.callbacks = tuple(callbacks)
        self.verbose = verbose

        self.iterations_remaining = config.max_iterations
        self.history = History(config.output_truncation_length)

        llm_query = make_llm_query_tool(
            completion_callback,
            depth=depth,
            config=config,
            callbacks=self.callbacks,
        )
        self.interpreter = LuaSandboxInterpreter(
            denylist=config.denylist,
            tools={"rlm.llm_query": llm_query, "llm_query": llm_query},
            variables={"context": context},
        )
        self.executor = ScriptExecutor(self.interpreter)

    @property
    def iterations_used(self) -> int:
        return self.config.max_iterations - self.iterations_remaining

    def run(self, query: str) -> str:
        """Run the loop to completion.

        Returns:
            The rendered answer of the first script that returns a value

        Raises:
            MaxIterationsReached: If the budget runs out without an answer
            CompletionError: If the completion callback fails
        """
        logger.info("[depth %d] Query: %s", self.depth, query)
        emit(
            self.callbacks,
            "on_session_start",
            query=query,
            depth=self.depth,
            max_iterations=self.config.max_iterations,
            context_chars=len(self.context),
        )

        try:
            answer = self._loop(query)
        except Exception as e:
            emit(
                self.callbacks,
                "on_session_end",
                depth=self.depth,
                iterations_used=self.iterations_used,
                answer=None,
                exception=e,
            )
            raise
        finally:
            self.interpreter.shutdown()

        emit(
            self.callbacks,
            "on_session_end",
            depth=self.depth,
            iterations_used=self.iterations_used,
            answer=answer,
            exception=None,
        )
        return answer

    def _loop(self, query: str) -> str:
        while self.iterations_remaining > 0:
            iteration = self.iterations_used + 1
            if self.verbose:
                print(f"[depth {self.depth}] Iteration {iteration}/{self.config.max_iterations}")

            script = self._next_script(query, iteration)
            outcome = self.executor.execute(script)
            emit(
                self.callbacks,
                "on_script_outcome",
                depth=self.depth,
                iteration=iteration,
                script=script,
                outcome=outcome,
            )

            if isinstance(outcome, Halt):
                logger.info("[depth %d][Iteration %d] Final answer: %s", self.depth, iteration, outcome.answer)
                return outcome.answer

            self.history.push_script(script)
            if isinstance(outcome, Continue):
                logger.info("[depth %d][Iteration %d] Output:\n%s", self.depth, iteration, outcome.output)
                self.history.push_output(outcome.output)
            elif isinstance(outcome, Fault):
                logger.warning("[depth %d][Iteration %d] Script fault: %s", self.depth, iteration, outcome.message)
                self.history.push_output(outcome.message)

            self.iterations_remaining -= 1

        logger.warning(
            "[depth %d] No answer after %d iterations", self.depth, self.config.max_iterations
        )
        raise MaxIterationsReached(self.config.max_iterations)

    def _next_script(self, query: str, iteration: int) -> str:
        messages = build_messages(query, self.history.format(), self.iterations_remaining)
        emit(self.callbacks, "on_llm_start", depth=self.depth, iteration=iteration, messages=messages)

        try:
            content = coerce_content(self.completion_callback(messages))
        except CompletionError as e:
            emit(self.callbacks, "on_llm_end", depth=self.depth, iteration=iteration, content=None, exception=e)
            raise
        except Exception as e:
            emit(self.callbacks, "on_llm_end", depth=self.depth, iteration=iteration, content=None, exception=e)
            raise CompletionError(f"{type(e).__name__}: {e}") from e

        emit(self.callbacks, "on_llm_end", depth=self.depth, iteration=iteration, content=content, exception=None)

        script = extract_script(content)
        logger.info("[depth %d][Iteration %d] Script:\n%s", self.depth, iteration, script)
        return script


def run_session(
    query: str,
    completion_callback: Callable[..., Any],
    *,
    context: str = "",
    depth: int,
    config: RLMConfig,
    callbacks: Sequence[Any] = (),
    verbose: bool = False,
) -> str:
    """Create a fresh Session and run it to completion."""
    session = Session(
        completion_callback,
        context=context,
        depth=depth,
        config=config,
        callbacks=callbacks,
        verbose=verbose,
    )
    return session.run(query)


class _RunStats:
    """Counts faults and admitted sub-queries across all depths."""

    def __init__(self):
        self.faults = 0
        self.sub_queries = 0

    def on_script_outcome(self, outcome: Any, **_: Any) -> None:
        if isinstance(outcome, Fault):
            self.faults += 1

    def on_sub_query(self, admitted: bool, **_: Any) -> None:
        if admitted:
            self.sub_queries += 1


def complete(
    query: str,
    completion_callback: Callable[..., Any],
    *,
    context: str = "",
    max_iterations: Optional[int] = None,
    max_depth: Optional[int] = None,
    max_context_chars: Optional[int] = None,
    config: Optional[RLMConfig] = None,
    callbacks: Optional[Sequence[Any]] = None,
    log_path: Optional[str | Path] = None,
    run_id: Optional[str] = None,
    trajectory_id: Optional[str] = None,
    log_llm_calls: bool = True,
    verbose: bool = False,
    enable_mlflow: bool = False,
    mlflow_experiment: Optional[str] = None,
    mlflow_run_name: Optional[str] = None,
    mlflow_tracking_uri: Optional[str] = None,
    mlflow_tags: Optional[dict[str, str]] = None,
) -> str:
    """Answer ``query`` about ``context`` with a recursive Lua REPL session.

    Args:
        query: User question to answer
        completion_callback: ``(messages) -> Response | str``; raises on failure
        context: Text exposed to scripts as the ``context`` global
        max_iterations: Iteration budget per session (default 10)
        max_depth: Session levels allowed, including this one (default 10)
        max_context_chars: Admission limit for ``llm_query`` (default unset)
        config: Base RLMConfig; explicit keyword bounds override it
        callbacks: Objects with ``on_*`` hooks receiving session events
        log_path: Optional path to a JSONL trajectory log
        run_id: Optional run ID for provenance tracking
        trajectory_id: Optional trajectory ID for provenance tracking
        log_llm_calls: Whether the trajectory log includes prompts/responses
        verbose: Whether to print iteration headers
        enable_mlflow: Whether to track the run in MLflow
        mlflow_experiment: Optional MLflow experiment name
        mlflow_run_name: Optional name for the MLflow run
        mlflow_tracking_uri: Optional MLflow tracking URI
        mlflow_tags: Optional dict of custom tags for filtering runs

    Returns:
        The final answer, rendered from the value the model's script returned
        (strings come back double-quoted, e.g. ``'"done"'``)

    Raises:
        MaxIterationsReached: If no script returned within the budget
        CompletionError: If the completion callback failed
        ValueError: If a bound is invalid

    Examples:
        from rlm_lua import complete
        from rlm_lua.completion import make_dspy_completion

        answer = complete(
            "I'm looking for a magic number. What is it?",
            make_dspy_completion("openai/gpt-4o"),
            context=haystack,
            max_iterations=15,
            max_context_chars=200_000,
            log_path="trajectory.jsonl",
        )
    """
    config = config or RLMConfig()
    overrides = {
        key: value
        for key, value in (
            ("max_iterations", max_iterations),
            ("max_depth", max_depth),
            ("max_context_chars", max_context_chars),
        )
        if value is not None
    }
    if overrides:
        config = config.replace(**overrides)

    run_id = run_id or f"run-{uuid.uuid4().hex[:8]}"
    trajectory_id = trajectory_id or f"traj-{uuid.uuid4().hex[:8]}"

    stats = _RunStats()
    all_callbacks: list[Any] = [stats, *(callbacks or [])]

    traj_callback = None
    if log_path:
        from rlm_lua.logging import TrajectoryCallback

        traj_callback = TrajectoryCallback(log_path, run_id, trajectory_id, log_llm_calls=log_llm_calls)
        all_callbacks.append(traj_callback)
        if verbose:
            print(f"Logging trajectory to: {log_path}")

    mlflow_active = False
    if enable_mlflow:
        from rlm_lua.logging import mlflow_integration

        mlflow_active, mlflow_run_id = mlflow_integration.setup_mlflow_tracking(
            experiment_name=mlflow_experiment,
            run_name=mlflow_run_name or f"query-{trajectory_id}",
            tracking_uri=mlflow_tracking_uri,
        )
        if mlflow_active:
            mlflow_integration.log_run_params(
                query=query,
                max_iterations=config.max_iterations,
                max_depth=config.max_depth,
                max_context_chars=config.max_context_chars,
                context_chars=len(context),
            )
            mlflow_integration.log_run_tags(custom_tags=mlflow_tags)
            if verbose:
                print(f"MLflow tracking active: experiment={mlflow_experiment or 'default'}, run={mlflow_run_id}")

    session = Session(
        completion_callback,
        context=context,
        depth=config.max_depth,
        config=config,
        callbacks=all_callbacks,
        verbose=verbose,
    )

    answer = None
    try:
        answer = session.run(query)
        return answer
    finally:
        if traj_callback is not None:
            traj_callback.close()

        if mlflow_active:
            from rlm_lua.logging import mlflow_integration

            mlflow_integration.log_run_metrics(
                iteration_count=session.iterations_used,
                converged=answer is not None,
                sub_queries=stats.sub_queries,
                faults=stats.faults,
            )
            mlflow_integration.log_artifacts(
                log_path=Path(log_path) if log_path else None,
                answer=answer,
            )
            mlflow_integration.end_mlflow_run()
