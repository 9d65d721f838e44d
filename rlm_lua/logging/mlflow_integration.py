"""MLflow integration for RLM run tracking.

Provides experiment tracking, parameter/metric logging and artifact storage
with graceful degradation when MLflow is unavailable.

Requirements:
    - mlflow (optional dependency - system degrades gracefully if not installed)

Install:
    pip install 'rlm-lua[tracking]'
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
import warnings


def setup_mlflow_tracking(
    experiment_name: Optional[str] = None,
    run_name: Optional[str] = None,
    tracking_uri: Optional[str] = None,
) -> tuple[bool, Optional[str]]:
    """Start an MLflow run for one RLM completion.

    Args:
        experiment_name: Name of MLflow experiment (creates if doesn't exist)
        run_name: Optional name for this run
        tracking_uri: Optional tracking URI (e.g., "sqlite:///path/to/mlflow.db")

    Returns:
        (success, run_id) - Whether setup succeeded and the active run ID

    Example:
        success, run_id = setup_mlflow_tracking(
            experiment_name="Needle in haystack",
            run_name="gpt-4o-10-iterations",
            tracking_uri="sqlite:///experiments/mlflow.db"
        )
    """
    try:
        import mlflow
    except ImportError:
        warnings.warn("MLflow not installed, skipping tracking", UserWarning)
        return False, None

    try:
        if tracking_uri:
            mlflow.set_tracking_uri(tracking_uri)

        if experiment_name:
            mlflow.set_experiment(experiment_name)

        mlflow.start_run(run_name=run_name)
        return True, mlflow.active_run().info.run_id

    except Exception as e:
        warnings.warn(f"MLflow setup failed: {e}", UserWarning)
        # End any active run to avoid leaks
        end_mlflow_run()
        return False, None


def log_run_params(
    query: str,
    max_iterations: int,
    max_depth: int,
    max_context_chars: Optional[int],
    context_chars: int,
) -> None:
    """Log run parameters (searchable, comparable).

    Args:
        query: User query being answered
        max_iterations: Iteration budget per session
        max_depth: Recursion depth limit
        max_context_chars: Sub-query admission limit (None = unlimited)
        context_chars: Size of the top-level context
    """
    try:
        import mlflow

        mlflow.log_params({
            # MLflow caps param values at 6000 chars
            "query": query[:500],
            "max_iterations": max_iterations,
            "max_depth": max_depth,
            "max_context_chars": max_context_chars if max_context_chars is not None else "unset",
            "context_chars": context_chars,
        })

    except Exception as e:
        warnings.warn(f"Failed to log MLflow params: {e}", UserWarning)


def log_run_metrics(
    iteration_count: int,
    converged: bool,
    sub_queries: int = 0,
    faults: int = 0,
) -> None:
    """Log run metrics (aggregatable, plottable).

    Args:
        iteration_count: Loop passes used by the top-level session
        converged: Whether the session returned an answer
        sub_queries: Number of admitted llm_query calls (all depths)
        faults: Number of scripts that faulted (all depths)
    """
    try:
        import mlflow

        mlflow.log_metrics({
            "iteration_count": iteration_count,
            "converged": 1 if converged else 0,
            "sub_queries": sub_queries,
            "faults": faults,
        })

    except Exception as e:
        warnings.warn(f"Failed to log MLflow metrics: {e}", UserWarning)


def log_run_tags(custom_tags: Optional[dict] = None) -> None:
    """Log run tags (filterable). All tags are stored as strings."""
    try:
        import mlflow

        tags = {"runtime": "rlm-lua"}
        if custom_tags:
            tags.update(custom_tags)
        mlflow.set_tags(tags)

    except Exception as e:
        warnings.warn(f"Failed to log MLflow tags: {e}", UserWarning)


def log_artifacts(log_path: Optional[Path] = None, answer: Optional[str] = None) -> None:
    """Log the trajectory JSONL and the final answer as run artifacts."""
    try:
        import mlflow

        if log_path and Path(log_path).exists():
            mlflow.log_artifact(str(log_path), artifact_path="trajectory")

        if answer is not None:
            mlflow.log_text(answer, "answer/answer.txt")

    except Exception as e:
        warnings.warn(f"Failed to log MLflow artifacts: {e}", UserWarning)


def end_mlflow_run() -> None:
    """Cleanly end the current MLflow run, if any."""
    try:
        import mlflow

        if mlflow.active_run():
            mlflow.end_run()

    except Exception as e:
        warnings.warn(f"Failed to end MLflow run: {e}", UserWarning)
