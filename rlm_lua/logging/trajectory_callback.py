"""Session callback for trajectory logging to JSONL.

Captures LLM calls, script outcomes and sub-queries for debugging and
analysis. Parent and child sessions share one log; every event carries the
session ``depth``.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class TrajectoryCallback:
    """Session callback that logs the execution trajectory to a JSONL file.

    Each event is written as a JSON line with:
    - event: Event type (session_start, llm_call, script_outcome, ...)
    - timestamp: ISO 8601 timestamp
    - run_id / trajectory_id: Provenance identifiers
    - depth: Recursion depth remaining of the emitting session
    - ... event-specific fields

    Example:
        callback = TrajectoryCallback(Path("trajectory.jsonl"), run_id="r-001")
        answer = complete(query, llm, context=text, callbacks=[callback])
        callback.close()
    """

    def __init__(
        self,
        log_path: Path | str,
        run_id: str,
        trajectory_id: Optional[str] = None,
        log_llm_calls: bool = True,
    ):
        """Initialize trajectory logger.

        Args:
            log_path: Path to JSONL output file
            run_id: Run identifier for provenance
            trajectory_id: Optional trajectory identifier
            log_llm_calls: Whether to log prompts and responses (default True)
        """
        self.log_path = Path(log_path)
        self.run_id = run_id
        self.trajectory_id = trajectory_id
        self.log_llm_calls = log_llm_calls

        self.llm_call_count = 0
        self.script_count = 0
        self.sub_query_count = 0

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_file = open(self.log_path, "a", encoding="utf-8")

    def _timestamp(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _write_event(self, event: dict[str, Any]) -> None:
        if self.log_file is None or self.log_file.closed:
            return

        event.setdefault("timestamp", self._timestamp())
        event.setdefault("run_id", self.run_id)
        if self.trajectory_id:
            event.setdefault("trajectory_id", self.trajectory_id)

        json.dump(event, self.log_file, ensure_ascii=False)
        self.log_file.write("\n")
        self.log_file.flush()

    def _serialize_value(self, value: Any, max_length: int = 500) -> Any:
        """Serialize value for logging, truncating if too long."""
        if value is None:
            return None

        if not isinstance(value, (str, int, float, bool, list, dict)):
            value = str(value)

        if isinstance(value, str) and len(value) > max_length:
            return value[:max_length] + f"... (truncated, {len(value)} total chars)"

        if isinstance(value, dict):
            return {k: self._serialize_value(v, max_length) for k, v in value.items()}

        if isinstance(value, list):
            if len(value) > 10:
                return [self._serialize_value(item, max_length) for item in value[:10]] + \
                       [f"... ({len(value) - 10} more items)"]
            return [self._serialize_value(item, max_length) for item in value]

        return value

    # === Session Events ===

    def on_session_start(self, query: str, depth: int, max_iterations: int, context_chars: int) -> None:
        self._write_event({
            "event": "session_start",
            "depth": depth,
            "query": self._serialize_value(query),
            "max_iterations": max_iterations,
            "context_chars": context_chars,
        })

    def on_session_end(
        self,
        depth: int,
        iterations_used: int,
        answer: Optional[str] = None,
        exception: Optional[BaseException] = None,
    ) -> None:
        self._write_event({
            "event": "session_end",
            "depth": depth,
            "iterations_used": iterations_used,
            "answer": self._serialize_value(answer, max_length=1000),
            "exception": str(exception) if exception else None,
            "success": exception is None,
        })

    # === LLM Events ===

    def on_llm_start(self, depth: int, iteration: int, messages: list[Any]) -> None:
        if not self.log_llm_calls:
            return

        self._write_event({
            "event": "llm_call",
            "depth": depth,
            "iteration": iteration,
            "llm_call_number": self.llm_call_count,
            "messages": self._serialize_value(
                [{"role": m.role, "content": m.content} for m in messages], max_length=1000
            ),
        })

    def on_llm_end(
        self,
        depth: int,
        iteration: int,
        content: Optional[str],
        exception: Optional[BaseException] = None,
    ) -> None:
        if self.log_llm_calls:
            self._write_event({
                "event": "llm_response",
                "depth": depth,
                "iteration": iteration,
                "llm_call_number": self.llm_call_count,
                "content": self._serialize_value(content, max_length=1000),
                "exception": str(exception) if exception else None,
                "success": exception is None,
            })

        self.llm_call_count += 1

    # === Script Events ===

    def on_script_outcome(self, depth: int, iteration: int, script: str, outcome: Any) -> None:
        # Halt carries answer, Continue output, Fault message
        result = next(
            (getattr(outcome, attr) for attr in ("answer", "output", "message") if hasattr(outcome, attr)),
            None,
        )
        self._write_event({
            "event": "script_outcome",
            "depth": depth,
            "iteration": iteration,
            "script_number": self.script_count,
            "outcome": type(outcome).__name__.lower(),
            "script": self._serialize_value(script, max_length=2000),
            "result": self._serialize_value(result, max_length=1000),
        })

        self.script_count += 1

    def on_sub_query(
        self,
        depth: int,
        query: str,
        context_chars: int,
        admitted: bool,
        reason: Optional[str] = None,
    ) -> None:
        self._write_event({
            "event": "sub_query",
            "depth": depth,
            "query": self._serialize_value(query),
            "context_chars": context_chars,
            "admitted": admitted,
            "reason": reason,
        })

        if admitted:
            self.sub_query_count += 1

    # === Cleanup ===

    def close(self) -> None:
        """Write a summary marker and close the log file."""
        if getattr(self, "log_file", None) is not None and not self.log_file.closed:
            self._write_event({
                "event": "log_closed",
                "llm_calls": self.llm_call_count,
                "scripts": self.script_count,
                "sub_queries": self.sub_query_count,
            })
            self.log_file.close()

    def __del__(self):
        self.close()
