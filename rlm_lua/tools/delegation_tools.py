"""Recursive sub-query delegation for Lua scripts.

Implements ``rlm.llm_query(query, context)``: a script hands a slice of its
context to a fresh child RLM session and gets the child's answer back.

Every call is bounded before any work happens:
- depth: a child is only created while depth remains
- admission: ``len(query) + len(context)`` must fit ``max_context_chars``

The tool never raises into the script. It always returns two values,
``(result, nil)`` or ``(nil, error_message)``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

from rlm_lua.config import RLMConfig
from rlm_lua.errors import MaxIterationsReached
from rlm_lua.interpreter.lua_interpreter import from_lua
from rlm_lua.repl.executor import render_value
from rlm_lua.tools.instrumentation import emit

logger = logging.getLogger(__name__)

MAX_DEPTH_MESSAGE = "max recursion depth reached"
MAX_ITERATIONS_MESSAGE = "max number of iterations reached"


def context_too_large_message(query_chars: int, context_chars: int, limit: int) -> str:
    """Admission-control refusal shown to the script."""
    total = query_chars + context_chars
    chunk = limit // 2
    return (
        f"context too large: combined length {total} chars "
        f"(query {query_chars} + context {context_chars}) exceeds the limit of {limit} chars. "
        f"Split the context into chunks of at most {chunk} chars and call llm_query once per chunk."
    )


def _as_text(value: Any) -> str:
    value = from_lua(value)
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return render_value(value)


def make_llm_query_tool(
    completion_callback: Callable[..., Any],
    *,
    depth: int,
    config: RLMConfig,
    callbacks: Sequence[Any] = (),
) -> Callable[..., tuple[Optional[str], Optional[str]]]:
    """Create the llm_query tool for a session.

    Args:
        completion_callback: Completion callback shared with the parent session
        depth: Recursion depth remaining of the calling session (the child
            runs with ``depth - 1``)
        config: Parent config; the child reuses its iteration ceiling,
            admission limit, truncation and deny-list
        callbacks: Session callbacks forwarded to child sessions

    Returns:
        Callable ``llm_query(query, context="") -> (result, error)``

    Examples:
        -- Lua side
        local answer, err = rlm.llm_query("What is the magic number?", string.sub(context, 1, 50000))
        if err then print(err) else print(answer) end
    """
    child_depth = depth - 1

    def llm_query(query: Any = None, context: Any = None) -> tuple[Optional[str], Optional[str]]:
        """Answer ``query`` about ``context`` in a fresh child session.

        Args:
            query: Question or instruction for the sub-session
            context: Text made available as ``context`` in the child

        Returns:
            ``(answer, None)`` on success, ``(None, error_message)`` otherwise
        """
        query_text = _as_text(query)
        context_text = _as_text(context)

        if child_depth <= 0:
            logger.debug("llm_query refused at depth %d: %s", depth, MAX_DEPTH_MESSAGE)
            _notify(callbacks, depth, query_text, len(context_text), False, MAX_DEPTH_MESSAGE)
            return None, MAX_DEPTH_MESSAGE

        limit = config.max_context_chars
        if limit is not None and len(query_text) + len(context_text) > limit:
            message = context_too_large_message(len(query_text), len(context_text), limit)
            logger.debug("llm_query refused at depth %d: %s", depth, message)
            _notify(callbacks, depth, query_text, len(context_text), False, message)
            return None, message

        _notify(callbacks, depth, query_text, len(context_text), True, None)

        # Deferred import: the session module builds this tool
        from rlm_lua.engine.session import run_session

        try:
            answer = run_session(
                query_text,
                completion_callback,
                context=context_text,
                depth=child_depth,
                config=config,
                callbacks=callbacks,
            )
        except MaxIterationsReached:
            return None, MAX_ITERATIONS_MESSAGE
        except Exception as e:
            logger.warning("llm_query failed at depth %d: %s", child_depth, e)
            return None, f"unexpected error occurred: {e}"

        return answer, None

    llm_query.__name__ = "llm_query"
    return llm_query


def _notify(
    callbacks: Sequence[Any],
    depth: int,
    query: str,
    context_chars: int,
    admitted: bool,
    reason: Optional[str],
) -> None:
    emit(
        callbacks,
        "on_sub_query",
        depth=depth,
        query=query,
        context_chars=context_chars,
        admitted=admitted,
        reason=reason,
    )
