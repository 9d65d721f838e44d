"""DSPy-backed completion callback.

Wraps a ``dspy.LM`` (LiteLLM underneath, so any provider DSPy supports) as a
completion callback for ``rlm_lua.complete``.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from rlm_lua.completion.llm import Message, Response, Usage
from rlm_lua.errors import CompletionError


def make_dspy_completion(
    model: str = "anthropic/claude-sonnet-4-5-20250929",
    *,
    lm: Any = None,
    temperature: float = 0.2,
    max_tokens: int = 4096,
    **lm_kwargs: Any,
) -> Callable[[list[Message]], Response]:
    """Create a completion callback backed by a DSPy LM.

    Args:
        model: LiteLLM model string, used when ``lm`` is not given
        lm: Optional pre-built ``dspy.LM`` (or compatible callable)
        temperature: Sampling temperature for a newly built LM
        max_tokens: Max completion tokens for a newly built LM
        **lm_kwargs: Extra arguments for ``dspy.LM``

    Returns:
        Callable mapping a message list to a Response

    Examples:
        # Root model explores, cheaper model could serve sub-queries
        complete_fn = make_dspy_completion("openai/gpt-4o")
        answer = rlm_lua.complete("Find the magic number", complete_fn, context=text)
    """
    if lm is None:
        import dspy

        lm = dspy.LM(model, temperature=temperature, max_tokens=max_tokens, cache=False, **lm_kwargs)

    def completion(messages: list[Message]) -> Response:
        payload = [{"role": m.role, "content": m.content} for m in messages]
        try:
            outputs = lm(messages=payload)
        except Exception as e:
            raise CompletionError(f"{type(e).__name__}: {e}") from e

        # DSPy LM returns a list of completions, we take first
        if isinstance(outputs, str):
            outputs = [outputs]
        if not outputs:
            raise CompletionError("LM returned no completions")

        first = outputs[0]
        if isinstance(first, dict):
            first = first.get("text") or ""

        return Response(content=str(first), usage=_last_usage(lm))

    return completion


def _last_usage(lm: Any) -> Usage:
    """Token usage of the most recent call, if the LM keeps a history."""
    history = getattr(lm, "history", None)
    if not history:
        return Usage()
    entry = history[-1]
    if not isinstance(entry, dict):
        return Usage()
    usage = entry.get("usage")
    if not isinstance(usage, dict):
        return Usage()
    return Usage.from_dict(usage)
