"""Completion callback contract and provider adapters."""

from .llm import CompletionCallback, Message, Response, Usage, coerce_content
from .dspy_lm import make_dspy_completion

__all__ = [
    "CompletionCallback",
    "Message",
    "Response",
    "Usage",
    "coerce_content",
    "make_dspy_completion",
]
