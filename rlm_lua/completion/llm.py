"""Completion callback contract.

A completion callback takes the role-tagged messages for one turn and returns
the generated text. Only ``content`` is consumed by the RLM loop; ``usage`` is
passed through for callers that track cost.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

from rlm_lua.errors import CompletionError


@dataclass(frozen=True)
class Message:
    """One prompt message; ``role`` is ``"system"`` or ``"user"``."""

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class Usage:
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Usage":
        if not data:
            return cls()
        return cls(
            prompt_tokens=data.get("prompt_tokens"),
            completion_tokens=data.get("completion_tokens"),
            total_tokens=data.get("total_tokens"),
        )


@dataclass(frozen=True)
class Response:
    content: str
    usage: Usage = field(default_factory=Usage)


@runtime_checkable
class CompletionCallback(Protocol):
    """``(messages) -> Response``; raises CompletionError on provider failure."""

    def __call__(self, messages: list[Message]) -> Response:
        ...


def coerce_content(response: Any) -> str:
    """Extract completion text from whatever a callback returned.

    Accepts a Response (or any object with a ``content`` attribute), a mapping
    with a ``"content"`` key, or a plain string.

    Raises:
        CompletionError: If no text content can be found
    """
    if isinstance(response, str):
        return response
    if isinstance(response, Mapping):
        content = response.get("content")
    else:
        content = getattr(response, "content", None)

    if not isinstance(content, str):
        raise CompletionError(f"completion returned no text content: {response!r}")
    return content
