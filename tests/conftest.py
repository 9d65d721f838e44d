"""Shared test fixtures for the rlm_lua test suite."""

from __future__ import annotations

from typing import Callable, Iterable, Union

import pytest

from rlm_lua.completion.llm import Message, Response, Usage
from rlm_lua.interpreter import LuaSandboxInterpreter


class ScriptedLLM:
    """Fake completion callback that replays scripted responses.

    Records every message list it receives so tests can inspect prompts.
    Entries may be strings (returned as Response content), exceptions (raised)
    or callables ``(messages) -> str`` for routing by prompt content.
    """

    def __init__(self, responses: Iterable[Union[str, BaseException, Callable]], repeat_last: bool = False):
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.calls: list[list[Message]] = []

    def __call__(self, messages: list[Message]) -> Response:
        self.calls.append(list(messages))

        if self.responses:
            index = len(self.calls) - 1
            if index >= len(self.responses):
                if not self.repeat_last:
                    raise AssertionError(f"ScriptedLLM ran out of responses after {len(self.responses)} calls")
                index = len(self.responses) - 1
            item = self.responses[index]
        else:
            raise AssertionError("ScriptedLLM has no responses")

        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = item(messages)
        return Response(content=item, usage=Usage(prompt_tokens=10, completion_tokens=5, total_tokens=15))

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def user_prompt(self, call_index: int) -> str:
        """User message content of the given call."""
        return next(m.content for m in self.calls[call_index] if m.role == "user")


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM instances."""

    def factory(*responses, repeat_last: bool = False) -> ScriptedLLM:
        return ScriptedLLM(responses, repeat_last=repeat_last)

    return factory


@pytest.fixture
def interpreter():
    """A started sandbox interpreter, shut down after the test."""
    interp = LuaSandboxInterpreter()
    interp.start()
    yield interp
    interp.shutdown()
