"""Script executor: run one script, classify the outcome.

Every execution ends in exactly one of Halt, Continue or Fault:

- no returned values   -> Continue(captured print output)
- one returned value   -> Halt(rendering of that value)
- several values       -> Halt("[v1, v2, ...]")
- syntax/runtime error -> Fault(message); interpreter state is rolled back
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Union

from lupa import lua54

from rlm_lua.errors import ScriptFault
from rlm_lua.interpreter.lua_interpreter import LuaSandboxInterpreter, from_lua

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_MAX_NESTING = 32


@dataclass(frozen=True)
class Halt:
    answer: str


@dataclass(frozen=True)
class Continue:
    output: str


@dataclass(frozen=True)
class Fault:
    message: str


ScriptOutcome = Union[Halt, Continue, Fault]


def render_value(value: Any, _seen: frozenset = frozenset()) -> str:
    """Render a Lua value returned by a script as answer text.

    Strings are double-quoted, nil renders as ``nil``, sequences as
    ``[a, b]`` and other tables as ``{key = value}`` with sorted keys.
    """
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, bytes):
        return json.dumps(from_lua(value), ensure_ascii=False)

    kind = lua54.lua_type(value)
    if kind == "table":
        return _render_table(value, _seen)
    if kind is None:
        # Python object handed back through a tool
        return "<userdata>"
    return f"<{kind}>"


def _render_table(table: Any, seen: frozenset) -> str:
    # str() of a Lua table embeds its address, stable for its lifetime
    identity = str(table)
    if identity in seen:
        return "<cycle>"
    if len(seen) >= _MAX_NESTING:
        return "{...}"
    seen = seen | {identity}

    # Lua string keys arrive as bytes
    items = [(from_lua(k), v) for k, v in table.items()]
    if not items:
        return "{}"

    keys = [k for k, _ in items]
    if all(isinstance(k, int) and not isinstance(k, bool) for k in keys) and sorted(keys) == list(
        range(1, len(keys) + 1)
    ):
        values = [v for _, v in sorted(items, key=lambda kv: kv[0])]
        return "[" + ", ".join(render_value(v, seen) for v in values) + "]"

    def sort_key(kv):
        k = kv[0]
        return (0, k, "") if isinstance(k, (int, float)) and not isinstance(k, bool) else (1, 0, str(k))

    fields = []
    for k, v in sorted(items, key=sort_key):
        if isinstance(k, str) and _IDENTIFIER.match(k):
            key_text = k
        else:
            key_text = f"[{render_value(k, seen)}]"
        fields.append(f"{key_text} = {render_value(v, seen)}")
    return "{" + ", ".join(fields) + "}"


def render_values(values: list[Any]) -> str:
    if len(values) == 1:
        return render_value(values[0])
    return "[" + ", ".join(render_value(v) for v in values) + "]"


class ScriptExecutor:
    """Runs scripts against one session's interpreter."""

    def __init__(self, interpreter: LuaSandboxInterpreter):
        self.interpreter = interpreter

    def execute(self, script: str) -> ScriptOutcome:
        """Run ``script`` and classify the result. Never raises a ScriptFault."""
        self.interpreter.output.clear()

        try:
            values = self.interpreter.evaluate(script)
        except ScriptFault as e:
            return Fault(str(e))

        if not values:
            return Continue(self.interpreter.output.getvalue())
        return Halt(render_values(values))
