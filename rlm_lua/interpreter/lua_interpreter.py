"""LuaSandboxInterpreter for RLM sessions.

Embedded Lua 5.4 (via lupa) with a deny-list applied to its globals, captured
``print`` output and tool injection. State persists across ``evaluate()`` calls
within one session, so scripts can build up helper functions and variables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from lupa import lua54

from rlm_lua.errors import ScriptRuntimeError, ScriptSyntaxError
from rlm_lua.interpreter.output_capture import OutputCapture
from rlm_lua.interpreter.sandbox import DEFAULT_DENYLIST, HOST_PASSTHROUGH, split_qualified_name

# Runs once per runtime, before the deny-list is applied. Everything the
# helpers need is captured as upvalues, so scripts cannot reach or tamper
# with them afterwards.
_PRIVILEGED_SETUP = r"""
local G = _G
local load, pcall, error, tostring, type, next, select, rawget, rawset, setmetatable =
      load, pcall, error, tostring, type, next, select, rawget, rawset, setmetatable
local concat, pack = table.concat, table.pack

local function make_print(sink)
  return function(...)
    local n = select("#", ...)
    local parts = {}
    for i = 1, n do
      parts[i] = tostring((select(i, ...)))
    end
    sink(concat(parts, "\t") .. "\n")
  end
end

local function make_stub(name, as_table, kept)
  local function blocked()
    error(name .. " is sandboxed", 2)
  end
  if not as_table then
    return blocked
  end
  return setmetatable({}, {
    __index = function(_, key)
      if kept ~= nil and kept[key] ~= nil then
        return kept[key]
      end
      error(name .. "." .. tostring(key) .. " is sandboxed", 2)
    end,
    __newindex = blocked,
    __call = blocked,
  })
end

local function snapshot()
  local saved, queue, head = {}, {G}, 1
  while queue[head] ~= nil do
    local t = queue[head]
    head = head + 1
    if saved[t] == nil then
      local copy = {}
      for k, v in next, t do
        copy[k] = v
        if type(v) == "table" and saved[v] == nil then
          queue[#queue + 1] = v
        end
        if type(k) == "table" and saved[k] == nil then
          queue[#queue + 1] = k
        end
      end
      saved[t] = copy
    end
  end
  return saved
end

local function restore(saved)
  for t, copy in next, saved do
    for k in next, t do
      if copy[k] == nil then
        rawset(t, k, nil)
      end
    end
    for k, v in next, copy do
      rawset(t, k, v)
    end
  end
end

local function run(source)
  local chunk, err = load(source, "=script", "t")
  if not chunk then
    return false, "syntax", tostring(err)
  end
  local host_debug = rawget(G, "debug")
  local saved = snapshot()
  local result = pack(pcall(chunk))
  -- lupa indexes the debug global from outside any pcall; scripts must not replace it
  rawset(G, "debug", host_debug)
  if not result[1] then
    restore(saved)
    return false, "runtime", tostring(result[2])
  end
  return true, result.n - 1, result
end

return make_print, make_stub, run
"""


def to_lua(value: Any) -> Any:
    """Encode Python text as a Lua (byte) string; other values pass through."""
    if isinstance(value, str):
        return value.encode("utf-8")
    return value


def from_lua(value: Any) -> Any:
    """Decode a Lua string to text; bytes that are not UTF-8 become U+FFFD."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _bridge_tool(tool: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap a Python tool so it takes and returns text instead of Lua bytes."""

    def call(*args: Any) -> Any:
        result = tool(*[from_lua(arg) for arg in args])
        if isinstance(result, tuple):
            return tuple(to_lua(value) for value in result)
        return to_lua(result)

    return call


def _deny_attribute_access(obj: Any, attr_name: Any, is_setting: bool) -> Any:
    """lupa attribute filter: scripts may call injected tools, never inspect them."""
    raise AttributeError(f"access to Python attribute {from_lua(attr_name)!r} is sandboxed")


@dataclass
class LuaSandboxInterpreter:
    """Capability-restricted Lua interpreter (one per session).

    State persists across evaluate() calls. A failed evaluation leaves every
    table reachable from ``_G`` exactly as it was before the call.

    Lua strings are byte strings. Text crosses the boundary as UTF-8, and
    bytes that do not decode (e.g. ``string.sub`` splitting a character) are
    replaced with U+FFFD instead of failing the script.

    Thread Safety:
        NOT thread-safe. A session owns its interpreter exclusively; every
        sub-query gets its own instance.

    Attributes:
        denylist: Qualified Lua names replaced by sandboxed stubs
        tools: Python callables exposed to scripts, keyed by (possibly dotted)
            global name, e.g. ``{"rlm.llm_query": fn}``
        variables: Plain values set as globals, e.g. ``{"context": text}``
    """

    denylist: tuple[str, ...] = DEFAULT_DENYLIST
    tools: dict[str, Callable[..., Any]] = field(default_factory=dict)
    variables: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.output = OutputCapture()
        self._lua = None
        self._run = None
        self._make_stub = None

    @property
    def started(self) -> bool:
        return self._lua is not None

    def start(self) -> None:
        """Create the Lua runtime, install print/tools and apply the deny-list."""
        if self._lua is not None:
            return

        lua = lua54.LuaRuntime(
            encoding=None,
            unpack_returned_tuples=True,
            register_eval=False,
            register_builtins=False,
            attribute_filter=_deny_attribute_access,
        )
        make_print, make_stub, run = lua.execute(to_lua(_PRIVILEGED_SETUP))

        self._lua = lua
        self._run = run
        self._make_stub = make_stub

        lua.globals()[b"print"] = make_print(self._write_output)

        for name, value in self.variables.items():
            self.set_global(name, value)
        for name, tool in self.tools.items():
            self.set_global(name, tool)

        for name in self.denylist:
            self._deny(name)

    def shutdown(self) -> None:
        """Discard the runtime and all script state."""
        self._lua = None
        self._run = None
        self._make_stub = None
        self.output.clear()

    def _write_output(self, text: bytes) -> None:
        self.output.write(from_lua(text))

    def set_global(self, name: str, value: Any) -> None:
        """Set a (possibly dotted) global, creating intermediate tables.

        Strings are stored as UTF-8 Lua strings; Python callables are wrapped
        so they receive and return text.
        """
        if self._lua is None:
            self.start()

        if callable(value) and lua54.lua_type(value) is None:
            value = _bridge_tool(value)

        parts = [to_lua(part) for part in split_qualified_name(name)]
        table = self._lua.globals()
        for part in parts[:-1]:
            child = table[part]
            if lua54.lua_type(child) != "table":
                child = self._lua.table()
                table[part] = child
            table = child
        table[parts[-1]] = to_lua(value)

    def get_global(self, name: str) -> Any:
        """Read a (possibly dotted) global; missing segments read as None."""
        if self._lua is None:
            self.start()

        value = self._lua.globals()
        for part in split_qualified_name(name):
            if lua54.lua_type(value) != "table":
                return None
            value = value[to_lua(part)]
        return from_lua(value)

    def _deny(self, name: str) -> None:
        parts = [to_lua(part) for part in split_qualified_name(name)]
        table = self._lua.globals()
        for part in parts[:-1]:
            table = table[part]
            if lua54.lua_type(table) != "table":
                # Parent module absent in this Lua build, nothing to block
                return

        current = table[parts[-1]]
        as_table = lua54.lua_type(current) == "table"
        kept = None
        if as_table and name in HOST_PASSTHROUGH:
            kept = self._lua.table()
            for member in HOST_PASSTHROUGH[name]:
                kept[to_lua(member)] = current[to_lua(member)]
        table[parts[-1]] = self._make_stub(to_lua(name), as_table, kept)

    def evaluate(self, source: str) -> list[Any]:
        """Compile and run ``source`` in the persistent global environment.

        Args:
            source: Lua chunk

        Returns:
            The chunk's returned values in order (empty list when it returned
            nothing; ``None`` entries stand for ``nil``). Top-level strings are
            decoded to text; tables are returned as Lua tables.

        Raises:
            ScriptSyntaxError: If the chunk does not compile
            ScriptRuntimeError: If the chunk raises while running
        """
        if self._lua is None:
            self.start()

        ok, status, payload = self._run(to_lua(source))
        if not ok:
            if from_lua(status) == "syntax":
                raise ScriptSyntaxError(from_lua(payload))
            raise ScriptRuntimeError(from_lua(payload))

        return [from_lua(payload[i]) for i in range(2, int(status) + 2)]

    def lua_type(self, value: Any) -> Optional[str]:
        """Lua type name of a value returned by evaluate (None for Python objects)."""
        return lua54.lua_type(value)
