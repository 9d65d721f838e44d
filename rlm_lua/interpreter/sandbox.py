"""Sandbox policy for the embedded Lua interpreter.

The deny-list names every global (or ``module.member``) that scripts must not
reach. Each entry is replaced by a stub that raises ``"<name> is sandboxed"``
so a blocked call is always a visible runtime fault, never a silent no-op.
"""

from __future__ import annotations

# File access
FILE_ACCESS = ("io", "file")

# Process and environment access
PROCESS_ACCESS = (
    "os.execute",
    "os.exit",
    "os.getenv",
    "os.remove",
    "os.rename",
    "os.tmpname",
    "os.setlocale",
)

# Dynamic code loading
CODE_LOADING = (
    "package",
    "require",
    "dofile",
    "load",
    "loadfile",
    "loadstring",
    "string.dump",
)

# Low-level object/metadata introspection and mutation
INTROSPECTION = (
    "debug",
    "rawget",
    "rawset",
    "rawequal",
    "rawlen",
    "getmetatable",
    "setmetatable",
)

# Manual memory / GC control
MEMORY = ("collectgarbage",)

# Cooperative multitasking
MULTITASKING = ("coroutine",)

# lupa's bridge back into the host Python process
HOST_BRIDGE = ("python",)

DEFAULT_DENYLIST: tuple[str, ...] = (
    FILE_ACCESS
    + PROCESS_ACCESS
    + CODE_LOADING
    + INTROSPECTION
    + MEMORY
    + MULTITASKING
    + HOST_BRIDGE
)


def split_qualified_name(name: str) -> list[str]:
    """Split ``"os.execute"`` into ``["os", "execute"]``.

    Raises:
        ValueError: If the name is empty or has empty segments
    """
    parts = name.split(".")
    if not name or any(not part for part in parts):
        raise ValueError(f"Invalid deny-list entry: {name!r}")
    return parts


# lupa reads debug.traceback before every call from Python into Lua, outside
# any protected call. Stubs for these modules keep serving the listed members.
HOST_PASSTHROUGH: dict[str, tuple[str, ...]] = {"debug": ("traceback",)}
