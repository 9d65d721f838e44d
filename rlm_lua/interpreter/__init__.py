"""LuaSandboxInterpreter for bounded script execution.

Runs Lua in a persistent, deny-listed global environment with captured print
output and tool injection.
"""

from .lua_interpreter import LuaSandboxInterpreter, from_lua, to_lua
from .output_capture import OutputCapture
from .sandbox import DEFAULT_DENYLIST

__all__ = ["LuaSandboxInterpreter", "OutputCapture", "DEFAULT_DENYLIST", "from_lua", "to_lua"]
