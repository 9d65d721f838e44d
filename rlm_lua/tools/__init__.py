"""Tools exposed to Lua scripts, and callback instrumentation."""

from .delegation_tools import make_llm_query_tool
from .instrumentation import emit

__all__ = ["make_llm_query_tool", "emit"]
