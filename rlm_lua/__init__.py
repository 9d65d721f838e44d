"""rlm-lua - Recursive Language Models over a sandboxed Lua REPL.

The model answers a query about a large context by writing Lua scripts that
inspect it, instead of reading the whole context in one prompt.

Architecture:
- engine/: session loop, prompts and backend abstraction
- interpreter/: LuaSandboxInterpreter (deny-listed Lua 5.4 via lupa)
- repl/: interaction history, script executor, response parsing
- tools/: llm_query recursive delegation and callback instrumentation
- completion/: completion callback contract and DSPy adapter
- logging/: JSONL trajectory callback and optional MLflow tracking
"""

from .config import RLMConfig
from .engine.session import complete
from .errors import (
    CompletionError,
    MaxIterationsReached,
    RLMError,
    ScriptFault,
    ScriptRuntimeError,
    ScriptSyntaxError,
)

__version__ = "0.1.0"

__all__ = [
    "RLMConfig",
    "complete",
    "CompletionError",
    "MaxIterationsReached",
    "RLMError",
    "ScriptFault",
    "ScriptRuntimeError",
    "ScriptSyntaxError",
]
