"""RLM execution engine: session loop, prompts and backend abstraction."""

from .backend import LuaRLMBackend, RLMBackend, RLMResult, is_rlm_backend
from .prompts import build_messages
from .session import Session, complete, run_session

__all__ = [
    "LuaRLMBackend",
    "RLMBackend",
    "RLMResult",
    "is_rlm_backend",
    "build_messages",
    "Session",
    "complete",
    "run_session",
]
