"""Callback dispatch for session observability.

Session callbacks are plain objects with optional ``on_*`` hooks
(``on_session_start``, ``on_llm_start``, ``on_script_outcome``, ...). A hook
that raises is reported as a warning and never aborts the session.
"""

from __future__ import annotations

import warnings
from typing import Any, Sequence


def emit(callbacks: Sequence[Any], hook: str, **kwargs: Any) -> None:
    """Call ``hook`` with keyword arguments on every callback that defines it."""
    for callback in callbacks:
        method = getattr(callback, hook, None)
        if method is None:
            continue
        try:
            method(**kwargs)
        except Exception as e:
            warnings.warn(f"Callback {hook} failed: {e}", UserWarning)
