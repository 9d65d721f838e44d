"""REPL building blocks: interaction history, script executor, response parsing."""

from .executor import Continue, Fault, Halt, ScriptExecutor, ScriptOutcome, render_value
from .history import History, Interaction, InteractionKind
from .parser import extract_script

__all__ = [
    "Continue",
    "Fault",
    "Halt",
    "ScriptExecutor",
    "ScriptOutcome",
    "render_value",
    "History",
    "Interaction",
    "InteractionKind",
    "extract_script",
]
