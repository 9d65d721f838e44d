"""Extract Lua source from an LLM response.

Models are asked for bare Lua, but often wrap it in markdown fences anyway.
Fenced blocks tagged ``lua`` or ``repl`` (or untagged) are joined and run;
a response without fences is run as-is.
"""

from __future__ import annotations

import re

_CODE_BLOCK = re.compile(r"```[ \t]*(lua|repl)?[ \t]*\r?\n(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_code_blocks(response: str) -> list[str]:
    """Return the bodies of all ```lua / ```repl / ``` blocks, in order."""
    return [body.rstrip("\n") for _, body in _CODE_BLOCK.findall(response)]


def extract_script(response: str) -> str:
    """Lua source to execute for a completion response.

    Args:
        response: Raw completion text

    Returns:
        Joined fenced code blocks when present, otherwise the response itself
    """
    blocks = extract_code_blocks(response)
    if not blocks:
        return response
    return "\n\n".join(blocks)
