"""Prompt construction for RLM iterations.

Two prompt sets: an exploration prompt used while more than one iteration
remains, and a final-answer prompt for the last iteration.
"""

from __future__ import annotations

from rlm_lua.completion.llm import Message

REPL_SYSTEM_PROMPT = """\
You answer a query about a large context by writing Lua 5.4 scripts that run in a \
sandboxed REPL. You never see the whole context at once; inspect it with code.

Your entire reply is executed as Lua. Reply with Lua source only.

Environment:
- `context` is a global string holding the full context. Use #context for its size and \
string.sub / string.find / string.match / string.gmatch to inspect it.
- Globals you define persist between iterations; locals do not.
- `print(...)` output is shown to you in the next iteration. Print summaries and samples, \
not the whole context: long outputs are truncated.
- `return value` ends the session and `value` becomes the final answer. Only return once \
you are confident. A script that returns nothing keeps exploring.
- `local result, err = rlm.llm_query(query, ctx)` (also available as `llm_query`) asks a \
fresh sub-model to answer `query` about `ctx`. Exactly one of `result` / `err` is nil. \
Check `err`: it reports depth limits and oversized contexts (split the context into the \
suggested chunk size and query each chunk).
- Errors in your script are shown to you; fix them in the next iteration.
- Sandboxed (raise an error): io, os.execute/getenv/remove/rename/exit, require, load, \
dofile, debug, rawget/rawset, getmetatable/setmetatable, collectgarbage, coroutine. \
Available: string, table, math, utf8, pairs/ipairs, tostring/tonumber, type, pcall, \
os.time/os.clock/os.date.
"""

REPL_USER_PROMPT = """\
Query: {query}

REPL history (oldest first):
{repl_history}

Iterations remaining: {remaining}
Write the next Lua script. Explore while you need more evidence; `return` the answer \
when you have it."""

FINAL_ANSWER_SYSTEM_PROMPT = """\
You answer a query about a large context using a sandboxed Lua 5.4 REPL. This is the \
last iteration: your reply is executed as Lua and must `return` the final answer.

The global `context` and every global defined in earlier iterations are still \
available. Reply with Lua source only, ending in `return <answer>`.
"""

FINAL_ANSWER_USER_PROMPT = """\
Query: {query}

REPL history (oldest first):
{repl_history}

This is your final iteration. Return the best answer supported by the history above."""

EMPTY_HISTORY = "(no code executed yet)"


def build_messages(query: str, repl_history: str, remaining: int) -> list[Message]:
    """Messages for the next completion.

    Args:
        query: The session's query
        repl_history: Chronologically formatted History
        remaining: Iterations remaining, including this one

    Returns:
        ``[system, user]`` messages; the final-answer variant when ``remaining <= 1``
    """
    history_text = repl_history if repl_history else EMPTY_HISTORY

    if remaining > 1:
        system = REPL_SYSTEM_PROMPT
        user = REPL_USER_PROMPT.format(query=query, repl_history=history_text, remaining=remaining)
    else:
        system = FINAL_ANSWER_SYSTEM_PROMPT
        user = FINAL_ANSWER_USER_PROMPT.format(query=query, repl_history=history_text)

    return [Message(role="system", content=system), Message(role="user", content=user)]
