"""End-to-end session tests with a scripted completion callback.

Drives the whole loop (prompting, script execution, history and recursion)
through ``rlm_lua.complete`` without a real model.
"""

import json

import pytest

from rlm_lua import CompletionError, MaxIterationsReached, RLMConfig, complete
from rlm_lua.engine import Session
from rlm_lua.engine.prompts import FINAL_ANSWER_SYSTEM_PROMPT, REPL_SYSTEM_PROMPT


class TestLoopScenarios:
    """Basic loop behaviour: halt, continue, exhaust, recover."""

    def test_immediate_answer(self, scripted_llm):
        llm = scripted_llm("return 2 + 2")

        assert complete("what is 2+2?", llm) == "4"
        assert llm.call_count == 1

    def test_explore_then_answer(self, scripted_llm):
        llm = scripted_llm("print('step 1')", "print('step 2')", "return 'done'")

        assert complete("q", llm, max_iterations=3) == '"done"'
        assert llm.call_count == 3

    def test_budget_exhausted(self, scripted_llm):
        llm = scripted_llm("print('loop')", repeat_last=True)

        with pytest.raises(MaxIterationsReached) as exc_info:
            complete("q", llm, max_iterations=5)

        assert llm.call_count == 5
        assert exc_info.value.iterations == 5

    def test_recovers_from_fault(self, scripted_llm):
        llm = scripted_llm("error('intentional')", "return 'recovered'")

        assert complete("q", llm) == '"recovered"'
        assert "intentional" in llm.user_prompt(1)
        assert "Lua runtime error" in llm.user_prompt(1)

    def test_fault_on_last_iteration_exhausts_budget(self, scripted_llm):
        llm = scripted_llm("print('look')", "error('too late')")

        with pytest.raises(MaxIterationsReached):
            complete("q", llm, max_iterations=2)

    def test_bare_nil_return_halts(self, scripted_llm):
        assert complete("q", scripted_llm("return nil")) == "nil"

    def test_fenced_response(self, scripted_llm):
        llm = scripted_llm("Here you go:\n```lua\nreturn #context\n```")

        assert complete("how long?", llm, context="x" * 42) == "42"


class TestPrompts:
    """What the model sees on each iteration."""

    def test_output_fed_back_in_next_prompt(self, scripted_llm):
        llm = scripted_llm("print('marker-123')", "return 1")

        complete("q", llm)

        assert "marker-123" not in llm.user_prompt(0)
        second = llm.user_prompt(1)
        assert "CODE:\n\n```lua\nprint('marker-123')\n```" in second
        assert "OUTPUT:\n\n```\nmarker-123\n\n```" in second

    def test_remaining_iterations_decrease(self, scripted_llm):
        llm = scripted_llm("x = 1", "x = 2", "return x")

        complete("q", llm, max_iterations=4)

        assert "Iterations remaining: 4" in llm.user_prompt(0)
        assert "Iterations remaining: 3" in llm.user_prompt(1)
        assert "Iterations remaining: 2" in llm.user_prompt(2)

    def test_final_answer_prompt_on_last_iteration(self, scripted_llm):
        llm = scripted_llm("x = 1", "return x")

        assert complete("q", llm, max_iterations=2) == "1"
        assert llm.calls[0][0].content == REPL_SYSTEM_PROMPT
        assert llm.calls[1][0].content == FINAL_ANSWER_SYSTEM_PROMPT

    def test_long_output_truncated_in_prompt(self, scripted_llm):
        llm = scripted_llm("print(string.rep('a', 50))", "return 1")

        complete("q", llm, config=RLMConfig(output_truncation_length=10))

        assert "a" * 10 + "..." in llm.user_prompt(1)
        assert "a" * 11 not in llm.user_prompt(1)


class TestStatePersistence:
    def test_globals_persist_across_iterations(self, scripted_llm):
        llm = scripted_llm("count = #context", "count = count * 2", "return count")

        assert complete("q", llm, context="abc") == "6"

    def test_faulted_iteration_leaves_state_untouched(self, scripted_llm):
        llm = scripted_llm("x = 100", "x = 1\nerror('oops')", "return x")

        assert complete("q", llm) == "100"


class TestCompletionErrors:
    def test_completion_error_propagates_unchanged(self, scripted_llm):
        error = CompletionError("rate limited")
        llm = scripted_llm("print(1)", error)

        with pytest.raises(CompletionError) as exc_info:
            complete("q", llm)

        assert exc_info.value is error

    def test_other_exceptions_wrapped(self, scripted_llm):
        llm = scripted_llm(ConnectionError("socket closed"))

        with pytest.raises(CompletionError, match="ConnectionError: socket closed"):
            complete("q", llm)

    def test_non_callable_rejected(self):
        with pytest.raises(TypeError):
            complete("q", "not a function")

    def test_plain_string_responses_accepted(self):
        assert complete("q", lambda messages: "return 'plain'") == '"plain"'


class TestRecursion:
    """llm_query end to end through nested sessions."""

    def test_sub_query_answer_returned_to_parent(self, scripted_llm):
        llm = scripted_llm(
            "local r, err = rlm.llm_query('child question', 'child context')\nreturn r",
            "return 'from child'",
        )

        answer = complete("parent question", llm, max_depth=3)

        assert answer == json.dumps('"from child"')
        assert llm.call_count == 2
        assert "child question" in llm.user_prompt(1)

    def test_sub_query_uses_own_context(self, scripted_llm):
        llm = scripted_llm(
            "local r, err = llm_query('size?', string.sub(context, 1, 4))\nreturn tonumber(r)",
            "return #context",
        )

        assert complete("q", llm, context="0123456789") == "4"

    def test_child_interpreter_is_fresh(self, scripted_llm):
        llm = scripted_llm(
            "secret = 'parent only'\nlocal r, err = llm_query('peek', '')\nreturn r",
            "return secret",
        )

        assert complete("q", llm) == json.dumps("nil")

    def test_depth_one_refuses_sub_queries(self, scripted_llm):
        llm = scripted_llm("local r, err = llm_query('q', 'ctx')\nreturn err")

        assert complete("q", llm, max_depth=1) == '"max recursion depth reached"'
        assert llm.call_count == 1

    def test_depth_two_allows_exactly_one_level(self, scripted_llm):
        llm = scripted_llm(
            "local r, err = llm_query('level 2', 'ctx')\nreturn r",
            "local r, err = llm_query('level 3', 'ctx')\nreturn err",
        )

        answer = complete("q", llm, max_depth=2)

        assert answer == json.dumps('"max recursion depth reached"')
        assert llm.call_count == 2

    def test_admission_refusal_lets_script_chunk(self, scripted_llm):
        parent = (
            "local r, err = llm_query('q', context)\n"
            "if err then\n"
            "  local a = llm_query('q', string.sub(context, 1, 40))\n"
            "  local b = llm_query('q', string.sub(context, 41))\n"
            "  return a .. '+' .. b\n"
            "end\n"
            "return r"
        )
        llm = scripted_llm(parent, "return #context", "return #context")

        answer = complete("q", llm, context="z" * 80, max_context_chars=50)

        assert answer == json.dumps("40+40")
        assert llm.call_count == 3

    def test_multibyte_context_chunked_by_bytes(self, scripted_llm):
        parent = (
            "local a, err_a = llm_query('first', string.sub(context, 1, 2))\n"
            "local b, err_b = llm_query('rest', string.sub(context, 3))\n"
            "return err_a == nil and err_b == nil, a, b"
        )
        llm = scripted_llm(parent, "return context", "return context")

        answer = complete("q", llm, context="h\u00e9llo")

        def quoted(text):
            return json.dumps(text, ensure_ascii=False)

        # The split character is replaced on both sides of the cut
        first, rest = quoted(quoted("h\ufffd")), quoted(quoted("\ufffdllo"))
        assert answer == f"[true, {first}, {rest}]"

    def test_child_iteration_exhaustion_is_reported_to_parent(self, scripted_llm):
        llm = scripted_llm(
            "local r, err = llm_query('q', 'ctx')\nreturn err",
            "print('child loops')",
            "print('child loops')",
        )

        answer = complete("q", llm, max_iterations=2)

        assert answer == '"max number of iterations reached"'

    def test_sibling_sub_queries_run_sequentially(self, scripted_llm):
        llm = scripted_llm(
            "local a = llm_query('first', '')\nlocal b = llm_query('second', '')\nreturn a .. b",
            "return 'A'",
            "return 'B'",
        )

        assert complete("q", llm) == json.dumps('"A""B"')
        assert "first" in llm.user_prompt(1)
        assert "second" in llm.user_prompt(2)


class TestSession:
    def test_session_tracks_iterations(self, scripted_llm):
        session = Session(scripted_llm("x = 1", "return x"), depth=1, config=RLMConfig())

        assert session.run("q") == "1"
        assert session.iterations_used == 1
        assert len(session.history) == 2

    def test_interpreter_shut_down_after_run(self, scripted_llm):
        session = Session(scripted_llm("return 1"), depth=1, config=RLMConfig())
        session.run("q")

        assert not session.interpreter.started

    def test_verbose_prints_iteration_headers(self, scripted_llm, capsys):
        session = Session(scripted_llm("return 1"), depth=2, config=RLMConfig(), verbose=True)
        session.run("q")

        assert "[depth 2] Iteration 1/10" in capsys.readouterr().out
