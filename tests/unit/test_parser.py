"""Tests for Lua source extraction from completion responses."""

from rlm_lua.repl.parser import extract_code_blocks, extract_script


class TestExtractScript:
    def test_bare_response_runs_as_is(self):
        assert extract_script("return 2 + 2") == "return 2 + 2"

    def test_lua_fence(self):
        response = "Let me check.\n```lua\nprint(#context)\n```\n"
        assert extract_script(response) == "print(#context)"

    def test_repl_fence(self):
        assert extract_script("```repl\nx = 1\n```") == "x = 1"

    def test_untagged_fence(self):
        assert extract_script("```\nreturn 1\n```") == "return 1"

    def test_tag_is_case_insensitive(self):
        assert extract_script("```Lua\nreturn 1\n```") == "return 1"

    def test_multiple_blocks_joined_in_order(self):
        response = "```lua\nx = 1\n```\nthen\n```lua\nreturn x\n```"
        assert extract_script(response) == "x = 1\n\nreturn x"

    def test_other_language_fence_is_not_extracted(self):
        response = "```python\nprint('no')\n```"
        assert extract_code_blocks(response) == []
        assert extract_script(response) == response

    def test_multiline_body_preserved(self):
        body = "for i = 1, 3 do\n  print(i)\nend"
        assert extract_script(f"```lua\n{body}\n```") == body
