"""Tests for RLMConfig bounds, validation and environment loading."""

import pytest

from rlm_lua.config import RLMConfig
from rlm_lua.interpreter import DEFAULT_DENYLIST


class TestDefaults:
    def test_default_bounds(self):
        config = RLMConfig()
        assert config.max_iterations == 10
        assert config.max_depth == 10
        assert config.max_context_chars is None
        assert config.output_truncation_length == 100_000
        assert config.denylist == DEFAULT_DENYLIST

    def test_frozen(self):
        config = RLMConfig()
        with pytest.raises(AttributeError):
            config.max_iterations = 3

    def test_replace_returns_copy(self):
        config = RLMConfig()
        changed = config.replace(max_iterations=3)
        assert changed.max_iterations == 3
        assert config.max_iterations == 10

    def test_denylist_list_stored_as_tuple(self):
        config = RLMConfig(denylist=["io", "os.execute"])
        assert config.denylist == ("io", "os.execute")


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_iterations": 0},
            {"max_depth": 0},
            {"max_context_chars": 0},
            {"output_truncation_length": 0},
            {"denylist": ("os..execute",)},
            {"denylist": ("",)},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RLMConfig(**kwargs)

    def test_depth_one_allowed(self):
        assert RLMConfig(max_depth=1).max_depth == 1


class TestFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RLM_MAX_ITERATIONS", "15")
        monkeypatch.setenv("RLM_MAX_CONTEXT_CHARS", "50000")
        config = RLMConfig.from_env()
        assert config.max_iterations == 15
        assert config.max_context_chars == 50000
        assert config.max_depth == 10

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("RLM_MAX_DEPTH", "5")
        assert RLMConfig.from_env(max_depth=2).max_depth == 2

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("MYAPP_MAX_ITERATIONS", "4")
        assert RLMConfig.from_env(prefix="MYAPP_").max_iterations == 4

    def test_blank_variable_ignored(self, monkeypatch):
        monkeypatch.setenv("RLM_MAX_ITERATIONS", "  ")
        assert RLMConfig.from_env().max_iterations == 10

    def test_non_integer_rejected(self, monkeypatch):
        monkeypatch.setenv("RLM_MAX_ITERATIONS", "ten")
        with pytest.raises(ValueError, match="RLM_MAX_ITERATIONS"):
            RLMConfig.from_env()
