"""
Tests for the LLM manager used by enrichment.
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from markets_intel.errors import ConfigurationError, EnrichmentError
from markets_intel.models.llm_manager import LLMManager, resolve_env_vars


def openai_response(text):
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = text
    return response


class TestLLMManager:
    """Test provider setup and generation."""

    @pytest.fixture
    def config(self):
        return {"llm": {"default_provider": "openai", "openai": {"model": "gpt-4o-mini", "api_key": "sk-test"}}}

    @pytest.mark.asyncio
    async def test_generate_with_default_provider(self, config):
        with patch("openai.AsyncOpenAI") as client_class:
            client = client_class.return_value
            client.chat.completions.create = AsyncMock(return_value=openai_response("An insight"))

            manager = LLMManager(config)
            text = await manager.generate("Describe KKR")

        assert text == "An insight"
        assert manager.get_available_providers() == ["openai"]
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == [{"role": "user", "content": "Describe KKR"}]

    @pytest.mark.asyncio
    async def test_provider_error_is_wrapped(self, config):
        with patch("openai.AsyncOpenAI") as client_class:
            client_class.return_value.chat.completions.create = AsyncMock(side_effect=RuntimeError("429"))

            manager = LLMManager(config)
            with pytest.raises(EnrichmentError, match="OpenAI generation failed"):
                await manager.generate("Describe KKR")

    @pytest.mark.asyncio
    async def test_unknown_provider(self, config):
        with patch("openai.AsyncOpenAI"):
            manager = LLMManager(config)

        with pytest.raises(ConfigurationError, match="Provider anthropic not available"):
            await manager.generate("Describe KKR", provider="anthropic")

    def test_no_providers(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ConfigurationError, match="No LLM providers"):
            LLMManager({"llm": {"openai": {"api_key": "${MISSING_TEST_KEY}"}}})


class TestResolveEnvVars:
    """Test ${VAR} substitution."""

    def test_resolves_set_variable(self, monkeypatch):
        monkeypatch.setenv("TEST_API_KEY", "secret")

        assert resolve_env_vars("${TEST_API_KEY}") == "secret"

    def test_leaves_unset_variable(self, monkeypatch):
        monkeypatch.delenv("UNSET_TEST_KEY", raising=False)

        assert resolve_env_vars("${UNSET_TEST_KEY}") == "${UNSET_TEST_KEY}"

    def test_plain_values_unchanged(self):
        assert resolve_env_vars("plain") == "plain"
        assert resolve_env_vars(42) == 42
