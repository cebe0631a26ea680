"""
LLM Manager for the optional enrichment providers.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

from ..errors import ConfigurationError, EnrichmentError

logger = logging.getLogger(__name__)


def resolve_env_vars(value: str) -> str:
    """Resolve environment variables in string values like ${VAR_NAME}."""
    if isinstance(value, str) and "${" in value:
        def replace_env_var(match):
            var_name = match.group(1)
            return os.getenv(var_name, match.group(0))

        return re.sub(r'\$\{([^}]+)\}', replace_env_var, value)
    return value


@dataclass
class LLMConfig:
    """Configuration for LLM providers."""
    provider: str
    model: str
    temperature: float = 0.1
    max_tokens: int = 300
    api_key: Optional[str] = None

    def __post_init__(self):
        """Resolve environment variables after initialization."""
        if self.api_key:
            self.api_key = resolve_env_vars(self.api_key)
            if "${" in self.api_key:
                self.api_key = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def generate(self, prompt: str, **kwargs) -> str:
        """Generate text using the LLM."""
        pass


class OpenAIProvider(LLMProvider):
    """OpenAI provider implementation."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.api_key = config.api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise ConfigurationError("OpenAI API key not found")

        from openai import AsyncOpenAI
        self.client = AsyncOpenAI(api_key=self.api_key)

    async def generate(self, prompt: str, **kwargs) -> str:
        """Generate text using OpenAI."""
        try:
            response = await self.client.chat.completions.create(
                model=self.config.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=kwargs.get("max_tokens", self.config.max_tokens),
                temperature=kwargs.get("temperature", self.config.temperature)
            )
            return response.choices[0].message.content
        except Exception as e:
            logger.error(f"OpenAI generation error: {e}")
            raise EnrichmentError(f"OpenAI generation failed: {e}") from e


class AnthropicProvider(LLMProvider):
    """Anthropic provider implementation."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.api_key = config.api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ConfigurationError("Anthropic API key not found")

        import anthropic
        self.client = anthropic.AsyncAnthropic(api_key=self.api_key)

    async def generate(self, prompt: str, **kwargs) -> str:
        """Generate text using Anthropic."""
        try:
            response = await self.client.messages.create(
                model=self.config.model,
                max_tokens=kwargs.get("max_tokens", self.config.max_tokens),
                temperature=kwargs.get("temperature", self.config.temperature),
                messages=[{"role": "user", "content": prompt}]
            )
            return response.content[0].text
        except Exception as e:
            logger.error(f"Anthropic generation error: {e}")
            raise EnrichmentError(f"Anthropic generation failed: {e}") from e


PROVIDER_CLASSES = {
    "openai": (OpenAIProvider, "gpt-4o-mini"),
    "anthropic": (AnthropicProvider, "claude-3-5-haiku-latest"),
}


class LLMManager:
    """Manager for handling different LLM providers."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.providers: Dict[str, LLMProvider] = {}
        self._initialize_providers()

    def _initialize_providers(self):
        """Initialize every configured LLM provider."""
        llm_config = self.config.get("llm", {})

        for name, (provider_class, default_model) in PROVIDER_CLASSES.items():
            if name not in llm_config:
                continue

            provider_config = LLMConfig(
                provider=name,
                model=llm_config[name].get("model", default_model),
                temperature=llm_config[name].get("temperature", 0.1),
                max_tokens=llm_config[name].get("max_tokens", 300),
                api_key=llm_config[name].get("api_key")
            )
            try:
                self.providers[name] = provider_class(provider_config)
                logger.info(f"{name} provider initialized")
            except ConfigurationError as e:
                logger.warning(f"Failed to initialize {name} provider: {e}")

        if not self.providers:
            raise ConfigurationError("No LLM providers could be initialized")

    def _provider_name(self, provider: Optional[str]) -> str:
        provider_name = provider or self.config.get("llm", {}).get("default_provider") or list(self.providers.keys())[0]
        if provider_name not in self.providers:
            raise ConfigurationError(f"Provider {provider_name} not available")
        return provider_name

    async def generate(self, prompt: str, provider: Optional[str] = None, **kwargs) -> str:
        """Generate text using specified or default provider."""
        return await self.providers[self._provider_name(provider)].generate(prompt, **kwargs)

    def get_available_providers(self) -> List[str]:
        """Get list of available providers."""
        return list(self.providers.keys())
