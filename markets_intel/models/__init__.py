"""
LLM abstraction layer for optional enrichment.
"""

from .llm_manager import LLMManager, LLMConfig, OpenAIProvider, AnthropicProvider, resolve_env_vars
from .enrichment import EntityEnricher

__all__ = [
    "LLMManager",
    "LLMConfig",
    "OpenAIProvider",
    "AnthropicProvider",
    "resolve_env_vars",
    "EntityEnricher",
]
