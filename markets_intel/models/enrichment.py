"""
Optional LLM enrichment of entity descriptions.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from .llm_manager import LLMManager

logger = logging.getLogger(__name__)

ENRICHMENT_PROMPT = """You are a private markets analyst. In at most two sentences, give one
useful, factual insight about the following entity for an investor. If you do not
know anything reliable about it, reply with NONE.

Entity: {description}

Insight:"""


class EntityEnricher:
    """Adds a short LLM-generated insight to an entity description. Fails open."""

    def __init__(self, llm_manager: LLMManager, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.llm_manager = llm_manager
        self.timeout_seconds = config.get("enrichment_timeout_seconds", 5.0)
        self.provider = config.get("enrichment_provider")

    async def enrich(self, entity_description: str) -> Optional[str]:
        """
        Ask the configured LLM for one insight about an entity.

        Args:
            entity_description: Name plus known attributes of the entity

        Returns:
            Insight text, or None when the provider fails, times out or has nothing to add
        """
        if not entity_description or not entity_description.strip():
            return None

        prompt = ENRICHMENT_PROMPT.format(description=entity_description.strip())
        try:
            insight = await asyncio.wait_for(
                self.llm_manager.generate(prompt, provider=self.provider),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Enrichment timed out after {self.timeout_seconds}s")
            return None
        except Exception as e:
            logger.warning(f"Enrichment failed: {e}")
            return None

        insight = (insight or "").strip()
        if not insight or insight.upper().startswith("NONE"):
            return None
        return insight
