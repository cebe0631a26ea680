"""
NLU Engine combining intent classification, entity extraction and context.
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, Optional

from .context_manager import ContextManager
from .entity_extractor import EntityExtractor
from .intent_classifier import IntentClassifier, analyze_complexity
from .models import ContextSnapshot, NLUResult

logger = logging.getLogger(__name__)

INTENT_WEIGHT = 0.4
ENTITY_WEIGHT = 0.3
RELEVANCE_WEIGHT = 0.3


class NLUEngine:
    """Understands one user message in the context of its conversation."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.intent_classifier = IntentClassifier()
        self.entity_extractor = EntityExtractor()
        self.context_manager = ContextManager(self.config)

    def process(self, message: str, context: Optional[ContextSnapshot] = None) -> NLUResult:
        """
        Process a natural language message.

        Args:
            message: The user's message
            context: Context snapshot of the conversation so far

        Returns:
            NLUResult with intent, entities, updated context and confidence
        """
        start_time = time.time()
        message = message or ""

        snapshot = self.context_manager.update_context(message, context)
        intent = self.intent_classifier.classify(message, snapshot)
        entities = self.entity_extractor.extract(message)
        complexity = analyze_complexity(message)

        confidence = (
            intent.confidence * INTENT_WEIGHT
            + entities.confidence * ENTITY_WEIGHT
            + snapshot.relevance_score * RELEVANCE_WEIGHT
        )

        execution_time_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Understood message as {intent.primary.value} "
            f"(confidence {confidence:.2f}, complexity {complexity})"
        )

        return NLUResult(
            original_message=message,
            timestamp=datetime.now(),
            intent=intent,
            entities=entities,
            context=snapshot,
            complexity=complexity,
            confidence=confidence,
            execution_time_ms=execution_time_ms,
        )
