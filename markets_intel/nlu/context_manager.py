"""
Context Manager for multi-turn conversations.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from .models import ContextSnapshot, EntityExtraction, IntentResult

logger = logging.getLogger(__name__)

BASE_RELEVANCE = 0.3
ENTITY_CONTINUITY = 0.3
TOPIC_CONTINUITY = 0.2


class ContextManager:
    """Carries conversation context from one turn to the next."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.history_window = config.get("history_window", 10)
        self.recent_intents_window = config.get("recent_intents_window", 5)
        self.entity_stack_limit = config.get("entity_stack_limit", 20)

    def update_context(self, message: str, previous: Optional[ContextSnapshot] = None) -> ContextSnapshot:
        """
        Build the context snapshot for a new message.

        Args:
            message: The incoming user message
            previous: Snapshot from the previous turn, if any

        Returns:
            A new ContextSnapshot; the previous snapshot is never mutated
        """
        now = datetime.now()
        entry = {"message": message, "timestamp": now.isoformat()}

        if previous is None:
            return ContextSnapshot(
                current_message=message,
                timestamp=now,
                message_history=[entry],
                relevance_score=BASE_RELEVANCE,
            )

        history = list(previous.message_history) + [entry]
        if len(history) > self.history_window:
            history = history[-self.history_window:]

        return ContextSnapshot(
            current_message=message,
            timestamp=now,
            message_history=history,
            entity_stack=list(previous.entity_stack),
            topic_flow=list(previous.topic_flow),
            analysis_scope={key: list(values) for key, values in previous.analysis_scope.items()},
            recent_intents=list(previous.recent_intents[-self.recent_intents_window:]),
            conversation_state=previous.conversation_state,
            relevance_score=self.calculate_relevance(message, previous),
        )

    def calculate_relevance(self, message: str, previous: Optional[ContextSnapshot]) -> float:
        """Score how strongly a message continues the previous turns."""
        if previous is None or not previous.entity_stack:
            return BASE_RELEVANCE

        normalized = message.lower()
        score = 0.0

        # literal mentions only; pronouns such as "it" are not resolved
        for entity in previous.entity_stack[-3:]:
            if entity.lower() in normalized:
                score += ENTITY_CONTINUITY

        for topic in previous.topic_flow[-2:]:
            if topic.lower() in normalized:
                score += TOPIC_CONTINUITY

        return max(0.0, min(score, 1.0))

    def record_turn(
        self,
        snapshot: ContextSnapshot,
        intent: IntentResult,
        entities: EntityExtraction,
    ) -> ContextSnapshot:
        """
        Fold a completed turn's intent and entities into a new snapshot.

        Args:
            snapshot: Context the turn was understood with
            intent: Classified intent of the turn
            entities: Entities extracted from the turn

        Returns:
            A new ContextSnapshot ready to be passed as ``previous`` next turn
        """
        recent_intents = (list(snapshot.recent_intents) + [intent.primary.value])[-self.recent_intents_window:]

        entity_stack = list(snapshot.entity_stack)
        for name in entities.texts("companies") + entities.texts("people"):
            if name in entity_stack:
                entity_stack.remove(name)
            entity_stack.append(name)
        entity_stack = entity_stack[-self.entity_stack_limit:]

        topic_flow = list(snapshot.topic_flow) + entities.texts("sectors") + entities.texts("geographies")
        topic_flow = topic_flow[-self.history_window:]

        analysis_scope = {key: list(values) for key, values in snapshot.analysis_scope.items()}
        for category in ("sectors", "timeframes", "geographies"):
            values = entities.texts(category)
            if values:
                analysis_scope[category] = values

        return ContextSnapshot(
            current_message=snapshot.current_message,
            timestamp=snapshot.timestamp,
            message_history=list(snapshot.message_history),
            entity_stack=entity_stack,
            topic_flow=topic_flow,
            analysis_scope=analysis_scope,
            recent_intents=recent_intents,
            conversation_state=snapshot.conversation_state,
            relevance_score=snapshot.relevance_score,
        )
