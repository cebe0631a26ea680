"""
Conversation Manager handling multi-turn sessions and conversation analytics.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..nlu.models import ContextSnapshot
from ..utils.cache import LRUCache
from .models import Conversation, ConversationTurn

logger = logging.getLogger(__name__)

GENERIC_STARTER_SUGGESTIONS = [
    "Tell me about Blackstone",
    "Find opportunities in technology",
    "Compare KKR and Apollo",
    "Show me the top private equity firms",
    "What are the latest trends in real estate investing?",
    "Find co-investment opportunities",
]

ENGAGEMENT_WEIGHTS = {
    "follow_up_rate": 0.3,
    "exploration_depth": 0.25,
    "session_length": 0.2,
    "query_success": 0.15,
    "topic_diversity": 0.1,
}

MAX_SUGGESTIONS = 4


def generate_conversation_id() -> str:
    return f"conv_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _add_unique(values: List[str], value: str):
    if value not in values:
        values.append(value)


class ConversationManager:
    """Keeps bounded, expiring conversation sessions and their context."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or {}
        self.context_window = self.config.get("context_window", 10)
        self.session_timeout_minutes = self.config.get("session_timeout_minutes", 60)
        self.cleanup_interval_minutes = self.config.get("cleanup_interval_minutes", 15)
        self.sessions = LRUCache(
            capacity=self.config.get("max_sessions", 10000),
            ttl_seconds=self.session_timeout_minutes * 60,
            clock=clock,
        )
        self._cleanup_task: Optional[asyncio.Task] = None

    def get_conversation(self, conversation_id: Optional[str] = None, user: Optional[str] = None) -> Conversation:
        """Get a conversation, creating it when it does not exist or has expired."""
        conversation_id = conversation_id or generate_conversation_id()

        conversation = self.sessions.get(conversation_id)
        if conversation is None:
            now = datetime.now()
            conversation = Conversation(id=conversation_id, created_at=now, last_activity=now, user=user)
            self.sessions.set(conversation_id, conversation)
            logger.debug(f"Started conversation {conversation_id}")
        else:
            self.sessions.touch(conversation_id)
            conversation.last_activity = datetime.now()

        return conversation

    def has_conversation(self, conversation_id: str) -> bool:
        return conversation_id in self.sessions

    def get_context_snapshot(self, conversation_id: str) -> Optional[ContextSnapshot]:
        """Get the NLU context carried over from the last turn, if any."""
        conversation = self.sessions.get(conversation_id)
        return conversation.context.nlu_context if conversation else None

    def add_turn(
        self,
        conversation_id: str,
        turn: ConversationTurn,
        nlu_context: Optional[ContextSnapshot] = None,
    ) -> ConversationTurn:
        """
        Add a completed turn to a conversation and update its context.

        Args:
            conversation_id: Conversation to update
            turn: The completed turn
            nlu_context: Context snapshot to carry into the next turn

        Returns:
            The stored turn with its turn id assigned
        """
        conversation = self.get_conversation(conversation_id)
        conversation.turn_counter += 1
        turn.turn_id = conversation.turn_counter
        conversation.turns.append(turn)

        self._update_context(conversation, turn)
        if nlu_context is not None:
            conversation.context.nlu_context = nlu_context

        if len(conversation.turns) > self.context_window:
            conversation.turns = conversation.turns[-self.context_window:]

        return turn

    def _update_context(self, conversation: Conversation, turn: ConversationTurn):
        context = conversation.context
        entities = turn.entities

        for name in entities.texts("companies") + entities.texts("people"):
            _add_unique(context.entities_discussed, name)
        for sector in entities.texts("sectors"):
            _add_unique(context.sectors_explored, sector)
        for geography in entities.texts("geographies"):
            _add_unique(context.geographies_explored, geography)

        if turn.intent:
            _add_unique(context.topics_discussed, turn.intent)

        if entities.companies:
            context.current_focus = entities.companies[0].text

        for key in turn.knowledge_covered:
            _add_unique(context.knowledge_covered, key)

        if turn.follow_up_suggestions:
            context.follow_up_opportunities = turn.follow_up_suggestions[:3]

        if turn.has_error:
            context.query_success_rate = max(context.query_success_rate - 0.1, 0.0)
        else:
            context.query_success_rate = min(context.query_success_rate + 0.05, 1.0)

        self._update_satisfaction_indicators(conversation)

    def _update_satisfaction_indicators(self, conversation: Conversation):
        context = conversation.context
        turns = conversation.turns
        indicators = context.satisfaction

        follow_ups = 0
        for previous, current in zip(turns, turns[1:]):
            message = current.user_message.lower()
            if any(suggestion.lower()[:10] in message for suggestion in previous.follow_up_suggestions):
                follow_ups += 1

        indicators.follow_up_rate = follow_ups / max(len(turns) - 1, 1)
        indicators.exploration_depth = len(context.topics_discussed) / max(len(turns), 1)
        indicators.session_length = self.get_session_duration(conversation)

    def get_session_duration(self, conversation: Conversation) -> int:
        """Session duration in whole minutes."""
        if not conversation.turns:
            return 0
        return round((conversation.last_activity - conversation.created_at).total_seconds() / 60)

    def get_context_for_turn(self, conversation_id: str) -> Dict[str, Any]:
        conversation = self.get_conversation(conversation_id)
        context = conversation.context
        return {
            "conversation_id": conversation.id,
            "current_focus": context.current_focus,
            "recent_turns": [turn.user_message for turn in conversation.turns[-3:]],
            "conversation_summary": self.generate_conversation_summary(conversation),
            "session_info": {
                "turn_count": len(conversation.turns),
                "duration": self.get_session_duration(conversation),
                "topics": list(context.topics_discussed),
            },
        }

    def generate_conversation_summary(self, conversation: Conversation) -> str:
        if not conversation.turns:
            return "New conversation session started."

        context = conversation.context
        summary = f"Conversation with {len(conversation.turns)} turn(s). "

        if context.entities_discussed:
            more = " and others" if len(context.entities_discussed) > 3 else ""
            summary += f"Discussing: {', '.join(context.entities_discussed[:3])}{more}. "

        if context.topics_discussed:
            more = " and more" if len(context.topics_discussed) > 2 else ""
            summary += f"Topics: {', '.join(context.topics_discussed[:2])}{more}. "

        if context.current_focus:
            summary += f"Current focus: {context.current_focus}. "

        return summary.strip()

    def get_entity_history(self, conversation_id: str, entity_name: str) -> List[ConversationTurn]:
        """Get the turns of a conversation that mentioned an entity."""
        conversation = self.sessions.get(conversation_id)
        if conversation is None:
            return []

        target = entity_name.lower()
        return [
            turn for turn in conversation.turns
            if target in [name.lower() for name in turn.entities.texts("companies") + turn.entities.texts("people")]
        ]

    def get_history_based_suggestions(self, conversation_id: str) -> List[str]:
        conversation = self.sessions.get(conversation_id)
        if conversation is None or not conversation.turns:
            return list(GENERIC_STARTER_SUGGESTIONS)

        context = conversation.context
        suggestions = []

        if context.current_focus:
            suggestions.append(f"Analyze the performance of {context.current_focus}")
            suggestions.append(f"Show me the portfolio of {context.current_focus}")

        if len(context.entities_discussed) > 1:
            first, second = context.entities_discussed[:2]
            suggestions.append(f"Compare {first} and {second}")

        if context.sectors_explored:
            suggestions.append(f"Find opportunities in {context.sectors_explored[0]}")

        remaining = MAX_SUGGESTIONS - len(suggestions)
        if remaining > 0:
            suggestions.extend(GENERIC_STARTER_SUGGESTIONS[:remaining])

        return suggestions[:MAX_SUGGESTIONS]

    def calculate_engagement_score(self, conversation: Conversation) -> float:
        context = conversation.context
        indicators = context.satisfaction
        scores = {
            "follow_up_rate": indicators.follow_up_rate,
            "exploration_depth": min(indicators.exploration_depth, 1.0),
            "session_length": min(indicators.session_length / 30, 1.0),
            "query_success": context.query_success_rate,
            "topic_diversity": min(len(context.topics_discussed) / 5, 1.0),
        }
        engagement = sum(scores[metric] * weight for metric, weight in ENGAGEMENT_WEIGHTS.items())
        return round(engagement, 2)

    def analyze_conversation_patterns(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        """Analyse one conversation: metrics, preferred query types, progression and recommendations."""
        conversation = self.sessions.get(conversation_id)
        if conversation is None:
            return None

        context = conversation.context
        intent_counts: Dict[str, int] = {}
        for turn in conversation.turns:
            intent_counts[turn.intent] = intent_counts.get(turn.intent, 0) + 1
        preferred = sorted(intent_counts.items(), key=lambda item: item[1], reverse=True)[:3]

        return {
            "conversation_id": conversation_id,
            "metrics": {
                "total_turns": len(conversation.turns),
                "duration": self.get_session_duration(conversation),
                "entities_explored": len(context.entities_discussed),
                "topics_explored": len(context.topics_discussed),
                "query_success_rate": context.query_success_rate,
                "follow_up_engagement": context.satisfaction.follow_up_rate,
            },
            "patterns": {
                "preferred_query_types": [{"intent": intent, "count": count} for intent, count in preferred],
                "entity_focus_areas": context.entities_discussed[:5],
                "topic_progression": [
                    {
                        "turn": index,
                        "intent": turn.intent,
                        "entities": (turn.entities.texts("companies") + turn.entities.texts("people"))[:2],
                        "timestamp": turn.timestamp.isoformat(),
                    }
                    for index, turn in enumerate(conversation.turns, start=1)
                ],
                "session_engagement": self.calculate_engagement_score(conversation),
            },
            "recommendations": self._generate_recommendations(conversation),
        }

    def _generate_recommendations(self, conversation: Conversation) -> List[Dict[str, str]]:
        context = conversation.context
        recommendations = []

        if context.query_success_rate < 0.7:
            recommendations.append({
                "type": "query_optimization",
                "message": "Consider providing more specific entity names or using alternative search terms",
                "priority": "high",
            })

        if context.satisfaction.follow_up_rate < 0.2:
            recommendations.append({
                "type": "engagement",
                "message": "Try exploring the suggested follow-up questions to discover more insights",
                "priority": "medium",
            })

        if len(context.topics_discussed) < 3 and len(conversation.turns) > 5:
            recommendations.append({
                "type": "exploration",
                "message": "Consider exploring different types of analysis beyond your current focus area",
                "priority": "low",
            })

        return recommendations

    def export_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        conversation = self.sessions.get(conversation_id)
        if conversation is None:
            return None

        context = conversation.context
        return {
            "id": conversation.id,
            "created_at": conversation.created_at.isoformat(),
            "last_activity": conversation.last_activity.isoformat(),
            "duration": self.get_session_duration(conversation),
            "turn_count": len(conversation.turns),
            "turns": [
                {
                    "turn_id": turn.turn_id,
                    "timestamp": turn.timestamp.isoformat(),
                    "user_message": turn.user_message,
                    "intent": turn.intent,
                    "entities": {
                        "companies": turn.entities.texts("companies"),
                        "people": turn.entities.texts("people"),
                    },
                    "query_success": not turn.has_error,
                    "execution_time_ms": turn.execution_time_ms,
                    "response_length": len(turn.response_text),
                }
                for turn in conversation.turns
            ],
            "context": {
                "entities_discussed": list(context.entities_discussed),
                "topics_discussed": list(context.topics_discussed),
                "sectors_explored": list(context.sectors_explored),
                "query_success_rate": context.query_success_rate,
                "satisfaction_indicators": {
                    "follow_up_rate": context.satisfaction.follow_up_rate,
                    "exploration_depth": context.satisfaction.exploration_depth,
                    "session_length": context.satisfaction.session_length,
                },
            },
        }

    def get_global_statistics(self) -> Dict[str, Any]:
        now = datetime.now()
        timeout_seconds = self.session_timeout_minutes * 60
        stats = {
            "total_conversations": 0,
            "active_conversations": 0,
            "total_turns": 0,
            "average_session_length": 0,
            "top_intents": {},
            "top_entities": {},
        }

        total_session_time = 0
        intents: Dict[str, int] = {}
        entities: Dict[str, int] = {}

        for _, conversation in self.sessions.items():
            stats["total_conversations"] += 1
            if (now - conversation.last_activity).total_seconds() < timeout_seconds:
                stats["active_conversations"] += 1

            stats["total_turns"] += len(conversation.turns)
            total_session_time += self.get_session_duration(conversation)

            for turn in conversation.turns:
                intents[turn.intent] = intents.get(turn.intent, 0) + 1
            for entity in conversation.context.entities_discussed:
                entities[entity] = entities.get(entity, 0) + 1

        if stats["total_conversations"]:
            stats["average_session_length"] = round(total_session_time / stats["total_conversations"])

        stats["top_intents"] = dict(sorted(intents.items(), key=lambda item: item[1], reverse=True)[:10])
        stats["top_entities"] = dict(sorted(entities.items(), key=lambda item: item[1], reverse=True)[:20])
        return stats

    def purge_expired(self) -> int:
        """Remove expired conversations; returns how many were removed."""
        removed = self.sessions.purge_expired()
        if removed:
            logger.info(f"Cleaned up {removed} expired conversations")
        return removed

    def start_cleanup_task(self) -> asyncio.Task:
        """Start the periodic expiry sweep on the running event loop."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.ensure_future(self._cleanup_loop())
        return self._cleanup_task

    async def _cleanup_loop(self):
        while True:
            await asyncio.sleep(self.cleanup_interval_minutes * 60)
            self.purge_expired()

    async def stop_cleanup_task(self):
        if self._cleanup_task is None:
            return
        self._cleanup_task.cancel()
        try:
            await self._cleanup_task
        except asyncio.CancelledError:
            pass
        self._cleanup_task = None
