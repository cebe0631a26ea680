"""
Private Markets Agent orchestrating understanding, querying and responding.
"""

import logging
import time
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError, GraphStoreError
from ..kg.graph_store import GraphStore
from ..models.enrichment import EntityEnricher
from ..nlu.engine import NLUEngine
from ..nlu.models import Intent, NLUResult
from ..query.executor import QueryExecutor
from ..query.planner import QueryPlanner
from ..query.synthesizer import ResultSynthesizer
from ..utils.locks import KeyedLocks
from .conversation_manager import GENERIC_STARTER_SUGGESTIONS, ConversationManager, generate_conversation_id
from .models import AgentResponse, ConversationTurn, QueryOutcome
from .response_builder import DEGRADED_FOLLOW_UPS, DEGRADED_TEXT, MAX_INSIGHTS, ResponseBuilder

logger = logging.getLogger(__name__)


def generate_query_id() -> str:
    return f"query_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


class MarketsAgent:
    """
    Main orchestrator for private markets questions.

    Each turn runs understanding, planning, execution, synthesis, response
    building, optional enrichment and conversation update. Turns on the same
    conversation are serialised; ``process_query`` never raises.
    """

    def __init__(
        self,
        store: Optional[GraphStore],
        config: Optional[Dict[str, Any]] = None,
        enricher: Optional[EntityEnricher] = None,
        conversation_manager: Optional[ConversationManager] = None,
    ):
        self.config = config or {}
        self.agent_config = self.config.get("agent", {})
        self.store = store
        self.enricher = enricher
        self.enable_enrichment = self.agent_config.get("enable_enrichment", False) and enricher is not None
        self.max_response_time = self.agent_config.get("max_response_time_seconds")

        self.nlu_engine = NLUEngine(self.config.get("nlu", {}))
        self.planner = QueryPlanner()
        self.executor = QueryExecutor(store, self.config.get("query", {}))
        self.synthesizer = ResultSynthesizer()
        self.response_builder = ResponseBuilder()
        self.conversation_manager = conversation_manager or ConversationManager(self.config.get("conversation", {}))
        self.conversation_locks = KeyedLocks()

        self.stats = {
            "total_queries": 0,
            "successful_queries": 0,
            "average_response_time_ms": 0.0,
            "top_intents": {},
            "top_entities": {},
            "start_time": datetime.now(),
        }

        logger.info("Private markets agent initialized")

    async def process_query(
        self,
        message: str,
        conversation_id: Optional[str] = None,
        user: Optional[str] = None,
    ) -> AgentResponse:
        """
        Answer one natural language question.

        Args:
            message: The user's question
            conversation_id: Conversation to continue; a new one is started if None
            user: Optional user identifier stored on new conversations

        Returns:
            AgentResponse; unexpected failures give a degraded response
        """
        start_time = time.time()
        query_id = generate_query_id()
        conversation_id = conversation_id or generate_conversation_id()
        logger.info(f"Processing query {query_id}: {message!r}")

        async with self.conversation_locks.acquire(conversation_id):
            try:
                response = await self._process_turn(message or "", query_id, conversation_id, user, start_time)
            except Exception as e:
                execution_time_ms = (time.time() - start_time) * 1000
                logger.error(f"Query {query_id} failed after {execution_time_ms:.0f}ms: {e}", exc_info=True)
                self._update_performance_stats(execution_time_ms, False)
                return AgentResponse(
                    query_id=query_id,
                    conversation_id=conversation_id,
                    success=False,
                    text=DEGRADED_TEXT,
                    confidence=0.0,
                    follow_up_suggestions=list(DEGRADED_FOLLOW_UPS),
                    execution_metadata={"total_time_ms": execution_time_ms},
                    error={"message": str(e), "type": "agent_error", "code": type(e).__name__},
                )

        logger.info(f"Query {query_id} completed in {response.execution_metadata['total_time_ms']:.0f}ms")
        return response

    async def _process_turn(
        self,
        message: str,
        query_id: str,
        conversation_id: str,
        user: Optional[str],
        start_time: float,
    ) -> AgentResponse:
        timings: Dict[str, float] = {}

        conversation = self.conversation_manager.get_conversation(conversation_id, user)
        previous_context = conversation.context.nlu_context

        # Step 1: understanding
        stage_start = time.time()
        nlu = self.nlu_engine.process(message, previous_context)
        timings["nlu_ms"] = (time.time() - stage_start) * 1000
        self._track_understanding(nlu)

        # Step 2: plan, execute, synthesize
        stage_start = time.time()
        outcome = await self._run_queries(nlu)
        timings["query_ms"] = (time.time() - stage_start) * 1000

        # Step 3: response content
        stage_start = time.time()
        builder = self.response_builder
        text = builder.generate_text(outcome, nlu)
        insights = builder.generate_insights(outcome)
        follow_ups = builder.generate_follow_ups(nlu)
        confidence = builder.calculate_confidence(outcome, nlu.confidence)
        timings["response_ms"] = (time.time() - stage_start) * 1000

        # Step 4: optional enrichment
        if self.enable_enrichment and nlu.intent.primary == Intent.ENTITY_INFO:
            stage_start = time.time()
            insight = await self._enrich(outcome)
            if insight:
                insights = (insights + [{"type": "enrichment", "message": insight, "confidence": 0.5}])[:MAX_INSIGHTS]
            timings["enrichment_ms"] = (time.time() - stage_start) * 1000

        # Step 5: conversation update
        next_context = self.nlu_engine.context_manager.record_turn(nlu.context, nlu.intent, nlu.entities)
        turn = self.conversation_manager.add_turn(
            conversation_id,
            ConversationTurn(
                turn_id=0,
                timestamp=datetime.now(),
                user_message=message,
                intent=nlu.intent.primary.value,
                entities=nlu.entities,
                response_text=text,
                follow_up_suggestions=follow_ups,
                record_counts=outcome.record_counts(),
                knowledge_covered=list(outcome.processed.data.keys()) if outcome.processed else [],
                has_error=outcome.has_error,
                execution_time_ms=outcome.execution_time_ms,
            ),
            next_context,
        )

        # Step 6: statistics
        execution_time_ms = (time.time() - start_time) * 1000
        success = not outcome.has_error
        self._update_performance_stats(execution_time_ms, success)

        return AgentResponse(
            query_id=query_id,
            conversation_id=conversation_id,
            success=success,
            text=text,
            confidence=confidence,
            structured_data=builder.format_structured_data(outcome),
            insights=insights,
            follow_up_suggestions=follow_ups,
            related_questions=builder.generate_related_questions(nlu),
            sources=builder.identify_sources(outcome),
            execution_metadata={
                "total_time_ms": execution_time_ms,
                "stage_timing_ms": timings,
                "record_counts": outcome.record_counts(),
                "complexity": nlu.complexity,
                "intent": nlu.intent.primary.value,
                "understanding_confidence": nlu.confidence,
            },
            conversation={
                "id": conversation_id,
                "turn_id": turn.turn_id,
                "turn_count": len(conversation.turns),
            },
            error={"message": outcome.error, "type": "query_error"} if outcome.error else None,
        )

    async def _run_queries(self, nlu: NLUResult) -> QueryOutcome:
        outcome = QueryOutcome()
        start_time = time.time()

        try:
            outcome.plan = self.planner.build(nlu.intent.primary, nlu.entities)
            outcome.execution = await self.executor.execute(outcome.plan, timeout=self.max_response_time)
            outcome.processed = self.synthesizer.process(outcome.execution, nlu.intent.primary, nlu.entities)
        except (ConfigurationError, GraphStoreError) as e:
            logger.warning(f"Query stage failed: {e}")
            outcome.error = str(e)

        outcome.execution_time_ms = (time.time() - start_time) * 1000
        return outcome

    async def _enrich(self, outcome: QueryOutcome) -> Optional[str]:
        prompt = self.response_builder.enrichment_prompt(outcome)
        if not prompt:
            return None
        try:
            return await self.enricher.enrich(prompt)
        except Exception as e:
            logger.warning(f"Enrichment failed, continuing without it: {e}")
            return None

    def _track_understanding(self, nlu: NLUResult):
        intent = nlu.intent.primary.value
        self.stats["top_intents"][intent] = self.stats["top_intents"].get(intent, 0) + 1

        for name in nlu.entities.texts("companies") + nlu.entities.texts("people"):
            self.stats["top_entities"][name] = self.stats["top_entities"].get(name, 0) + 1

    def _update_performance_stats(self, execution_time_ms: float, success: bool):
        self.stats["total_queries"] += 1
        if success:
            self.stats["successful_queries"] += 1

        if self.stats["average_response_time_ms"] == 0:
            self.stats["average_response_time_ms"] = execution_time_ms
        else:
            self.stats["average_response_time_ms"] = (self.stats["average_response_time_ms"] + execution_time_ms) / 2

    def get_agent_statistics(self) -> Dict[str, Any]:
        """Get agent performance, conversation, intent and entity statistics."""
        uptime_seconds = max((datetime.now() - self.stats["start_time"]).total_seconds(), 1e-6)
        total = self.stats["total_queries"]

        top_intents = sorted(self.stats["top_intents"].items(), key=lambda item: item[1], reverse=True)[:10]
        top_entities = sorted(self.stats["top_entities"].items(), key=lambda item: item[1], reverse=True)[:15]

        return {
            "agent": {
                "uptime_seconds": round(uptime_seconds),
                "total_queries": total,
                "success_rate": (self.stats["successful_queries"] / total) * 100 if total else 100.0,
                "average_response_time_ms": self.stats["average_response_time_ms"],
                "queries_per_minute": total / (uptime_seconds / 60),
            },
            "conversations": self.conversation_manager.get_global_statistics(),
            "intents": {"top": [{"intent": intent, "count": count} for intent, count in top_intents]},
            "entities": {"top": [{"entity": entity, "count": count} for entity, count in top_entities]},
        }

    def get_conversation_info(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        if not self.conversation_manager.has_conversation(conversation_id):
            return None

        conversation = self.conversation_manager.get_conversation(conversation_id)
        return {
            "conversation": {
                "id": conversation.id,
                "created_at": conversation.created_at.isoformat(),
                "last_activity": conversation.last_activity.isoformat(),
                "turn_count": len(conversation.turns),
                "duration": self.conversation_manager.get_session_duration(conversation),
            },
            "context": self.conversation_manager.get_context_for_turn(conversation_id),
            "patterns": self.conversation_manager.analyze_conversation_patterns(conversation_id),
            "suggestions": self.conversation_manager.get_history_based_suggestions(conversation_id),
        }

    def get_suggestions(self, conversation_id: Optional[str] = None) -> List[str]:
        if conversation_id:
            return self.conversation_manager.get_history_based_suggestions(conversation_id)
        return list(GENERIC_STARTER_SUGGESTIONS)

    def export_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        return self.conversation_manager.export_conversation(conversation_id)

    def get_entity_history(self, conversation_id: str, entity_name: str) -> List[Dict[str, Any]]:
        """Summarise the turns of a conversation that mentioned an entity, oldest first."""
        return [
            {
                "turn_id": turn.turn_id,
                "timestamp": turn.timestamp.isoformat(),
                "user_message": turn.user_message,
                "intent": turn.intent,
                "has_error": turn.has_error,
            }
            for turn in self.conversation_manager.get_entity_history(conversation_id, entity_name)
        ]

    async def health_check(self) -> Dict[str, Any]:
        """Check the health of every agent component."""
        health = {
            "timestamp": datetime.now().isoformat(),
            "status": "healthy",
            "components": {},
            "issues": [],
        }

        try:
            result = self.nlu_engine.process("test query")
            health["components"]["nlu_engine"] = "healthy" if result else "degraded"
        except Exception as e:
            health["components"]["nlu_engine"] = "unhealthy"
            health["issues"].append(f"NLU engine: {e}")

        if self.store is None:
            health["components"]["graph_store"] = "unhealthy"
            health["issues"].append("Graph store: not configured")
        else:
            try:
                stats = await self.store.get_stats()
                if "error" in stats:
                    health["components"]["graph_store"] = "degraded"
                    health["issues"].append(f"Graph store: {stats['error']}")
                else:
                    health["components"]["graph_store"] = "healthy"
            except Exception as e:
                health["components"]["graph_store"] = "unhealthy"
                health["issues"].append(f"Graph store: {e}")

        health["components"]["response_builder"] = "healthy"
        health["components"]["conversation_manager"] = "healthy"
        if self.enricher is not None:
            health["components"]["enrichment"] = "enabled" if self.enable_enrichment else "disabled"

        statuses = health["components"].values()
        if "unhealthy" in statuses:
            health["status"] = "unhealthy"
        elif "degraded" in statuses:
            health["status"] = "degraded"

        return health

    async def shutdown(self):
        """Stop background tasks and close the graph store."""
        logger.info("Shutting down private markets agent")
        await self.conversation_manager.stop_cleanup_task()
        if self.store is not None:
            await self.store.close()
