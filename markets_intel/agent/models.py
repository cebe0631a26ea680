"""
Data models for agent responses and conversations.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..nlu.models import ContextSnapshot, EntityExtraction
from ..query.models import ExecutionResults, ProcessedResults, QueryPlan


@dataclass
class QueryOutcome:
    """Plan, execution and processing results of one turn."""
    plan: Optional[QueryPlan] = None
    execution: ExecutionResults = field(default_factory=dict)
    processed: Optional[ProcessedResults] = None
    error: Optional[str] = None
    execution_time_ms: float = 0.0

    @property
    def total_records(self) -> int:
        return sum(result.record_count for result in self.execution.values())

    @property
    def has_error(self) -> bool:
        return self.error is not None or any(not result.ok for result in self.execution.values())

    def record_counts(self) -> Dict[str, int]:
        counts = {name: result.record_count for name, result in self.execution.items()}
        counts["total"] = self.total_records
        return counts


@dataclass
class AgentResponse:
    """Everything returned to the caller for one turn."""
    query_id: str
    conversation_id: str
    success: bool
    text: str
    confidence: float
    timestamp: datetime = field(default_factory=datetime.now)
    structured_data: Dict[str, Any] = field(default_factory=dict)
    insights: List[Dict[str, Any]] = field(default_factory=list)
    follow_up_suggestions: List[str] = field(default_factory=list)
    related_questions: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    execution_metadata: Dict[str, Any] = field(default_factory=dict)
    conversation: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query_id": self.query_id,
            "conversation_id": self.conversation_id,
            "success": self.success,
            "text": self.text,
            "confidence": self.confidence,
            "timestamp": self.timestamp.isoformat(),
            "structured_data": self.structured_data,
            "insights": self.insights,
            "follow_up_suggestions": self.follow_up_suggestions,
            "related_questions": self.related_questions,
            "sources": self.sources,
            "execution_metadata": self.execution_metadata,
            "conversation": self.conversation,
            "error": self.error,
        }


@dataclass
class ConversationTurn:
    """A completed user turn as remembered by the conversation."""
    turn_id: int
    timestamp: datetime
    user_message: str
    intent: str
    entities: EntityExtraction
    response_text: str
    follow_up_suggestions: List[str] = field(default_factory=list)
    record_counts: Dict[str, int] = field(default_factory=dict)
    knowledge_covered: List[str] = field(default_factory=list)
    has_error: bool = False
    execution_time_ms: Optional[float] = None


@dataclass
class SatisfactionIndicators:
    follow_up_rate: float = 0.0
    exploration_depth: float = 0.0
    session_length: int = 0


@dataclass
class ConversationContext:
    """Rolling per-session state."""
    entities_discussed: List[str] = field(default_factory=list)
    topics_discussed: List[str] = field(default_factory=list)
    sectors_explored: List[str] = field(default_factory=list)
    geographies_explored: List[str] = field(default_factory=list)
    current_focus: Optional[str] = None
    knowledge_covered: List[str] = field(default_factory=list)
    follow_up_opportunities: List[str] = field(default_factory=list)
    query_success_rate: float = 1.0
    satisfaction: SatisfactionIndicators = field(default_factory=SatisfactionIndicators)
    nlu_context: Optional[ContextSnapshot] = None


@dataclass
class Conversation:
    id: str
    created_at: datetime
    last_activity: datetime
    turns: List[ConversationTurn] = field(default_factory=list)
    context: ConversationContext = field(default_factory=ConversationContext)
    user: Optional[str] = None
    turn_counter: int = 0
