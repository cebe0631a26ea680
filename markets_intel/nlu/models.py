"""
Data models for natural language understanding.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

ENTITY_CATEGORIES = ("companies", "people", "amounts", "timeframes", "sectors", "geographies", "metrics")


class Intent(Enum):
    """Intents the classifier can recognise, in definition order."""
    ENTITY_INFO = "query.entity.info"
    RELATIONSHIP_EXPLORE = "query.relationship.explore"
    PORTFOLIO_ANALYZE = "query.portfolio.analyze"
    PERFORMANCE = "analyze.performance"
    MARKET_TRENDS = "analyze.market.trends"
    RISK_ASSESSMENT = "analyze.risk.assessment"
    COMPARE_ENTITIES = "compare.entities"
    BENCHMARK_PERFORMANCE = "benchmark.performance"
    PREDICT_OUTCOMES = "predict.outcomes"
    RECOMMEND_INVESTMENTS = "recommend.investments"
    DISCOVER_OPPORTUNITIES = "discover.opportunities"
    EXPLORE_NETWORKS = "explore.networks"
    GENERAL = "query.general"


@dataclass
class EntitySpan:
    """A typed piece of text extracted from a message."""
    text: str
    type: str
    position: int
    confidence: float = 0.8


@dataclass
class EntityExtraction:
    """Extracted spans grouped by category."""
    companies: List[EntitySpan] = field(default_factory=list)
    people: List[EntitySpan] = field(default_factory=list)
    amounts: List[EntitySpan] = field(default_factory=list)
    timeframes: List[EntitySpan] = field(default_factory=list)
    sectors: List[EntitySpan] = field(default_factory=list)
    geographies: List[EntitySpan] = field(default_factory=list)
    metrics: List[EntitySpan] = field(default_factory=list)
    confidence: float = 0.0

    def category(self, name: str) -> List[EntitySpan]:
        return getattr(self, name)

    def texts(self, name: str) -> List[str]:
        return [span.text for span in self.category(name)]

    def is_empty(self) -> bool:
        return not any(self.category(name) for name in ENTITY_CATEGORIES)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: self.texts(name) for name in ENTITY_CATEGORIES}
        data["confidence"] = self.confidence
        return data


@dataclass
class IntentResult:
    """Ranked intent classification."""
    primary: Intent
    confidence: float
    alternatives: List[Tuple[Intent, float]] = field(default_factory=list)
    all_scores: Dict[str, int] = field(default_factory=dict)


@dataclass
class ContextSnapshot:
    """Conversation context carried from one turn to the next."""
    current_message: str
    timestamp: datetime
    message_history: List[Dict[str, Any]] = field(default_factory=list)
    entity_stack: List[str] = field(default_factory=list)
    topic_flow: List[str] = field(default_factory=list)
    analysis_scope: Dict[str, List[str]] = field(default_factory=dict)
    recent_intents: List[str] = field(default_factory=list)
    conversation_state: str = "active"
    relevance_score: float = 0.3


@dataclass
class NLUResult:
    """Everything understood about one user message."""
    original_message: str
    timestamp: datetime
    intent: IntentResult
    entities: EntityExtraction
    context: ContextSnapshot
    complexity: str
    confidence: float
    execution_time_ms: Optional[float] = None
