"""
Intent Classifier for private markets questions.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Tuple

from .models import ContextSnapshot, Intent, IntentResult

logger = logging.getLogger(__name__)

PATTERN_POINTS = 3
KEYWORD_POINTS = 1
CONTINUITY_POINTS = 1
FALLBACK_CONFIDENCE = 0.3
MAX_ALTERNATIVES = 2


@dataclass(frozen=True)
class IntentDefinition:
    """Patterns and keywords that signal one intent."""
    intent: Intent
    patterns: Tuple[Pattern, ...]
    keywords: Tuple[str, ...]


def _define(intent: Intent, patterns: List[str], keywords: List[str]) -> IntentDefinition:
    return IntentDefinition(
        intent=intent,
        patterns=tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns),
        keywords=tuple(keyword.lower() for keyword in keywords),
    )


INTENT_DEFINITIONS: Tuple[IntentDefinition, ...] = (
    # Information retrieval
    _define(
        Intent.ENTITY_INFO,
        [r"tell me about|information about|what is|who is|describe", r"details on|background on|overview of"],
        ["about", "information", "details", "what", "who", "describe", "overview"],
    ),
    _define(
        Intent.RELATIONSHIP_EXPLORE,
        [r"relationship|connected to|links between|network|associations",
         r"works with|partners with|invested in|board|syndicate"],
        ["relationship", "connected", "network", "partners", "syndicate", "board"],
    ),
    _define(
        Intent.PORTFOLIO_ANALYZE,
        [r"portfolio|investments of|holdings|positions", r"what has.*invested|companies backed by"],
        ["portfolio", "investments", "holdings", "backed", "positions"],
    ),
    # Analysis and insights
    _define(
        Intent.PERFORMANCE,
        [r"performance|returns|IRR|multiple|track record", r"how well|success rate|performance metrics"],
        ["performance", "returns", "IRR", "multiple", "success", "metrics"],
    ),
    _define(
        Intent.MARKET_TRENDS,
        [r"trends|trending|growth|decline|market", r"what's happening|emerging|rising|falling"],
        ["trends", "trending", "growth", "market", "emerging", "rising"],
    ),
    _define(
        Intent.RISK_ASSESSMENT,
        [r"risk|risky|safe|volatile|stability", r"concerns|red flags|warning signs"],
        ["risk", "risky", "volatile", "concerns", "warnings", "stability"],
    ),
    # Comparison and benchmarking
    _define(
        Intent.COMPARE_ENTITIES,
        [r"compare|versus|vs|difference between|how does.*compare", r"better than|worse than|similar to"],
        ["compare", "versus", "vs", "difference", "better", "worse", "similar"],
    ),
    _define(
        Intent.BENCHMARK_PERFORMANCE,
        [r"benchmark|against peers|industry average|market performance", r"how does.*rank|percentile|quartile"],
        ["benchmark", "peers", "average", "rank", "percentile", "quartile"],
    ),
    # Prediction and recommendations
    _define(
        Intent.PREDICT_OUTCOMES,
        [r"predict|forecast|future|outlook|projections", r"what will happen|expected to|likely to"],
        ["predict", "forecast", "future", "outlook", "expected", "likely"],
    ),
    _define(
        Intent.RECOMMEND_INVESTMENTS,
        [r"recommend|suggest|should I invest|good investment", r"opportunities|potential|candidates"],
        ["recommend", "suggest", "opportunities", "potential", "candidates"],
    ),
    # Discovery and exploration
    _define(
        Intent.DISCOVER_OPPORTUNITIES,
        [r"find|discover|identify|search for|look for", r"opportunities|deals|investments|companies"],
        ["find", "discover", "identify", "search", "opportunities", "deals"],
    ),
    _define(
        Intent.EXPLORE_NETWORKS,
        [r"network|connections|who knows|alumni|colleagues", r"worked together|co-invested|syndicate members"],
        ["network", "connections", "alumni", "colleagues", "co-invested"],
    ),
)


class IntentClassifier:
    """Rule-based intent classifier scoring regex patterns and keywords."""

    def __init__(self, definitions: Tuple[IntentDefinition, ...] = INTENT_DEFINITIONS):
        self.definitions = definitions

    def score(self, message: str, context: Optional[ContextSnapshot] = None) -> Dict[Intent, int]:
        """Score every intent; intents scoring zero are left out."""
        normalized = message.lower()
        recent_intents = context.recent_intents if context else []

        scores: Dict[Intent, int] = {}
        for definition in self.definitions:
            score = 0
            for pattern in definition.patterns:
                if pattern.search(message):
                    score += PATTERN_POINTS
            for keyword in definition.keywords:
                if keyword in normalized:
                    score += KEYWORD_POINTS
            if definition.intent.value in recent_intents:
                score += CONTINUITY_POINTS

            if score > 0:
                scores[definition.intent] = score

        return scores

    def classify(self, message: str, context: Optional[ContextSnapshot] = None) -> IntentResult:
        """
        Classify the intent of a message.

        Args:
            message: The user's natural language message
            context: Previous conversation context, used for the continuity bonus

        Returns:
            IntentResult with the primary intent and up to two alternatives
        """
        scores = self.score(message or "", context)

        # sorted() is stable, so equal scores keep definition order
        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        ranked_confidences = [(intent, min(score / 10, 1.0)) for intent, score in ranked]

        if ranked_confidences:
            primary, confidence = ranked_confidences[0]
        else:
            primary, confidence = Intent.GENERAL, FALLBACK_CONFIDENCE

        logger.debug(f"Intent scores: {[(intent.value, score) for intent, score in ranked]}")

        return IntentResult(
            primary=primary,
            confidence=confidence,
            alternatives=ranked_confidences[1:1 + MAX_ALTERNATIVES],
            all_scores={intent.value: score for intent, score in ranked},
        )


_COMPLEXITY_INDICATORS = (
    (re.compile(r"\b[A-Z][a-z]+ Capital\b"), 2.0),
    (re.compile(r"\b(last|past|since|during|between|from|to)\b", re.IGNORECASE), 1.5),
    (re.compile(r"\$[0-9,]+[MBT]?|\b[0-9,]+%|\b[0-9,]+ years?\b"), 1.2),
    (re.compile(r"\b(analyze|compare|performance|trends|correlation|impact)\b", re.IGNORECASE), 2.5),
    (re.compile(r"\b(if|when|where|that|which|who)\b", re.IGNORECASE), 1.8),
)


def analyze_complexity(message: str) -> str:
    """Bucket a message into simple, moderate, complex or very_complex."""
    score = sum(len(pattern.findall(message or "")) * weight for pattern, weight in _COMPLEXITY_INDICATORS)

    if score < 5:
        return "simple"
    if score < 12:
        return "moderate"
    if score < 20:
        return "complex"
    return "very_complex"
