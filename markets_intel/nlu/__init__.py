"""
Natural language understanding for private markets questions.
"""

from .models import Intent, EntitySpan, EntityExtraction, IntentResult, ContextSnapshot, NLUResult
from .intent_classifier import IntentClassifier, analyze_complexity
from .entity_extractor import EntityExtractor
from .context_manager import ContextManager
from .engine import NLUEngine

__all__ = [
    "Intent",
    "EntitySpan",
    "EntityExtraction",
    "IntentResult",
    "ContextSnapshot",
    "NLUResult",
    "IntentClassifier",
    "analyze_complexity",
    "EntityExtractor",
    "ContextManager",
    "NLUEngine",
]
