"""
Source credibility and relationship inference.
"""

from .source_intelligence import (
    SourceProfile,
    SourceState,
    EvidenceSource,
    ValidationResult,
    SourceIntelligence,
    SOURCE_PROFILES,
)
from .patterns import PatternName, InferencePattern, INFERENCE_PATTERNS
from .relationship_inference import RelationshipInferenceEngine, PatternResult, InferenceSummary
from .concept_evolution import ConceptEvolutionEngine, ConceptPattern, DetectedConcept, ConceptGapAnalysis

__all__ = [
    "SourceProfile",
    "SourceState",
    "EvidenceSource",
    "ValidationResult",
    "SourceIntelligence",
    "SOURCE_PROFILES",
    "PatternName",
    "InferencePattern",
    "INFERENCE_PATTERNS",
    "RelationshipInferenceEngine",
    "PatternResult",
    "InferenceSummary",
    "ConceptEvolutionEngine",
    "ConceptPattern",
    "DetectedConcept",
    "ConceptGapAnalysis",
]
