"""
Relationship Inference Engine discovering hidden connections between entities.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from ..errors import ConfigurationError
from ..kg.graph_store import GraphStore
from ..kg.models import Relationship
from ..utils.locks import KeyedLocks
from .patterns import (
    CANDIDATE_KEYS,
    CONFIDENCE_DISTRIBUTION_QUERY,
    INFERENCE_PATTERNS,
    RECENT_INFERENCES_QUERY,
    SIMILARITY_QUERY,
    InferencePattern,
    PatternName,
)
from .source_intelligence import EvidenceSource, SourceIntelligence

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.5


@dataclass
class PatternResult:
    """Outcome of running one inference pattern."""
    pattern: str
    candidates: int = 0
    successful: int = 0
    failed: int = 0
    relationships: List[Relationship] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class InferenceSummary:
    """Totals of a full inference run."""
    total_inferences: int = 0
    successful_inferences: int = 0
    failed_inferences: int = 0
    relationship_types_breakdown: Dict[str, int] = field(default_factory=dict)
    processing_time_ms: float = 0.0
    pattern_errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_inferences": self.total_inferences,
            "successful_inferences": self.successful_inferences,
            "failed_inferences": self.failed_inferences,
            "relationship_types_breakdown": dict(self.relationship_types_breakdown),
            "processing_time_ms": self.processing_time_ms,
            "pattern_errors": dict(self.pattern_errors),
        }


def _candidate_endpoints(record: Dict[str, Any]):
    for first, second in CANDIDATE_KEYS:
        if record.get(first) and record.get(second):
            return record[first], record[second]
    return None, None


class RelationshipInferenceEngine:
    """Proposes and persists relationships from graph pattern queries."""

    def __init__(
        self,
        store: GraphStore,
        source_intelligence: SourceIntelligence,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.store = store
        self.source_intelligence = source_intelligence
        self.config = config or {}
        self.patterns = INFERENCE_PATTERNS
        self.max_concurrency = self.config.get("max_concurrency", 4)
        self.similarity_limit = self.config.get("similarity_limit", 1000)
        self.pair_locks = KeyedLocks()

    def _resolve_pattern(self, name: Union[str, PatternName]) -> InferencePattern:
        try:
            pattern_name = name if isinstance(name, PatternName) else PatternName(name)
        except ValueError:
            raise ConfigurationError(f"Unknown inference pattern: {name}")
        return self.patterns[pattern_name]

    async def infer_all_relationships(self, options: Optional[Dict[str, Any]] = None) -> InferenceSummary:
        """
        Run every inference pattern, then the similarity pass.

        Args:
            options: ``patterns`` (subset of pattern names), ``dry_run`` (score
                without persisting) and ``include_similarity`` (default True)

        Returns:
            InferenceSummary with totals and a per-pattern breakdown
        """
        options = options or {}
        start_time = time.time()
        summary = InferenceSummary()

        selected = options.get("patterns") or self.config.get("patterns") or [name.value for name in self.patterns]
        logger.info(f"Starting relationship inference over {len(selected)} patterns")

        for name in selected:
            pattern = self._resolve_pattern(name)
            logger.info(f"Processing {pattern.name.value} pattern...")
            result = await self.infer_relationships_by_pattern(pattern.name, options)

            summary.total_inferences += result.candidates
            summary.successful_inferences += result.successful
            summary.failed_inferences += result.failed
            summary.relationship_types_breakdown[pattern.name.value] = result.successful
            if result.error:
                summary.pattern_errors[pattern.name.value] = result.error

        if options.get("include_similarity", True):
            await self.infer_by_entity_similarity(summary, options)

        # extension points, nothing inferred yet
        summary.relationship_types_breakdown["TEMPORAL_PATTERNS"] = 0
        summary.relationship_types_breakdown["NETWORK_ANALYSIS"] = 0

        summary.processing_time_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Relationship inference complete: {summary.successful_inferences} relationships inferred, "
            f"{summary.failed_inferences} failed"
        )
        return summary

    async def infer_relationships_by_pattern(
        self,
        name: Union[str, PatternName],
        options: Optional[Dict[str, Any]] = None,
    ) -> PatternResult:
        """
        Run one inference pattern and persist the candidates that qualify.

        A failing pattern query is recorded on the result instead of raised.

        Raises:
            ConfigurationError: If the pattern name is unknown
        """
        options = options or {}
        pattern = self._resolve_pattern(name)
        result = PatternResult(pattern=pattern.name.value)

        try:
            query_result = await self.store.execute_query(pattern.query)
        except Exception as e:
            logger.error(f"Error processing pattern {pattern.name.value}: {e}")
            result.error = str(e)
            result.failed += 1
            return result

        result.candidates = len(query_result.records)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def process(record: Dict[str, Any]) -> Optional[Relationship]:
            async with semaphore:
                return await self._process_candidate(record, pattern, options)

        outcomes = await asyncio.gather(*[process(record) for record in query_result.records], return_exceptions=True)

        for outcome in outcomes:
            if isinstance(outcome, Exception):
                logger.warning(f"Failed to process relationship candidate: {outcome}")
                result.failed += 1
            elif outcome is None:
                result.failed += 1
            else:
                result.relationships.append(outcome)
                result.successful += 1

        logger.info(
            f"{pattern.name.value}: {result.successful} inferred from {result.candidates} candidates"
        )
        return result

    async def _process_candidate(
        self,
        record: Dict[str, Any],
        pattern: InferencePattern,
        options: Dict[str, Any],
    ) -> Optional[Relationship]:
        entity1, entity2 = _candidate_endpoints(record)
        if not entity1 or not entity2:
            return None

        confidence, evidence = pattern.score(record)
        source = EvidenceSource(
            type="AI_INFERENCE",
            data={
                "pattern": pattern.name.value,
                "evidence": evidence,
                "confidence": confidence,
            },
            authority=confidence,
        )

        relationship = self._weighted_relationship(entity1, entity2, pattern.relationship_type, [source])
        if relationship.confidence < pattern.min_confidence:
            return None

        if not options.get("dry_run"):
            await self.persist_relationship(relationship)
        return relationship

    def _weighted_relationship(
        self,
        entity1: Dict[str, Any],
        entity2: Dict[str, Any],
        relationship_type: str,
        sources: List[EvidenceSource],
    ) -> Relationship:
        relationship = self.source_intelligence.create_weighted_relationship(
            str(entity1.get("id")), str(entity2.get("id")), relationship_type, sources
        )
        relationship.from_name = entity1.get("name")
        relationship.to_name = entity2.get("name")
        relationship.properties.update({
            "inferredAt": datetime.now().isoformat(),
            "inferenceType": "pattern_based",
        })
        return relationship

    async def persist_relationship(self, relationship: Relationship) -> Relationship:
        """
        Create a relationship, or raise the confidence of an existing one.

        An existing relationship of the same type between the same pair is
        overwritten only when the new confidence is strictly greater.
        """
        async with self.pair_locks.acquire(relationship.key):
            existing = await self.store.find_relationship(
                relationship.from_id, relationship.to_id, relationship.type
            )
            if existing is None:
                return await self.store.create_relationship(relationship)

            if relationship.confidence > (existing.confidence or 0):
                logger.debug(
                    f"Raising {relationship.id} confidence from {existing.confidence:.2f} "
                    f"to {relationship.confidence:.2f}"
                )
                return await self.store.update_relationship(relationship)

            return existing

    async def infer_by_entity_similarity(self, summary: InferenceSummary, options: Optional[Dict[str, Any]] = None):
        """Infer SIMILAR_TO relationships between entities sharing country, sector or name."""
        options = options or {}
        logger.info("Inferring relationships by entity similarity...")

        try:
            query_result = await self.store.execute_query(SIMILARITY_QUERY, {"limit": self.similarity_limit})
        except Exception as e:
            logger.error(f"Error in similarity inference: {e}")
            summary.pattern_errors["ENTITY_SIMILARITY"] = str(e)
            summary.relationship_types_breakdown["ENTITY_SIMILARITY"] = 0
            return

        inferred = 0
        for record in query_result.records:
            country_match = record.get("country_match") or 0
            sector_match = record.get("sector_match") or 0
            name_similarity = record.get("name_similarity") or 0
            score = (country_match + sector_match + name_similarity) / 3.0
            if score < SIMILARITY_THRESHOLD or not record.get("e1") or not record.get("e2"):
                continue

            evidence = [
                label
                for label, matched in (
                    ("Same country", country_match),
                    ("Same sector", sector_match),
                    ("Name similarity", name_similarity),
                )
                if matched
            ]
            source = EvidenceSource(
                type="AI_INFERENCE",
                data={"pattern": "entity_similarity", "similarity_score": score, "evidence": evidence},
                authority=score,
            )
            relationship = self._weighted_relationship(record["e1"], record["e2"], "SIMILAR_TO", [source])
            if relationship.confidence < SIMILARITY_THRESHOLD:
                continue

            try:
                if not options.get("dry_run"):
                    await self.persist_relationship(relationship)
            except Exception as e:
                logger.warning(f"Failed to persist similarity relationship {relationship.id}: {e}")
                summary.failed_inferences += 1
                continue
            inferred += 1

        summary.relationship_types_breakdown["ENTITY_SIMILARITY"] = inferred
        summary.successful_inferences += inferred
        logger.info(f"Created {inferred} similarity-based relationships")

    async def get_inference_stats(self) -> Dict[str, Any]:
        """Get relationship inference statistics."""
        return {
            "total_patterns": len(self.patterns),
            "recent_inferences": await self._get_recent_inferences(),
            "confidence_distribution": await self._get_confidence_distribution(),
        }

    async def _get_recent_inferences(self) -> List[Dict[str, Any]]:
        try:
            result = await self.store.execute_query(RECENT_INFERENCES_QUERY)
        except Exception as e:
            logger.warning(f"Could not get recent inferences: {e}")
            return []
        return [
            {"relationship_type": record.get("relationship_type"), "count": record.get("count")}
            for record in result.records
        ]

    async def _get_confidence_distribution(self) -> List[Dict[str, Any]]:
        try:
            result = await self.store.execute_query(CONFIDENCE_DISTRIBUTION_QUERY)
        except Exception as e:
            logger.warning(f"Could not get confidence distribution: {e}")
            return []
        return [
            {"bucket": record.get("confidence_bucket"), "count": record.get("count")}
            for record in result.records
        ]
