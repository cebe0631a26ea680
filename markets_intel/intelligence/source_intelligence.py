"""
Source Intelligence: credibility weighting and cross-validation of evidence.
"""

import hashlib
import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional

from ..kg.models import Relationship, RelationshipMetadata, RelationshipSource
from ..utils.cache import LRUCache

logger = logging.getLogger(__name__)

MIN_AUTHORITY = 0.1
MAX_AUTHORITY = 0.98
UNKNOWN_AUTHORITY = 0.5
MAX_CONFIDENCE = 0.95
SUCCESS_THRESHOLD = 0.7
UNDECAYED_CATEGORIES = ("official", "regulatory")


@dataclass(frozen=True)
class SourceProfile:
    """Static credibility profile of a source type."""
    name: str
    authority: float
    category: str
    reliability: float
    timeliness: float
    verification_required: bool


SOURCE_PROFILES: Dict[str, SourceProfile] = {
    profile.name: profile
    for profile in (
        # primary
        SourceProfile("SEC_FILINGS", 0.95, "regulatory", 0.98, 0.85, False),
        SourceProfile("COMPANY_ANNOUNCEMENTS", 0.90, "official", 0.95, 0.95, False),
        SourceProfile("FUND_REPORTS", 0.88, "official", 0.92, 0.80, False),
        # secondary
        SourceProfile("INDUSTRY_DATABASES", 0.80, "industry", 0.85, 0.90, True),
        SourceProfile("EXPERT_ANALYSIS", 0.75, "analysis", 0.80, 0.85, True),
        SourceProfile("FINANCIAL_MEDIA", 0.70, "media", 0.75, 0.95, True),
        # tertiary
        SourceProfile("NEWS_REPORTS", 0.60, "news", 0.70, 0.95, True),
        SourceProfile("MARKET_RUMORS", 0.30, "rumor", 0.40, 0.98, True),
        # generated
        SourceProfile("AI_INFERENCE", 0.65, "generated", 0.70, 1.00, True),
    )
}

QUERY_SOURCE_MAP: Dict[str, List[str]] = {
    "TRANSACTION_LOOKUP": ["SEC_FILINGS", "COMPANY_ANNOUNCEMENTS", "INDUSTRY_DATABASES"],
    "FUND_INFORMATION": ["FUND_REPORTS", "SEC_FILINGS", "INDUSTRY_DATABASES"],
    "MARKET_TRENDS": ["EXPERT_ANALYSIS", "INDUSTRY_DATABASES", "FINANCIAL_MEDIA"],
    "COMPANY_DETAILS": ["SEC_FILINGS", "COMPANY_ANNOUNCEMENTS", "INDUSTRY_DATABASES"],
    "RELATIONSHIP_MAPPING": ["SEC_FILINGS", "INDUSTRY_DATABASES", "AI_INFERENCE"],
}


@dataclass
class SourceState:
    """Mutable performance record of one source type."""
    registered_at: datetime
    validation_count: int = 0
    success_rate: float = 0.5
    recent_performance: Deque[float] = field(default_factory=lambda: deque(maxlen=10))


@dataclass
class EvidenceSource:
    """
    One piece of evidence offered for a claim or relationship.

    ``authority`` overrides the registry lookup when set.
    """
    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    agreement: bool = True
    timestamp: Optional[datetime] = None
    authority: Optional[float] = None


@dataclass
class ValidationResult:
    """Outcome of cross-validating a claim."""
    confidence: float
    source_count: int
    agreement_level: float = 0.0
    supporting_info: List[Dict[str, Any]] = field(default_factory=list)
    conflicting_info: List[Dict[str, Any]] = field(default_factory=list)
    recommended_authority: float = 0.0


def _clamp_authority(value: float) -> float:
    return min(max(value, MIN_AUTHORITY), MAX_AUTHORITY)


class SourceIntelligence:
    """Scores sources, cross-validates claims and weights relationships."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        profiles: Optional[Dict[str, SourceProfile]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or {}
        self.profiles = profiles if profiles is not None else SOURCE_PROFILES
        self.clock = clock
        self.performance_window = self.config.get("performance_window", 10)
        self.decay_half_life_days = self.config.get("decay_half_life_days", 30)

        registered_at = self.clock()
        self.states: Dict[str, SourceState] = {
            name: SourceState(registered_at=registered_at, recent_performance=deque(maxlen=self.performance_window))
            for name in self.profiles
        }
        self.validation_cache = LRUCache(
            capacity=self.config.get("validation_cache_size", 1024),
            ttl_seconds=self.config.get("validation_cache_ttl_seconds", 3600),
        )

        logger.info(f"Source intelligence initialized with {len(self.profiles)} source types")

    def get_source_authority(self, source_type: str) -> float:
        """
        Get the current authority of a source type.

        Args:
            source_type: Registered source type name

        Returns:
            Authority in [0.1, 0.98]; 0.5 for unknown types
        """
        profile = self.profiles.get(source_type)
        if profile is None:
            logger.warning(f"Unknown source type: {source_type}")
            return UNKNOWN_AUTHORITY

        state = self.states[source_type]
        authority = profile.authority

        if state.recent_performance:
            recent_average = sum(state.recent_performance) / len(state.recent_performance)
            authority = authority * 0.7 + recent_average * 0.3

        if profile.category not in UNDECAYED_CATEGORIES:
            authority *= self._time_decay(state.registered_at)

        return _clamp_authority(authority)

    def _time_decay(self, since: datetime) -> float:
        days = (self.clock() - since).total_seconds() / 86400
        return 0.5 ** (days / self.decay_half_life_days)

    def _authority_for(self, source: EvidenceSource) -> float:
        if source.authority is not None:
            return _clamp_authority(source.authority)
        return self.get_source_authority(source.type)

    @staticmethod
    def validation_key(claim: Any) -> str:
        canonical = json.dumps(claim, sort_keys=True, default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def cross_validate_information(self, claim: Any, sources: List[EvidenceSource]) -> ValidationResult:
        """
        Cross-validate a claim against several sources.

        Args:
            claim: Any JSON-serialisable description of the claim
            sources: Evidence offered for or against the claim

        Returns:
            ValidationResult; cached per claim
        """
        if not sources:
            return ValidationResult(confidence=0.0, source_count=0)

        key = self.validation_key(claim)
        cached = self.validation_cache.get(key)
        if cached is not None:
            return cached

        if len(sources) == 1:
            authority = self._authority_for(sources[0])
            result = ValidationResult(
                confidence=authority,
                source_count=1,
                agreement_level=1.0 if sources[0].agreement else 0.0,
                recommended_authority=authority,
            )
            entry = {"source": sources[0].type, "authority": authority, "information": sources[0].data}
            (result.supporting_info if sources[0].agreement else result.conflicting_info).append(entry)
        else:
            total_weight = 0.0
            weighted_agreement = 0.0
            result = ValidationResult(confidence=0.0, source_count=len(sources))

            for source in sources:
                authority = self._authority_for(source)
                total_weight += authority
                entry = {"source": source.type, "authority": authority, "information": source.data}

                if source.agreement:
                    weighted_agreement += authority
                    result.supporting_info.append(entry)
                else:
                    result.conflicting_info.append(entry)

            result.agreement_level = weighted_agreement / total_weight
            result.confidence = result.agreement_level
            result.recommended_authority = total_weight / len(sources)

            if result.agreement_level > 0.8 and len(sources) >= 3:
                result.confidence = min(result.confidence * 1.2, MAX_CONFIDENCE)

        self.validation_cache.set(key, result)
        return result

    def create_weighted_relationship(
        self,
        from_id: str,
        to_id: str,
        relationship_type: str,
        sources: List[EvidenceSource],
    ) -> Relationship:
        """
        Build a relationship whose confidence is the mean source authority.

        Args:
            from_id: Identifier of the source entity
            to_id: Identifier of the target entity
            relationship_type: Relationship type, e.g. CO_INVESTED
            sources: Evidence behind the relationship

        Returns:
            Relationship with weighted confidence and source metadata

        Raises:
            ValueError: If no sources are given
        """
        if not sources:
            raise ValueError("A weighted relationship needs at least one source")

        now = self.clock()
        relationship_sources = []
        for source in sources:
            relationship_sources.append(RelationshipSource(
                type=source.type,
                authority=self._authority_for(source),
                data=source.data,
                timestamp=source.timestamp or now,
            ))

        average_authority = sum(source.authority for source in relationship_sources) / len(relationship_sources)
        profiles = [self.profiles.get(source.type) for source in sources]

        return Relationship(
            from_id=from_id,
            to_id=to_id,
            type=relationship_type,
            confidence=min(average_authority, MAX_CONFIDENCE),
            sources=relationship_sources,
            metadata=RelationshipMetadata(
                source_count=len(sources),
                average_authority=average_authority,
                has_official_source=any(p is not None and p.category == "official" for p in profiles),
                has_regulatory_source=any(p is not None and p.category == "regulatory" for p in profiles),
                requires_verification=any(p is not None and p.verification_required for p in profiles),
            ),
            validated_at=now,
        )

    def update_source_performance(self, source_type: str, success: bool, accuracy: Optional[float] = None):
        """Record a validation outcome for a source type; unknown types are ignored."""
        state = self.states.get(source_type)
        if state is None:
            return

        state.validation_count += 1
        state.recent_performance.append(accuracy if accuracy is not None else (1.0 if success else 0.0))

        successes = sum(1 for score in state.recent_performance if score >= SUCCESS_THRESHOLD)
        state.success_rate = successes / len(state.recent_performance)

        logger.debug(f"Updated performance for {source_type}: {state.success_rate:.3f}")

    def get_recommended_sources(self, query_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get source types suited to a query type, strongest authority first."""
        source_types = QUERY_SOURCE_MAP.get(query_type, list(self.profiles.keys()))

        recommendations = []
        for source_type in source_types:
            profile = self.profiles.get(source_type)
            if profile is None:
                continue
            recommendations.append({
                "source_type": source_type,
                "authority": self.get_source_authority(source_type),
                "reliability": profile.reliability,
                "timeliness": profile.timeliness,
                "category": profile.category,
                "verification_required": profile.verification_required,
                "success_rate": self.states[source_type].success_rate,
            })

        return sorted(recommendations, key=lambda item: item["authority"], reverse=True)

    def get_intelligence_stats(self) -> Dict[str, Any]:
        """Get source intelligence statistics."""
        breakdown: Dict[str, int] = {}
        performances = []

        for source_type, profile in self.profiles.items():
            breakdown[profile.category] = breakdown.get(profile.category, 0) + 1
            state = self.states[source_type]
            if state.validation_count > 0:
                performances.append({
                    "source_type": source_type,
                    "authority": profile.authority,
                    "success_rate": state.success_rate,
                    "validation_count": state.validation_count,
                })

        performances.sort(key=lambda item: item["success_rate"], reverse=True)

        return {
            "total_source_types": len(self.profiles),
            "validation_cache_size": len(self.validation_cache),
            "source_breakdown": breakdown,
            "top_performing_sources": performances[:3],
            "low_performing_sources": list(reversed(performances[-3:])),
        }
