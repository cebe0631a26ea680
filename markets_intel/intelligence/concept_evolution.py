"""
Concept evolution: detects investment themes in entity text and finds
coverage gaps in the knowledge graph.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..kg.graph_store import GraphStore
from ..kg.models import Entity

logger = logging.getLogger(__name__)

MAX_CONCEPT_CONFIDENCE = 0.95
KEYWORD_DENSITY_WEIGHT = 1.2
TEXT_FIELDS = ("name", "description", "primaryServices", "subType")
DEFAULT_CONCEPT_RELATIONSHIP = "RELATED_TO_CONCEPT"

ENTITY_DISTRIBUTION_QUERY = """
    MATCH (e:Entity)
    RETURN e.type as entity_type,
           e.sector as sector,
           e.country as country,
           count(*) as count
    ORDER BY count DESC
"""

RECENT_ENTITIES_QUERY = """
    MATCH (e:Entity)
    WHERE e.created > datetime() - duration({days: $days})
    RETURN e.type as entity_type, e.sector as sector, e.country as country, count(*) as recent_count
    ORDER BY recent_count DESC
    LIMIT 10
"""


@dataclass
class ConceptPattern:
    """Keywords that signal a concept, and the relationships it suggests."""
    name: str
    description: str
    keywords: Tuple[str, ...]
    entity_types: Tuple[str, ...]
    confidence_threshold: float
    suggested_relationships: Tuple[str, ...] = ()
    detection_count: int = 0
    last_detection: Optional[datetime] = None


@dataclass
class DetectedConcept:
    pattern_name: str
    description: str
    confidence: float
    evidence: List[str] = field(default_factory=list)
    suggested_entity_type: Optional[str] = None
    suggested_relationships: List[str] = field(default_factory=list)


@dataclass
class ConceptGapAnalysis:
    """Coverage gaps and emerging patterns in the graph, with recommendations."""
    underrepresented_areas: List[Dict[str, Any]] = field(default_factory=list)
    emerging_patterns: List[Dict[str, Any]] = field(default_factory=list)
    recommendations: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "underrepresented_areas": list(self.underrepresented_areas),
            "emerging_patterns": list(self.emerging_patterns),
            "recommendations": list(self.recommendations),
        }


CONCEPT_PATTERNS: Tuple[ConceptPattern, ...] = (
    ConceptPattern(
        name="INVESTMENT_THEMES",
        description="Detects emerging investment themes and ESG patterns",
        keywords=("ESG", "sustainability", "green", "climate", "renewable", "impact", "social", "governance"),
        entity_types=("INVESTMENT_STRATEGY", "SECTOR"),
        confidence_threshold=0.7,
        suggested_relationships=("FOLLOWS_ESG_STRATEGY", "FOCUSES_ON_SUSTAINABILITY", "IMPLEMENTS_IMPACT_INVESTING"),
    ),
    ConceptPattern(
        name="TECHNOLOGY_TRENDS",
        description="Identifies technology-related investment trends",
        keywords=("AI", "artificial intelligence", "fintech", "blockchain", "cryptocurrency", "digital",
                  "automation", "robotics"),
        entity_types=("TECHNOLOGY", "SECTOR"),
        confidence_threshold=0.6,
        suggested_relationships=("ADOPTS_TECHNOLOGY", "INVESTS_IN_FINTECH", "FOCUSES_ON_DIGITAL_ASSETS"),
    ),
    ConceptPattern(
        name="GEOGRAPHIC_EXPANSION",
        description="Tracks geographic expansion patterns and emerging markets",
        keywords=("emerging markets", "asia-pacific", "latin america", "africa", "middle east", "expansion",
                  "international"),
        entity_types=("LOCATION", "INVESTMENT_STRATEGY"),
        confidence_threshold=0.65,
        suggested_relationships=("EXPANDS_TO_REGION", "FOCUSES_ON_EMERGING_MARKETS", "OPERATES_INTERNATIONALLY"),
    ),
    ConceptPattern(
        name="REGULATORY_EVOLUTION",
        description="Monitors regulatory changes affecting private markets",
        keywords=("regulation", "compliance", "policy", "reform", "regulatory change", "legislation"),
        entity_types=("REGULATION", "ASSET_CLASS"),
        confidence_threshold=0.8,
        suggested_relationships=("COMPLIES_WITH_REGULATION", "AFFECTED_BY_POLICY", "ADAPTS_TO_REGULATORY_CHANGE"),
    ),
    ConceptPattern(
        name="MARKET_STRUCTURE",
        description="Identifies changes in market structure and competitive dynamics",
        keywords=("consolidation", "fragmentation", "market structure", "competition", "merger", "acquisition"),
        entity_types=("TRANSACTION", "INVESTMENT_STRATEGY"),
        confidence_threshold=0.75,
        suggested_relationships=("PARTICIPATES_IN_CONSOLIDATION", "RESPONDS_TO_COMPETITION", "ENGAGES_IN_M&A"),
    ),
)


def entity_text(entity: Union[Entity, Dict[str, Any]]) -> str:
    """Lower-cased text of the descriptive fields of an entity or graph record."""
    record = entity.to_record() if isinstance(entity, Entity) else entity
    return " ".join(str(record.get(name) or "") for name in TEXT_FIELDS).lower()


class ConceptEvolutionEngine:
    """
    Tracks concepts found in entity data and analyses graph coverage.

    Detection is keyword based and runs in process. Gap analysis reads
    entity distribution and recent additions from the graph store; a store
    that cannot answer those queries yields an empty analysis.
    """

    def __init__(
        self,
        store: GraphStore,
        config: Optional[Dict[str, Any]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.config = config or {}
        self.clock = clock
        self.underrepresented_percent = self.config.get("underrepresented_percent", 5.0)
        self.emerging_min_count = self.config.get("emerging_min_count", 5)
        self.emerging_window_days = self.config.get("emerging_window_days", 30)

        self.patterns: Dict[str, ConceptPattern] = {}
        self.concept_registry: Dict[str, Dict[str, Any]] = {}
        self.evolution_history: List[Dict[str, Any]] = []

        for pattern in CONCEPT_PATTERNS:
            self.add_detection_pattern(replace(pattern))

    def add_detection_pattern(self, pattern: ConceptPattern):
        self.patterns[pattern.name] = pattern
        logger.info(f"Added concept detection pattern: {pattern.name}")

    def analyze_entity_for_concept(self, entity: Union[Entity, Dict[str, Any]], pattern: ConceptPattern) -> DetectedConcept:
        """Score one entity against one pattern by keyword density."""
        text = entity_text(entity)
        evidence = [f'Keyword match: "{keyword}"' for keyword in pattern.keywords if keyword.lower() in text]

        density = len(evidence) / len(pattern.keywords) if pattern.keywords else 0.0
        confidence = min(density * KEYWORD_DENSITY_WEIGHT, MAX_CONCEPT_CONFIDENCE)

        return DetectedConcept(
            pattern_name=pattern.name,
            description=pattern.description,
            confidence=confidence,
            evidence=evidence,
            suggested_entity_type=pattern.entity_types[0] if pattern.entity_types else None,
            suggested_relationships=(
                self.suggest_concept_relationships(pattern) if confidence >= pattern.confidence_threshold else []
            ),
        )

    def detect_emerging_concepts(self, entity: Union[Entity, Dict[str, Any]]) -> List[DetectedConcept]:
        """
        Detect the concepts an entity expresses.

        Every pattern whose threshold is met counts a detection.

        Returns:
            Detected concepts in pattern registration order
        """
        detected = []
        for pattern in self.patterns.values():
            concept = self.analyze_entity_for_concept(entity, pattern)
            if concept.confidence >= pattern.confidence_threshold:
                detected.append(concept)
                pattern.detection_count += 1
                pattern.last_detection = self.clock()

        if detected:
            logger.debug(f"Detected {len(detected)} concepts: {[concept.pattern_name for concept in detected]}")
        return detected

    def suggest_concept_relationships(self, pattern: ConceptPattern) -> List[str]:
        return list(pattern.suggested_relationships) or [DEFAULT_CONCEPT_RELATIONSHIP]

    def register_entity_type(self, name: str, description: str = "", **details) -> Dict[str, Any]:
        """Record a new entity type discovered from concept detection."""
        return self._register(name, "entity_type_addition", {
            "name": name,
            "kind": "entity_type",
            "description": description,
            "properties": list(details.get("properties") or []),
            "relationships": list(details.get("relationships") or []),
            "examples": list(details.get("examples") or []),
        })

    def register_relationship_type(self, name: str, description: str = "", **details) -> Dict[str, Any]:
        """Record a new relationship type discovered from concept detection."""
        return self._register(name, "relationship_type_addition", {
            "name": name,
            "kind": "relationship_type",
            "description": description,
            "from_entity_types": list(details.get("from_entity_types") or []),
            "to_entity_types": list(details.get("to_entity_types") or []),
            "properties": list(details.get("properties") or []),
        })

    def _register(self, name: str, change: str, concept: Dict[str, Any]) -> Dict[str, Any]:
        now = self.clock()
        concept.update({"created_at": now, "source": "dynamic_evolution"})
        self.concept_registry[name] = concept
        self.evolution_history.append({"type": change, "name": name, "timestamp": now})
        logger.info(f"Registered {concept['kind']}: {name}")
        return concept

    async def get_entity_distribution(self) -> List[Dict[str, Any]]:
        try:
            result = await self.store.execute_query(ENTITY_DISTRIBUTION_QUERY)
        except Exception as e:
            logger.warning(f"Could not get entity distribution stats: {e}")
            return []
        return [
            {
                "entity_type": record.get("entity_type"),
                "sector": record.get("sector"),
                "country": record.get("country"),
                "count": record.get("count") or 0,
            }
            for record in result.records
        ]

    def identify_underrepresented_areas(self, distribution: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Sectors holding less than the configured share of sector-tagged entities."""
        sector_counts: Dict[str, int] = {}
        for row in distribution:
            if row.get("sector"):
                sector_counts[row["sector"]] = sector_counts.get(row["sector"], 0) + row.get("count", 0)

        total = sum(sector_counts.values())
        if not total:
            return []

        underrepresented = []
        for sector, count in sector_counts.items():
            percentage = count / total * 100
            if percentage < self.underrepresented_percent:
                underrepresented.append({
                    "area": sector,
                    "type": "sector",
                    "current_count": count,
                    "percentage": percentage,
                    "recommendation": f"Consider expanding {sector} coverage",
                })
        return underrepresented

    async def detect_emerging_patterns(self) -> List[Dict[str, Any]]:
        """Entity types and sectors with a burst of recent additions."""
        try:
            result = await self.store.execute_query(RECENT_ENTITIES_QUERY, {"days": self.emerging_window_days})
        except Exception as e:
            logger.warning(f"Could not detect emerging patterns: {e}")
            return []

        patterns = []
        for record in result.records:
            recent_count = record.get("recent_count") or 0
            if recent_count <= self.emerging_min_count:
                continue
            patterns.append({
                "pattern": f"Growing interest in {record.get('entity_type')} in {record.get('sector') or 'general'} sector",
                "evidence": f"{recent_count} new entities in last {self.emerging_window_days} days",
                "confidence": min(recent_count / 20, MAX_CONCEPT_CONFIDENCE),
                "suggested_action": "Monitor for new relationship patterns and investment themes",
            })
        return patterns

    def generate_concept_recommendations(self, analysis: ConceptGapAnalysis) -> List[Dict[str, str]]:
        recommendations = []

        for area in analysis.underrepresented_areas:
            recommendations.append({
                "type": "entity_expansion",
                "priority": "medium",
                "description": f"Expand data coverage in {area['area']}",
                "action": f"Add more {area['type']} entities and relationships",
                "expected_impact": "Improved query results and market coverage",
            })

        for pattern in analysis.emerging_patterns:
            recommendations.append({
                "type": "pattern_monitoring",
                "priority": "high",
                "description": pattern["pattern"],
                "action": "Create specialized detection patterns and relationship types",
                "expected_impact": "Better capture of emerging market trends",
            })

        recommendations.append({
            "type": "system_enhancement",
            "priority": "low",
            "description": "Implement automated concept detection from external sources",
            "action": "Connect to news feeds, research reports, and market data APIs",
            "expected_impact": "Continuous system evolution with minimal manual intervention",
        })
        return recommendations

    async def analyze_concept_gaps(self) -> ConceptGapAnalysis:
        """Find underrepresented sectors and emerging patterns, then recommend actions."""
        analysis = ConceptGapAnalysis()
        analysis.underrepresented_areas = self.identify_underrepresented_areas(await self.get_entity_distribution())
        analysis.emerging_patterns = await self.detect_emerging_patterns()
        analysis.recommendations = self.generate_concept_recommendations(analysis)

        logger.info(
            f"Concept gap analysis: {len(analysis.underrepresented_areas)} underrepresented areas, "
            f"{len(analysis.emerging_patterns)} emerging patterns"
        )
        return analysis

    def get_evolution_stats(self) -> Dict[str, Any]:
        return {
            "total_registered_concepts": len(self.concept_registry),
            "detection_patterns": len(self.patterns),
            "evolution_history": len(self.evolution_history),
            "recent_evolutions": self.evolution_history[-10:],
            "pattern_performance": [
                {
                    "name": name,
                    "detection_count": pattern.detection_count,
                    "last_detection": pattern.last_detection,
                    "description": pattern.description,
                }
                for name, pattern in self.patterns.items()
            ],
        }
