"""
Relationship inference patterns.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

ScoreFunction = Callable[[Dict[str, Any]], Tuple[float, List[str]]]


class PatternName(Enum):
    CO_INVESTMENT = "CO_INVESTMENT"
    GEOGRAPHIC_CLUSTERING = "GEOGRAPHIC_CLUSTERING"
    SECTOR_ALIGNMENT = "SECTOR_ALIGNMENT"
    FOLLOW_ON_INVESTMENT = "FOLLOW_ON_INVESTMENT"
    PEOPLE_NETWORK = "PEOPLE_NETWORK"
    CORPORATE_STRUCTURE = "CORPORATE_STRUCTURE"
    DEAL_COLLABORATION = "DEAL_COLLABORATION"


@dataclass(frozen=True)
class InferencePattern:
    """A graph query template and the rule that scores its candidates."""
    name: PatternName
    description: str
    min_confidence: float
    relationship_type: str
    query: str
    score: ScoreFunction


def _co_investment(record: Dict[str, Any]) -> Tuple[float, List[str]]:
    overlap_count = record.get("overlap_count") or 0
    return min(0.95, 0.5 + overlap_count * 0.1), [f"Co-invested in {overlap_count} assets"]


def _geographic(record: Dict[str, Any]) -> Tuple[float, List[str]]:
    return 0.6, [f"Both operate in {record.get('common_geography')}"]


def _sector(record: Dict[str, Any]) -> Tuple[float, List[str]]:
    return 0.65, [f"Both focus on {record.get('common_sector')}"]


def _follow_on(record: Dict[str, Any]) -> Tuple[float, List[str]]:
    follow_count = record.get("follow_count") or 0
    return min(0.9, 0.6 + follow_count * 0.05), [f"{follow_count} follow-on investments observed"]


def _people(record: Dict[str, Any]) -> Tuple[float, List[str]]:
    shared_people = record.get("shared_people") or []
    return min(0.95, 0.7 + len(shared_people) * 0.05), [f"Share {len(shared_people)} key personnel"]


def _corporate(record: Dict[str, Any]) -> Tuple[float, List[str]]:
    return 0.8, ["Corporate name similarity detected"]


def _deals(record: Dict[str, Any]) -> Tuple[float, List[str]]:
    collaboration_count = record.get("collaboration_count") or 0
    return min(0.9, 0.5 + collaboration_count * 0.08), [f"Collaborated on {collaboration_count} transactions"]


INFERENCE_PATTERNS: Dict[PatternName, InferencePattern] = {
    pattern.name: pattern
    for pattern in (
        InferencePattern(
            name=PatternName.CO_INVESTMENT,
            description="Entities that frequently invest in similar assets",
            min_confidence=0.7,
            relationship_type="CO_INVESTED",
            query="""
                MATCH (entity1:Entity)-[:INVESTS_IN]->(asset:Entity)<-[:INVESTS_IN]-(entity2:Entity)
                WHERE entity1 <> entity2 AND entity1.type CONTAINS 'Fund' AND entity2.type CONTAINS 'Fund'
                RETURN entity1, entity2, count(asset) as overlap_count
                ORDER BY overlap_count DESC
            """,
            score=_co_investment,
        ),
        InferencePattern(
            name=PatternName.GEOGRAPHIC_CLUSTERING,
            description="Entities operating in same geographic regions",
            min_confidence=0.6,
            relationship_type="OPERATES_IN_SAME_REGION",
            query="""
                MATCH (entity1:Entity), (entity2:Entity)
                WHERE entity1 <> entity2
                AND entity1.country = entity2.country
                AND entity1.type CONTAINS 'Fund' AND entity2.type CONTAINS 'Fund'
                RETURN entity1, entity2, entity1.country as common_geography
            """,
            score=_geographic,
        ),
        InferencePattern(
            name=PatternName.SECTOR_ALIGNMENT,
            description="Entities with similar sector focus",
            min_confidence=0.65,
            relationship_type="FOCUSES_ON_SAME_SECTOR",
            query="""
                MATCH (entity1:Entity), (entity2:Entity)
                WHERE entity1 <> entity2
                AND entity1.sector = entity2.sector
                AND entity1.type CONTAINS 'Fund' AND entity2.type CONTAINS 'Fund'
                RETURN entity1, entity2, entity1.sector as common_sector
            """,
            score=_sector,
        ),
        InferencePattern(
            name=PatternName.FOLLOW_ON_INVESTMENT,
            description="One entity often invests after another",
            min_confidence=0.8,
            relationship_type="FOLLOWS_INVESTMENT_PATTERN",
            query="""
                MATCH (leader:Entity)-[r1:INVESTS_IN]->(asset:Entity)<-[r2:INVESTS_IN]-(follower:Entity)
                WHERE leader <> follower
                AND r1.created < r2.created
                RETURN leader, follower, count(*) as follow_count
                ORDER BY follow_count DESC
            """,
            score=_follow_on,
        ),
        InferencePattern(
            name=PatternName.PEOPLE_NETWORK,
            description="Entities sharing key personnel or board members",
            min_confidence=0.85,
            relationship_type="SHARES_PERSONNEL",
            query="""
                MATCH (person:Entity)-[:WORKS_AT|BOARD_MEMBER]->(entity1:Entity)
                MATCH (person)-[:WORKS_AT|BOARD_MEMBER]->(entity2:Entity)
                WHERE entity1 <> entity2 AND person.type = 'Person'
                RETURN entity1, entity2, collect(person.name) as shared_people
            """,
            score=_people,
        ),
        InferencePattern(
            name=PatternName.CORPORATE_STRUCTURE,
            description="Parent-subsidiary or affiliate relationships",
            min_confidence=0.9,
            relationship_type="AFFILIATED_WITH",
            query="""
                MATCH (parent:Entity), (subsidiary:Entity)
                WHERE parent <> subsidiary
                AND (subsidiary.name CONTAINS parent.name OR parent.name CONTAINS subsidiary.name)
                AND parent.type CONTAINS 'Fund' AND subsidiary.type CONTAINS 'Fund'
                RETURN parent, subsidiary, 'name_similarity' as evidence
            """,
            score=_corporate,
        ),
        InferencePattern(
            name=PatternName.DEAL_COLLABORATION,
            description="Entities frequently involved in same transactions",
            min_confidence=0.75,
            relationship_type="COLLABORATES_ON_DEALS",
            query="""
                MATCH (entity1:Entity)-[:PARTICIPATES_IN]->(transaction:Entity)<-[:PARTICIPATES_IN]-(entity2:Entity)
                WHERE entity1 <> entity2 AND transaction.type = 'Transaction'
                RETURN entity1, entity2, count(transaction) as collaboration_count
                ORDER BY collaboration_count DESC
            """,
            score=_deals,
        ),
    )
}

CANDIDATE_KEYS = (("entity1", "entity2"), ("parent", "subsidiary"), ("leader", "follower"))

SIMILARITY_QUERY = """
    MATCH (e1:Entity), (e2:Entity)
    WHERE e1 <> e2
    AND e1.type = e2.type
    AND (
        e1.country = e2.country OR
        e1.sector = e2.sector OR
        e1.name CONTAINS e2.name OR
        e2.name CONTAINS e1.name
    )
    RETURN e1, e2,
        CASE WHEN e1.country = e2.country THEN 1 ELSE 0 END as country_match,
        CASE WHEN e1.sector = e2.sector THEN 1 ELSE 0 END as sector_match,
        CASE WHEN e1.name CONTAINS e2.name OR e2.name CONTAINS e1.name THEN 1 ELSE 0 END as name_similarity
    LIMIT $limit
"""

RECENT_INFERENCES_QUERY = """
    MATCH ()-[r]->()
    WHERE r.inferredAt IS NOT NULL
    AND datetime(r.inferredAt) > datetime() - duration({days: 7})
    RETURN type(r) as relationship_type, count(r) as count
    ORDER BY count DESC
    LIMIT 10
"""

CONFIDENCE_DISTRIBUTION_QUERY = """
    MATCH ()-[r]->()
    WHERE r.confidence IS NOT NULL AND r.inferredAt IS NOT NULL
    RETURN
        CASE
            WHEN r.confidence >= 0.9 THEN 'High (0.9+)'
            WHEN r.confidence >= 0.7 THEN 'Medium-High (0.7-0.9)'
            WHEN r.confidence >= 0.5 THEN 'Medium (0.5-0.7)'
            ELSE 'Low (<0.5)'
        END as confidence_bucket,
        count(r) as count
    ORDER BY confidence_bucket DESC
"""
