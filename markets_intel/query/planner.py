"""
Query Planner translating intents and entities into graph queries.
"""

import logging
import re
from typing import Callable, Dict

from ..errors import PlannerNotFoundError
from ..nlu.models import EntityExtraction, Intent
from .models import PlannedQuery, QueryPlan

logger = logging.getLogger(__name__)

_AMOUNT = re.compile(r"([0-9,]+(?:\.[0-9]+)?)\s*([MBT]?)", re.IGNORECASE)
_MULTIPLIERS = {"M": 1_000_000, "B": 1_000_000_000, "T": 1_000_000_000_000}


def parse_amount(text: str) -> float:
    """
    Parse an amount such as ``$500M`` or ``1.5 billion`` into a number.

    Unparseable text gives 0.
    """
    match = _AMOUNT.search(text or "")
    if not match:
        return 0

    try:
        value = float(match.group(1).replace(",", ""))
    except ValueError:
        return 0

    return value * _MULTIPLIERS.get(match.group(2).upper(), 1)


ENTITY_INFO_QUERY = """
    MATCH (e:Entity)
    WHERE e.name IN $companyNames OR e.normalizedName IN $companyNames
    OPTIONAL MATCH (e)-[r]->(related:Entity)
    RETURN e, type(r) as relationshipType, related
    LIMIT 50
"""

PEOPLE_INFO_QUERY = """
    MATCH (p:Person)
    WHERE p.name IN $peopleNames
    OPTIONAL MATCH (p)-[r]->(e:Entity)
    RETURN p, type(r) as relationshipType, e
    LIMIT 50
"""

RELATIONSHIPS_QUERY = """
    MATCH (e1:Entity), (e2:Entity)
    WHERE e1.name IN $companyNames AND e2.name IN $companyNames AND e1 <> e2
    MATCH path = (e1)-[*1..3]-(e2)
    RETURN path, length(path) as pathLength
    ORDER BY pathLength ASC
    LIMIT 20
"""

ENTITY_NETWORK_QUERY = """
    MATCH (e:Entity {name: $companyName})-[r]-(related)
    RETURN e, type(r) as relationshipType, related, r.confidence as confidence
    ORDER BY r.confidence DESC, r.weight DESC
    LIMIT 30
"""

PORTFOLIO_QUERY = """
    MATCH (fund:Entity)-[:INVESTED_IN]->(company:Entity)
    WHERE fund.name IN $companyNames OR company.name IN $companyNames
    OPTIONAL MATCH (fund)-[:INVESTED_IN]->(otherCompany:Entity)
    WHERE otherCompany <> company
    RETURN fund, company, collect(DISTINCT otherCompany.name)[0..10] as otherInvestments
    LIMIT 25
"""

PERFORMANCE_QUERY = """
    MATCH (e:Entity)
    WHERE e.name IN $companyNames
    OPTIONAL MATCH (e)-[:INVESTED_IN]->(investment:Entity)
    RETURN e.name as entityName,
           e.totalInvestments as totalInvestments,
           e.totalInvestmentValue as totalValue,
           count(investment) as portfolioSize
    ORDER BY e.totalInvestmentValue DESC
    LIMIT 20
"""

PEOPLE_PERFORMANCE_QUERY = """
    MATCH (p:Person)
    WHERE p.name IN $peopleNames
    RETURN p.name as personName,
           p.totalInvestments as investments,
           p.totalInvestmentValue as totalValue,
           p.roles as roles
    ORDER BY p.totalInvestments DESC
"""

SECTOR_TRENDS_QUERY = """
    MATCH (e:Entity)
    WHERE any(sector IN $sectors WHERE e.industries CONTAINS sector)
    RETURN e.industries as industries,
           count(e) as entityCount,
           sum(e.totalInvestmentValue) as totalValue
    ORDER BY totalValue DESC
    LIMIT 15
"""

GEOGRAPHIC_TRENDS_QUERY = """
    MATCH (e:Entity)
    WHERE any(region IN $regions WHERE e.location CONTAINS region OR e.country CONTAINS region)
    RETURN e.country as country,
           count(e) as entityCount,
           sum(e.totalInvestmentValue) as totalValue
    ORDER BY totalValue DESC
    LIMIT 10
"""

COMPARISON_QUERY = """
    MATCH (e:Entity)
    WHERE e.name IN $companyNames
    OPTIONAL MATCH (e)-[:INVESTED_IN]->(portfolio:Entity)
    RETURN e.name as entityName,
           e.type as entityType,
           e.totalInvestments as totalInvestments,
           e.totalInvestmentValue as totalValue,
           e.sector as sector,
           e.country as country,
           count(portfolio) as portfolioSize
    ORDER BY e.totalInvestmentValue DESC
"""

SECTOR_DISCOVERY_QUERY = """
    MATCH (e:Entity)
    WHERE any(sector IN $sectors WHERE e.industries CONTAINS sector)
    AND e.totalInvestments > 0
    RETURN e.name as entityName,
           e.type as entityType,
           e.totalInvestments as investments,
           e.industries as industries,
           e.country as location
    ORDER BY e.totalInvestments DESC
    LIMIT 20
"""

AMOUNT_DISCOVERY_QUERY = """
    MATCH (e:Entity)
    WHERE e.totalInvestmentValue >= $minAmount
    RETURN e.name as entityName,
           e.type as entityType,
           e.totalInvestmentValue as totalValue,
           e.totalInvestments as investments
    ORDER BY e.totalInvestmentValue DESC
    LIMIT 15
"""

NETWORK_ANALYSIS_QUERY = """
    MATCH (p:Person)
    WHERE p.name IN $peopleNames
    OPTIONAL MATCH (p)-[r1]-(e:Entity)-[r2]-(otherPerson:Person)
    WHERE otherPerson <> p
    RETURN p.name as person,
           e.name as commonEntity,
           collect(DISTINCT otherPerson.name) as connections,
           type(r1) as relationshipType
    LIMIT 25
"""


class QueryPlanner:
    """Builds a query plan for each plannable intent."""

    def __init__(self):
        self.builders: Dict[Intent, Callable[[EntityExtraction], QueryPlan]] = {
            Intent.ENTITY_INFO: self._build_entity_info,
            Intent.RELATIONSHIP_EXPLORE: self._build_relationships,
            Intent.PORTFOLIO_ANALYZE: self._build_portfolio,
            Intent.PERFORMANCE: self._build_performance,
            Intent.MARKET_TRENDS: self._build_trends,
            Intent.COMPARE_ENTITIES: self._build_comparison,
            Intent.DISCOVER_OPPORTUNITIES: self._build_discovery,
            Intent.EXPLORE_NETWORKS: self._build_network,
        }

    @property
    def planned_intents(self):
        return list(self.builders.keys())

    def build(self, intent: Intent, entities: EntityExtraction) -> QueryPlan:
        """
        Build the query plan for an intent.

        Args:
            intent: Primary intent of the turn
            entities: Entities extracted from the turn

        Returns:
            QueryPlan with zero or more named queries

        Raises:
            PlannerNotFoundError: If the intent has no query builder
        """
        builder = self.builders.get(intent)
        if builder is None:
            raise PlannerNotFoundError(intent.value)

        plan = builder(entities)
        logger.debug(f"Planned {len(plan.queries)} queries for {intent.value}: {list(plan.queries)}")
        return plan

    def _build_entity_info(self, entities: EntityExtraction) -> QueryPlan:
        plan = QueryPlan(Intent.ENTITY_INFO, "entity_info")
        if entities.companies:
            plan.queries["entityInfo"] = PlannedQuery(
                ENTITY_INFO_QUERY, {"companyNames": entities.texts("companies")}
            )
        if entities.people:
            plan.queries["peopleInfo"] = PlannedQuery(
                PEOPLE_INFO_QUERY, {"peopleNames": entities.texts("people")}
            )
        return plan

    def _build_relationships(self, entities: EntityExtraction) -> QueryPlan:
        plan = QueryPlan(Intent.RELATIONSHIP_EXPLORE, "relationship_exploration")
        if len(entities.companies) >= 2:
            plan.queries["relationships"] = PlannedQuery(
                RELATIONSHIPS_QUERY, {"companyNames": entities.texts("companies")}
            )
        elif len(entities.companies) == 1:
            plan.queries["entityNetwork"] = PlannedQuery(
                ENTITY_NETWORK_QUERY, {"companyName": entities.companies[0].text}
            )
        return plan

    def _build_portfolio(self, entities: EntityExtraction) -> QueryPlan:
        plan = QueryPlan(Intent.PORTFOLIO_ANALYZE, "portfolio_analysis")
        if entities.companies:
            plan.queries["portfolio"] = PlannedQuery(
                PORTFOLIO_QUERY, {"companyNames": entities.texts("companies")}
            )
        return plan

    def _build_performance(self, entities: EntityExtraction) -> QueryPlan:
        plan = QueryPlan(Intent.PERFORMANCE, "performance_analysis")
        if entities.companies:
            plan.queries["performance"] = PlannedQuery(
                PERFORMANCE_QUERY, {"companyNames": entities.texts("companies")}
            )
        if entities.people:
            plan.queries["peoplePerformance"] = PlannedQuery(
                PEOPLE_PERFORMANCE_QUERY, {"peopleNames": entities.texts("people")}
            )
        return plan

    def _build_trends(self, entities: EntityExtraction) -> QueryPlan:
        plan = QueryPlan(Intent.MARKET_TRENDS, "trend_analysis")
        if entities.sectors:
            plan.queries["sectorTrends"] = PlannedQuery(
                SECTOR_TRENDS_QUERY, {"sectors": entities.texts("sectors")}
            )
        if entities.geographies:
            plan.queries["geographicTrends"] = PlannedQuery(
                GEOGRAPHIC_TRENDS_QUERY, {"regions": entities.texts("geographies")}
            )
        return plan

    def _build_comparison(self, entities: EntityExtraction) -> QueryPlan:
        plan = QueryPlan(Intent.COMPARE_ENTITIES, "entity_comparison")
        if len(entities.companies) >= 2:
            plan.queries["comparison"] = PlannedQuery(
                COMPARISON_QUERY, {"companyNames": entities.texts("companies")}
            )
        return plan

    def _build_discovery(self, entities: EntityExtraction) -> QueryPlan:
        plan = QueryPlan(Intent.DISCOVER_OPPORTUNITIES, "opportunity_discovery")
        if entities.sectors:
            plan.queries["sectorDiscovery"] = PlannedQuery(
                SECTOR_DISCOVERY_QUERY, {"sectors": entities.texts("sectors")}
            )
        if entities.amounts:
            plan.queries["amountDiscovery"] = PlannedQuery(
                AMOUNT_DISCOVERY_QUERY, {"minAmount": parse_amount(entities.amounts[0].text)}
            )
        return plan

    def _build_network(self, entities: EntityExtraction) -> QueryPlan:
        plan = QueryPlan(Intent.EXPLORE_NETWORKS, "network_analysis")
        if entities.people:
            plan.queries["networkAnalysis"] = PlannedQuery(
                NETWORK_ANALYSIS_QUERY, {"peopleNames": entities.texts("people")}
            )
        return plan
