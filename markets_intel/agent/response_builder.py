"""
Response Builder creating human-friendly answers from query results.
"""

import logging
from typing import Any, Dict, List, Optional

from ..nlu.models import Intent, NLUResult
from .models import QueryOutcome

logger = logging.getLogger(__name__)

MAX_INSIGHTS = 5
MAX_FOLLOW_UPS = 4
MAX_RELATED_QUESTIONS = 3
SAMPLE_RECORDS = 5

DEGRADED_TEXT = (
    "I apologize, but I encountered an unexpected error while processing your request. "
    "Please try again or contact support if the issue persists."
)
DEGRADED_FOLLOW_UPS = [
    "Try rephrasing your question",
    "Ask about a specific company or fund",
    "Check if the entity names are spelled correctly",
]
GENERIC_FOLLOW_UPS = [
    "Ask me about a specific company or fund",
    "Compare different investment strategies",
    "Explore market trends in a sector",
]


def _millions(value: Any) -> int:
    return round((value or 0) / 1_000_000)


def error_template(error: str) -> str:
    """Pick the user-facing text for a query error."""
    if "No query builder found" in error:
        return (
            "I understand what you're asking, but I'm not sure how to handle that type of query yet. "
            "Could you try rephrasing your question in a different way?"
        )

    lowered = error.lower()
    if "timeout" in lowered or "connection" in lowered:
        return "I'm having trouble accessing the database right now. Please try again in a moment."

    return (
        "I encountered an issue while searching for that information. "
        "Please try rephrasing your question or being more specific."
    )


class ResponseBuilder:
    """Turns an understood message and its query outcome into response content."""

    def generate_text(self, outcome: QueryOutcome, nlu: NLUResult) -> str:
        if outcome.error:
            return error_template(outcome.error)

        failures = [result.error for result in outcome.execution.values() if not result.ok]
        if outcome.execution and len(failures) == len(outcome.execution):
            return error_template(failures[0])

        generators = {
            Intent.ENTITY_INFO: self._entity_info_text,
            Intent.RELATIONSHIP_EXPLORE: lambda o, n: (
                "I've analyzed the relationships between the entities you mentioned. "
                "The network connections and paths are visualized below."
            ),
            Intent.PORTFOLIO_ANALYZE: lambda o, n: (
                "Here's the portfolio analysis based on your query. "
                "I've broken down the investments and relationships for better understanding."
            ),
            Intent.PERFORMANCE: self._performance_text,
            Intent.MARKET_TRENDS: lambda o, n: (
                "I've analyzed the market trends based on your criteria. "
                "Here are the patterns and insights I discovered."
            ),
            Intent.COMPARE_ENTITIES: self._comparison_text,
            Intent.DISCOVER_OPPORTUNITIES: self._discovery_text,
            Intent.EXPLORE_NETWORKS: lambda o, n: (
                "Here's the network analysis showing the professional connections and relationships in your query."
            ),
        }
        generator = generators.get(nlu.intent.primary, self._generic_text)
        return generator(outcome, nlu)

    def _entity_info_text(self, outcome: QueryOutcome, nlu: NLUResult) -> str:
        processed = outcome.processed
        entities = processed.get("entities", []) if processed else []

        if not entities:
            names = ", ".join(nlu.entities.texts("companies")) or "the entities you mentioned"
            return (
                f"I couldn't find specific information about {names} in our database. "
                "This might be because the entity name doesn't match exactly, "
                "or it might not be in our current dataset."
            )

        if len(entities) == 1:
            entity = entities[0]
            properties = entity["properties"]
            lines = [f"Here's what I found about **{entity['name']}**:", ""]

            if properties.get("type"):
                lines.append(f"• **Type**: {properties['type']}")
            if properties.get("totalInvestments"):
                lines.append(f"• **Total Investments**: {properties['totalInvestments']} deals")
            if properties.get("totalInvestmentValue"):
                lines.append(f"• **Total Investment Value**: ${_millions(properties['totalInvestmentValue'])}M")
            if properties.get("sector"):
                lines.append(f"• **Sector Focus**: {properties['sector']}")
            if properties.get("country"):
                lines.append(f"• **Location**: {properties['country']}")

            relationships = processed.get("relationships", [])
            if relationships:
                lines.append("")
                lines.append(
                    f"{entity['name']} has **{len(relationships)} key relationships** in our database, "
                    "including investments and partnerships."
                )
            return "\n".join(lines)

        lines = [f"I found information about **{len(entities)} entities** matching your query:", ""]
        for index, entity in enumerate(entities, start=1):
            properties = entity["properties"]
            lines.append(f"**{index}. {entity['name']}**")
            lines.append(f"   • Type: {properties.get('type') or 'Unknown'}")
            if properties.get("totalInvestments"):
                lines.append(f"   • Investments: {properties['totalInvestments']} deals")
            lines.append("")
        return "\n".join(lines)

    def _performance_text(self, outcome: QueryOutcome, nlu: NLUResult) -> str:
        processed = outcome.processed
        metrics = processed.get("performance_metrics", []) if processed else []

        if not metrics:
            return (
                "I couldn't find performance data for the entities you mentioned. "
                "This might be because they don't have investment activity in our database, "
                "or the names don't match exactly."
            )

        if len(metrics) == 1:
            metric = metrics[0]
            lines = [f"Here's the performance data for **{metric['entity']}**:", ""]
            if metric.get("total_investments"):
                lines.append(f"• **Total Investments**: {metric['total_investments']} deals")
            if metric.get("total_value"):
                lines.append(f"• **Total Investment Value**: ${_millions(metric['total_value'])}M")
            if metric.get("portfolio_size"):
                lines.append(f"• **Active Portfolio Size**: {metric['portfolio_size']} companies")
            if metric.get("total_value") and metric.get("total_investments"):
                average = _millions(metric["total_value"] / metric["total_investments"])
                lines.append(f"• **Average Deal Size**: ~${average}M")
            return "\n".join(lines)

        lines = ["Here's a performance comparison of the entities:", ""]
        for index, metric in enumerate(metrics, start=1):
            lines.append(f"**{index}. {metric['entity']}**")
            lines.append(
                f"   • Investment Value: ${_millions(metric.get('total_value'))}M "
                f"across {metric.get('total_investments') or 0} deals"
            )
            lines.append(f"   • Portfolio Size: {metric.get('portfolio_size') or 0} companies")
            lines.append("")
        return "\n".join(lines)

    def _comparison_text(self, outcome: QueryOutcome, nlu: NLUResult) -> str:
        processed = outcome.processed
        if not processed or not processed.get("comparison_analysis"):
            return (
                "I couldn't perform the comparison you requested. "
                "Please make sure you've specified at least two entities to compare."
            )
        return "Comparison analysis completed. The detailed results are shown in the data section below."

    def _discovery_text(self, outcome: QueryOutcome, nlu: NLUResult) -> str:
        processed = outcome.processed
        details = processed.get("details", {}) if processed else {}
        entities = details.get("sectorDiscovery")

        if entities:
            sectors = ", ".join(nlu.entities.texts("sectors"))
            lines = [f"I found **{len(entities)} active entities** in the {sectors} sector(s):", ""]
            for index, entity in enumerate(entities[:10], start=1):
                lines.append(f"**{index}. {entity.get('entityName')}**")
                lines.append(f"   • Type: {entity.get('entityType')}")
                lines.append(f"   • Investments: {entity.get('investments')} deals")
                if entity.get("location"):
                    lines.append(f"   • Location: {entity['location']}")
                lines.append("")
            if len(entities) > 10:
                lines.append(f"... and {len(entities) - 10} more entities in this sector.")
            return "\n".join(lines)

        return "Discovery analysis completed. Here are the opportunities I found based on your criteria."

    def _generic_text(self, outcome: QueryOutcome, nlu: NLUResult) -> str:
        if outcome.total_records == 0:
            return (
                "I searched our database but couldn't find specific results matching your query. "
                "This might be because the entities mentioned aren't in our dataset, "
                "or the search criteria were too specific."
            )
        return (
            f"I found {outcome.total_records} relevant data points for your query. "
            "The detailed results are shown below, and I've generated some insights that might be helpful."
        )

    def format_structured_data(self, outcome: QueryOutcome) -> Dict[str, Any]:
        if outcome.error:
            return {"error": outcome.error}

        return {
            "query_plan": outcome.plan.to_dict() if outcome.plan else None,
            "execution_results": {
                name: {**result.to_dict(sample_size=SAMPLE_RECORDS), "has_error": not result.ok}
                for name, result in outcome.execution.items()
            },
            "processed_results": outcome.processed.to_dict() if outcome.processed else None,
            "record_counts": outcome.record_counts(),
        }

    def generate_insights(self, outcome: QueryOutcome) -> List[Dict[str, Any]]:
        processed = outcome.processed
        if processed is None:
            return []

        insights = []

        metrics = processed.get("performance_metrics") or []
        if len(metrics) > 1:
            leader = max(metrics, key=lambda metric: metric.get("total_value") or 0)
            insights.append({
                "type": "performance_leader",
                "message": f"{leader['entity']} shows the highest total investment value in this comparison.",
                "confidence": 0.8,
            })

        relationships = processed.get("relationships") or []
        if relationships:
            insights.append({
                "type": "relationship_density",
                "message": f"Found {len(relationships)} key relationships between the entities.",
                "confidence": 0.7,
            })

        hubs = processed.get("network_insights") or []
        if hubs:
            hub = hubs[0]
            insights.append({
                "type": "network_hub",
                "message": f"{hub['entity']} is the most connected entity with {hub['connections']} connections.",
                "confidence": 0.7,
            })

        if processed.get("trends_analysis"):
            insights.append({
                "type": "trend_observation",
                "message": "Market trend patterns identified in the data.",
                "confidence": 0.6,
            })

        return insights[:MAX_INSIGHTS]

    def generate_follow_ups(self, nlu: NLUResult) -> List[str]:
        intent = nlu.intent.primary
        companies = nlu.entities.texts("companies")
        suggestions = []

        if intent == Intent.ENTITY_INFO and companies:
            suggestions = [
                f"Analyze the performance of {companies[0]}",
                f"Show me the portfolio of {companies[0]}",
                f"Find competitors of {companies[0]}",
            ]
        elif intent == Intent.PERFORMANCE:
            suggestions = [
                "Compare this performance to industry benchmarks",
                "Show me the investment timeline",
                "Analyze the risk factors",
            ]
        elif intent == Intent.COMPARE_ENTITIES:
            suggestions = [
                "Show me more detailed metrics for the comparison",
                "Find similar entities for broader comparison",
                "Analyze the market trends affecting these entities",
            ]
        elif intent == Intent.DISCOVER_OPPORTUNITIES:
            suggestions = [
                "Narrow down the search with specific criteria",
                "Analyze the performance of these opportunities",
                "Find the key people involved in these opportunities",
            ]

        if not suggestions:
            suggestions = list(GENERIC_FOLLOW_UPS)

        return suggestions[:MAX_FOLLOW_UPS]

    def generate_related_questions(self, nlu: NLUResult) -> List[str]:
        entities = nlu.entities
        questions = []

        if entities.companies:
            company = entities.companies[0].text
            questions.extend([
                f"What is the investment strategy of {company}?",
                f"Who are the key partners at {company}?",
                f"What sectors does {company} focus on?",
            ])

        if entities.people:
            person = entities.people[0].text
            questions.extend([
                f"What is the track record of {person}?",
                f"Which companies has {person} invested in?",
                f"Who does {person} frequently co-invest with?",
            ])

        if entities.sectors:
            sector = entities.sectors[0].text
            questions.extend([
                f"Which are the most active funds in {sector}?",
                f"What are the latest trends in {sector}?",
                f"Who are the top performers in {sector}?",
            ])

        return questions[:MAX_RELATED_QUESTIONS]

    def calculate_confidence(self, outcome: QueryOutcome, understanding_confidence: float) -> float:
        """
        Response confidence from understanding confidence and the query outcome.

        +0.2 when any row was found, -0.3 when a plan-level or per-query error
        surfaced, clamped to [0.1, 1.0] and rounded to two decimals.
        """
        confidence = understanding_confidence
        if outcome.total_records > 0:
            confidence += 0.2
        if outcome.has_error:
            confidence -= 0.3
        return round(min(max(confidence, 0.1), 1.0), 2)

    def identify_sources(self, outcome: QueryOutcome) -> List[str]:
        sources = ["Private Markets Knowledge Store"]
        processed = outcome.processed
        if processed is None:
            return sources

        if "entities" in processed.data:
            sources.append("Entity Database")
        if "performance_metrics" in processed.data:
            sources.append("Investment Performance Data")
        if "relationships" in processed.data or "connections" in processed.data:
            sources.append("Relationship Network Data")
        return sources

    def enrichment_prompt(self, outcome: QueryOutcome) -> Optional[str]:
        """Describe the single entity found by an entity-info answer, for enrichment."""
        processed = outcome.processed
        entities = processed.get("entities", []) if processed else []
        if not entities:
            return None

        entity = entities[0]
        details = {
            key: value for key, value in entity["properties"].items()
            if key in ("type", "sector", "country", "description", "aum", "founded", "totalInvestments")
        }
        return f"{entity['name']}: {details}"
