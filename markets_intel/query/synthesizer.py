"""
Result Synthesizer turning raw query rows into intent-specific results.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import networkx as nx

from ..nlu.models import EntityExtraction, Intent
from .models import ExecutionResults, ProcessedResults

logger = logging.getLogger(__name__)

MAX_NETWORK_INSIGHTS = 5


def _rows(results: ExecutionResults, name: str) -> List[Dict[str, Any]]:
    execution = results.get(name)
    if execution is None or not execution.ok:
        return []
    return execution.records


def _node_name(node: Any) -> Optional[str]:
    if isinstance(node, dict):
        return node.get("name")
    return node if isinstance(node, str) else None


class ResultSynthesizer:
    """Processes execution results according to the turn's intent."""

    def __init__(self):
        self.processors: Dict[Intent, Callable[[ExecutionResults, EntityExtraction], Dict[str, Any]]] = {
            Intent.ENTITY_INFO: self._process_entity_info,
            Intent.RELATIONSHIP_EXPLORE: self._process_relationships,
            Intent.PORTFOLIO_ANALYZE: self._process_portfolio,
            Intent.PERFORMANCE: self._process_performance,
            Intent.MARKET_TRENDS: self._process_trends,
            Intent.COMPARE_ENTITIES: self._process_comparison,
        }

    def process(
        self,
        results: ExecutionResults,
        intent: Intent,
        entities: Optional[EntityExtraction] = None,
    ) -> ProcessedResults:
        """
        Process execution results for an intent.

        Args:
            results: Execution results keyed by query name
            intent: Primary intent of the turn
            entities: Entities extracted from the turn

        Returns:
            ProcessedResults; intents without a processor use the generic view
        """
        entities = entities or EntityExtraction()
        processor = self.processors.get(intent)

        if processor is None:
            kind = "generic"
            data = self._process_generic(results)
        else:
            kind = intent.value
            data = processor(results, entities)

        record_count = sum(execution.record_count for execution in results.values())
        return ProcessedResults(
            kind=kind,
            data=data,
            has_results=record_count > 0,
            record_count=record_count,
        )

    def _process_entity_info(self, results: ExecutionResults, entities: EntityExtraction) -> Dict[str, Any]:
        processed = {"entities": [], "relationships": [], "people": []}
        seen = set()

        for record in _rows(results, "entityInfo"):
            entity = record.get("e")
            if not entity:
                continue
            name = entity.get("name")
            if name not in seen:
                seen.add(name)
                processed["entities"].append({"name": name, "type": entity.get("type"), "properties": entity})

            related = record.get("related")
            if related and record.get("relationshipType"):
                processed["relationships"].append({
                    "from": name,
                    "to": related.get("name"),
                    "type": record["relationshipType"],
                })

        for record in _rows(results, "peopleInfo"):
            person = record.get("p")
            if person:
                processed["people"].append({
                    "name": person.get("name"),
                    "relationship_type": record.get("relationshipType"),
                    "entity": _node_name(record.get("e")),
                })

        return processed

    def _process_relationships(self, results: ExecutionResults, entities: EntityExtraction) -> Dict[str, Any]:
        processed = {"connections": [], "network": [], "network_insights": []}
        graph = nx.Graph()

        for record in _rows(results, "relationships"):
            path = record.get("path")
            if not path:
                continue
            nodes = path.get("nodes", []) if isinstance(path, dict) else path
            names = [_node_name(node) for node in nodes]
            names = [name for name in names if name]
            processed["connections"].append({"path_length": record.get("pathLength"), "entities": names})
            nx.add_path(graph, names)

        for record in _rows(results, "entityNetwork"):
            source = _node_name(record.get("e"))
            target = _node_name(record.get("related"))
            if not source or not target:
                continue
            processed["network"].append({
                "from": source,
                "to": target,
                "type": record.get("relationshipType"),
                "confidence": record.get("confidence"),
            })
            graph.add_edge(source, target, type=record.get("relationshipType"))

        if graph.number_of_nodes() > 1:
            centrality = nx.degree_centrality(graph)
            ranked = sorted(centrality.items(), key=lambda item: item[1], reverse=True)
            processed["network_insights"] = [
                {"entity": name, "connections": graph.degree(name), "degree_centrality": round(score, 3)}
                for name, score in ranked[:MAX_NETWORK_INSIGHTS]
            ]

        return processed

    def _process_performance(self, results: ExecutionResults, entities: EntityExtraction) -> Dict[str, Any]:
        metrics = [
            {
                "entity": record.get("entityName"),
                "total_investments": record.get("totalInvestments"),
                "total_value": record.get("totalValue"),
                "portfolio_size": record.get("portfolioSize"),
            }
            for record in _rows(results, "performance")
        ]
        # stable: ties keep query order
        metrics = sorted(metrics, key=lambda metric: metric["total_value"] or 0, reverse=True)

        return {
            "performance_metrics": metrics,
            "rankings": [
                {"rank": position, "entity": metric["entity"], "total_value": metric["total_value"] or 0}
                for position, metric in enumerate(metrics, start=1)
            ],
            "people_performance": _rows(results, "peoplePerformance"),
        }

    def _process_portfolio(self, results: ExecutionResults, entities: EntityExtraction) -> Dict[str, Any]:
        return {"portfolio_analysis": {name: execution.records for name, execution in results.items()}}

    def _process_trends(self, results: ExecutionResults, entities: EntityExtraction) -> Dict[str, Any]:
        return {"trends_analysis": {name: execution.records for name, execution in results.items()}}

    def _process_comparison(self, results: ExecutionResults, entities: EntityExtraction) -> Dict[str, Any]:
        return {"comparison_analysis": {name: execution.records for name, execution in results.items()}}

    def _process_generic(self, results: ExecutionResults) -> Dict[str, Any]:
        processed = {"summary": {}, "details": {}}

        for name, execution in results.items():
            if not execution.ok:
                processed["summary"][name] = {"error": execution.error}
                continue

            processed["details"][name] = execution.records
            processed["summary"][name] = {
                "record_count": execution.record_count,
                "execution_time_ms": execution.execution_time_ms,
            }

        return processed
