"""
Data models for query plans, executions and processed results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..nlu.models import Intent


@dataclass
class PlannedQuery:
    """A parameterised graph query."""
    cypher: str
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QueryPlan:
    """Named queries generated for one user turn."""
    intent: Intent
    label: str
    queries: Dict[str, PlannedQuery] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent.value,
            "label": self.label,
            "queries": {
                name: {"cypher": query.cypher.strip(), "parameters": query.parameters}
                for name, query in self.queries.items()
            },
        }


@dataclass
class QueryExecution:
    """Outcome of running one named query."""
    records: List[Dict[str, Any]] = field(default_factory=list)
    execution_time_ms: float = 0.0
    record_count: int = 0
    error: Optional[str] = None
    summary: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self, sample_size: Optional[int] = None) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "record_count": self.record_count,
            "execution_time_ms": self.execution_time_ms,
        }
        if self.error is not None:
            data["error"] = self.error
        if sample_size is None:
            data["records"] = self.records
        else:
            data["sample_records"] = self.records[:sample_size]
        return data


ExecutionResults = Dict[str, QueryExecution]


@dataclass
class ProcessedResults:
    """Intent-specific view over the rows of an execution."""
    kind: str
    data: Dict[str, Any] = field(default_factory=dict)
    has_results: bool = False
    record_count: int = 0

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "has_results": self.has_results,
            "record_count": self.record_count,
            **self.data,
        }
