"""
Query planning, execution and result synthesis.
"""

from .models import PlannedQuery, QueryPlan, QueryExecution, ProcessedResults
from .planner import QueryPlanner, parse_amount
from .executor import QueryExecutor
from .synthesizer import ResultSynthesizer

__all__ = [
    "PlannedQuery",
    "QueryPlan",
    "QueryExecution",
    "ProcessedResults",
    "QueryPlanner",
    "parse_amount",
    "QueryExecutor",
    "ResultSynthesizer",
]
