"""
Shared fixtures for the private markets intelligence tests.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from markets_intel.kg import GraphQueryResult, LocalGraphStore
from markets_intel.nlu.models import EntityExtraction, EntitySpan


class ScriptedGraphStore(LocalGraphStore):
    """
    In-memory store that answers Cypher by substring matching.

    Each script entry maps a substring of the query text to the rows to
    return, or to an exception to raise. Unmatched queries return no rows.
    """

    def __init__(self, script: Optional[Dict[str, Any]] = None, delays: Optional[Dict[str, float]] = None):
        super().__init__()
        self.script = dict(script or {})
        self.delays = dict(delays or {})
        self.calls: List[Dict[str, Any]] = []
        self.active = 0
        self.max_active = 0

    async def execute_query(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> GraphQueryResult:
        self.calls.append({"query": query, "parameters": parameters or {}})
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            for fragment, delay in self.delays.items():
                if fragment in query:
                    await asyncio.sleep(delay)

            for fragment, response in self.script.items():
                if fragment in query:
                    if isinstance(response, Exception):
                        raise response
                    return GraphQueryResult(records=[dict(row) for row in response])
            return GraphQueryResult(records=[])
        finally:
            self.active -= 1


def make_entities(**categories: List[str]) -> EntityExtraction:
    """Build an EntityExtraction from lists of texts keyed by category."""
    extraction = EntityExtraction()
    for category, texts in categories.items():
        spans = extraction.category(category)
        for position, text in enumerate(texts):
            spans.append(EntitySpan(text=text, type=category.rstrip("s"), position=position))
    return extraction


@pytest.fixture
def scripted_store():
    return ScriptedGraphStore()
