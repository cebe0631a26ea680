"""
Query Executor running a query plan against a graph store.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from ..errors import ConfigurationError
from ..kg.graph_store import GraphStore
from .models import ExecutionResults, PlannedQuery, QueryExecution, QueryPlan

logger = logging.getLogger(__name__)


class QueryExecutor:
    """Runs the named queries of a plan with bounded concurrency."""

    def __init__(self, store: Optional[GraphStore], config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.store = store
        self.max_concurrency = config.get("max_concurrency", 4)
        self.default_timeout = config.get("timeout_seconds")

    async def execute(self, plan: QueryPlan, timeout: Optional[float] = None) -> ExecutionResults:
        """
        Execute every query of a plan.

        A failing query is recorded under its own name and never affects the
        others. With a timeout, queries still running are cancelled and
        recorded as timed out while finished ones keep their rows.

        Args:
            plan: The query plan to run
            timeout: Seconds to wait for the whole plan, defaults to config

        Returns:
            Mapping of query name to QueryExecution

        Raises:
            ConfigurationError: If no graph store is configured
        """
        if self.store is None:
            raise ConfigurationError("No graph store configured for query execution")

        if not plan.queries:
            logger.info(f"Plan {plan.label} has no queries to execute")
            return {}

        timeout = timeout if timeout is not None else self.default_timeout
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_query(name: str, query: PlannedQuery) -> QueryExecution:
            async with semaphore:
                start_time = time.time()
                try:
                    result = await self.store.execute_query(query.cypher, query.parameters)
                except Exception as e:
                    logger.error(f"Query {name} failed: {e}")
                    return QueryExecution(error=str(e), execution_time_ms=0, record_count=0)

                execution_time_ms = (time.time() - start_time) * 1000
                logger.debug(f"Query {name} returned {len(result.records)} rows in {execution_time_ms:.1f}ms")
                return QueryExecution(
                    records=result.records,
                    execution_time_ms=execution_time_ms,
                    record_count=len(result.records),
                    summary=result.summary,
                )

        tasks = {name: asyncio.ensure_future(run_query(name, query)) for name, query in plan.queries.items()}

        if timeout is not None:
            done, pending = await asyncio.wait(tasks.values(), timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(f"Cancelled {len(pending)} queries of plan {plan.label} after {timeout}s")
        else:
            await asyncio.gather(*tasks.values(), return_exceptions=True)

        results: ExecutionResults = {}
        for name, task in tasks.items():
            if task.cancelled():
                results[name] = QueryExecution(
                    error=f"Query timeout after {timeout}s", execution_time_ms=0, record_count=0
                )
            else:
                results[name] = task.result()

        total_rows = sum(execution.record_count for execution in results.values())
        logger.info(f"Executed {len(results)} queries for {plan.label} ({total_rows} rows)")
        return results
