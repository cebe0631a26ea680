#!/usr/bin/env python3
"""
Private Markets Intelligence - query understanding and relationship inference
"""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from markets_intel.agent import AgentResponse, MarketsAgent
from markets_intel.errors import ConfigurationError, MarketsIntelError
from markets_intel.ingestion import CSVIngester, IngestionResult
from markets_intel.intelligence import ConceptEvolutionEngine, RelationshipInferenceEngine, SourceIntelligence
from markets_intel.kg import GraphStore, LocalGraphStore, Neo4jGraphStore
from markets_intel.models import EntityEnricher, LLMManager

logger = logging.getLogger(__name__)


def load_env_file():
    """Load environment variables from .env file if it exists."""
    env_file = Path(".env")
    if env_file.exists():
        with open(env_file, 'r') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    os.environ.setdefault(key.strip(), value.strip())


def load_config(config_path: str = "config/config.yaml") -> dict:
    """Load configuration from YAML file."""
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
        return config
    except FileNotFoundError:
        print(f"❌ Configuration file not found: {config_path}")
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"❌ Error parsing configuration file: {e}")
        sys.exit(1)


def setup_logging(config: dict, debug: bool = False):
    """Setup logging configuration."""
    log_config = config.get("logging", {})
    log_level = logging.DEBUG if debug else getattr(logging, log_config.get("level", "INFO"))
    log_format = log_config.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    log_file = log_config.get("file", "logs/markets_intel.log")
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


async def build_graph_store(config: dict) -> GraphStore:
    """Create the configured graph store backend."""
    store_config = config.get("graph_store", {})
    backend = store_config.get("backend", "neo4j")

    if backend == "local":
        return LocalGraphStore(Path(store_config.get("storage_path", "data/graph")))
    if backend == "neo4j":
        store = Neo4jGraphStore(store_config)
        await store.connect()
        return store

    raise ConfigurationError(f"Unknown graph store backend: {backend}")


def build_enricher(config: dict) -> Optional[EntityEnricher]:
    """Create the optional LLM enricher; None when disabled or unavailable."""
    agent_config = config.get("agent", {})
    if not agent_config.get("enable_enrichment", False):
        return None

    try:
        return EntityEnricher(LLMManager(config), agent_config)
    except ConfigurationError as e:
        logger.warning(f"Enrichment disabled: {e}")
        return None


class MarketsIntelSystem:
    """Main private markets intelligence system."""

    def __init__(self, config: dict, store: GraphStore, debug: bool = False):
        self.config = config
        self.store = store
        self.debug_mode = debug
        self.console = Console()

        self.agent = MarketsAgent(store, config, enricher=build_enricher(config))
        self.source_intelligence = SourceIntelligence(config.get("source_intelligence", {}))
        self.inference = RelationshipInferenceEngine(store, self.source_intelligence, config.get("inference", {}))
        self.concept_evolution = ConceptEvolutionEngine(store, config.get("concept_evolution", {}))

    @classmethod
    async def create(cls, config: dict, debug: bool = False) -> "MarketsIntelSystem":
        store = await build_graph_store(config)
        return cls(config, store, debug=debug)

    async def query(self, text: str, conversation_id: Optional[str] = None) -> AgentResponse:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            transient=True,
        ) as progress:
            progress.add_task("Analyzing question...", total=None)
            return await self.agent.process_query(text, conversation_id)

    def display_response(self, response: AgentResponse):
        """Display an agent response in a formatted way."""
        border = "blue" if response.success else "red"
        self.console.print(Panel(
            response.text,
            title=f"[bold {border}]Answer[/bold {border}] (confidence {response.confidence:.2f})",
            border_style=border
        ))

        if response.insights:
            insights_table = Table(title="Insights")
            insights_table.add_column("Type", style="cyan")
            insights_table.add_column("Insight", style="white")
            insights_table.add_column("Confidence", style="green")
            for insight in response.insights:
                insights_table.add_row(insight["type"], insight["message"], f"{insight['confidence']:.2f}")
            self.console.print(insights_table)

        if response.follow_up_suggestions:
            self.console.print("\n[bold]You might also ask:[/bold]")
            for suggestion in response.follow_up_suggestions:
                self.console.print(f"  • {suggestion}")

        if self.debug_mode:
            debug_table = Table(title="Debug Information")
            debug_table.add_column("Component", style="cyan")
            debug_table.add_column("Details", style="white")
            metadata = response.execution_metadata
            debug_table.add_row("Intent", str(metadata.get("intent")))
            debug_table.add_row("Complexity", str(metadata.get("complexity")))
            debug_table.add_row("Understanding", f"{metadata.get('understanding_confidence', 0):.2f}")
            debug_table.add_row("Record Counts", str(metadata.get("record_counts", {})))
            debug_table.add_row("Stage Timing (ms)", str(metadata.get("stage_timing_ms", {})))
            debug_table.add_row("Conversation", str(response.conversation))
            if response.error:
                debug_table.add_row("Error", str(response.error))
            self.console.print(debug_table)

    async def interactive_mode(self):
        """Run the agent in interactive mode with one conversation."""
        self.console.print(Panel(
            "[bold blue]Private Markets Intelligence[/bold blue]\n"
            "Ask about funds, companies, investors and people in private markets.\n"
            "Type 'quit' to exit, 'stats' for agent statistics, 'help' for commands.",
            border_style="blue"
        ))

        conversation_id = None
        self.agent.conversation_manager.start_cleanup_task()

        while True:
            try:
                text = click.prompt("\nQuery")

                if text.lower() in ['quit', 'exit', 'q']:
                    break
                elif text.lower() == 'stats':
                    self.show_agent_stats()
                    continue
                elif text.lower() == 'help':
                    self.console.print("""
                    [bold]Available Commands:[/bold]
                    • Ask any question about private markets entities
                    • 'suggest' - Show suggested questions
                    • 'stats' - Show agent statistics
                    • 'help' - Show this help message
                    • 'quit' - Exit
                    """)
                    continue
                elif text.lower() == 'suggest':
                    for suggestion in self.agent.get_suggestions(conversation_id):
                        self.console.print(f"  • {suggestion}")
                    continue
                elif not text.strip():
                    continue

                response = await self.query(text, conversation_id)
                conversation_id = response.conversation_id
                self.display_response(response)

            except (KeyboardInterrupt, click.Abort):
                self.console.print("\n[yellow]Exiting...[/yellow]")
                break

    def display_inference_summary(self, summary: Dict[str, Any], dry_run: bool):
        table = Table(title="Relationship Inference" + (" (dry run)" if dry_run else ""))
        table.add_column("Pattern", style="cyan")
        table.add_column("Inferred", style="green")
        table.add_column("Error", style="red")

        errors = summary["pattern_errors"]
        for pattern, count in summary["relationship_types_breakdown"].items():
            table.add_row(pattern, str(count), errors.get(pattern, ""))
        self.console.print(table)

        totals = Table(title="Summary")
        totals.add_column("Metric", style="cyan")
        totals.add_column("Value", style="white")
        totals.add_row("Candidates", str(summary["total_inferences"]))
        totals.add_row("Successful", str(summary["successful_inferences"]))
        totals.add_row("Failed", str(summary["failed_inferences"]))
        totals.add_row("Time", f"{summary['processing_time_ms'] / 1000:.2f}s")
        self.console.print(totals)

    def display_ingested_concepts(self, results: List[IngestionResult]):
        """Run concept detection over freshly ingested entities and show the counts."""
        for result in results:
            for entity in result.entities:
                self.concept_evolution.detect_emerging_concepts(entity)

        performance = self.concept_evolution.get_evolution_stats()["pattern_performance"]
        detected = [item for item in performance if item["detection_count"]]
        if not detected:
            return

        table = Table(title="Concepts Detected")
        table.add_column("Concept", style="cyan")
        table.add_column("Entities", style="green")
        table.add_column("Description", style="white")
        for item in detected:
            table.add_row(item["name"], str(item["detection_count"]), item["description"])
        self.console.print(table)

    def display_ingestion_results(self, results: List[IngestionResult]):
        """Display ingestion results in a formatted table."""
        if not results:
            self.console.print("[yellow]No files to ingest.[/yellow]")
            return

        table = Table(title="Ingestion Results")
        table.add_column("File", style="cyan")
        table.add_column("Entity Type", style="blue")
        table.add_column("Parsed", style="white")
        table.add_column("Successful", style="green")
        table.add_column("Failed", style="red")
        table.add_column("Time (s)", style="white")

        for result in results:
            table.add_row(
                result.file_name,
                result.entity_type,
                str(result.total_entities),
                str(result.successful),
                str(result.failed),
                f"{result.processing_time:.2f}"
            )
        self.console.print(table)

        errors = [f"{r.file_name}: {e.get('error')}" for r in results for e in r.errors]
        if errors:
            self.console.print("\n[red]Errors:[/red]")
            for error in errors[:20]:
                self.console.print(f"  • {error}")
            if len(errors) > 20:
                self.console.print(f"  … and {len(errors) - 20} more")

    async def show_stats(self):
        """Display graph, inference and source statistics."""
        graph_stats = await self.store.get_stats()
        inference_stats = await self.inference.get_inference_stats()
        source_stats = self.source_intelligence.get_intelligence_stats()
        gap_analysis = await self.concept_evolution.analyze_concept_gaps()

        graph_table = Table(title="Knowledge Graph Statistics")
        graph_table.add_column("Metric", style="cyan")
        graph_table.add_column("Value", style="white")
        if "error" in graph_stats:
            graph_table.add_row("Status", f"Error: {graph_stats['error']}")
        else:
            graph_table.add_row("Total Entities", str(graph_stats.get("total_entities", 0)))
            graph_table.add_row("Total Relationships", str(graph_stats.get("total_relationships", 0)))
            graph_table.add_row("Entity Types", str(len(graph_stats.get("entity_types", {}))))
            graph_table.add_row("Relationship Types", str(len(graph_stats.get("relationship_types", {}))))

        inference_table = Table(title="Inferred Relationships (last 7 days)")
        inference_table.add_column("Type", style="cyan")
        inference_table.add_column("Count", style="white")
        for row in inference_stats["recent_inferences"]:
            inference_table.add_row(str(row["relationship_type"]), str(row["count"]))
        for row in inference_stats["confidence_distribution"]:
            inference_table.add_row(f"[dim]{row['bucket']}[/dim]", str(row["count"]))

        source_table = Table(title="Source Intelligence Statistics")
        source_table.add_column("Metric", style="cyan")
        source_table.add_column("Value", style="white")
        source_table.add_row("Source Types", str(source_stats["total_source_types"]))
        source_table.add_row("Validation Cache", str(source_stats["validation_cache_size"]))
        for category, count in source_stats["source_breakdown"].items():
            source_table.add_row(f"Category: {category}", str(count))

        concept_table = Table(title="Concept Coverage")
        concept_table.add_column("Finding", style="cyan")
        concept_table.add_column("Detail", style="white")
        for area in gap_analysis.underrepresented_areas:
            concept_table.add_row(
                f"Underrepresented: {area['area']}",
                f"{area['current_count']} entities ({area['percentage']:.1f}%)",
            )
        for pattern in gap_analysis.emerging_patterns:
            concept_table.add_row(pattern["pattern"], pattern["evidence"])
        for recommendation in gap_analysis.recommendations:
            concept_table.add_row(f"[dim]{recommendation['priority']}[/dim]", recommendation["description"])

        self.console.print(graph_table)
        self.console.print(inference_table)
        self.console.print(source_table)
        self.console.print(concept_table)

    def show_agent_stats(self):
        stats = self.agent.get_agent_statistics()
        table = Table(title="Agent Statistics")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white")
        agent_stats = stats["agent"]
        table.add_row("Total Queries", str(agent_stats["total_queries"]))
        table.add_row("Success Rate", f"{agent_stats['success_rate']:.1f}%")
        table.add_row("Avg Response Time", f"{agent_stats['average_response_time_ms']:.0f}ms")
        table.add_row("Active Conversations", str(stats["conversations"].get("active_conversations", 0)))
        for item in stats["intents"]["top"][:5]:
            table.add_row(f"Intent: {item['intent']}", str(item["count"]))
        self.console.print(table)

    async def close(self):
        await self.agent.shutdown()


def run_with_system(ctx, handler):
    """Build the system, run an async handler against it and always close it."""
    console = Console()

    async def runner():
        system = await MarketsIntelSystem.create(ctx.obj['config'], debug=ctx.obj['debug'])
        try:
            return await handler(system)
        finally:
            await system.close()

    try:
        return asyncio.run(runner())
    except MarketsIntelError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


@click.group()
@click.option('--config', '-c', default='config/config.yaml', help='Configuration file path')
@click.option('--debug', '-d', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, config, debug):
    """Private Markets Intelligence CLI."""
    load_env_file()

    ctx.ensure_object(dict)
    ctx.obj['config'] = load_config(config)
    ctx.obj['debug'] = debug

    setup_logging(ctx.obj['config'], debug)


@cli.command()
@click.argument('text')
@click.option('--conversation-id', help='Continue an existing conversation')
@click.pass_context
def query(ctx, text, conversation_id):
    """Ask a private markets question."""
    async def handler(system):
        response = await system.query(text, conversation_id)
        system.display_response(response)

    run_with_system(ctx, handler)


@cli.command()
@click.pass_context
def interactive(ctx):
    """Start interactive query mode."""
    async def handler(system):
        await system.interactive_mode()

    run_with_system(ctx, handler)


@cli.command()
@click.option('--pattern', '-p', multiple=True, help='Inference pattern to run (repeatable)')
@click.option('--dry-run', is_flag=True, help='Score candidates without persisting relationships')
@click.option('--skip-similarity', is_flag=True, help='Skip the entity similarity pass')
@click.pass_context
def infer(ctx, pattern, dry_run, skip_similarity):
    """Infer new relationships from graph patterns."""
    async def handler(system):
        summary = await system.inference.infer_all_relationships({
            "patterns": list(pattern) or None,
            "dry_run": dry_run,
            "include_similarity": not skip_similarity,
        })
        system.display_inference_summary(summary.to_dict(), dry_run)

    run_with_system(ctx, handler)


@cli.command()
@click.argument('data_path', type=click.Path(exists=True))
@click.option('--batch-size', '-b', type=int, help='Entities upserted per batch')
@click.option('--max-concurrent', '-m', type=int, help='Maximum concurrent upserts')
@click.pass_context
def ingest(ctx, data_path, batch_size, max_concurrent):
    """Ingest seed CSV files into the graph store."""
    ingestion_config = dict(ctx.obj['config'].get("ingestion", {}))
    if batch_size:
        ingestion_config["batch_size"] = batch_size
    if max_concurrent:
        ingestion_config["max_concurrent"] = max_concurrent

    async def handler(system):
        system.console.print(f"[yellow]Ingesting seed data from {data_path}...[/yellow]")
        results = await CSVIngester(system.store, ingestion_config).ingest_path(data_path)
        system.display_ingestion_results(results)
        system.display_ingested_concepts(results)

    run_with_system(ctx, handler)


@cli.command()
@click.pass_context
def stats(ctx):
    """Show graph, inference and source statistics."""
    async def handler(system):
        await system.show_stats()

    run_with_system(ctx, handler)


@cli.command()
@click.option('--query-type', '-q', help='Query type, e.g. COMPANY_DETAILS or MARKET_TRENDS')
@click.pass_context
def sources(ctx, query_type):
    """Show source types ranked by authority."""
    source_intelligence = SourceIntelligence(ctx.obj['config'].get("source_intelligence", {}))

    table = Table(title=f"Recommended Sources{f' for {query_type}' if query_type else ''}")
    table.add_column("Source", style="cyan")
    table.add_column("Category", style="blue")
    table.add_column("Authority", style="green")
    table.add_column("Reliability", style="white")
    table.add_column("Timeliness", style="white")
    table.add_column("Verification", style="yellow")

    for source in source_intelligence.get_recommended_sources(query_type):
        table.add_row(
            source["source_type"],
            source["category"],
            f"{source['authority']:.2f}",
            f"{source['reliability']:.2f}",
            f"{source['timeliness']:.2f}",
            "required" if source["verification_required"] else "-"
        )
    Console().print(table)


@cli.command()
@click.pass_context
def health(ctx):
    """Check the health of agent components."""
    async def handler(system):
        report = await system.agent.health_check()
        color = {"healthy": "green", "degraded": "yellow"}.get(report["status"], "red")

        table = Table(title=f"Health: [{color}]{report['status']}[/{color}]")
        table.add_column("Component", style="cyan")
        table.add_column("Status", style="white")
        for component, status in report["components"].items():
            table.add_row(component, status)
        system.console.print(table)

        for issue in report["issues"]:
            system.console.print(f"  [red]•[/red] {issue}")

    run_with_system(ctx, handler)


if __name__ == "__main__":
    cli()
