"""
Exception hierarchy for the private markets intelligence system.
"""


class MarketsIntelError(Exception):
    """Base exception for all private markets intelligence errors."""

    pass


class ConfigurationError(MarketsIntelError):
    """Raised when a component is missing a required collaborator or mapping."""

    pass


class PlannerNotFoundError(ConfigurationError):
    """Raised when no query builder is registered for an intent."""

    def __init__(self, intent: str):
        self.intent = intent
        super().__init__(f"No query builder found for intent: {intent}")


class GraphStoreError(MarketsIntelError):
    """Raised for graph store connection and query failures."""

    pass


class IngestionError(MarketsIntelError):
    """Raised when a source record cannot be turned into an entity."""

    pass


class EnrichmentError(MarketsIntelError):
    """Raised when the optional LLM enrichment call fails."""

    pass
