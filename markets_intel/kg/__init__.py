"""
Knowledge graph models and graph store adapters.
"""

from .models import Entity, Relationship, RelationshipSource, RelationshipMetadata, GraphQueryResult
from .graph_store import GraphStore, LocalGraphStore
from .neo4j_graph_store import Neo4jGraphStore

__all__ = [
    "Entity",
    "Relationship",
    "RelationshipSource",
    "RelationshipMetadata",
    "GraphQueryResult",
    "GraphStore",
    "LocalGraphStore",
    "Neo4jGraphStore",
]
