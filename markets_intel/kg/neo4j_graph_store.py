"""
Neo4j-backed graph store for the private markets knowledge graph.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from neo4j import AsyncGraphDatabase
from neo4j.exceptions import AuthError, Neo4jError, ServiceUnavailable
from neo4j.graph import Node, Path as GraphPath, Relationship as GraphRelationship

from ..errors import ConfigurationError, GraphStoreError
from ..models.llm_manager import resolve_env_vars
from .graph_store import GraphStore, relationship_from_properties
from .models import Entity, GraphQueryResult, Relationship

logger = logging.getLogger(__name__)

_RELATIONSHIP_TYPE = re.compile(r"^[A-Z][A-Z0-9_]*$")

SCHEMA_STATEMENTS = [
    "CREATE CONSTRAINT entity_id_unique IF NOT EXISTS FOR (e:Entity) REQUIRE e.id IS UNIQUE",
    "CREATE INDEX entity_type_index IF NOT EXISTS FOR (e:Entity) ON (e.type)",
    "CREATE INDEX entity_name_index IF NOT EXISTS FOR (e:Entity) ON (e.name)",
    "CREATE INDEX entity_sector_index IF NOT EXISTS FOR (e:Entity) ON (e.sector)",
    "CREATE INDEX entity_country_index IF NOT EXISTS FOR (e:Entity) ON (e.country)",
]


def to_plain(value: Any) -> Any:
    """Convert neo4j driver values into plain Python structures."""
    if isinstance(value, Node):
        return dict(value)
    if isinstance(value, GraphRelationship):
        properties = dict(value)
        properties["type"] = value.type
        return properties
    if isinstance(value, GraphPath):
        return {
            "nodes": [dict(node) for node in value.nodes],
            "relationships": [rel.type for rel in value.relationships],
        }
    if isinstance(value, list):
        return [to_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if hasattr(value, "to_native"):
        return value.to_native()
    return value


class Neo4jGraphStore(GraphStore):
    """Graph store that runs Cypher through the async neo4j driver."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.uri = resolve_env_vars(config.get("uri", "bolt://localhost:7687"))
        self.username = resolve_env_vars(config.get("username", "neo4j"))
        self.password = resolve_env_vars(config.get("password", ""))
        self.database = config.get("database")

        if not self.password or "${" in self.password:
            raise ConfigurationError("Neo4j password not configured (set NEO4J_PASSWORD)")

        self.driver = AsyncGraphDatabase.driver(
            self.uri,
            auth=(self.username, self.password),
            max_connection_pool_size=config.get("max_connection_pool_size", 50),
            connection_timeout=config.get("connection_timeout", 30),
        )
        logger.info(f"Neo4j graph store configured for {self.uri}")

    async def connect(self):
        """Verify connectivity and make sure constraints and indexes exist."""
        try:
            await self.driver.verify_connectivity()
        except (ServiceUnavailable, AuthError) as e:
            raise GraphStoreError(f"Failed to connect to Neo4j at {self.uri}: {e}") from e

        for statement in SCHEMA_STATEMENTS:
            try:
                await self._run(statement)
            except GraphStoreError as e:
                logger.warning(f"Failed to apply schema statement: {e}")

        logger.info("Connected to Neo4j and initialised schema")

    async def _run(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> GraphQueryResult:
        try:
            async with self.driver.session(database=self.database) as session:
                result = await session.run(query, parameters or {})
                records = []
                async for record in result:
                    records.append({key: to_plain(record[key]) for key in record.keys()})
                summary = await result.consume()
                counters = summary.counters
                return GraphQueryResult(
                    records=records,
                    summary={
                        "query_type": summary.query_type,
                        "contains_updates": counters.contains_updates,
                        "nodes_created": counters.nodes_created,
                        "relationships_created": counters.relationships_created,
                        "properties_set": counters.properties_set,
                    },
                )
        except Neo4jError as e:
            raise GraphStoreError(f"Neo4j query failed: {e.message or e}") from e
        except ServiceUnavailable as e:
            raise GraphStoreError(f"Neo4j connection unavailable: {e}") from e

    async def execute_query(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> GraphQueryResult:
        logger.debug(f"Executing query with parameters {parameters}")
        return await self._run(query, parameters)

    async def upsert_entity(self, entity: Entity) -> Entity:
        query = """
            MERGE (e:Entity {id: $id})
            ON CREATE SET e.name = $name, e.type = $type, e.created = datetime()
            SET e += $properties, e.updated = datetime(), e.source = $source
            RETURN e
        """
        result = await self._run(query, {
            "id": entity.id,
            "name": entity.name,
            "type": entity.type,
            "source": entity.source,
            "properties": entity.properties,
        })
        if not result.records:
            raise GraphStoreError(f"Entity upsert returned no row for {entity.id}")
        return Entity.from_record(result.records[0]["e"])

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        result = await self._run("MATCH (e:Entity {id: $id}) RETURN e", {"id": entity_id})
        return Entity.from_record(result.records[0]["e"]) if result.records else None

    async def find_entities_by_name(self, name: str) -> List[Entity]:
        result = await self._run("MATCH (e:Entity {name: $name}) RETURN e", {"name": name})
        return [Entity.from_record(record["e"]) for record in result.records]

    async def get_relationships(self, entity_id: str) -> List[Dict[str, Any]]:
        query = """
            MATCH (e:Entity {id: $id})-[r]-(other:Entity)
            RETURN type(r) as relationshipType, r, other
            ORDER BY r.confidence DESC
        """
        result = await self._run(query, {"id": entity_id})
        return [
            {"type": record["relationshipType"], "relationship": record["r"], "entity": record["other"]}
            for record in result.records
        ]

    async def find_relationship(self, from_id: str, to_id: str, relationship_type: str) -> Optional[Relationship]:
        query = """
            MATCH (from:Entity {id: $fromId})-[r]-(to:Entity {id: $toId})
            WHERE type(r) = $relationshipType
            RETURN r, startNode(r).id as startId, endNode(r).id as endId
            LIMIT 1
        """
        result = await self._run(query, {"fromId": from_id, "toId": to_id, "relationshipType": relationship_type})
        if not result.records:
            return None

        record = result.records[0]
        properties = dict(record["r"])
        properties.pop("type", None)
        return relationship_from_properties(record["startId"], record["endId"], relationship_type, properties)

    async def create_relationship(self, relationship: Relationship) -> Relationship:
        if not _RELATIONSHIP_TYPE.match(relationship.type):
            raise GraphStoreError(f"Invalid relationship type: {relationship.type}")

        # relationship types cannot be parameterised in Cypher
        query = f"""
            MATCH (from:Entity {{id: $fromId}})
            MATCH (to:Entity {{id: $toId}})
            MERGE (from)-[r:{relationship.type}]->(to)
            ON CREATE SET r.created = datetime(), r.confidence = $confidence
            ON MATCH SET r.confidence = CASE WHEN $confidence > r.confidence THEN $confidence ELSE r.confidence END
            SET r += $properties, r.updated = datetime()
            RETURN r
        """
        properties = relationship.to_properties()
        properties.pop("confidence")
        result = await self._run(query, {
            "fromId": relationship.from_id,
            "toId": relationship.to_id,
            "confidence": relationship.confidence,
            "properties": properties,
        })
        if not result.records:
            raise GraphStoreError(f"Endpoints missing for relationship {relationship.id}")
        return relationship

    async def update_relationship(self, relationship: Relationship) -> Relationship:
        query = """
            MATCH (from:Entity {id: $fromId})-[r]-(to:Entity {id: $toId})
            WHERE type(r) = $relationshipType
            SET r.confidence = $confidence,
                r.updated = datetime(),
                r.sources = $sources,
                r.metadata = $metadata
            RETURN r
        """
        properties = relationship.to_properties()
        await self._run(query, {
            "fromId": relationship.from_id,
            "toId": relationship.to_id,
            "relationshipType": relationship.type,
            "confidence": relationship.confidence,
            "sources": properties["sources"],
            "metadata": properties.get("metadata"),
        })
        return relationship

    async def get_stats(self) -> Dict[str, Any]:
        """Get node, relationship and label statistics."""
        try:
            entities = await self._run("MATCH (e:Entity) RETURN count(e) as count")
            relationships = await self._run("MATCH ()-[r]->() RETURN count(r) as count")
            entity_types = await self._run(
                "MATCH (e:Entity) RETURN e.type as type, count(e) as count ORDER BY count DESC"
            )
            relationship_types = await self._run(
                "MATCH ()-[r]->() RETURN type(r) as type, count(r) as count ORDER BY count DESC"
            )

            return {
                "total_entities": entities.records[0]["count"] if entities.records else 0,
                "total_relationships": relationships.records[0]["count"] if relationships.records else 0,
                "entity_types": {row["type"]: row["count"] for row in entity_types.records},
                "relationship_types": {row["type"]: row["count"] for row in relationship_types.records},
            }
        except GraphStoreError as e:
            logger.error(f"Failed to get graph stats: {e}")
            return {
                "total_entities": 0,
                "total_relationships": 0,
                "entity_types": {},
                "relationship_types": {},
                "error": str(e),
            }

    async def close(self):
        """Close the Neo4j driver."""
        await self.driver.close()
        logger.info("Neo4j connection closed")
