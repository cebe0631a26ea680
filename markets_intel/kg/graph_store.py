"""
Graph store interface and a local JSON-persisted implementation.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import GraphStoreError
from .models import (
    Entity,
    GraphQueryResult,
    Relationship,
    RelationshipMetadata,
    RelationshipSource,
)

logger = logging.getLogger(__name__)

DATETIME_TAG = "__datetime__"
DATE_TAG = "__date__"


def encode_temporal(value: Any) -> Any:
    """JSON ``default`` hook that keeps dates distinguishable from plain strings."""
    if isinstance(value, datetime):
        return {DATETIME_TAG: value.isoformat()}
    if isinstance(value, date):
        return {DATE_TAG: value.isoformat()}
    return str(value)


def decode_temporal(obj: Dict[str, Any]) -> Any:
    """JSON ``object_hook`` reversing ``encode_temporal``."""
    if len(obj) == 1:
        if DATETIME_TAG in obj:
            return datetime.fromisoformat(obj[DATETIME_TAG])
        if DATE_TAG in obj:
            return date.fromisoformat(obj[DATE_TAG])
    return obj


class GraphStore(ABC):
    """Abstract graph store consumed by the query and inference pipelines."""

    @abstractmethod
    async def execute_query(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> GraphQueryResult:
        """Run a parameterised read query and return plain key-value rows."""
        pass

    @abstractmethod
    async def upsert_entity(self, entity: Entity) -> Entity:
        """Create an entity or merge its attributes into the existing one."""
        pass

    @abstractmethod
    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        pass

    @abstractmethod
    async def find_entities_by_name(self, name: str) -> List[Entity]:
        """Find entities whose name matches exactly."""
        pass

    @abstractmethod
    async def get_relationships(self, entity_id: str) -> List[Dict[str, Any]]:
        """Get every relationship touching an entity, in either direction."""
        pass

    @abstractmethod
    async def find_relationship(self, from_id: str, to_id: str, relationship_type: str) -> Optional[Relationship]:
        """Find the relationship of a type between two entities, in either direction."""
        pass

    @abstractmethod
    async def create_relationship(self, relationship: Relationship) -> Relationship:
        pass

    @abstractmethod
    async def update_relationship(self, relationship: Relationship) -> Relationship:
        """Overwrite confidence, sources and metadata of an existing relationship."""
        pass

    @abstractmethod
    async def get_stats(self) -> Dict[str, Any]:
        pass

    async def close(self):
        """Release store resources."""
        pass


def relationship_from_properties(
    from_id: str,
    to_id: str,
    relationship_type: str,
    properties: Dict[str, Any],
) -> Relationship:
    """Rebuild a ``Relationship`` from flat edge properties written by ``to_properties``."""
    properties = dict(properties)
    confidence = float(properties.pop("confidence", 0.0) or 0.0)

    sources = []
    raw_sources = properties.pop("sources", "[]")
    try:
        for item in json.loads(raw_sources) if isinstance(raw_sources, str) else raw_sources or []:
            sources.append(RelationshipSource(
                type=item.get("type", "UNKNOWN"),
                authority=float(item.get("authority", 0.0)),
                data=item.get("data", {}),
                timestamp=datetime.fromisoformat(item["timestamp"]) if item.get("timestamp") else datetime.now(),
            ))
    except (TypeError, ValueError) as e:
        logger.warning(f"Could not decode relationship sources: {e}")

    metadata = None
    raw_metadata = properties.pop("metadata", None)
    if raw_metadata:
        try:
            values = json.loads(raw_metadata) if isinstance(raw_metadata, str) else raw_metadata
            metadata = RelationshipMetadata(**values)
        except (TypeError, ValueError) as e:
            logger.warning(f"Could not decode relationship metadata: {e}")

    return Relationship(
        from_id=from_id,
        to_id=to_id,
        type=relationship_type,
        confidence=confidence,
        sources=sources,
        metadata=metadata,
        properties=properties,
    )


class LocalGraphStore(GraphStore):
    """
    In-process graph store persisted as JSON files.

    Supports every entity and relationship operation natively. It cannot run
    Cypher, so ``execute_query`` raises ``GraphStoreError``; use it for
    ingestion, offline inspection and tests.
    """

    def __init__(self, storage_path: Optional[Path] = None):
        self.storage_path = Path(storage_path) if storage_path else None
        self.entities: Dict[str, Entity] = {}
        self.relationships: Dict[tuple, Relationship] = {}
        self.name_index: Dict[str, List[str]] = {}

        if self.storage_path:
            self.storage_path.mkdir(parents=True, exist_ok=True)
            self.entities_file = self.storage_path / "entities.json"
            self.relationships_file = self.storage_path / "relationships.json"
            self._load_data()

    def _load_data(self):
        """Load entities and relationships from persistent storage."""
        try:
            if self.entities_file.exists():
                with open(self.entities_file, 'r') as f:
                    for entity_data in json.load(f, object_hook=decode_temporal):
                        self._index_entity(Entity(**entity_data))
                logger.info(f"Loaded {len(self.entities)} entities from storage")
            else:
                logger.info("No existing entities found")

            if self.relationships_file.exists():
                with open(self.relationships_file, 'r') as f:
                    for rel_data in json.load(f, object_hook=decode_temporal):
                        relationship = relationship_from_properties(
                            rel_data["from_id"], rel_data["to_id"], rel_data["type"], rel_data["properties"]
                        )
                        self.relationships[relationship.key] = relationship
                logger.info(f"Loaded {len(self.relationships)} relationships from storage")
            else:
                logger.info("No existing relationships found")

        except (OSError, ValueError, KeyError, TypeError) as e:
            raise GraphStoreError(f"Failed to load graph data from {self.storage_path}: {e}") from e

    def _save(self):
        """Save entities and relationships to persistent storage."""
        if not self.storage_path:
            return

        try:
            with open(self.entities_file, 'w') as f:
                json.dump([asdict(entity) for entity in self.entities.values()], f, indent=2, default=encode_temporal)

            relationships_data = [
                {
                    "from_id": rel.from_id,
                    "to_id": rel.to_id,
                    "type": rel.type,
                    "properties": rel.to_properties(),
                }
                for rel in self.relationships.values()
            ]
            with open(self.relationships_file, 'w') as f:
                json.dump(relationships_data, f, indent=2, default=encode_temporal)

            logger.debug(f"Saved {len(self.entities)} entities and {len(self.relationships)} relationships")

        except OSError as e:
            raise GraphStoreError(f"Failed to save graph data: {e}") from e

    def _index_entity(self, entity: Entity):
        self.entities[entity.id] = entity
        ids = self.name_index.setdefault(entity.name, [])
        if entity.id not in ids:
            ids.append(entity.id)

    async def execute_query(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> GraphQueryResult:
        raise GraphStoreError("The local graph store cannot execute Cypher queries; configure the neo4j backend")

    async def upsert_entity(self, entity: Entity) -> Entity:
        existing = self.entities.get(entity.id)
        if existing is None:
            self._index_entity(entity)
            stored = entity
        else:
            # identity fields stay as created
            existing.properties.update(entity.properties)
            stored = existing

        self._save()
        return stored

    async def get_entity(self, entity_id: str) -> Optional[Entity]:
        return self.entities.get(entity_id)

    async def find_entities_by_name(self, name: str) -> List[Entity]:
        return [self.entities[entity_id] for entity_id in self.name_index.get(name, [])]

    async def get_relationships(self, entity_id: str) -> List[Dict[str, Any]]:
        related = []
        for rel in self.relationships.values():
            if entity_id not in (rel.from_id, rel.to_id):
                continue
            other_id = rel.to_id if rel.from_id == entity_id else rel.from_id
            other = self.entities.get(other_id)
            related.append({
                "type": rel.type,
                "relationship": rel.to_properties(),
                "entity": other.to_record() if other else {"id": other_id},
            })

        related.sort(key=lambda item: item["relationship"].get("confidence", 0), reverse=True)
        return related

    async def find_relationship(self, from_id: str, to_id: str, relationship_type: str) -> Optional[Relationship]:
        first, second = sorted((from_id, to_id))
        return self.relationships.get((first, second, relationship_type))

    async def create_relationship(self, relationship: Relationship) -> Relationship:
        existing = self.relationships.get(relationship.key)
        if existing is not None and existing.confidence >= relationship.confidence:
            return existing

        self.relationships[relationship.key] = relationship
        self._save()
        return relationship

    async def update_relationship(self, relationship: Relationship) -> Relationship:
        existing = self.relationships.get(relationship.key)
        if existing is None:
            raise GraphStoreError(f"Relationship {relationship.id} does not exist")

        existing.confidence = relationship.confidence
        existing.sources = list(relationship.sources)
        existing.metadata = relationship.metadata
        existing.properties.update(relationship.properties)
        existing.properties["updated"] = datetime.now().isoformat()
        self._save()
        return existing

    async def get_stats(self) -> Dict[str, Any]:
        entity_types: Dict[str, int] = {}
        for entity in self.entities.values():
            entity_types[entity.type] = entity_types.get(entity.type, 0) + 1

        relationship_types: Dict[str, int] = {}
        for rel in self.relationships.values():
            relationship_types[rel.type] = relationship_types.get(rel.type, 0) + 1

        return {
            "total_entities": len(self.entities),
            "total_relationships": len(self.relationships),
            "entity_types": entity_types,
            "relationship_types": relationship_types,
        }

    def clear(self):
        """Clear all entities and relationships from the store."""
        self.entities = {}
        self.relationships = {}
        self.name_index = {}
        self._save()
        logger.info("Cleared all entities and relationships from store")
