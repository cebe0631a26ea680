"""
Data models for the private markets knowledge graph.
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple, Union

Primitive = Union[str, int, float, bool]
AttributeValue = Union[str, int, float, bool, date, datetime, List[Primitive]]

_PRIMITIVES = (str, int, float, bool)


def coerce_attribute(value: Any) -> Optional[AttributeValue]:
    """
    Normalise a raw value into an ``AttributeValue``.

    ``None`` is dropped, tuples and sets become lists, and anything that is
    not a primitive, a date or a flat list of primitives is stored as JSON text.
    """
    if value is None:
        return None
    if isinstance(value, (date, datetime)) or isinstance(value, _PRIMITIVES):
        return value
    if isinstance(value, (list, tuple, set)):
        items = list(value)
        if all(isinstance(item, _PRIMITIVES) for item in items):
            return items
    return json.dumps(value, default=str, sort_keys=True)


def coerce_properties(properties: Dict[str, Any]) -> Dict[str, AttributeValue]:
    """Coerce every value of a property bag, dropping empty ones."""
    coerced = {}
    for key, value in properties.items():
        attribute = coerce_attribute(value)
        if attribute is not None:
            coerced[key] = attribute
    return coerced


@dataclass
class Entity:
    """Represents an entity (fund, company, person, ...) in the knowledge graph."""
    id: str
    name: str
    type: str
    properties: Dict[str, AttributeValue] = field(default_factory=dict)
    source: str = "unknown"

    def __post_init__(self):
        self.properties = coerce_properties(self.properties)

    def to_record(self) -> Dict[str, Any]:
        """Flatten into the node-property shape returned by graph queries."""
        record = dict(self.properties)
        record.update({"id": self.id, "name": self.name, "type": self.type, "source": self.source})
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Entity":
        properties = {k: v for k, v in record.items() if k not in ("id", "name", "type", "source")}
        return cls(
            id=str(record["id"]),
            name=record.get("name", ""),
            type=record.get("type", "Unknown"),
            properties=properties,
            source=record.get("source", "unknown"),
        )


@dataclass
class RelationshipSource:
    """One piece of evidence contributing to a relationship."""
    type: str
    authority: float
    data: Dict[str, Any]
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "authority": self.authority,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class RelationshipMetadata:
    """Derived facts about the evidence behind a relationship."""
    source_count: int
    average_authority: float
    has_official_source: bool
    has_regulatory_source: bool
    requires_verification: bool


@dataclass
class Relationship:
    """A directed, typed, confidence-weighted edge between two entities."""
    from_id: str
    to_id: str
    type: str
    confidence: float
    sources: List[RelationshipSource] = field(default_factory=list)
    metadata: Optional[RelationshipMetadata] = None
    properties: Dict[str, Any] = field(default_factory=dict)
    from_name: Optional[str] = None
    to_name: Optional[str] = None
    validated_at: Optional[datetime] = None

    @property
    def id(self) -> str:
        return f"{self.from_id}-{self.type}-{self.to_id}"

    @property
    def key(self) -> Tuple[str, str, str]:
        """Direction-insensitive identity of the (from, to, type) triple."""
        first, second = sorted((self.from_id, self.to_id))
        return first, second, self.type

    def to_properties(self) -> Dict[str, Any]:
        """Serialise into flat edge properties suitable for a graph store."""
        properties = dict(self.properties)
        properties["confidence"] = self.confidence
        properties["sources"] = json.dumps([source.to_dict() for source in self.sources], default=str)
        if self.metadata is not None:
            properties["metadata"] = json.dumps(asdict(self.metadata))
        return properties

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_id,
            "to": self.to_id,
            "from_name": self.from_name,
            "to_name": self.to_name,
            "type": self.type,
            "confidence": self.confidence,
            "sources": [source.to_dict() for source in self.sources],
            "metadata": asdict(self.metadata) if self.metadata else {},
            "properties": dict(self.properties),
        }


@dataclass
class GraphQueryResult:
    """Rows returned by a graph store query."""
    records: List[Dict[str, Any]]
    summary: Dict[str, Any] = field(default_factory=dict)
