"""
CSV ingestion of private markets seed data into the graph store.
"""

import asyncio
import csv
import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..errors import IngestionError
from ..kg.graph_store import GraphStore
from ..kg.models import Entity
from ..utils.locks import KeyedLocks

logger = logging.getLogger(__name__)

DEFAULT_FILE_TYPE_MAPPING = {
    "Infrastructure ++.txt": "Infrastructure Fund Manager",
    "Private Equity ++.txt": "Private Equity Firm",
    "Hedge Funds.txt": "Hedge Fund Manager",
    "Real Estate ++.txt": "Real Estate Fund Manager",
    "Private Debt ++.txt": "Private Credit Fund Manager",
    "Natural Resources.txt": "Natural Resources Fund Manager",
    "Institutional Investors ++.txt": "Institutional Investor",
}

SUPPORTED_SUFFIXES = (".csv", ".txt")

# Column name variations, first non-empty wins
NAME_FIELDS = ["Name", "name", "Company Name", "Fund Name"]
TYPE_FIELDS = ["Type", "type", "Type ", "Strategy", "Investment Strategies"]
AUM_FIELDS = ["AUM", "aum", "AUM_USD", "Assets Under Management"]
COUNTRY_FIELDS = ["Country", "country", "Country ", "Location"]
CITY_FIELDS = ["City", "city", "City ", "Headquarters"]
ADDRESS_FIELDS = ["Address", "address", "Location", "Headquarters"]
FOUNDED_FIELDS = ["Founded", "founded", "Established", "Year Founded"]
SERVICES_FIELDS = ["Primary Services", "Services", "Strategy", "Focus", "Investment Strategies"]
TRANSACTIONS_FIELDS = ["Notable Transactions", "Transactions", "Key Deals", "Recent Deals"]
PEOPLE_FIELDS = ["Key People", "People", "Leadership", "Management Team", "Principals"]
STATUS_FIELDS = ["Status", "status"]

AUM_MULTIPLIERS = {
    "trillion": 1e12,
    "billion": 1e9,
    "million": 1e6,
    "thousand": 1e3,
    "t": 1e12,
    "b": 1e9,
    "bn": 1e9,
    "m": 1e6,
    "mm": 1e6,
    "k": 1e3,
}

SECTOR_KEYWORDS = {
    "Infrastructure": ["infrastructure", "utilities", "transportation", "energy", "renewable"],
    "Private Equity": ["private equity", "buyout", "growth capital"],
    "Hedge Funds": ["hedge fund", "alternative", "quantitative", "long short"],
    "Real Estate": ["real estate", "property", "reit", "commercial", "residential"],
    "Private Credit": ["private credit", "debt", "lending", "credit", "fixed income"],
    "Natural Resources": ["natural resources", "commodities", "oil", "gas", "mining", "energy"],
    "Venture Capital": ["venture capital", "startup", "early stage", "growth"],
    "Asset Management": ["asset management", "investment management", "portfolio management"],
}

_AUM_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]+)?")


def parse_aum(value: Optional[str]) -> float:
    """
    Parse an assets-under-management string into a number.

    Currency symbols, quotes and thousands separators are ignored and word or
    letter suffixes scale the value, so ``"$1.5B"`` and ``"1.5 billion"`` both
    give ``1.5e9``. Unparseable input gives 0.
    """
    if not value or not isinstance(value, str):
        return 0.0

    cleaned = re.sub(r"[\"$,€£¥]", "", value).strip().lower()
    match = _AUM_PATTERN.search(cleaned)
    if not match:
        return 0.0

    number = float(match.group(1))
    suffix = match.group(2)
    return number * AUM_MULTIPLIERS.get(suffix, 1.0) if suffix else number


def extract_sector(*texts: Optional[str]) -> str:
    """Map type and service descriptions onto a sector name, or ``Other``."""
    text = " ".join(t for t in texts if t).lower()
    for sector, keywords in SECTOR_KEYWORDS.items():
        if any(keyword in text for keyword in keywords):
            return sector
    return "Other"


def get_field_value(row: Dict[str, Any], field_names: Sequence[str]) -> Optional[str]:
    for field_name in field_names:
        value = row.get(field_name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


@dataclass
class IngestionResult:
    """Result of ingesting one file."""
    file_name: str
    entity_type: str
    total_entities: int = 0
    successful: int = 0
    failed: int = 0
    entities: List[Entity] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "entity_type": self.entity_type,
            "total_entities": self.total_entities,
            "successful": self.successful,
            "failed": self.failed,
            "errors": self.errors,
            "processing_time": self.processing_time,
        }


class CSVIngester:
    """Loads seed CSV files into a graph store."""

    def __init__(self, store: GraphStore, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.store = store
        self.batch_size = config.get("batch_size", 100)
        self.max_concurrent = config.get("max_concurrent", 5)
        self.file_type_mapping = dict(DEFAULT_FILE_TYPE_MAPPING)
        self.file_type_mapping.update(config.get("file_type_mapping") or {})
        self.entity_locks = KeyedLocks()

    async def ingest_path(self, path: str) -> List[IngestionResult]:
        """
        Ingest one file or every supported file in a directory.

        Args:
            path: File or directory path

        Returns:
            One IngestionResult per file

        Raises:
            IngestionError: If the path does not exist
        """
        data_path = Path(path)
        if not data_path.exists():
            raise IngestionError(f"Path does not exist: {path}")

        if data_path.is_file():
            files = [data_path]
        else:
            files = sorted(p for p in data_path.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES)

        logger.info(f"Starting seed data ingestion of {len(files)} files from {path}")

        results = []
        for file_path in files:
            results.append(await self.ingest_file(file_path))

        total = sum(r.total_entities for r in results)
        successful = sum(r.successful for r in results)
        failed = sum(r.failed for r in results)
        logger.info(f"Seed data ingestion completed: {len(results)} files, {total} entities, "
                    f"{successful} successful, {failed} failed")
        return results

    async def ingest_file(self, file_path: Path) -> IngestionResult:
        """Parse one CSV file and upsert its entities."""
        start_time = time.time()
        file_path = Path(file_path)
        entity_type = self.file_type_mapping.get(file_path.name, "Unknown")
        result = IngestionResult(file_name=file_path.name, entity_type=entity_type)

        entities = []
        with open(file_path, "r", encoding="utf-8-sig", newline="") as f:
            for line_number, row in enumerate(csv.DictReader(f), start=2):
                try:
                    entities.append(self.parse_row(row, entity_type))
                except IngestionError as e:
                    result.errors.append({"line": line_number, "row": row, "error": str(e)})

        result.total_entities = len(entities)
        logger.info(f"Parsed {result.total_entities} entities from {file_path.name}")

        for start in range(0, len(entities), self.batch_size):
            await self._upsert_batch(entities[start:start + self.batch_size], result)

        result.processing_time = time.time() - start_time
        logger.info(f"{file_path.name}: {result.successful} successful, {result.failed} failed")
        return result

    def parse_row(self, row: Dict[str, Any], entity_type: str) -> Entity:
        """
        Map a CSV row onto an entity using flexible column names.

        Raises:
            IngestionError: If the row has no name
        """
        name = get_field_value(row, NAME_FIELDS)
        if not name:
            raise IngestionError("Entity name is required")

        sub_type = get_field_value(row, TYPE_FIELDS)
        aum = get_field_value(row, AUM_FIELDS)
        country = get_field_value(row, COUNTRY_FIELDS)
        founded = get_field_value(row, FOUNDED_FIELDS)
        services = get_field_value(row, SERVICES_FIELDS)

        description_parts = []
        if services:
            description_parts.append(services)
        if sub_type and sub_type != entity_type:
            description_parts.append(f"Type: {sub_type}")
        if country:
            description_parts.append(f"Location: {country}")
        if founded:
            description_parts.append(f"Founded: {founded}")

        properties = {
            "subType": sub_type,
            "aum": aum,
            "aumNumeric": parse_aum(aum) if aum else None,
            "country": country,
            "city": get_field_value(row, CITY_FIELDS),
            "address": get_field_value(row, ADDRESS_FIELDS),
            "founded": founded,
            "primaryServices": services,
            "notableTransactions": get_field_value(row, TRANSACTIONS_FIELDS),
            "keyPeople": get_field_value(row, PEOPLE_FIELDS),
            "status": get_field_value(row, STATUS_FIELDS) or "Active",
            "description": ". ".join(description_parts) or None,
            "sector": extract_sector(entity_type, services, sub_type),
            "sourceFile": entity_type,
        }

        return Entity(id=str(uuid.uuid4()), name=name, type=entity_type, properties=properties, source="seed_data")

    async def _upsert_batch(self, entities: List[Entity], result: IngestionResult):
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def upsert(entity: Entity) -> Entity:
            async with semaphore, self.entity_locks.acquire((entity.name, entity.type)):
                # Reuse the identifier of an existing entity so re-ingestion merges
                existing = [e for e in await self.store.find_entities_by_name(entity.name) if e.type == entity.type]
                if existing:
                    entity.id = existing[0].id
                return await self.store.upsert_entity(entity)

        outcomes = await asyncio.gather(*[upsert(e) for e in entities], return_exceptions=True)

        for entity, outcome in zip(entities, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Failed to store entity {entity.name}: {outcome}")
                result.failed += 1
                result.errors.append({"entity": entity.name, "error": str(outcome)})
            else:
                result.successful += 1
                result.entities.append(outcome)
