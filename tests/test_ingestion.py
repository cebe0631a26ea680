"""
Tests for seed data ingestion.
"""

import asyncio
from datetime import date, datetime

import pytest

from markets_intel.errors import IngestionError
from markets_intel.ingestion import CSVIngester, extract_sector, parse_aum
from markets_intel.kg import Entity, LocalGraphStore

PRIVATE_EQUITY_CSV = (
    "Name,Type,AUM,Country,City,Founded,Primary Services,Key People\n"
    "Blackstone,Buyout,\"$1.5B\",USA,New York,1985,Private equity buyouts,Stephen Schwarzman\n"
    ",Buyout,$2B,USA,Boston,1990,Growth capital,\n"
    "KKR,Private Equity Firm,2.3 billion,USA,New York,1976,Leveraged buyouts,\n"
)


class TestParsing:
    """Test value parsing helpers."""

    @pytest.mark.parametrize("value,expected", [
        ("$1.5B", 1.5e9),
        ("1.5 billion", 1.5e9),
        ("€750M", 7.5e8),
        ("2.1bn", 2.1e9),
        ("1,200", 1200),
        ("n/a", 0.0),
        ("", 0.0),
        (None, 0.0),
    ])
    def test_parse_aum(self, value, expected):
        assert parse_aum(value) == pytest.approx(expected)

    @pytest.mark.parametrize("texts,expected", [
        (("Private Equity Firm",), "Private Equity"),
        (("Hedge Fund Manager",), "Hedge Funds"),
        (("Unknown", "commercial property lending"), "Real Estate"),
        (("Family office",), "Other"),
    ])
    def test_extract_sector(self, texts, expected):
        assert extract_sector(*texts) == expected


class TestCSVIngester:
    """Test file ingestion into a local store."""

    @pytest.fixture
    def store(self, tmp_path):
        return LocalGraphStore(tmp_path / "graph")

    @pytest.fixture
    def data_dir(self, tmp_path):
        data_dir = tmp_path / "seed"
        data_dir.mkdir()
        (data_dir / "Private Equity ++.txt").write_text(PRIVATE_EQUITY_CSV, encoding="utf-8")
        (data_dir / "notes.md").write_text("ignored", encoding="utf-8")
        return data_dir

    @pytest.mark.asyncio
    async def test_ingest_directory(self, store, data_dir):
        results = await CSVIngester(store).ingest_path(str(data_dir))

        assert len(results) == 1
        result = results[0]
        assert result.entity_type == "Private Equity Firm"
        assert result.total_entities == 2
        assert result.successful == 2
        assert result.errors[0]["line"] == 3
        assert result.errors[0]["error"] == "Entity name is required"

        blackstone = (await store.find_entities_by_name("Blackstone"))[0]
        assert blackstone.name == "Blackstone"
        assert blackstone.type == "Private Equity Firm"
        assert await store.get_relationships(blackstone.id) == []
        assert blackstone.source == "seed_data"
        assert blackstone.properties["aumNumeric"] == pytest.approx(1.5e9)
        assert blackstone.properties["sector"] == "Private Equity"
        assert blackstone.properties["status"] == "Active"
        assert blackstone.properties["description"] == (
            "Private equity buyouts. Type: Buyout. Location: USA. Founded: 1985"
        )

    @pytest.mark.asyncio
    async def test_reingestion_merges_entities(self, store, data_dir):
        ingester = CSVIngester(store)
        await ingester.ingest_path(str(data_dir))
        await ingester.ingest_path(str(data_dir))

        assert len(await store.find_entities_by_name("KKR")) == 1
        assert (await store.get_stats())["total_entities"] == 2

    @pytest.mark.asyncio
    async def test_unmapped_file_gets_unknown_type(self, store, tmp_path):
        path = tmp_path / "extra.csv"
        path.write_text("Fund Name,Country\nNordic Capital,Sweden\n", encoding="utf-8")

        result = await CSVIngester(store).ingest_file(path)

        assert result.entity_type == "Unknown"
        entity = (await store.find_entities_by_name("Nordic Capital"))[0]
        assert entity.properties["country"] == "Sweden"

    @pytest.mark.asyncio
    async def test_custom_file_mapping(self, store, tmp_path):
        path = tmp_path / "extra.csv"
        path.write_text("Name\nNordic Capital\n", encoding="utf-8")
        ingester = CSVIngester(store, {"file_type_mapping": {"extra.csv": "Private Equity Firm"}})

        result = await ingester.ingest_file(path)

        assert result.entity_type == "Private Equity Firm"

    @pytest.mark.asyncio
    async def test_missing_path(self, store, tmp_path):
        with pytest.raises(IngestionError, match="Path does not exist"):
            await CSVIngester(store).ingest_path(str(tmp_path / "missing"))

    @pytest.mark.asyncio
    async def test_entities_persist_across_store_instances(self, store, data_dir, tmp_path):
        await CSVIngester(store).ingest_path(str(data_dir))

        reloaded = LocalGraphStore(tmp_path / "graph")

        assert len(await reloaded.find_entities_by_name("Blackstone")) == 1

    @pytest.mark.asyncio
    async def test_duplicate_rows_in_one_batch_merge(self, tmp_path):
        class YieldingStore(LocalGraphStore):
            """Hands control back to the loop between lookup and write."""

            async def find_entities_by_name(self, name):
                found = await super().find_entities_by_name(name)
                await asyncio.sleep(0)
                return found

        store = YieldingStore(tmp_path / "graph")
        path = tmp_path / "dupes.csv"
        path.write_text("Name,Country\nKKR,USA\nKKR,United States\n", encoding="utf-8")

        result = await CSVIngester(store).ingest_file(path)

        assert result.successful == 2
        entities = await store.find_entities_by_name("KKR")
        assert len(entities) == 1
        assert entities[0].properties["country"] == "United States"
        assert (await store.get_stats())["total_entities"] == 1


class TestLocalGraphStore:
    """Test JSON persistence of the local store."""

    @pytest.mark.asyncio
    async def test_dates_survive_reload(self, tmp_path):
        store = LocalGraphStore(tmp_path / "graph")
        await store.upsert_entity(Entity(
            id="kkr",
            name="KKR",
            type="Private Equity Firm",
            properties={
                "foundedOn": date(1976, 5, 1),
                "lastReviewed": datetime(2024, 3, 15, 9, 30),
                "note": "2024-03-15",
            },
        ))

        reloaded = await LocalGraphStore(tmp_path / "graph").get_entity("kkr")

        assert reloaded.properties["foundedOn"] == date(1976, 5, 1)
        assert type(reloaded.properties["foundedOn"]) is date
        assert reloaded.properties["lastReviewed"] == datetime(2024, 3, 15, 9, 30)
        assert reloaded.properties["note"] == "2024-03-15"
