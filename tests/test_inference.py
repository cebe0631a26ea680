"""
Tests for pattern-based relationship inference.
"""

import pytest

from markets_intel.errors import ConfigurationError
from markets_intel.intelligence import PatternName, RelationshipInferenceEngine, SourceIntelligence
from markets_intel.kg import LocalGraphStore, Relationship

from conftest import ScriptedGraphStore

FUND_A = {"id": "f1", "name": "Alpha Fund", "type": "Private Equity Fund"}
FUND_B = {"id": "f2", "name": "Beta Fund", "type": "Private Equity Fund"}


def co_investment_store(overlap_count=4, **extra):
    script = {"overlap_count": [{"entity1": FUND_A, "entity2": FUND_B, "overlap_count": overlap_count}]}
    script.update(extra)
    return ScriptedGraphStore(script)


def make_engine(store):
    return RelationshipInferenceEngine(store, SourceIntelligence())


class TestPatternInference:
    """Test single pattern runs."""

    @pytest.mark.asyncio
    async def test_co_investment_is_persisted(self):
        store = co_investment_store()
        engine = make_engine(store)

        result = await engine.infer_relationships_by_pattern(PatternName.CO_INVESTMENT)

        assert result.candidates == 1
        assert result.successful == 1
        stored = await store.find_relationship("f1", "f2", "CO_INVESTED")
        assert stored is not None
        assert stored.confidence == pytest.approx(0.9)
        assert stored.sources[0].type == "AI_INFERENCE"
        assert stored.properties["inferenceType"] == "pattern_based"
        assert "inferredAt" in stored.properties

    @pytest.mark.asyncio
    async def test_weak_candidate_is_rejected(self):
        store = co_investment_store(overlap_count=1)
        engine = make_engine(store)

        result = await engine.infer_relationships_by_pattern("CO_INVESTMENT")

        assert result.successful == 0
        assert result.failed == 1
        assert await store.find_relationship("f1", "f2", "CO_INVESTED") is None

    @pytest.mark.asyncio
    async def test_stronger_existing_relationship_is_kept(self):
        store = co_investment_store()
        await store.create_relationship(Relationship("f2", "f1", "CO_INVESTED", 0.95))
        engine = make_engine(store)

        await engine.infer_relationships_by_pattern(PatternName.CO_INVESTMENT)

        stored = await store.find_relationship("f1", "f2", "CO_INVESTED")
        assert stored.confidence == pytest.approx(0.95)

    @pytest.mark.asyncio
    async def test_weaker_existing_relationship_is_raised(self):
        store = co_investment_store()
        await store.create_relationship(Relationship("f1", "f2", "CO_INVESTED", 0.8))
        engine = make_engine(store)

        await engine.infer_relationships_by_pattern(PatternName.CO_INVESTMENT)

        stored = await store.find_relationship("f1", "f2", "CO_INVESTED")
        assert stored.confidence == pytest.approx(0.9)
        assert "updated" in stored.properties

    @pytest.mark.asyncio
    async def test_candidate_without_endpoints_fails(self):
        store = ScriptedGraphStore({"overlap_count": [{"entity1": FUND_A, "overlap_count": 5}]})
        engine = make_engine(store)

        result = await engine.infer_relationships_by_pattern(PatternName.CO_INVESTMENT)

        assert result.failed == 1
        assert store.relationships == {}

    @pytest.mark.asyncio
    async def test_query_failure_is_recorded(self):
        store = ScriptedGraphStore({"overlap_count": RuntimeError("connection reset")})
        engine = make_engine(store)

        result = await engine.infer_relationships_by_pattern(PatternName.CO_INVESTMENT)

        assert result.error == "connection reset"
        assert result.successful == 0

    @pytest.mark.asyncio
    async def test_unknown_pattern(self):
        engine = make_engine(ScriptedGraphStore())

        with pytest.raises(ConfigurationError, match="Unknown inference pattern"):
            await engine.infer_relationships_by_pattern("TELEPATHY")


class TestPatternScoring:
    """Test the confidence rule and threshold of every pattern."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("pattern,marker,record,relationship_type,expected", [
        ("CO_INVESTMENT", "overlap_count", {"entity1": FUND_A, "entity2": FUND_B, "overlap_count": 3}, "CO_INVESTED", 0.8),
        ("CO_INVESTMENT", "overlap_count", {"entity1": FUND_A, "entity2": FUND_B, "overlap_count": 10}, "CO_INVESTED", 0.95),
        ("CO_INVESTMENT", "overlap_count", {"entity1": FUND_A, "entity2": FUND_B, "overlap_count": 1}, "CO_INVESTED", None),
        ("GEOGRAPHIC_CLUSTERING", "common_geography", {"entity1": FUND_A, "entity2": FUND_B, "common_geography": "USA"},
         "OPERATES_IN_SAME_REGION", 0.6),
        ("SECTOR_ALIGNMENT", "common_sector", {"entity1": FUND_A, "entity2": FUND_B, "common_sector": "Fintech"},
         "FOCUSES_ON_SAME_SECTOR", 0.65),
        ("FOLLOW_ON_INVESTMENT", "follow_count", {"leader": FUND_A, "follower": FUND_B, "follow_count": 6},
         "FOLLOWS_INVESTMENT_PATTERN", 0.9),
        ("FOLLOW_ON_INVESTMENT", "follow_count", {"leader": FUND_A, "follower": FUND_B, "follow_count": 20},
         "FOLLOWS_INVESTMENT_PATTERN", 0.9),
        ("FOLLOW_ON_INVESTMENT", "follow_count", {"leader": FUND_A, "follower": FUND_B, "follow_count": 2},
         "FOLLOWS_INVESTMENT_PATTERN", None),
        ("PEOPLE_NETWORK", "shared_people", {"entity1": FUND_A, "entity2": FUND_B, "shared_people": ["A", "B", "C", "D"]},
         "SHARES_PERSONNEL", 0.9),
        ("PEOPLE_NETWORK", "shared_people", {"entity1": FUND_A, "entity2": FUND_B, "shared_people": list("ABCDEFGHIJ")},
         "SHARES_PERSONNEL", 0.95),
        ("PEOPLE_NETWORK", "shared_people", {"entity1": FUND_A, "entity2": FUND_B, "shared_people": ["A", "B"]},
         "SHARES_PERSONNEL", None),
        ("CORPORATE_STRUCTURE", "'name_similarity' as evidence",
         {"parent": FUND_A, "subsidiary": FUND_B, "evidence": "name_similarity"}, "AFFILIATED_WITH", None),
        ("DEAL_COLLABORATION", "collaboration_count", {"entity1": FUND_A, "entity2": FUND_B, "collaboration_count": 4},
         "COLLABORATES_ON_DEALS", 0.82),
        ("DEAL_COLLABORATION", "collaboration_count", {"entity1": FUND_A, "entity2": FUND_B, "collaboration_count": 10},
         "COLLABORATES_ON_DEALS", 0.9),
        ("DEAL_COLLABORATION", "collaboration_count", {"entity1": FUND_A, "entity2": FUND_B, "collaboration_count": 3},
         "COLLABORATES_ON_DEALS", None),
    ])
    async def test_confidence_and_threshold(self, pattern, marker, record, relationship_type, expected):
        store = ScriptedGraphStore({marker: [record]})

        result = await make_engine(store).infer_relationships_by_pattern(pattern)

        stored = await store.find_relationship("f1", "f2", relationship_type)
        if expected is None:
            assert result.successful == 0
            assert stored is None
        else:
            assert result.successful == 1
            assert stored.confidence == pytest.approx(expected)
            assert stored.sources[0].data["pattern"] == pattern

    @pytest.mark.asyncio
    async def test_rerun_keeps_one_relationship(self):
        store = co_investment_store()
        engine = make_engine(store)

        await engine.infer_relationships_by_pattern(PatternName.CO_INVESTMENT)
        second = await engine.infer_relationships_by_pattern(PatternName.CO_INVESTMENT)

        assert second.successful == 1
        assert len(store.relationships) == 1
        stored = await store.find_relationship("f1", "f2", "CO_INVESTED")
        assert stored.confidence == pytest.approx(0.9)
        assert "updated" not in stored.properties


class TestInferAll:
    """Test full inference runs."""

    @pytest.mark.asyncio
    async def test_failing_pattern_does_not_stop_the_run(self):
        store = co_investment_store(common_geography=RuntimeError("timeout"))
        engine = make_engine(store)

        summary = await engine.infer_all_relationships()

        assert summary.pattern_errors == {"GEOGRAPHIC_CLUSTERING": "timeout"}
        assert summary.relationship_types_breakdown["CO_INVESTMENT"] == 1
        assert summary.relationship_types_breakdown["GEOGRAPHIC_CLUSTERING"] == 0
        assert summary.relationship_types_breakdown["TEMPORAL_PATTERNS"] == 0
        assert summary.relationship_types_breakdown["NETWORK_ANALYSIS"] == 0
        assert summary.successful_inferences == 1

    @pytest.mark.asyncio
    async def test_pattern_subset(self):
        store = co_investment_store()
        engine = make_engine(store)

        summary = await engine.infer_all_relationships({"patterns": ["CO_INVESTMENT"], "include_similarity": False})

        assert set(summary.relationship_types_breakdown) == {
            "CO_INVESTMENT", "TEMPORAL_PATTERNS", "NETWORK_ANALYSIS",
        }
        assert len(store.calls) == 1

    @pytest.mark.asyncio
    async def test_dry_run_persists_nothing(self):
        store = co_investment_store()
        engine = make_engine(store)

        summary = await engine.infer_all_relationships({"dry_run": True})

        assert summary.successful_inferences == 1
        assert store.relationships == {}

    @pytest.mark.asyncio
    async def test_similarity_pass(self):
        store = ScriptedGraphStore({"sector_match": [
            {"e1": FUND_A, "e2": FUND_B, "country_match": 1, "sector_match": 1, "name_similarity": 0},
            {"e1": FUND_A, "e2": {"id": "f3", "name": "Gamma"}, "country_match": 1, "sector_match": 0,
             "name_similarity": 0},
        ]})
        engine = make_engine(store)

        summary = await engine.infer_all_relationships({"patterns": ["SECTOR_ALIGNMENT"]})

        assert summary.relationship_types_breakdown["ENTITY_SIMILARITY"] == 1
        stored = await store.find_relationship("f1", "f2", "SIMILAR_TO")
        assert stored.confidence == pytest.approx(2 / 3)
        assert await store.find_relationship("f1", "f3", "SIMILAR_TO") is None

    @pytest.mark.asyncio
    async def test_summary_to_dict(self):
        engine = make_engine(co_investment_store())

        data = (await engine.infer_all_relationships({"include_similarity": False})).to_dict()

        assert data["successful_inferences"] == 1
        assert data["processing_time_ms"] >= 0


class TestInferenceStats:
    """Test inference statistics."""

    @pytest.mark.asyncio
    async def test_stats_from_graph(self):
        store = ScriptedGraphStore({
            "duration({days: 7})": [{"relationship_type": "CO_INVESTED", "count": 3}],
            "confidence_bucket": [{"confidence_bucket": "High (0.9+)", "count": 2}],
        })

        stats = await make_engine(store).get_inference_stats()

        assert stats["total_patterns"] == 7
        assert stats["recent_inferences"] == [{"relationship_type": "CO_INVESTED", "count": 3}]
        assert stats["confidence_distribution"] == [{"bucket": "High (0.9+)", "count": 2}]

    @pytest.mark.asyncio
    async def test_stats_when_store_cannot_query(self):
        stats = await make_engine(LocalGraphStore()).get_inference_stats()

        assert stats["recent_inferences"] == []
        assert stats["confidence_distribution"] == []
