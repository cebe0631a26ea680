"""
Tests for concept detection and knowledge graph gap analysis.
"""

from datetime import datetime

import pytest

from markets_intel.intelligence import ConceptEvolutionEngine, ConceptPattern
from markets_intel.kg import Entity, LocalGraphStore

from conftest import ScriptedGraphStore

DETECTED_AT = datetime(2024, 6, 1, 12, 0)

DISTRIBUTION_ROWS = [
    {"entity_type": "Private Equity Firm", "sector": "Private Equity", "country": "USA", "count": 50},
    {"entity_type": "Private Equity Firm", "sector": "Private Equity", "country": "UK", "count": 10},
    {"entity_type": "Real Estate Fund Manager", "sector": "Real Estate", "country": "USA", "count": 38},
    {"entity_type": "Hedge Fund Manager", "sector": "Hedge Funds", "country": "USA", "count": 2},
    {"entity_type": "Person", "sector": None, "country": "USA", "count": 100},
]

RECENT_ROWS = [
    {"entity_type": "Venture Capital Firm", "sector": "Fintech", "country": "USA", "recent_count": 8},
    {"entity_type": "Private Equity Firm", "sector": None, "country": "USA", "recent_count": 5},
]


def make_engine(store=None, **config):
    return ConceptEvolutionEngine(store or ScriptedGraphStore(), config, clock=lambda: DETECTED_AT)


class TestConceptDetection:
    """Test keyword based concept detection."""

    def test_esg_theme_detected(self):
        engine = make_engine()
        entity = Entity(
            id="g1",
            name="GreenTech Capital",
            type="Private Equity Firm",
            properties={"description": "ESG and climate focused renewable energy impact investor"},
        )

        concepts = engine.detect_emerging_concepts(entity)

        assert [concept.pattern_name for concept in concepts] == ["INVESTMENT_THEMES"]
        concept = concepts[0]
        assert concept.confidence == pytest.approx(0.75)
        assert concept.evidence == [
            'Keyword match: "ESG"',
            'Keyword match: "green"',
            'Keyword match: "climate"',
            'Keyword match: "renewable"',
            'Keyword match: "impact"',
        ]
        assert concept.suggested_entity_type == "INVESTMENT_STRATEGY"
        assert concept.suggested_relationships == [
            "FOLLOWS_ESG_STRATEGY", "FOCUSES_ON_SUSTAINABILITY", "IMPLEMENTS_IMPACT_INVESTING",
        ]

    def test_weak_match_is_not_detected(self):
        engine = make_engine()

        assert engine.detect_emerging_concepts({"name": "Fintech lender"}) == []
        performance = engine.get_evolution_stats()["pattern_performance"]
        assert all(item["detection_count"] == 0 for item in performance)

    def test_confidence_is_capped(self):
        engine = make_engine()
        pattern = engine.patterns["TECHNOLOGY_TRENDS"]
        record = {"description": " ".join(pattern.keywords)}

        concept = engine.analyze_entity_for_concept(record, pattern)

        assert concept.confidence == pytest.approx(0.95)

    def test_detection_is_counted(self):
        engine = make_engine()
        record = {"name": "Impact Partners", "description": "ESG, green and climate investing with social impact"}

        engine.detect_emerging_concepts(record)
        engine.detect_emerging_concepts(record)

        themes = engine.get_evolution_stats()["pattern_performance"][0]
        assert themes["name"] == "INVESTMENT_THEMES"
        assert themes["detection_count"] == 2
        assert themes["last_detection"] == DETECTED_AT

    def test_engines_do_not_share_counts(self):
        record = {"description": "ESG, green and climate investing with social impact"}
        make_engine().detect_emerging_concepts(record)

        performance = make_engine().get_evolution_stats()["pattern_performance"]

        assert performance[0]["detection_count"] == 0

    def test_pattern_without_suggestions_uses_generic_relationship(self):
        engine = make_engine()
        engine.add_detection_pattern(ConceptPattern(
            name="SECONDARIES",
            description="Secondary market activity",
            keywords=("secondaries", "continuation vehicle"),
            entity_types=("INVESTMENT_STRATEGY",),
            confidence_threshold=0.5,
        ))

        concepts = engine.detect_emerging_concepts({"primaryServices": "Secondaries and continuation vehicle deals"})

        assert concepts[-1].pattern_name == "SECONDARIES"
        assert concepts[-1].suggested_relationships == ["RELATED_TO_CONCEPT"]
        assert engine.get_evolution_stats()["detection_patterns"] == 6


class TestConceptRegistry:
    """Test registration of new entity and relationship types."""

    def test_registrations_are_tracked(self):
        engine = make_engine()

        entity_type = engine.register_entity_type("ESG_FUND", "Funds with an ESG mandate", examples=["GreenTech"])
        engine.register_relationship_type(
            "FOLLOWS_ESG_STRATEGY", from_entity_types=["ESG_FUND"], to_entity_types=["INVESTMENT_STRATEGY"],
        )

        assert entity_type["source"] == "dynamic_evolution"
        assert entity_type["examples"] == ["GreenTech"]
        stats = engine.get_evolution_stats()
        assert stats["total_registered_concepts"] == 2
        assert stats["evolution_history"] == 2
        assert [entry["type"] for entry in stats["recent_evolutions"]] == [
            "entity_type_addition", "relationship_type_addition",
        ]


class TestConceptGaps:
    """Test gap analysis over graph statistics."""

    def test_underrepresented_sectors(self):
        areas = make_engine().identify_underrepresented_areas(DISTRIBUTION_ROWS)

        assert len(areas) == 1
        assert areas[0]["area"] == "Hedge Funds"
        assert areas[0]["current_count"] == 2
        assert areas[0]["percentage"] == pytest.approx(2.0)

    def test_empty_distribution(self):
        assert make_engine().identify_underrepresented_areas([]) == []

    @pytest.mark.asyncio
    async def test_gap_analysis(self):
        store = ScriptedGraphStore({"count(*) as count": DISTRIBUTION_ROWS, "recent_count": RECENT_ROWS})

        analysis = await make_engine(store).analyze_concept_gaps()

        assert [area["area"] for area in analysis.underrepresented_areas] == ["Hedge Funds"]
        assert analysis.emerging_patterns == [{
            "pattern": "Growing interest in Venture Capital Firm in Fintech sector",
            "evidence": "8 new entities in last 30 days",
            "confidence": pytest.approx(0.4),
            "suggested_action": "Monitor for new relationship patterns and investment themes",
        }]
        assert [item["type"] for item in analysis.recommendations] == [
            "entity_expansion", "pattern_monitoring", "system_enhancement",
        ]
        assert analysis.recommendations[0]["description"] == "Expand data coverage in Hedge Funds"
        assert store.calls[1]["parameters"] == {"days": 30}

    @pytest.mark.asyncio
    async def test_configured_emerging_threshold(self):
        store = ScriptedGraphStore({"recent_count": RECENT_ROWS})

        patterns = await make_engine(store, emerging_min_count=4, emerging_window_days=7).detect_emerging_patterns()

        assert len(patterns) == 2
        assert patterns[1]["pattern"] == "Growing interest in Private Equity Firm in general sector"
        assert store.calls[0]["parameters"] == {"days": 7}

    @pytest.mark.asyncio
    async def test_store_that_cannot_query_gives_empty_analysis(self):
        analysis = await make_engine(LocalGraphStore()).analyze_concept_gaps()

        assert analysis.underrepresented_areas == []
        assert analysis.emerging_patterns == []
        assert [item["type"] for item in analysis.recommendations] == ["system_enhancement"]
        assert analysis.to_dict()["recommendations"][0]["priority"] == "low"
