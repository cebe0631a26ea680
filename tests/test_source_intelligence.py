"""
Tests for source credibility weighting and cross-validation.
"""

from datetime import datetime, timedelta

import pytest

from markets_intel.intelligence import EvidenceSource, SourceIntelligence, SourceProfile


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class TestSourceAuthority:
    """Test authority scoring, decay and clamping."""

    @pytest.fixture
    def clock(self):
        return FakeClock(datetime(2024, 1, 1))

    @pytest.fixture
    def intelligence(self, clock):
        return SourceIntelligence(clock=clock)

    def test_registered_authority(self, intelligence):
        assert intelligence.get_source_authority("SEC_FILINGS") == pytest.approx(0.95)
        assert intelligence.get_source_authority("NEWS_REPORTS") == pytest.approx(0.60)

    def test_unknown_source_type(self, intelligence):
        assert intelligence.get_source_authority("CARRIER_PIGEON") == 0.5

    def test_media_decays_with_half_life(self, intelligence, clock):
        clock.advance(days=30)

        assert intelligence.get_source_authority("FINANCIAL_MEDIA") == pytest.approx(0.35)

    def test_official_and_regulatory_do_not_decay(self, intelligence, clock):
        clock.advance(days=365)

        assert intelligence.get_source_authority("SEC_FILINGS") == pytest.approx(0.95)
        assert intelligence.get_source_authority("COMPANY_ANNOUNCEMENTS") == pytest.approx(0.90)

    def test_clamped_to_lower_bound(self, intelligence, clock):
        clock.advance(days=365)

        assert intelligence.get_source_authority("MARKET_RUMORS") == pytest.approx(0.1)

    def test_clamped_to_upper_bound(self, clock):
        profiles = {"ORACLE": SourceProfile("ORACLE", 1.0, "official", 1.0, 1.0, False)}
        intelligence = SourceIntelligence(profiles=profiles, clock=clock)

        assert intelligence.get_source_authority("ORACLE") == pytest.approx(0.98)

    def test_recent_performance_blends_into_authority(self, intelligence):
        intelligence.update_source_performance("SEC_FILINGS", success=False)

        assert intelligence.get_source_authority("SEC_FILINGS") == pytest.approx(0.95 * 0.7)


class TestSourcePerformance:
    """Test performance tracking."""

    @pytest.fixture
    def intelligence(self):
        return SourceIntelligence({"performance_window": 3})

    def test_success_rate_over_window(self, intelligence):
        for success in (True, True, False, False):
            intelligence.update_source_performance("NEWS_REPORTS", success)

        state = intelligence.states["NEWS_REPORTS"]
        assert state.validation_count == 4
        assert list(state.recent_performance) == [1.0, 0.0, 0.0]
        assert state.success_rate == pytest.approx(1 / 3)

    def test_accuracy_overrides_success_flag(self, intelligence):
        intelligence.update_source_performance("NEWS_REPORTS", success=False, accuracy=0.9)

        assert intelligence.states["NEWS_REPORTS"].success_rate == 1.0

    def test_unknown_source_ignored(self, intelligence):
        intelligence.update_source_performance("CARRIER_PIGEON", success=True)

        assert "CARRIER_PIGEON" not in intelligence.states

    def test_recommended_sources_sorted_by_authority(self, intelligence):
        recommended = intelligence.get_recommended_sources("MARKET_TRENDS")

        assert [source["source_type"] for source in recommended] == [
            "INDUSTRY_DATABASES", "EXPERT_ANALYSIS", "FINANCIAL_MEDIA",
        ]

    def test_stats(self, intelligence):
        intelligence.update_source_performance("SEC_FILINGS", success=True)
        stats = intelligence.get_intelligence_stats()

        assert stats["total_source_types"] == 9
        assert stats["source_breakdown"]["official"] == 2
        assert stats["top_performing_sources"][0]["source_type"] == "SEC_FILINGS"


class TestCrossValidation:
    """Test claim cross-validation and its cache."""

    @pytest.fixture
    def intelligence(self):
        return SourceIntelligence()

    def test_three_agreeing_sources_are_boosted(self, intelligence):
        sources = [EvidenceSource("INDUSTRY_DATABASES", authority=0.8) for _ in range(3)]

        result = intelligence.cross_validate_information({"claim": "KKR invested in Acme"}, sources)

        assert result.agreement_level == pytest.approx(1.0)
        assert result.confidence == pytest.approx(0.95)
        assert result.source_count == 3
        assert len(result.supporting_info) == 3

    def test_two_agreeing_sources_are_not_boosted(self, intelligence):
        sources = [EvidenceSource("INDUSTRY_DATABASES", authority=0.8) for _ in range(2)]

        result = intelligence.cross_validate_information({"claim": "two sources"}, sources)

        assert result.confidence == pytest.approx(1.0)

    def test_conflicting_source_lowers_agreement(self, intelligence):
        sources = [
            EvidenceSource("SEC_FILINGS", authority=0.9),
            EvidenceSource("MARKET_RUMORS", authority=0.3, agreement=False),
        ]

        result = intelligence.cross_validate_information({"claim": "conflict"}, sources)

        assert result.agreement_level == pytest.approx(0.9 / 1.2)
        assert result.recommended_authority == pytest.approx(0.6)
        assert len(result.conflicting_info) == 1

    def test_single_source_uses_its_authority(self, intelligence):
        result = intelligence.cross_validate_information({"claim": "single"}, [EvidenceSource("SEC_FILINGS")])

        assert result.confidence == pytest.approx(0.95)
        assert result.source_count == 1

    def test_no_sources(self, intelligence):
        result = intelligence.cross_validate_information({"claim": "nothing"}, [])

        assert result.confidence == 0.0
        assert len(intelligence.validation_cache) == 0

    def test_results_are_cached_per_claim(self, intelligence):
        claim = {"b": 2, "a": 1}
        first = intelligence.cross_validate_information(claim, [EvidenceSource("SEC_FILINGS")])
        second = intelligence.cross_validate_information({"a": 1, "b": 2}, [EvidenceSource("NEWS_REPORTS")])

        assert second is first

    def test_cache_is_bounded(self):
        intelligence = SourceIntelligence({"validation_cache_size": 2})
        for index in range(5):
            intelligence.cross_validate_information({"claim": index}, [EvidenceSource("SEC_FILINGS")])

        assert len(intelligence.validation_cache) == 2


class TestWeightedRelationship:
    """Test relationship weighting by source authority."""

    @pytest.fixture
    def intelligence(self):
        return SourceIntelligence()

    def test_confidence_is_mean_authority(self, intelligence):
        relationship = intelligence.create_weighted_relationship(
            "kkr", "acme", "INVESTS_IN",
            [EvidenceSource("SEC_FILINGS"), EvidenceSource("NEWS_REPORTS")],
        )

        assert relationship.confidence == pytest.approx((0.95 + 0.60) / 2)
        assert relationship.metadata.source_count == 2
        assert relationship.metadata.has_regulatory_source
        assert not relationship.metadata.has_official_source
        assert relationship.metadata.requires_verification
        assert relationship.validated_at is not None

    def test_confidence_capped(self, intelligence):
        relationship = intelligence.create_weighted_relationship(
            "a", "b", "CO_INVESTED", [EvidenceSource("AI_INFERENCE", authority=0.98)]
        )

        assert relationship.confidence == pytest.approx(0.95)

    def test_requires_sources(self, intelligence):
        with pytest.raises(ValueError):
            intelligence.create_weighted_relationship("a", "b", "CO_INVESTED", [])
