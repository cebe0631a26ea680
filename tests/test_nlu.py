"""
Tests for intent classification, entity extraction and conversation context.
"""

from datetime import datetime

import pytest

from markets_intel.nlu import ContextManager, EntityExtractor, IntentClassifier, NLUEngine
from markets_intel.nlu.intent_classifier import analyze_complexity
from markets_intel.nlu.models import ContextSnapshot, Intent, IntentResult

from conftest import make_entities


class TestIntentClassifier:
    """Test rule-based intent classification."""

    @pytest.fixture
    def classifier(self):
        return IntentClassifier()

    def test_entity_info_question(self, classifier):
        result = classifier.classify("Tell me about Blackstone")

        assert result.primary == Intent.ENTITY_INFO
        assert result.confidence == pytest.approx(0.4)

    def test_comparison_question(self, classifier):
        result = classifier.classify("Compare KKR vs Blackstone")

        assert result.primary == Intent.COMPARE_ENTITIES
        assert result.all_scores[Intent.COMPARE_ENTITIES.value] == 5

    def test_empty_message_falls_back_to_general(self, classifier):
        result = classifier.classify("")

        assert result.primary == Intent.GENERAL
        assert result.confidence == pytest.approx(0.3)
        assert result.alternatives == []

    def test_unrecognised_message_falls_back_to_general(self, classifier):
        result = classifier.classify("zzz qqq")

        assert result.primary == Intent.GENERAL

    def test_confidence_is_capped(self, classifier):
        result = classifier.classify(
            "performance returns IRR multiple track record how well success rate performance metrics"
        )

        assert result.primary == Intent.PERFORMANCE
        assert result.confidence == 1.0

    def test_at_most_two_alternatives(self, classifier):
        result = classifier.classify("Compare the portfolio performance and market trends of KKR")

        assert len(result.alternatives) <= 2
        assert all(intent != result.primary for intent, _ in result.alternatives)

    def test_recent_intent_adds_continuity_point(self, classifier):
        context = ContextSnapshot(
            current_message="",
            timestamp=datetime.now(),
            recent_intents=[Intent.PERFORMANCE.value],
        )

        without_context = classifier.score("What are the returns?")
        with_context = classifier.score("What are the returns?", context)

        assert with_context[Intent.PERFORMANCE] == without_context[Intent.PERFORMANCE] + 1


class TestEntityExtractor:
    """Test pattern-based entity extraction."""

    @pytest.fixture
    def extractor(self):
        return EntityExtractor()

    def test_known_firm(self, extractor):
        entities = extractor.extract("Tell me about Blackstone")

        assert entities.texts("companies") == ["Blackstone"]
        assert entities.companies[0].confidence == 0.8
        assert entities.confidence > 0

    def test_mixed_message(self, extractor):
        entities = extractor.extract("Sequoia Capital invested $500M in fintech in 2021")

        assert "Sequoia" in entities.texts("companies")
        assert entities.texts("amounts") == ["500M"]
        assert entities.texts("sectors") == ["fintech"]
        assert "2021" in entities.texts("timeframes")
        assert entities.confidence == pytest.approx(4 / 16)

    def test_duplicates_removed_within_category(self, extractor):
        entities = extractor.extract("KKR and KKR again")

        assert entities.texts("companies") == ["KKR"]

    def test_person_after_role(self, extractor):
        entities = extractor.extract("Partner Jane Doe led the round")

        assert entities.texts("people") == ["Jane Doe"]

    def test_written_amount(self, extractor):
        entities = extractor.extract("funds larger than 2.5 billion")

        assert entities.texts("amounts") == ["2.5 billion"]

    def test_empty_text(self, extractor):
        entities = extractor.extract("   ")

        assert entities.is_empty()
        assert entities.confidence == 0.0

    def test_positions_recorded(self, extractor):
        entities = extractor.extract("Tell me about KKR")

        assert entities.companies[0].position == len("Tell me about ")


class TestContextManager:
    """Test context carry-over between turns."""

    @pytest.fixture
    def manager(self):
        return ContextManager({"entity_stack_limit": 3})

    @pytest.fixture
    def previous(self):
        return ContextSnapshot(
            current_message="Tell me about KKR",
            timestamp=datetime.now(),
            entity_stack=["KKR"],
            topic_flow=["fintech"],
        )

    def test_first_turn_has_base_relevance(self, manager):
        snapshot = manager.update_context("Tell me about KKR")

        assert snapshot.relevance_score == pytest.approx(0.3)
        assert len(snapshot.message_history) == 1

    def test_pronoun_is_not_resolved(self, manager, previous):
        assert manager.calculate_relevance("What is its portfolio?", previous) == 0.0

    def test_literal_entity_mention_scores(self, manager, previous):
        assert manager.calculate_relevance("How has KKR performed?", previous) == pytest.approx(0.3)

    def test_entity_and_topic_mention(self, manager, previous):
        assert manager.calculate_relevance("KKR fintech deals", previous) == pytest.approx(0.5)

    def test_previous_snapshot_not_mutated(self, manager, previous):
        snapshot = manager.update_context("next message", previous)
        snapshot.entity_stack.append("Apollo")

        assert previous.entity_stack == ["KKR"]

    def test_record_turn_moves_repeated_entity_to_top(self, manager, previous):
        snapshot = manager.record_turn(
            previous,
            IntentResult(primary=Intent.ENTITY_INFO, confidence=0.4),
            make_entities(companies=["Apollo", "KKR", "TPG", "Bain"]),
        )

        assert snapshot.entity_stack == ["KKR", "TPG", "Bain"]
        assert snapshot.recent_intents == [Intent.ENTITY_INFO.value]


class TestNLUEngine:
    """Test the combined understanding step."""

    @pytest.fixture
    def engine(self):
        return NLUEngine()

    def test_blackstone_question(self, engine):
        result = engine.process("Tell me about Blackstone")

        assert result.intent.primary == Intent.ENTITY_INFO
        assert result.entities.texts("companies") == ["Blackstone"]
        assert result.confidence == pytest.approx(0.4 * 0.4 + 0.3 * (1 / 16) + 0.3 * 0.3)
        assert result.execution_time_ms is not None

    def test_empty_message(self, engine):
        result = engine.process("")

        assert result.intent.primary == Intent.GENERAL
        assert result.confidence == pytest.approx(0.4 * 0.3 + 0.3 * 0.3)
        assert result.complexity == "simple"


class TestComplexity:
    """Test complexity bucketing."""

    def test_simple(self):
        assert analyze_complexity("Tell me about KKR") == "simple"

    def test_very_complex(self):
        message = (
            "Compare the performance and trends of Sequoia Capital and Accel Capital since 2015 "
            "which analyze the impact of $500M deals over 10 years"
        )

        assert analyze_complexity(message) == "very_complex"
