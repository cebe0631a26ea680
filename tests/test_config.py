"""
Tests for the shipped sample configuration.
"""

import re
from pathlib import Path

import pytest
import yaml

from markets_intel.agent import ConversationManager
from markets_intel.intelligence import PatternName

CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"


@pytest.fixture
def config_text():
    return CONFIG_PATH.read_text(encoding="utf-8")


class TestSampleConfig:
    """Test that config/config.yaml agrees with the code defaults."""

    def test_conversation_settings_match_defaults(self, config_text):
        config = yaml.safe_load(config_text)

        configured = ConversationManager(config["conversation"])
        defaults = ConversationManager({})

        assert configured.session_timeout_minutes == defaults.session_timeout_minutes == 60
        assert configured.cleanup_interval_minutes == defaults.cleanup_interval_minutes == 15

    def test_example_pattern_subset_names_real_patterns(self, config_text):
        match = re.search(r"#\s*patterns:\s*(\[[^\]]*\])", config_text)
        assert match is not None

        names = yaml.safe_load(match.group(1))

        assert names
        for name in names:
            assert PatternName(name)
