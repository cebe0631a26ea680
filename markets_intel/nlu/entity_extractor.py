"""
Entity Extractor for companies, people, amounts and other private markets terms.
"""

import logging
import re
from dataclasses import dataclass
from typing import Pattern, Tuple

from .models import ENTITY_CATEGORIES, EntityExtraction, EntitySpan

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.8


@dataclass(frozen=True)
class EntityPatternGroup:
    """Ordered patterns for one entity category."""
    category: str
    entity_type: str
    patterns: Tuple[Pattern, ...]


ENTITY_PATTERNS: Tuple[EntityPatternGroup, ...] = (
    EntityPatternGroup("companies", "company", (
        re.compile(
            r"\b([A-Z][a-zA-Z0-9]*(?:\s+[A-Z][a-zA-Z0-9]*)*)\s+"
            r"(?:Capital|Ventures|Partners|Fund|Management|Investments?|Group|Holdings?|Corp\.?|Inc\.?|LLC)\b"
        ),
        re.compile(
            r"\b([A-Z][a-zA-Z]*(?:\s+[A-Z][a-zA-Z]*)*),?\s+(?i:a|an|the)?\s*"
            r"(?i:venture capital|private equity|investment|fund)"
        ),
        re.compile(
            r"\b(Blackstone|KKR|Apollo|Carlyle|Bain|TPG|Warburg|Kohlberg|Kravis|Roberts|Sequoia|Andreessen|Horowitz)\b",
            re.IGNORECASE,
        ),
        re.compile(
            r"\b(Blackstone Group|Apollo Global|Carlyle Group|Bain Capital|TPG Capital|Warburg Pincus|"
            r"Silver Lake|Vista Equity|General Atlantic|Advent International)\b",
            re.IGNORECASE,
        ),
    )),
    EntityPatternGroup("people", "person", (
        re.compile(
            r"\b([A-Z][a-z]+\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b"
            r"(?=\s+(?i:partner|managing|founder|CEO|CTO|VP|director))"
        ),
        re.compile(
            r"(?i:partner|managing|founder|CEO|CTO|VP|director)\s+([A-Z][a-z]+\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)"
        ),
    )),
    EntityPatternGroup("amounts", "amount", (
        re.compile(r"([0-9][0-9,]*(?:\.[0-9]+)?\s*(?:million|billion|trillion))", re.IGNORECASE),
        re.compile(r"\$([0-9][0-9,]*(?:\.[0-9]+)?(?:\s*[MBT]\b)?)", re.IGNORECASE),
    )),
    EntityPatternGroup("timeframes", "timeframe", (
        re.compile(r"(?:last|past|since|during|in|from)\s+([0-9]+\s+(?:years?|months?|quarters?))", re.IGNORECASE),
        re.compile(r"\b(20[0-9]{2}(?:\s*[-–]\s*20[0-9]{2})?)\b"),
        re.compile(r"\b(Q[1-4]\s+20[0-9]{2})\b", re.IGNORECASE),
    )),
    EntityPatternGroup("sectors", "sector", (
        re.compile(
            r"\b(technology|enterprise software|fintech|biotech|healthcare|real estate|infrastructure|energy|"
            r"consumer|SaaS|artificial intelligence|machine learning|blockchain|cryptocurrency|tech)\b",
            re.IGNORECASE,
        ),
    )),
    EntityPatternGroup("geographies", "geography", (
        re.compile(
            r"\b((?i:Silicon Valley|San Francisco|New York|Boston|London|Europe|Asia|China|India|United States)"
            r"|USA|US)\b"
        ),
    )),
    EntityPatternGroup("metrics", "metric", (
        re.compile(r"\b(IRR|multiple|TVPI|DPI|RVPI|PME|success rate|hit rate)\b", re.IGNORECASE),
        re.compile(r"([0-9]+(?:\.[0-9]+)?x)\s*(?:multiple|return)", re.IGNORECASE),
        re.compile(r"([0-9]+(?:\.[0-9]+)?%)\s*(?:IRR|return)", re.IGNORECASE),
    )),
)


class EntityExtractor:
    """Extracts typed spans from a message with an ordered pattern table."""

    def __init__(self, pattern_groups: Tuple[EntityPatternGroup, ...] = ENTITY_PATTERNS):
        self.pattern_groups = pattern_groups
        self.total_patterns = sum(len(group.patterns) for group in pattern_groups)

    def extract(self, text: str) -> EntityExtraction:
        """
        Extract entities from text.

        Args:
            text: The user's message

        Returns:
            EntityExtraction with spans per category and an overall confidence
        """
        extraction = EntityExtraction()
        if not text or not text.strip():
            return extraction

        matched_categories = 0
        for group in self.pattern_groups:
            spans = extraction.category(group.category)
            seen = set()

            for pattern in group.patterns:
                for match in pattern.finditer(text):
                    captured = match.group(1) if match.re.groups and match.group(1) else match.group(0)
                    value = captured.strip()
                    if not value or value in seen:
                        continue
                    seen.add(value)
                    spans.append(EntitySpan(
                        text=value,
                        type=group.entity_type,
                        position=match.start(),
                        confidence=BASE_CONFIDENCE,
                    ))

            if spans:
                matched_categories += 1

        extraction.confidence = matched_categories / self.total_patterns if self.total_patterns else 0.0

        found = {name: extraction.texts(name) for name in ENTITY_CATEGORIES if extraction.category(name)}
        logger.debug(f"Extracted entities: {found}")
        return extraction
