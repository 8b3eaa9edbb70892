"""Transcript to wallet command parsing.

``CommandParser.parse`` is pure: the same ``(text, language_tag)`` always
yields the same ``Command`` and malformed input degrades to
``CommandType.UNKNOWN`` instead of raising.

Phrase matching is plain substring matching, not whole-word matching.  Noisy
speech-to-text output makes recall more valuable than precision here, so a
phrase embedded in a longer unrelated word still matches.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Dict, List, Optional, Pattern, Tuple

from models import Command, CommandType
from patterns import (
    AMOUNT_UNITS,
    DEFAULT_LANGUAGE_TAG,
    DEFAULT_PATTERN_TABLE,
    INTENT_PRIORITY,
    RECIPIENT_PREFIXES,
    PatternTable,
)
from validation import is_valid_address, is_valid_amount

logger = logging.getLogger(__name__)

MATCH_CONFIDENCE = 0.9
UNKNOWN_CONFIDENCE = 0.1

_NUMBER = r"([0-9]+(?:[.,][0-9]+)?)"
_BOUNDED_NUMBER = r"(?<![0-9a-z.,])" + _NUMBER
_HEX_TOKEN_RE = re.compile(r"0x[0-9a-f]+")


def _alternation(words) -> str:
    # Longest first so that "ether" is preferred over "eth".
    return "|".join(re.escape(w) for w in sorted(set(words), key=len, reverse=True))


_UNITS = _alternation(AMOUNT_UNITS)
_PREFIXES = _alternation(RECIPIENT_PREFIXES)

ADDRESS_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"(?<![0-9a-z])(0x[0-9a-f]{40})(?![0-9a-z])", re.IGNORECASE),
    re.compile(r"(?:" + _PREFIXES + r")\s*(0x[0-9a-f]{40})(?![0-9a-z])", re.IGNORECASE),
)


def normalize(text: Optional[str]) -> str:
    return (text or "").strip().lower()


class CommandParser:
    """Maps a transcript to exactly one ``Command`` using a ``PatternTable``."""

    def __init__(
        self,
        table: PatternTable = DEFAULT_PATTERN_TABLE,
        max_amount: Optional[Decimal] = None,
    ) -> None:
        self._table = table
        self._max_amount = max_amount
        self._amount_patterns: Dict[str, List[Pattern[str]]] = {}

    @property
    def table(self) -> PatternTable:
        return self._table

    def parse(self, text: Optional[str], language_tag: str = DEFAULT_LANGUAGE_TAG) -> Command:
        original = text or ""
        normalized = normalize(original)
        if not normalized:
            return self._unknown(original)

        language = self._table.resolve_language(language_tag)
        padded = f" {normalized} "

        for intent in INTENT_PRIORITY:
            phrases = self._table.phrases_for(intent, language)
            if not any(phrase in padded for phrase in phrases):
                continue
            if intent is CommandType.SEND:
                return self._parse_send(original, normalized, language)
            return Command(type=intent, original_text=original, confidence=MATCH_CONFIDENCE)

        return self._unknown(original)

    def _parse_send(self, original: str, normalized: str, language: str) -> Command:
        amount = self.extract_amount(normalized, language)
        if amount is None:
            logger.debug("send intent without amount: %r", original)
            return self._unknown(original)
        return Command(
            type=CommandType.SEND,
            original_text=original,
            amount=amount,
            address=extract_address(original),
            confidence=MATCH_CONFIDENCE,
        )

    def extract_amount(self, normalized: str, language: str) -> Optional[Decimal]:
        """Return the first amount found, or None when absent or out of range."""
        # Address digits must never be read as an amount.
        masked = _HEX_TOKEN_RE.sub("0x", normalized)
        for pattern in self._patterns_for(language):
            match = pattern.search(masked)
            if not match:
                continue
            # Several locales write the decimal separator as a comma.
            amount = Decimal(match.group(1).replace(",", "."))
            limit = self._max_amount
            if not is_valid_amount(amount, max_amount=limit):
                logger.debug("rejected amount %s (limit %s)", amount, limit)
                return None
            return amount
        return None

    def _patterns_for(self, language: str) -> List[Pattern[str]]:
        patterns = self._amount_patterns.get(language)
        if patterns is None:
            verbs = [p.strip() for p in self._table.phrases_for(CommandType.SEND, language) if p.strip()]
            patterns = [
                re.compile(_BOUNDED_NUMBER + r"\s*(?:" + _UNITS + r")"),
                re.compile(_BOUNDED_NUMBER + r"\s*(?:(?:" + _PREFIXES + r")\s*)?(?=0x)"),
                re.compile(r"(?:" + _alternation(verbs) + r")\s*" + _NUMBER),
                re.compile(_BOUNDED_NUMBER + r"(?![0-9a-z])"),
            ]
            self._amount_patterns[language] = patterns
        return patterns

    @staticmethod
    def _unknown(original: str) -> Command:
        return Command(type=CommandType.UNKNOWN, original_text=original, confidence=UNKNOWN_CONFIDENCE)


def extract_address(text: str) -> Optional[str]:
    for pattern in ADDRESS_PATTERNS:
        match = pattern.search(text)
        if match and is_valid_address(match.group(1)):
            return match.group(1)
    return None


_default_parser = CommandParser()


def parse_command(text: Optional[str], language_tag: str = DEFAULT_LANGUAGE_TAG) -> Command:
    return _default_parser.parse(text, language_tag)
