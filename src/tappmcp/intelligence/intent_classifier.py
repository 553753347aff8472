#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Intent Classifier Module
Maps free-text commands to an intent category using fuzzy keyword matching
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .similarity import match_score
from ..utils.config import Config
from ..utils.constants import (
    DEFAULT_KEYWORD_TABLE,
    INTENT_FALLBACK_CATEGORY,
    MATCH_EXACT_SCORE,
    MATCH_SUBSTRING_SCORE,
    MATCH_SIMILARITY_FLOOR,
    INTENT_MIN_CONFIDENCE,
    INTENT_PRIMARY_CATEGORIES,
    INTENT_PRIMARY_BOOST,
    INTENT_DEFAULT_BOOST,
    ERROR_MESSAGES,
)
from ..utils.errors import InputError


class IntentCategory(Enum):
    """Built-in intent categories, in tie-break order"""
    PROJECT = "project"
    CODE = "code"
    QUALITY = "quality"
    EXPLANATION = "explanation"
    IMPROVEMENT = "improvement"
    HELP = "help"
    STATUS = "status"


@dataclass(frozen=True)
class Intent:
    """Classification result"""
    category: str
    confidence: float
    matched_keywords: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'category': self.category,
            'confidence': self.confidence,
            'matched_keywords': list(self.matched_keywords),
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class ClassifierThresholds:
    """Scoring constants for the classifier"""
    exact_score: float = MATCH_EXACT_SCORE
    substring_score: float = MATCH_SUBSTRING_SCORE
    similarity_floor: float = MATCH_SIMILARITY_FLOOR
    min_confidence: float = INTENT_MIN_CONFIDENCE
    primary_boost: float = INTENT_PRIMARY_BOOST
    default_boost: float = INTENT_DEFAULT_BOOST
    primary_categories: Tuple[str, ...] = INTENT_PRIMARY_CATEGORIES

    def __post_init__(self):
        for name in ('exact_score', 'substring_score', 'similarity_floor', 'min_confidence'):
            value = getattr(self, name)
            if not _is_number(value) or not 0.0 <= value <= 1.0:
                raise InputError(ERROR_MESSAGES['invalid_threshold'].format(name, value))
        for name in ('primary_boost', 'default_boost'):
            value = getattr(self, name)
            if not _is_number(value) or not value > 0:
                raise InputError(ERROR_MESSAGES['invalid_boost'].format(name, value))
        # Accept any sequence of names from configuration, store immutably
        categories = self.primary_categories
        if isinstance(categories, str) or not isinstance(categories, (list, tuple)) \
                or not all(isinstance(c, str) for c in categories):
            raise InputError(ERROR_MESSAGES['invalid_primary_categories'].format(categories))
        object.__setattr__(self, 'primary_categories', tuple(categories))

    def boost_for(self, category: str) -> float:
        """Category-class multiplier"""
        if category in self.primary_categories:
            return self.primary_boost
        return self.default_boost


class IntentClassifier:
    """
    Fuzzy keyword intent classifier

    Every input token is scored against every keyword of every category
    (exact, substring, then edit similarity). A category's score is the sum
    of its pair scores divided by its keyword count, boosted and clamped to 1.
    The best category wins; ties go to the earlier category in table order.
    """

    def __init__(self, keyword_table: Optional[Mapping[str, Sequence[str]]] = None,
                 thresholds: Optional[ClassifierThresholds] = None):
        """
        Initialize intent classifier

        Args:
            keyword_table: Ordered category -> keywords mapping, built-in table if None
            thresholds: Scoring constants, defaults if None
        """
        self.logger = logging.getLogger('tappmcp.intent_classifier')
        self.thresholds = thresholds or ClassifierThresholds()

        table = DEFAULT_KEYWORD_TABLE if keyword_table is None else keyword_table
        if not table:
            raise InputError(ERROR_MESSAGES['empty_keyword_table'])

        # Freeze the table; iteration order is the tie-break order
        self._table: Dict[str, Tuple[str, ...]] = {
            str(category): tuple(str(kw).strip().lower() for kw in keywords if str(kw).strip())
            for category, keywords in table.items()
        }

    @classmethod
    def from_config(cls, config: Config) -> 'IntentClassifier':
        """
        Build classifier from configuration

        Args:
            config: Configuration object

        Returns:
            Configured IntentClassifier
        """
        intent_config = config.intent
        thresholds = ClassifierThresholds(
            exact_score=intent_config.exact_score,
            substring_score=intent_config.substring_score,
            similarity_floor=intent_config.similarity_floor,
            min_confidence=intent_config.min_confidence,
            primary_boost=intent_config.primary_boost,
            default_boost=intent_config.default_boost,
            primary_categories=intent_config.primary_categories,
        )
        return cls(keyword_table=intent_config.keywords, thresholds=thresholds)

    @property
    def categories(self) -> Tuple[str, ...]:
        """Categories in tie-break order"""
        return tuple(self._table.keys())

    @property
    def keyword_table(self) -> Dict[str, Tuple[str, ...]]:
        """Copy of the keyword table"""
        return dict(self._table)

    def classify(self, text: Any) -> Intent:
        """
        Classify a free-text command

        Args:
            text: Command text; None and non-strings are accepted

        Returns:
            Best-matching Intent, help fallback when nothing scores
            above the minimum confidence
        """
        tokens = self._tokenize(text)

        best_category = None
        best_score = -1.0
        best_matches: Tuple[str, ...] = ()
        scored: Dict[str, Tuple[float, Tuple[str, ...]]] = {}

        for category, keywords in self._table.items():
            score, matches = self._score_category(category, keywords, tokens)
            scored[category] = (score, matches)
            # Strict comparison keeps the first category on ties
            if score > best_score:
                best_category, best_score, best_matches = category, score, matches

        if best_score < self.thresholds.min_confidence:
            fallback_matches = scored.get(INTENT_FALLBACK_CATEGORY, (0.0, ()))[1]
            self.logger.debug(
                f"No confident intent for {tokens!r} (best {best_category}={best_score:.3f}), "
                f"falling back to {INTENT_FALLBACK_CATEGORY}"
            )
            return Intent(
                category=INTENT_FALLBACK_CATEGORY,
                confidence=max(0.0, best_score),
                matched_keywords=fallback_matches,
            )

        self.logger.debug(f"Classified {tokens!r} as {best_category} ({best_score:.3f})")
        return Intent(category=best_category, confidence=best_score, matched_keywords=best_matches)

    def score_categories(self, text: Any) -> Dict[str, float]:
        """
        Normalized score of every category, in table order

        Args:
            text: Command text

        Returns:
            {category: score}
        """
        tokens = self._tokenize(text)
        return {
            category: self._score_category(category, keywords, tokens)[0]
            for category, keywords in self._table.items()
        }

    def _tokenize(self, text: Any) -> List[str]:
        """Lowercase and split on whitespace"""
        if text is None:
            return []
        try:
            return str(text).lower().split()
        except Exception as e:
            self.logger.warning(f"Unprintable classifier input treated as empty: {e}")
            return []

    def _score_category(self, category: str, keywords: Tuple[str, ...],
                        tokens: List[str]) -> Tuple[float, Tuple[str, ...]]:
        """
        Score one category against the tokens

        Returns:
            (normalized score, matched keywords in first-match order)
        """
        if not keywords or not tokens:
            return 0.0, ()

        t = self.thresholds
        total = 0.0
        matched: List[str] = []

        for token in tokens:
            for keyword in keywords:
                score = match_score(
                    token, keyword,
                    exact_score=t.exact_score,
                    substring_score=t.substring_score,
                    similarity_floor=t.similarity_floor,
                )
                if score > 0:
                    total += score
                    if keyword not in matched:
                        matched.append(keyword)

        normalized = total / len(keywords) * t.boost_for(category)
        return min(1.0, normalized), tuple(matched)
