#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Constants definition module
Defines keyword tables, thresholds and defaults used across tappmcp
"""

from typing import Dict, Tuple

# ==================== Intent Categories ====================

# Table order doubles as the tie-break order for classification
INTENT_PROJECT = 'project'
INTENT_CODE = 'code'
INTENT_QUALITY = 'quality'
INTENT_EXPLANATION = 'explanation'
INTENT_IMPROVEMENT = 'improvement'
INTENT_HELP = 'help'
INTENT_STATUS = 'status'

INTENT_CATEGORY_ORDER: Tuple[str, ...] = (
    INTENT_PROJECT,
    INTENT_CODE,
    INTENT_QUALITY,
    INTENT_EXPLANATION,
    INTENT_IMPROVEMENT,
    INTENT_HELP,
    INTENT_STATUS,
)

# Fallback category for unmatched commands
INTENT_FALLBACK_CATEGORY = INTENT_HELP

# ==================== Intent Keyword Table ====================

INTENT_KEYWORDS_PROJECT: Tuple[str, ...] = (
    "project", "app", "application", "build", "create",
    "make", "new", "scaffold", "setup", "todo",
)

INTENT_KEYWORDS_CODE: Tuple[str, ...] = (
    "code", "write", "function", "class", "component",
    "implement", "generate", "script", "module", "api",
)

INTENT_KEYWORDS_QUALITY: Tuple[str, ...] = (
    "quality", "check", "test", "review", "lint",
    "audit", "security", "validate",
)

INTENT_KEYWORDS_EXPLANATION: Tuple[str, ...] = (
    "explain", "what", "why", "how", "describe",
    "understand", "docs",
)

INTENT_KEYWORDS_IMPROVEMENT: Tuple[str, ...] = (
    "improve", "refactor", "optimize", "fix", "enhance",
    "clean", "speed", "performance",
)

INTENT_KEYWORDS_HELP: Tuple[str, ...] = (
    "help", "commands", "usage", "guide", "assist",
)

INTENT_KEYWORDS_STATUS: Tuple[str, ...] = (
    "status", "progress", "health", "stats", "report", "state",
)

DEFAULT_KEYWORD_TABLE: Dict[str, Tuple[str, ...]] = {
    INTENT_PROJECT: INTENT_KEYWORDS_PROJECT,
    INTENT_CODE: INTENT_KEYWORDS_CODE,
    INTENT_QUALITY: INTENT_KEYWORDS_QUALITY,
    INTENT_EXPLANATION: INTENT_KEYWORDS_EXPLANATION,
    INTENT_IMPROVEMENT: INTENT_KEYWORDS_IMPROVEMENT,
    INTENT_HELP: INTENT_KEYWORDS_HELP,
    INTENT_STATUS: INTENT_KEYWORDS_STATUS,
}

# ==================== Intent Scoring Thresholds ====================

MATCH_EXACT_SCORE = 1.0          # Token equals keyword
MATCH_SUBSTRING_SCORE = 0.8      # Token contains keyword or vice versa
MATCH_SIMILARITY_FLOOR = 0.6     # Edit similarity must exceed this to count
INTENT_MIN_CONFIDENCE = 0.1      # Below this, fall back to help

# Category boosts, biased toward generation commands
INTENT_PRIMARY_CATEGORIES: Tuple[str, ...] = (INTENT_CODE, INTENT_PROJECT)
INTENT_PRIMARY_BOOST = 2.0
INTENT_DEFAULT_BOOST = 1.5

# ==================== Response Cache Configuration ====================

CACHE_MAX_ENTRIES = 1000
CACHE_MAX_BYTES = 50 * 1024 * 1024          # 50 MB
CACHE_DEFAULT_TTL_SECONDS = 7 * 24 * 3600   # 7 days
CACHE_SNAPSHOT_EVERY = 10                   # Snapshot after every Nth set
CACHE_SNAPSHOT_FILENAME = 'response_cache.json'
CACHE_TOP_HIT_KEYS = 5                      # Keys reported in stats

# ==================== Documentation Broker Configuration ====================

DOCS_DEFAULT_DOMAIN = 'general'
DOCS_DEFAULT_PRIORITY = 'medium'
DOCS_DEFAULT_MAX_RESULTS = 5
DOCS_RESPONSE_TIME_WINDOW = 100             # Keep last N response times
DOCS_HEALTHY_HIT_RATE = 0.3
DOCS_HEALTHY_RESPONSE_MS = 3000.0

# ==================== Error Messages ====================

ERROR_MESSAGES = {
    'invalid_max_entries': 'max_entries must be a positive integer, got {}',
    'invalid_max_bytes': 'max_bytes must be a positive integer, got {}',
    'invalid_ttl': 'ttl must be a positive duration, got {}',
    'invalid_snapshot_every': 'snapshot_every must be a positive integer, got {}',
    'invalid_threshold': '{} must be between 0.0 and 1.0, got {}',
    'invalid_boost': '{} must be greater than 0, got {}',
    'empty_keyword_table': 'Keyword table must define at least one category',
    'invalid_primary_categories': 'primary_categories must be a list of category names, got {!r}',
    'snapshot_read_failed': 'Failed to read cache snapshot {}: {}',
    'snapshot_write_failed': 'Failed to write cache snapshot {}: {}',
    'snapshot_malformed': 'Cache snapshot {} is not a list of records',
    'docs_lookup_failed': 'Documentation lookup failed for {!r}: {}',
}
