#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
tappmcp - Smart tool core
Intent classification and response caching for the smart_* MCP tool family

Version: 0.1.0
Author: TappMCP Development Team
"""

__version__ = "0.1.0"
__author__ = "TappMCP Development Team"
__description__ = "Intent classification and TTL response caching for MCP tools"

# Export main classes and functions
from .intelligence.intent_classifier import IntentClassifier, Intent, IntentCategory, ClassifierThresholds
from .optimization.cache_manager import TTLResponseCache, CacheEntry, CacheStats
from .optimization.snapshot import SnapshotStore
from .brokers.documentation_broker import DocumentationBroker, DocumentationSource
from .utils.config import Config
from .utils.errors import TappMCPError, InputError, PersistenceWarning, DocumentationLookupError

__all__ = [
    "IntentClassifier",
    "Intent",
    "IntentCategory",
    "ClassifierThresholds",
    "TTLResponseCache",
    "CacheEntry",
    "CacheStats",
    "SnapshotStore",
    "DocumentationBroker",
    "DocumentationSource",
    "Config",
    "TappMCPError",
    "InputError",
    "PersistenceWarning",
    "DocumentationLookupError",
]
