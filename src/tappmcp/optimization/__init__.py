#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Performance optimization module
Provides the response cache and its snapshot persistence
"""

from .cache_manager import TTLResponseCache, CacheEntry, CacheStats
from .snapshot import SnapshotStore

__all__ = [
    'TTLResponseCache',
    'CacheEntry',
    'CacheStats',
    'SnapshotStore'
]
