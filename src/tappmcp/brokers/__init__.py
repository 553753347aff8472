#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Service broker module
Cached access to external knowledge services
"""

from .documentation_broker import (
    DocumentationBroker,
    DocumentationSource,
    make_cache_key,
    fallback_documentation,
)

__all__ = [
    'DocumentationBroker',
    'DocumentationSource',
    'make_cache_key',
    'fallback_documentation'
]
