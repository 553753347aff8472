#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Exception definitions module
Errors raised by tappmcp components
"""


class TappMCPError(Exception):
    """Base class for all tappmcp errors"""


class InputError(TappMCPError, ValueError):
    """Invalid construction parameter or invalid explicit call argument"""


class PersistenceWarning(TappMCPError):
    """Snapshot read/write failure, absorbed and logged by the cache"""


class DocumentationLookupError(TappMCPError):
    """Documentation source failed and no fallback is allowed"""
