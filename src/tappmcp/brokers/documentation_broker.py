#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Documentation broker module
Read-through response caching around an external documentation service
"""

import logging
import re
import threading
import time
from collections import deque
from typing import Any, Callable, Dict, Iterable, Optional, Protocol, Tuple, runtime_checkable

from ..optimization.cache_manager import TTLResponseCache, validate_ttl
from ..utils.constants import (
    DOCS_DEFAULT_DOMAIN,
    DOCS_DEFAULT_PRIORITY,
    DOCS_DEFAULT_MAX_RESULTS,
    DOCS_RESPONSE_TIME_WINDOW,
    DOCS_HEALTHY_HIT_RATE,
    DOCS_HEALTHY_RESPONSE_MS,
    ERROR_MESSAGES,
)
from ..utils.errors import DocumentationLookupError, TappMCPError
from ..utils.helpers import Duration

_WHITESPACE = re.compile(r'\s+')
_MISSING = object()


@runtime_checkable
class DocumentationSource(Protocol):
    """External documentation service"""

    def fetch(self, topic: str, domain: str, max_results: int) -> str:
        ...


def make_cache_key(topic: Any, domain: str = DOCS_DEFAULT_DOMAIN,
                   priority: str = DOCS_DEFAULT_PRIORITY) -> str:
    """
    Build the cache key for a documentation request

    Args:
        topic: Documentation topic
        domain: Technology domain
        priority: Request priority

    Returns:
        Key of the form "<topic-slug>:<domain>:<priority>"
    """
    slug = _WHITESPACE.sub('-', str(topic or '').strip().lower()) or 'unknown'
    return f"{slug}:{str(domain).lower()}:{priority}"


def fallback_documentation(topic: Any) -> str:
    """Placeholder text returned when the documentation service is unavailable"""
    return (
        f"# {topic} Documentation (Fallback)\n\n"
        f"Basic documentation for {topic}. External documentation service unavailable."
    )


class DocumentationBroker:
    """
    Cached documentation lookups

    Lookups are served from the response cache; misses go to the source and
    the result is cached. Source failures are logged and answered with
    fallback text, which is never cached.
    """

    def __init__(self, source: DocumentationSource, cache: TTLResponseCache,
                 ttl: Optional[Duration] = None, enable_fallback: bool = True,
                 timer: Callable[[], float] = time.perf_counter):
        """
        Initialize documentation broker

        Args:
            source: Documentation service
            cache: Response cache shared with other tools
            ttl: Lifetime of cached documentation, cache default if None
            enable_fallback: Answer source failures with fallback text
            timer: Monotonic clock for response times (seconds)

        Raises:
            InputError: ttl is not a positive duration
        """
        self.source = source
        self.cache = cache
        self.ttl = None if ttl is None else validate_ttl(ttl)
        self.enable_fallback = enable_fallback
        self._timer = timer
        self.logger = logging.getLogger('tappmcp.documentation_broker')

        self._lock = threading.Lock()
        self._stats = {
            'requests': 0,
            'hits': 0,
            'misses': 0,
            'failures': 0,
        }
        self._response_times = deque(maxlen=DOCS_RESPONSE_TIME_WINDOW)

    def get_documentation(self, topic: str, domain: str = DOCS_DEFAULT_DOMAIN,
                          priority: str = DOCS_DEFAULT_PRIORITY,
                          max_results: int = DOCS_DEFAULT_MAX_RESULTS) -> str:
        """
        Get documentation for a topic

        Args:
            topic: Documentation topic
            domain: Technology domain
            priority: Request priority
            max_results: Result limit passed to the source

        Returns:
            Documentation text

        Raises:
            DocumentationLookupError: Source failed and fallback is disabled
        """
        text, _ = self._lookup(topic, domain, priority, max_results)
        return text

    def _lookup(self, topic: str, domain: str, priority: str,
                max_results: int) -> Tuple[str, bool]:
        """Returns (text, whether the text is now served from cache)"""
        key = make_cache_key(topic, domain, priority)
        started = self._timer()

        cached = self.cache.get(key, _MISSING)
        if cached is not _MISSING:
            self._record(hit=True, started=started)
            self.logger.debug(f"Documentation cache hit: {key}")
            return cached, True

        try:
            text = self.source.fetch(topic, domain, max_results)
        except Exception as e:
            self._record(hit=False, started=started, failed=True)
            self.logger.warning(f"Documentation source failed for {key}: {e}")
            if not self.enable_fallback:
                raise DocumentationLookupError(
                    ERROR_MESSAGES['docs_lookup_failed'].format(topic, e)
                ) from e
            return fallback_documentation(topic), False

        stored = self.cache.set(key, text, self.ttl)
        self._record(hit=False, started=started)
        self.logger.debug(f"Documentation fetched: {key} (cached={stored})")
        return text, stored

    def _record(self, hit: bool, started: float, failed: bool = False):
        elapsed_ms = (self._timer() - started) * 1000.0
        with self._lock:
            self._stats['requests'] += 1
            self._stats['hits' if hit else 'misses'] += 1
            if failed:
                self._stats['failures'] += 1
            self._response_times.append(elapsed_ms)

    def warm_cache(self, topics: Iterable[str], domain: str = DOCS_DEFAULT_DOMAIN,
                   priority: str = DOCS_DEFAULT_PRIORITY) -> int:
        """
        Preload documentation for common topics

        Args:
            topics: Topics to fetch
            domain: Technology domain
            priority: Request priority

        Returns:
            Number of topics now served from cache
        """
        warmed = 0
        for topic in topics:
            try:
                _, cached = self._lookup(topic, domain, priority, DOCS_DEFAULT_MAX_RESULTS)
            except TappMCPError as e:
                self.logger.warning(f"Cache warm-up failed for {topic!r}: {e}")
                continue
            if cached:
                warmed += 1

        self.logger.info(f"Documentation cache warm-up completed: {warmed} topics")
        return warmed

    def get_stats(self) -> Dict[str, Any]:
        """
        Get broker statistics

        Returns:
            Request counters, hit rate, average response time and cache stats
        """
        with self._lock:
            stats = dict(self._stats)
            times = list(self._response_times)

        stats['hit_rate'] = stats['hits'] / stats['requests'] if stats['requests'] > 0 else 0.0
        stats['average_response_time_ms'] = sum(times) / len(times) if times else 0.0
        stats['cache'] = self.cache.stats().to_dict()
        return stats

    def is_healthy(self) -> bool:
        """Hit rate and response time are within limits"""
        stats = self.get_stats()
        if stats['requests'] == 0:
            return True
        return (stats['hit_rate'] >= DOCS_HEALTHY_HIT_RATE
                and stats['average_response_time_ms'] < DOCS_HEALTHY_RESPONSE_MS)
