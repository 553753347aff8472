#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration management module
Handles configuration file loading and management for tappmcp components
"""

import copy
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml

from .constants import (
    MATCH_EXACT_SCORE,
    MATCH_SUBSTRING_SCORE,
    MATCH_SIMILARITY_FLOOR,
    INTENT_MIN_CONFIDENCE,
    INTENT_PRIMARY_CATEGORIES,
    INTENT_PRIMARY_BOOST,
    INTENT_DEFAULT_BOOST,
    CACHE_MAX_ENTRIES,
    CACHE_MAX_BYTES,
    CACHE_DEFAULT_TTL_SECONDS,
    CACHE_SNAPSHOT_EVERY,
    CACHE_SNAPSHOT_FILENAME,
)

logger = logging.getLogger('tappmcp.config')


@dataclass
class IntentConfig:
    """Intent classifier configuration"""
    exact_score: float = MATCH_EXACT_SCORE
    substring_score: float = MATCH_SUBSTRING_SCORE
    similarity_floor: float = MATCH_SIMILARITY_FLOOR
    min_confidence: float = INTENT_MIN_CONFIDENCE
    primary_boost: float = INTENT_PRIMARY_BOOST
    default_boost: float = INTENT_DEFAULT_BOOST
    primary_categories: List[str] = field(default_factory=lambda: list(INTENT_PRIMARY_CATEGORIES))
    # Replaces the built-in keyword table when set (category -> keywords)
    keywords: Optional[Dict[str, List[str]]] = None


@dataclass
class CacheConfig:
    """Response cache configuration"""
    max_entries: int = CACHE_MAX_ENTRIES
    max_bytes: int = CACHE_MAX_BYTES
    default_ttl_seconds: float = CACHE_DEFAULT_TTL_SECONDS
    snapshot_path: Optional[str] = f"~/.tappmcp/cache/{CACHE_SNAPSHOT_FILENAME}"  # None disables
    snapshot_every: int = CACHE_SNAPSHOT_EVERY


@dataclass
class LoggingConfig:
    """Logging configuration"""
    verbose: bool = False
    log_dir: Optional[str] = None


class Config:
    """Main configuration class"""

    def __init__(self, config_path: Optional[str] = None, create_default: bool = False):
        """
        Initialize configuration

        Args:
            config_path: Configuration file path, if None use default path
            create_default: Write a default file when none exists
        """
        self.config_path = self._resolve_config_path(config_path)
        self.config_dir = self.config_path.parent
        self._create_default = create_default

        # Load configuration
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        """Resolve configuration file path"""
        if config_path:
            return Path(config_path).expanduser()
        return Path.home() / '.tappmcp' / 'config.yaml'

    @staticmethod
    def default_config() -> Dict[str, Any]:
        """Built-in configuration values"""
        return {
            'intent': asdict(IntentConfig()),
            'cache': asdict(CacheConfig()),
            'logging': asdict(LoggingConfig()),
        }

    def _load_config(self):
        """Load configuration file"""
        default_config = self.default_config()

        # If config file exists, load and merge
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    user_config = yaml.safe_load(f) or {}
                if not isinstance(user_config, dict):
                    raise ValueError("top-level YAML value must be a mapping")
                # Deep merge configuration
                self._config_data = self._deep_merge(default_config, user_config)
            except (OSError, yaml.YAMLError, ValueError) as e:
                logger.warning(f"Failed to load configuration file {self.config_path}: {e}")
                self._config_data = default_config
        else:
            self._config_data = default_config
            if self._create_default:
                self._create_default_config()

        # Create configuration objects
        self.intent = IntentConfig(**self._known_fields(IntentConfig, self._config_data['intent']))
        self.cache = CacheConfig(**self._known_fields(CacheConfig, self._config_data['cache']))
        self.logging = LoggingConfig(**self._known_fields(LoggingConfig, self._config_data['logging']))

    @staticmethod
    def _known_fields(config_cls, section: Any) -> Dict[str, Any]:
        """Drop keys the dataclass does not define"""
        if not isinstance(section, dict):
            return {}
        names = config_cls.__dataclass_fields__.keys()
        unknown = set(section) - set(names)
        if unknown:
            logger.warning(f"Ignoring unknown {config_cls.__name__} keys: {sorted(unknown)}")
        return {k: v for k, v in section.items() if k in names}

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _create_default_config(self):
        """Create default configuration file"""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(self._config_data, f, default_flow_style=False,
                               allow_unicode=True, indent=2, sort_keys=False)
            logger.info(f"Created default configuration file: {self.config_path}")
        except OSError as e:
            logger.warning(f"Failed to create configuration file: {e}")

    def get_snapshot_path(self) -> Optional[Path]:
        """Get cache snapshot file path, None when persistence is disabled"""
        if not self.cache.snapshot_path:
            return None
        return Path(self.cache.snapshot_path).expanduser()

    def to_dict(self) -> Dict[str, Any]:
        """Current configuration as plain dictionaries"""
        return {
            'intent': asdict(self.intent),
            'cache': asdict(self.cache),
            'logging': asdict(self.logging),
        }

    def save(self):
        """Save current configuration to file"""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False,
                           allow_unicode=True, indent=2, sort_keys=False)
