"""Build configuration loaded from buildwatch.yaml.

Usage:
    from buildwatch.config import parse_config_file
    config = parse_config_file('buildwatch.yaml')
    config.asset('styles').patterns
"""

from .parser import (
    AssetConfig,
    BuildConfig,
    GuideConfig,
    WatchConfig,
    KNOWN_CATEGORIES,
    DEFAULT_CONFIG_FILE,
    parse_config_file,
    parse_config_string,
    validate_expression,
)

__all__ = [
    'AssetConfig',
    'BuildConfig',
    'GuideConfig',
    'WatchConfig',
    'KNOWN_CATEGORIES',
    'DEFAULT_CONFIG_FILE',
    'parse_config_file',
    'parse_config_string',
    'validate_expression',
]
