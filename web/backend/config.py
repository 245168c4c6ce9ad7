#!/usr/bin/env python3
"""
Configuration management for the Briefmatch web application.
"""

import os
from pathlib import Path
from functools import lru_cache

from core.config_loader import AppConfig, load_config


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent.parent


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    """Apply web server environment variable overrides."""
    if 'WEB_HOST' in os.environ:
        config.web.host = os.environ['WEB_HOST']

    if 'WEB_PORT' in os.environ:
        config.web.port = int(os.environ['WEB_PORT'])

    return config


@lru_cache()
def get_config() -> AppConfig:
    """
    Get application configuration with caching.

    Loads config.yaml from the project root (DATABASE_URL, REDIS_URL and
    SITE_URL are applied by load_config) plus WEB_HOST / WEB_PORT.

    Returns:
        AppConfig: The application configuration.
    """
    config = load_config(str(get_project_root() / 'config.yaml'))
    return _apply_env_overrides(config)
