#!/usr/bin/env python3
"""
Configuration loading for the wiki client.

Settings come from built-in defaults, then an optional config.json, then
environment variables (which win). The result is a plain nested dict.

Usage:
    from wikibot.config import load_config

    config = load_config("config.json")
    site = config["wiki"]["site_url"]
"""

import copy
import json
import os
from pathlib import Path
from typing import Optional, Union

from wikibot.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("config.json")

DEFAULTS = {
    "wiki": {
        "name": "Wiki",
        "site_url": None,
        "username": None,
        "password": None,
    },
    "transport": {
        "user_agent": None,
        "delay_seconds": 0.0,
        "timeout_seconds": 30.0,
        "max_retries": 3,
        "retry_delay_seconds": 60.0,
    },
    "cache": {
        "dir": "./cache",
        "refresh": False,
    },
    "logging": {
        "dir": "./logs",
        "level": "INFO",
        "quiet": False,
    },
}

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "WIKIBOT_SITE_URL": ("wiki", "site_url"),
    "WIKIBOT_USERNAME": ("wiki", "username"),
    "WIKIBOT_PASSWORD": ("wiki", "password"),
    "WIKIBOT_CACHE_DIR": ("cache", "dir"),
    "LOG_DIR": ("logging", "dir"),
    "WIKIBOT_LOG_LEVEL": ("logging", "level"),
}


def _merge(base: dict, overrides: dict) -> dict:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path: Optional[Union[str, Path]] = None) -> dict:
    """
    Load the configuration.

    Args:
        path: Config file; defaults to ./config.json, which may be absent

    Returns:
        Nested dict with wiki, transport, cache and logging sections

    Raises:
        ConfigError: The file is missing (when given explicitly) or not valid JSON
    """
    config = copy.deepcopy(DEFAULTS)

    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot read {config_path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"{config_path} must contain a JSON object")
        _merge(config, loaded)
    elif path is not None:
        raise ConfigError(f"Config file {config_path} does not exist")

    for name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(name)
        if value:
            config[section][key] = value

    return config
