"""
Configuration management module.

This module provides utilities for loading and managing the map
settings stored in config.json: default camera, basemap styles, viewport
fitting parameters and label defaults.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-12
"""

import copy
import json
import os
from typing import Dict, Any

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
CONFIG_PATH = os.environ.get("SCOUT_CONFIG_PATH", os.path.join(BASE_DIR, "config.json"))

DEFAULT_STYLES = {
    "satellite": "mapbox://styles/mapbox/satellite-streets-v12",
    "street": "mapbox://styles/mapbox/streets-v12",
}

_DEFAULTS: Dict[str, Any] = {
    "default_title": "Untitled Map",
    "default_style": "satellite",
    "styles": DEFAULT_STYLES,
    "default_view": {
        "center_lat": 39.8283,
        "center_lng": -98.5795,
        "zoom": 4.2,
    },
    "viewport": {"width": 1280, "height": 800},
    "fit_padding": 50,
    "max_fit_zoom": 15,
    "single_marker_zoom": 14,
    "center_min_zoom": 16,
    "labels_visible_default": False,
}


def load_config(path: str = None) -> Dict[str, Any]:
    """Load configuration from config.json.

    Args:
        path: Optional override of the config file location.

    Returns:
        Configuration dictionary with all required fields ensured.
    """
    try:
        with open(path or CONFIG_PATH, "r", encoding="utf-8") as f:
            config = json.load(f)
    except FileNotFoundError:
        config = get_default_config()

    return ensure_config_fields(config)


def get_default_config() -> Dict[str, Any]:
    """Get default configuration structure.

    Returns:
        Default configuration dictionary.
    """
    return copy.deepcopy(_DEFAULTS)


def ensure_config_fields(config: Dict[str, Any]) -> Dict[str, Any]:
    """Ensure all required fields are present in the configuration.

    Nested dictionaries (default view, viewport, styles) are merged key by
    key so a partial override in config.json keeps the remaining defaults.

    Args:
        config: Configuration dictionary to update.

    Returns:
        Updated configuration dictionary.
    """
    defaults = get_default_config()
    for key, default in defaults.items():
        if key not in config:
            config[key] = default
        elif isinstance(default, dict) and isinstance(config[key], dict):
            for sub_key, sub_default in default.items():
                config[key].setdefault(sub_key, sub_default)

    if config["default_style"] not in config["styles"]:
        config["default_style"] = next(iter(config["styles"]))

    return config


def style_url(config: Dict[str, Any], style: str) -> str:
    """Resolve a style key (or an already-resolved URL) to a style URL."""
    return config["styles"].get(style, style)
