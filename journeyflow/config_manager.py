"""Configuration manager for JourneyFlow using TOML files."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import toml

from . import config
from .config import CONFIG_FILE

logger = logging.getLogger(__name__)


DEFAULT_LAYOUT: Dict[str, Any] = {
    "direction": config.DEFAULT_DIRECTION,
    "node_spacing": config.DEFAULT_NODE_SPACING,
    "branch_spacing": config.DEFAULT_BRANCH_SPACING,
    "origin_x": config.DEFAULT_ORIGIN_X,
    "origin_y": config.DEFAULT_ORIGIN_Y,
    "zigzag_offset": 0,
}

DEFAULT_ANALYSIS: Dict[str, Any] = {
    "bottleneck_duration": config.DEFAULT_BOTTLENECK_DURATION,
    "bottleneck_satisfaction": config.DEFAULT_BOTTLENECK_SATISFACTION,
    "dropoff_threshold": config.DEFAULT_DROPOFF_THRESHOLD,
}

SECTIONS: List[str] = ["layout", "classifier", "analysis"]


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    Returns an empty dict when the file is missing or cannot be parsed.
    """
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", CONFIG_FILE, exc)
        return {}


def _save_full_config(cfg: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    try:
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(cfg, f)
        return True
    except OSError as exc:
        logger.warning("Could not write config %s: %s", CONFIG_FILE, exc)
        return False


def _section(name: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    raw = load_full_config().get(name)
    merged = dict(defaults)
    if isinstance(raw, dict):
        for key, value in raw.items():
            if key in defaults:
                merged[key] = value
            else:
                logger.warning("Unknown key '%s' in [%s] config section", key, name)
    return merged


def load_layout_config() -> Dict[str, Any]:
    """Load ``[layout]`` merged over the built-in defaults."""
    return _section("layout", DEFAULT_LAYOUT)


def load_analysis_config() -> Dict[str, Any]:
    """Load ``[analysis]`` merged over the built-in defaults."""
    return _section("analysis", DEFAULT_ANALYSIS)


def load_classifier_config() -> Dict[str, Any]:
    """Load ``[classifier]`` overrides.

    Each sub-table is keyed by step type, e.g.::

        [classifier.escalation]
        keywords = ["supervisor", "complaint"]
        role = "customer"

    Returns an empty dict when nothing is overridden.
    """
    raw = load_full_config().get("classifier")
    return raw if isinstance(raw, dict) else {}


def save_section(name: str, values: Dict[str, Any]) -> bool:
    """Replace one section of the config file, preserving the others."""
    if name not in SECTIONS:
        raise ValueError(f"Unknown config section: {name}")
    cfg = load_full_config()
    cfg[name] = values
    return _save_full_config(cfg)


def default_config() -> Dict[str, Any]:
    """Config document written by ``jf config init``."""
    return {
        "layout": dict(DEFAULT_LAYOUT),
        "analysis": dict(DEFAULT_ANALYSIS),
    }


def init_config(overwrite: bool = False) -> bool:
    """Write the default config file. Returns False if it already exists."""
    if CONFIG_FILE.exists() and not overwrite:
        return False
    return _save_full_config(default_config())
