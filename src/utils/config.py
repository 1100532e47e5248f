"""
Configuration loader for the graph explorer.

Convention over configuration: every setting has a built-in default, the YAML
file only overrides what it names, and the service endpoint can be injected
through the environment.
"""
import copy
import os
from pathlib import Path
from typing import Dict, Optional
import yaml


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "explorer.yaml"

DEFAULTS = {
    "service": {
        "url": None,
        "key": None,
        "function": "get_graph_ui",
        "timeout": 30.0,
    },
    "query": {
        "depth": 1,
        "min_amount": 0.0,
        "direction": "ANY",
        "top_n": None,
        "hide_technical": False,
    },
    "layout": {
        "strategy": "auto",
        "base_radius": 110.0,
        "radius_per_neighbor": 20.0,
        "min_radius": 160.0,
        "max_radius": 420.0,
        "bbox_padding": 48.0,
        "iterations": 220,
        "repulsion": 200000.0,
        "spring_k": 0.002,
        "rest_length": 120.0,
        "friction": 0.85,
        "seed_radius": 180.0,
        "origin": [490.0, 310.0],
    },
    "bundling": {
        "separation_step": 21.0,
        "arrow_length": 8.0,
        "arrow_half_angle": 0.4,
    },
    "viewport": {
        "width": 980,
        "height": 620,
        "padding": 60.0,
        "fit_zoom_min": 0.25,
        "fit_zoom_max": 2.4,
        "zoom_min": 0.22,
        "zoom_max": 2.6,
        "zoom_step": 1.2,
        "wheel_step": 1.1,
    },
    "interaction": {
        "node_tolerance": 4.0,
        "edge_tolerance": 14.0,
        "recenter_on_click": True,
    },
    "render": {
        "background": "#ffffff",
        "dpi": 100,
    },
}

ENV_OVERRIDES = {
    "GRAPH_QUERY_URL": ("service", "url"),
    "GRAPH_QUERY_KEY": ("service", "key"),
}


def merge_config(base: Dict, overrides: Dict) -> Dict:
    """
    Merge a user configuration over the defaults, section by section.

    Args:
        base: Default configuration (not modified)
        overrides: Parsed YAML content

    Returns:
        New merged configuration dictionary
    """
    merged = copy.deepcopy(base)
    for section, values in (overrides or {}).items():
        if section not in merged:
            raise ValueError(f"Unknown config section '{section}'. Expected one of: {sorted(merged)}")
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ValueError(f"Config section '{section}' must be a mapping, got {type(values).__name__}")
        merged[section].update(values)
    return merged


def apply_env_overrides(config: Dict, environ: Optional[Dict[str, str]] = None) -> Dict:
    """Override service settings from environment variables when they are set."""
    environ = os.environ if environ is None else environ
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            config[section][key] = value
    return config


def load_explorer_config(config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Dict:
    """
    Load explorer configuration.

    Convention over configuration:
    - No path: config/explorer.yaml in the repository if it exists, else defaults
    - Sections not present in the file keep their defaults
    - GRAPH_QUERY_URL / GRAPH_QUERY_KEY override the service endpoint

    Args:
        config_path: Path to a YAML config file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Complete configuration dictionary
    """
    if config_path is None:
        path = DEFAULT_CONFIG_PATH if DEFAULT_CONFIG_PATH.exists() else None
    else:
        path = Path(config_path)
        if not path.exists():
            raise ValueError(f"Config file not found: {path}")

    overrides = {}
    if path is not None:
        with open(path, 'r') as f:
            overrides = yaml.safe_load(f) or {}
        if not isinstance(overrides, dict):
            raise ValueError(f"Config file {path} must contain a mapping at the top level")

    config = merge_config(DEFAULTS, overrides)
    return apply_env_overrides(config, environ)
