"""Config package - configuration loading and validation."""

from .loader import load_config, get_config_path, get_widget_specs, DEFAULT_CONFIG

__all__ = ["load_config", "get_config_path", "get_widget_specs", "DEFAULT_CONFIG"]
