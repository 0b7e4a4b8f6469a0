"""
Centralized configuration manager.
Loads the YAML config and provides typed access with defaults.

    - Built-in defaults deep-merged with the YAML file and CLI overrides
    - Schema validation for critical config fields
    - Reset support for testing
"""

import os
import copy
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

DEFAULTS = {
    "system": {
        "name": "not-ok gesture guard",
        "version": "1.0.0",
    },
    "tracking": {
        "hand": "right",
    },
    "sampling": {
        "period_s": 0.02,
        "joint_count": 26,
        "strict_orientation": False,
    },
    "window": {
        "size": 11,
    },
    "decision": {
        "threshold": 0.6,
        "alert_duration_s": 2.0,
        "alert_text": "NOT_OK GEST !!",
    },
    "classifier": {
        "model_path": "models/weights/motion_net.pth",
        "device": "auto",
        "num_classes": 2,
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "max_size_mb": 10,
        "backup_count": 3,
    },
    "performance": {
        "metrics_window": 100,
    },
    "visualization": {
        "window_name": "Not-OK Gesture Guard",
        "width": 640,
        "height": 480,
        "pixels_per_metre": 1500.0,
    },
}

# Schema: required sections and their expected types
_CONFIG_SCHEMA = {
    "tracking": {
        "hand": str,
    },
    "sampling": {
        "period_s": float,
        "joint_count": int,
        "strict_orientation": bool,
    },
    "window": {
        "size": int,
    },
    "decision": {
        "threshold": float,
        "alert_duration_s": float,
        "alert_text": str,
    },
    "classifier": {
        "model_path": str,
        "device": str,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Singleton configuration manager."""

    _instance = None
    _data = copy.deepcopy(DEFAULTS)

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def load(self, config_path=None, overrides=None):
        """Load configuration from YAML, falling back to built-in defaults."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")

        try:
            with open(config_path, "r") as f:
                file_data = yaml.safe_load(f) or {}
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)
            file_data = {}

        self._data = _deep_merge(copy.deepcopy(DEFAULTS), file_data)
        if overrides:
            self._data = _deep_merge(self._data, overrides)

        self._validate()

        return self

    def _validate(self):
        """Validate critical config fields against schema."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if section is None:
                warnings.append(f"Missing config section: '{section_name}'")
                continue
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, got {type(section).__name__}")
                continue
            for field_name, expected_type in fields.items():
                if field_name in section:
                    value = section[field_name]
                    # Allow int where float is expected
                    if expected_type is float and isinstance(value, (int, float)) \
                            and not isinstance(value, bool):
                        continue
                    if not isinstance(value, expected_type):
                        warnings.append(
                            f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                            f"got {type(value).__name__} ({value!r})"
                        )

        if warnings:
            for w in warnings:
                logger.warning("Config validation: %s", w)
        else:
            logger.debug("Config validation passed")
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'decision.threshold'."""
        keys = key_path.split(".")
        value = self._data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value):
        """Override a nested value in place (used for CLI flags)."""
        keys = key_path.split(".")
        section = self._data
        for key in keys[:-1]:
            section = section.setdefault(key, {})
        section[keys[-1]] = value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        return self._data.get(section, {})

    @property
    def tracking(self) -> dict:
        return self._data.get("tracking", {})

    @property
    def sampling(self) -> dict:
        return self._data.get("sampling", {})

    @property
    def window(self) -> dict:
        return self._data.get("window", {})

    @property
    def decision(self) -> dict:
        return self._data.get("decision", {})

    @property
    def classifier(self) -> dict:
        return self._data.get("classifier", {})

    @property
    def performance(self) -> dict:
        return self._data.get("performance", {})

    @property
    def base_dir(self) -> str:
        return _BASE_DIR

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._data = copy.deepcopy(DEFAULTS)
