import copy
import json
import os
from typing import Dict, Any, Optional

from models.model_definitions import get_default_config


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge an override dictionary over a base configuration.

    Args:
        base: Base configuration (not modified)
        overrides: Values that take precedence

    Returns:
        New merged configuration dictionary
    """
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a JSON file, merged over the defaults.

    A missing file is not an error: the default configuration is returned.

    Args:
        config_path: Path to the configuration file

    Returns:
        Configuration dictionary
    """
    defaults = get_default_config()
    if not config_path:
        return defaults

    if not os.path.exists(config_path):
        # Try to find the config file relative to the project root
        root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        alternate_path = os.path.join(root_dir, config_path)
        if not os.path.exists(alternate_path):
            return defaults
        config_path = alternate_path

    try:
        with open(config_path, 'r') as f:
            overrides = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Error loading configuration from {config_path}: {str(e)}")

    if not isinstance(overrides, dict):
        raise ValueError(f"Configuration in {config_path} must be a JSON object")

    return merge_config(defaults, overrides)


def save_config(config: Dict[str, Any], config_path: str) -> None:
    """
    Save configuration to a JSON file.

    Args:
        config: Configuration dictionary
        config_path: Path to save the configuration file
    """
    try:
        directory = os.path.dirname(config_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(config_path, 'w') as f:
            json.dump(config, f, indent=4)
    except (OSError, TypeError) as e:
        raise ValueError(f"Error saving configuration to {config_path}: {str(e)}")


def get_config_value(config: Dict[str, Any], key_path: str, default: Optional[Any] = None) -> Any:
    """
    Get a value from the configuration using a dot-separated path.

    Args:
        config: Configuration dictionary
        key_path: Dot-separated path to the value (e.g., "fetcher.timeout")
        default: Default value to return if the key is not found

    Returns:
        Value from the configuration or default
    """
    keys = key_path.split('.')
    current = config

    try:
        for key in keys:
            current = current[key]
        return current
    except (KeyError, TypeError):
        return default
