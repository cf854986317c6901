#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Configuration Module for Cluster Tree Explorer
Handles loading, validating, and saving application configuration
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CLUSTER_TREE_CONFIG"

DEFAULT_CONFIG = {
    "application": {
        "name": "Cluster Tree Explorer",
        "version": "1.0.0",
        "log_dir": "logs"
    },

    "logging": {
        "level": "INFO",
        "log_to_file": False,
        "max_bytes": 5 * 1024 * 1024,
        "backup_count": 3
    },

    "data_loader": {
        "default_encoding": "utf-8",
        "label_delimiter": ",",
        "feature_index_column": 0
    },

    "features": {
        "plain_bin_count": 25,
        "max_mad_bins": 25
    },

    "pruning": {
        "plain_bin_count": 50,
        "max_mad_bins": 50
    },

    "memory": {
        "log_memory_usage": False,
        "memory_warning_threshold": 80.0  # Percentage of system memory in use that triggers a warning
    }
}

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def get_config_path(path: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """
    Get the path to the configuration file

    Args:
        path: Explicit path; falls back to the CLUSTER_TREE_CONFIG environment variable

    Returns:
        Path to the configuration file, or None when neither is set
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
    return Path(path) if path else None


def default_configuration() -> Dict[str, Any]:
    """Independent copy of the default configuration"""
    return copy.deepcopy(DEFAULT_CONFIG)


def load_configuration(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration from file, falling back to defaults if not found

    Args:
        path: JSON configuration file

    Returns:
        Configuration dictionary
    """
    config_path = get_config_path(path)

    try:
        if config_path is not None and config_path.exists():
            logger.info(f"Loading configuration from {config_path}")

            with open(config_path, 'r') as f:
                user_config = json.load(f)

            config = merge_configs(DEFAULT_CONFIG, user_config)

            logger.info("Configuration loaded successfully")
        else:
            if config_path is not None:
                logger.info(f"No configuration file at {config_path}, using defaults")
            config = default_configuration()

        validate_configuration(config)

        return config

    except (OSError, ValueError) as e:
        logger.error(f"Error loading configuration: {str(e)}", exc_info=True)
        logger.warning("Falling back to default configuration")
        return default_configuration()


def save_configuration(config: Dict[str, Any], path: Union[str, Path]) -> bool:
    """
    Save configuration to file

    Args:
        config: Configuration dictionary
        path: Destination file

    Returns:
        True if saved successfully, False otherwise
    """
    config_path = Path(path)

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w') as f:
            json.dump(config, f, indent=4)

        logger.info(f"Configuration saved to {config_path}")
        return True

    except (OSError, TypeError) as e:
        logger.error(f"Error saving configuration: {str(e)}", exc_info=True)
        return False


def merge_configs(default_config: Dict[str, Any], user_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge user configuration with defaults

    Args:
        default_config: Default configuration dictionary
        user_config: User configuration dictionary

    Returns:
        Merged configuration dictionary; neither input is modified
    """
    merged = copy.deepcopy(default_config)

    for key, value in user_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def validate_configuration(config: Dict[str, Any]) -> bool:
    """
    Validate configuration values and log warnings for invalid settings

    Invalid values are replaced by their defaults in place.

    Args:
        config: Configuration dictionary

    Returns:
        True if all values are valid, False otherwise
    """
    valid = True

    for section, param, min_val in [
        ('features', 'plain_bin_count', 1),
        ('features', 'max_mad_bins', 1),
        ('pruning', 'plain_bin_count', 1),
        ('pruning', 'max_mad_bins', 1),
        ('logging', 'max_bytes', 1024),
        ('logging', 'backup_count', 0),
        ('memory', 'memory_warning_threshold', 1.0),
    ]:
        section_config = config.setdefault(section, {})
        value = section_config.get(param)
        default = DEFAULT_CONFIG[section][param]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < min_val:
            logger.warning(f"Invalid {section}.{param}: {value}, using {default} instead")
            section_config[param] = default
            valid = False

    logging_config = config['logging']
    level = logging_config.get('level')
    if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
        logger.warning(f"Invalid log level: {level}, using 'INFO' instead")
        logging_config['level'] = 'INFO'
        valid = False

    loader_config = config.setdefault('data_loader', {})
    delimiter = loader_config.get('label_delimiter')
    if not isinstance(delimiter, str) or len(delimiter) != 1:
        logger.warning(f"Invalid label delimiter: {delimiter!r}, using ',' instead")
        loader_config['label_delimiter'] = ','
        valid = False

    return valid


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Get a configuration value using dot notation for nested dictionaries

    Args:
        config: Configuration dictionary
        key_path: Key path using dot notation (e.g., 'pruning.plain_bin_count')
        default: Default value if key not found

    Returns:
        Configuration value or default if not found
    """
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def set_config_value(config: Dict[str, Any], key_path: str, value: Any) -> bool:
    """
    Set a configuration value using dot notation for nested dictionaries

    Args:
        config: Configuration dictionary
        key_path: Key path using dot notation (e.g., 'features.max_mad_bins')
        value: Value to set

    Returns:
        True if successful, False otherwise
    """
    keys = key_path.split('.')
    target = config

    try:
        for key in keys[:-1]:
            if key not in target or not isinstance(target[key], dict):
                target[key] = {}
            target = target[key]

        target[keys[-1]] = value
        return True
    except TypeError as e:
        logger.error(f"Error setting config value {key_path}: {str(e)}")
        return False
