#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Utils Module for Cluster Tree Explorer
Common utility functions and classes used across the application
"""

from .config import load_configuration, save_configuration, get_config_value, set_config_value
from .logging_utils import setup_logging, setup_logging_from_config, log_system_info
from .memory_management import MemoryReporter, monitor_memory_usage, get_system_memory_info
from .serialization_utils import make_json_serializable, safe_json_dump

__all__ = [
    'load_configuration',
    'save_configuration',
    'get_config_value',
    'set_config_value',
    'setup_logging',
    'setup_logging_from_config',
    'log_system_info',
    'MemoryReporter',
    'monitor_memory_usage',
    'get_system_memory_info',
    'make_json_serializable',
    'safe_json_dump'
]
