#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Logging Utilities for Cluster Tree Explorer
Sets up application logging with file and console handlers
"""

import locale
import logging
import logging.handlers
import platform
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import psutil

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_dir: Optional[Union[str, Path]] = None,
                  log_level: int = logging.INFO,
                  log_format: Optional[str] = None,
                  enable_console: bool = True,
                  log_to_file: bool = True,
                  max_log_size: int = 5242880,  # 5MB
                  backup_count: int = 3) -> logging.Logger:
    """
    Set up application logging with file and console handlers

    Args:
        log_dir: Directory for log files (default: 'logs' in the working directory)
        log_level: Logging level (default: INFO)
        log_format: Log message format (default: DEFAULT_LOG_FORMAT)
        enable_console: Whether to enable console logging
        log_to_file: Whether to add a rotating file handler
        max_log_size: Maximum size for log files before rotation (bytes)
        backup_count: Number of backup log files to keep

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format or DEFAULT_LOG_FORMAT)

    if enable_console:
        # stderr keeps stdout free for JSON output
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(log_level)
        root_logger.addHandler(console_handler)

    logger = logging.getLogger(__name__)

    if log_to_file:
        log_dir = Path(log_dir) if log_dir is not None else Path.cwd() / 'logs'
        log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_file = log_dir / f'cluster_tree_{timestamp}.log'

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_log_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        root_logger.addHandler(file_handler)
        logger.info(f"Logging initialized: {log_file}")

    logger.debug(f"Log level: {logging.getLevelName(log_level)}")

    return root_logger


def setup_logging_from_config(config: Dict[str, Any],
                              level_override: Optional[str] = None) -> logging.Logger:
    """
    Set up logging from the ``logging`` and ``application`` configuration sections

    Args:
        config: Application configuration
        level_override: Level name that takes precedence over the configured one

    Returns:
        Configured root logger
    """
    logging_config = config.get('logging', {})
    level_name = (level_override or logging_config.get('level', 'INFO')).upper()

    return setup_logging(
        log_dir=config.get('application', {}).get('log_dir'),
        log_level=getattr(logging, level_name, logging.INFO),
        log_to_file=logging_config.get('log_to_file', False),
        max_log_size=logging_config.get('max_bytes', 5242880),
        backup_count=logging_config.get('backup_count', 3),
    )


def set_log_level(logger_name: Optional[str] = None, level: int = logging.INFO) -> None:
    """
    Set logging level for a specific logger or the root logger

    Args:
        logger_name: Name of the logger to modify (None for root logger)
        level: New logging level
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)

    for handler in logger.handlers:
        handler.setLevel(level)

    logging.getLogger(__name__).info(
        f"Log level for {'root' if logger_name is None else logger_name} "
        f"set to {logging.getLevelName(level)}"
    )


def log_exception(e: Exception, logger: Optional[logging.Logger] = None) -> None:
    """
    Log an exception with traceback

    Args:
        e: Exception to log
        logger: Logger to use (defaults to root logger)
    """
    if logger is None:
        logger = logging.getLogger()

    logger.error(f"Exception: {str(e)}", exc_info=True)


def log_system_info() -> Dict[str, Any]:
    """
    Log system information for diagnostics

    Returns:
        Dictionary with system information
    """
    logger = logging.getLogger(__name__)

    memory = psutil.virtual_memory()
    system_info = {
        'platform': platform.platform(),
        'python_version': sys.version.split()[0],
        'python_implementation': platform.python_implementation(),
        'locale': locale.getlocale(),
        'encoding': sys.getdefaultencoding(),
        'memory_total': f"{memory.total / (1024**3):.2f} GB",
        'memory_available': f"{memory.available / (1024**3):.2f} GB",
        'memory_percent_used': f"{memory.percent}%"
    }

    logger.debug("System information:")
    for key, value in system_info.items():
        logger.debug(f"  {key}: {value}")

    return system_info
