#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Memory Management Utilities for Cluster Tree Explorer
Reports process and system memory around recompute passes
"""

import logging
import os
from typing import Any, Dict, Optional

import psutil

logger = logging.getLogger(__name__)


def get_process_memory_mb() -> float:
    """Resident memory of this process in megabytes"""
    return psutil.Process(os.getpid()).memory_info().rss / (1024 * 1024)


def get_system_memory_info() -> Dict[str, float]:
    """
    Get system memory information

    Returns:
        Dictionary with memory information in GB:
            - total: Total physical memory
            - available: Available memory
            - used: Used memory
            - percent: Percentage of memory used
    """
    memory = psutil.virtual_memory()

    return {
        'total': memory.total / (1024 ** 3),
        'available': memory.available / (1024 ** 3),
        'used': memory.used / (1024 ** 3),
        'percent': memory.percent
    }


def monitor_memory_usage(threshold_percent: float = 80.0) -> bool:
    """
    Monitor memory usage and log warnings if it exceeds the threshold

    Args:
        threshold_percent: Percentage threshold to trigger warning

    Returns:
        True if memory usage is below threshold, False otherwise
    """
    memory_info = get_system_memory_info()

    if memory_info['percent'] > threshold_percent:
        logger.warning(f"High memory usage: {memory_info['percent']:.1f}% "
                       f"({memory_info['used']:.1f} GB / {memory_info['total']:.1f} GB)")
        return False

    return True


class MemoryReporter:
    """Logs process memory after each recompute pass when enabled in the configuration"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        memory_config = (config or {}).get('memory', {})
        self.enabled = memory_config.get('log_memory_usage', False)
        self.threshold_percent = memory_config.get('memory_warning_threshold', 80.0)
        self.last_rss_mb = None

    def report(self, stage: str) -> Optional[float]:
        """
        Log resident memory and its change since the previous report

        Args:
            stage: Name of the pass that just finished

        Returns:
            Resident memory in MB, or None when reporting is disabled
        """
        if not self.enabled:
            return None

        rss_mb = get_process_memory_mb()
        if self.last_rss_mb is None:
            logger.info(f"Memory after {stage}: {rss_mb:.1f} MB")
        else:
            logger.info(f"Memory after {stage}: {rss_mb:.1f} MB ({rss_mb - self.last_rss_mb:+.1f} MB)")
        self.last_rss_mb = rss_mb

        monitor_memory_usage(self.threshold_percent)
        return rss_mb
