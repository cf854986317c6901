#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Workflow Module for Cluster Tree Explorer
Sequences recomputation of the derived explorer state
"""

from .execution_engine import RecomputeEngine, RecomputeTask
from .explorer_session import ExplorerSession, ExplorerState

__all__ = ['RecomputeEngine', 'RecomputeTask', 'ExplorerSession', 'ExplorerState']
