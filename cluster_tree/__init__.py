#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Cluster Tree Explorer
Tree transformation and statistics engine for hierarchical cell-cluster trees
"""

__version__ = "1.0.0"

from .models import (
    MalformedTreeError,
    NodeNotFoundError,
    PruneHistory,
    PrunerKind,
    TreeNode,
    TreePruner,
    build_tree,
    build_tree_from_rose,
)
from .analytics import (
    DegenerateDistributionError,
    LabelLookupError,
    MissingFeatureValueError,
    TreeStatisticsBuilder,
)
from .data import FeatureSourceError, TreeDataLoader, TreeFileError
from .workflow import ExplorerSession, ExplorerState

__all__ = [
    'MalformedTreeError', 'NodeNotFoundError', 'LabelLookupError',
    'MissingFeatureValueError', 'DegenerateDistributionError',
    'FeatureSourceError', 'TreeFileError',
    'TreeNode', 'TreePruner', 'PrunerKind', 'PruneHistory',
    'build_tree', 'build_tree_from_rose',
    'TreeStatisticsBuilder', 'TreeDataLoader',
    'ExplorerSession', 'ExplorerState',
]
