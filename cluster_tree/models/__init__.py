#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Models Module for Cluster Tree Explorer
Contains the tree node representation, tree building, pruning and prune history
"""

from .node import Cell, FeatureCount, FlatNode, TreeNode
from .tree_builder import MalformedTreeError, build_tree, build_tree_from_rose, flatten, stratify
from .tree_pruning import NodeNotFoundError, PrunerKind, TreePruner
from .prune_history import ClickPrune, ClickPruneKind, PruneHistory, PruneStep, ValuePruner

__all__ = [
    'Cell', 'FeatureCount', 'FlatNode', 'TreeNode',
    'MalformedTreeError', 'build_tree', 'build_tree_from_rose', 'flatten', 'stratify',
    'NodeNotFoundError', 'PrunerKind', 'TreePruner',
    'ClickPrune', 'ClickPruneKind', 'PruneHistory', 'PruneStep', 'ValuePruner',
]
