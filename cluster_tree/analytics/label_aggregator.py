#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Label Aggregator Module for Cluster Tree Explorer
Counts external cell labels per node, bottom-up
"""

import logging
from typing import Dict, Mapping, Optional

from cluster_tree.models.node import Cell, TreeNode

logger = logging.getLogger(__name__)


class LabelLookupError(Exception):
    """Raised when a cell's barcode has no entry in the label map."""
    pass


def merge_counts(counts1: Mapping[str, float], counts2: Mapping[str, float]) -> Dict[str, float]:
    """Merge two count dictionaries by summing values per key (missing keys count 0)"""
    merged = dict(counts1)
    for key, value in counts2.items():
        merged[key] = merged.get(key, 0) + value
    return merged


def lookup_label(cell: Cell, label_map: Mapping[str, str]) -> str:
    """
    Label assigned to a cell

    Raises:
        LabelLookupError: If the barcode is not in the label map
    """
    try:
        return label_map[cell.barcode_id]
    except KeyError:
        raise LabelLookupError(f"No label for barcode {cell.barcode_id}") from None


class LabelAggregator:
    """Bottom-up pass filling ``label_count`` on every node"""

    def __init__(self, label_map: Optional[Mapping[str, str]] = None):
        """
        Initialize the aggregator

        Args:
            label_map: Barcode id -> label; None or empty leaves counts empty
        """
        self.label_map = label_map or {}
        self.missing_labels = 0

    def count_leaf_labels(self, node: TreeNode) -> Dict[str, int]:
        """Count labels over a leaf's cells, skipping unmapped barcodes"""
        counts: Dict[str, int] = {}
        for cell in node.data.items or []:
            try:
                label = lookup_label(cell, self.label_map)
            except LabelLookupError:
                self.missing_labels += 1
                continue
            counts[label] = counts.get(label, 0) + 1
        return counts

    def aggregate(self, tree: TreeNode) -> TreeNode:
        """
        Compute per-label counts for every node and assign pre-order node ids.

        Leaves count labels of their own cells; internal nodes sum their
        children's counts. The tree is updated in place and returned.

        Args:
            tree: Freshly built canonical tree

        Returns:
            The same tree
        """
        self.missing_labels = 0

        for node in tree.iter_postorder():
            if node.data.items is not None:
                node.data.label_count = self.count_leaf_labels(node)
            else:
                counts: Dict[str, int] = {}
                for child in node.children:
                    counts = merge_counts(counts, child.data.label_count)
                node.data.label_count = counts

        if self.missing_labels and self.label_map:
            logger.warning(f"{self.missing_labels} cells have no label and were left out of label counts")

        assign_node_ids(tree)
        return tree


def assign_node_ids(tree: TreeNode) -> TreeNode:
    """Number the nodes 0..n-1 in pre-order"""
    def assign(node: TreeNode, index: int):
        node.node_id = index

    return tree.each_before(assign)


def aggregate_labels(tree: TreeNode, label_map: Optional[Mapping[str, str]] = None) -> TreeNode:
    """Convenience wrapper around ``LabelAggregator.aggregate``"""
    return LabelAggregator(label_map).aggregate(tree)
