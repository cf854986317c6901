#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Feature Annotator Module for Cluster Tree Explorer
Merges feature values into cells, tallies high/low categories per node and
summarizes feature intensity distributions
"""

import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from cluster_tree.analytics.distribution_statistics import (
    get_mad,
    get_mad_groups,
    get_plain_groups,
    median,
    nonzero,
)
from cluster_tree.models.node import Cell, FeatureCount, TreeNode

logger = logging.getLogger(__name__)


class MissingFeatureValueError(Exception):
    """Raised when a cell has no entry in a fetched feature map."""
    pass


@dataclass
class FeatureDistribution:
    """Summary of one feature's values over every cell of the tree"""
    mad: float = 0.0
    mad_groups: Dict[int, int] = field(default_factory=dict)
    mad_with_zeroes: float = 0.0
    max: float = 0.0
    min: float = 0.0
    median: float = 0.0
    median_with_zeroes: float = 0.0
    plain_groups: Dict[float, int] = field(default_factory=dict)
    total: float = 0.0


def lookup_feature_value(feature_map: Mapping[str, float], cell: Cell) -> float:
    """
    Value of a feature for a cell

    Raises:
        MissingFeatureValueError: If the cell is not in the map
    """
    try:
        return float(feature_map[cell.barcode_id])
    except KeyError:
        raise MissingFeatureValueError(f"No value for cell {cell.barcode_id}") from None


def merge_features(tree: TreeNode, feature_maps: Mapping[str, Mapping[str, float]]) -> TreeNode:
    """
    Add newly loaded feature values to every cell of a copy of the tree

    Cells absent from a feature map get 0 for that feature.

    Args:
        tree: Tree whose cells receive the values (left untouched)
        feature_maps: Feature name -> (cell id -> value)

    Returns:
        New tree with deep-copied, updated cells
    """
    new_tree = tree.recursive_copy(copy_cells=True)
    leaves = [node for node in new_tree.iter_preorder() if node.data.items is not None]

    for feature, feature_map in feature_maps.items():
        missing = 0
        for leaf in leaves:
            for cell in leaf.data.items:
                try:
                    value = lookup_feature_value(feature_map, cell)
                except MissingFeatureValueError:
                    missing += 1
                    value = 0.0
                cell.feature_counts[feature] = value

        if missing:
            logger.debug(f"Feature {feature}: {missing} cells without a value, set to 0")
        logger.info(f"Merged feature {feature} into {sum(len(l.data.items) for l in leaves)} cells")

    return new_tree


def get_feature_values(tree: TreeNode, feature: str) -> List[float]:
    """Value of a feature for every cell under the tree's leaves, 0 when absent"""
    values = []
    for node in tree.iter_preorder():
        if node.data.items is None:
            continue
        for cell in node.data.items:
            values.append(cell.feature_counts.get(feature, 0) or 0)
    return values


def derive_default_thresholds(tree: TreeNode, features: Iterable[str]) -> Dict[str, Optional[float]]:
    """
    Default high/low threshold per feature: median of its non-zero values

    Features with no non-zero value get None.
    """
    thresholds = {}
    for feature in features:
        thresholds[feature] = median(nonzero(get_feature_values(tree, feature)))
        if thresholds[feature] is None:
            logger.warning(f"Feature {feature} has no non-zero values; it is left out of categories")
    return thresholds


def usable_features(active_features: Iterable[str],
                    thresholds: Mapping[str, Optional[float]]) -> List[str]:
    """Active features with a positive threshold, sorted by name"""
    usable = []
    for feature in active_features:
        threshold = thresholds.get(feature)
        if threshold is not None and not math.isnan(threshold) and threshold > 0:
            usable.append(feature)
    return sorted(set(usable))


def category_key(cell: Cell, features: Sequence[str], thresholds: Mapping[str, float]) -> str:
    """
    Composite high/low key of a cell, e.g. ``high-A-low-B``

    Args:
        cell: Cell to classify
        features: Sorted features to include
        thresholds: Threshold per feature

    Returns:
        The key; empty when no feature is given
    """
    parts = []
    for feature in features:
        value = cell.feature_counts.get(feature, 0)
        level = 'high' if value and value >= thresholds[feature] else 'low'
        parts.append(f"{level}-{feature}")
    return '-'.join(parts)


def annotate_feature_counts(tree: TreeNode,
                            thresholds: Mapping[str, Optional[float]],
                            active_features: Iterable[str]) -> TreeNode:
    """
    Tally cells per high/low category on every node of a copy of the tree.

    Leaves count their own cells; internal nodes sum their children's
    tallies key by key. Features without a positive threshold are left out.

    Args:
        tree: Tree with feature values merged into its cells
        thresholds: High/low threshold per feature
        active_features: Features to categorize by

    Returns:
        New tree with ``feature_count`` filled on every node
    """
    features = usable_features(active_features, thresholds)
    new_tree = tree.recursive_copy()

    for node in new_tree.iter_postorder():
        hilo: Dict[str, FeatureCount] = {}

        if node.data.items is not None:
            if features:
                for cell in node.data.items:
                    key = category_key(cell, features, thresholds)
                    if key not in hilo:
                        hilo[key] = FeatureCount(scale_key=key, quantity=0)
                    hilo[key].quantity += 1
        else:
            for child in node.children:
                for key, count in child.data.feature_count.items():
                    if key not in hilo:
                        hilo[key] = FeatureCount(scale_key=count.scale_key, quantity=0)
                    hilo[key].quantity += count.quantity

        node.data.feature_count = hilo

    logger.debug(f"Annotated tree with categories over {features or 'no features'}")
    return new_tree


def get_scale_combinations(features: Iterable[str]) -> List[str]:
    """
    Every category key the given features can produce

    Keys use the same sorted-feature format as ``category_key``.
    """
    ordered = sorted(set(f for f in features if f))
    levels = [[f"high-{f}", f"low-{f}"] for f in ordered]
    return ['-'.join(combo) for combo in itertools.product(*levels)] if levels else []


def get_feature_distribution(values: Sequence[float], plain_bin_count: int = 25,
                             max_mad_bins: int = 25) -> FeatureDistribution:
    """
    Summarize one feature's values.

    ``median``, ``mad`` and both histograms use non-zero values only; the
    ``*_with_zeroes`` fields, ``min``, ``max`` and ``total`` use every value.
    An empty or all-zero set gives a zero-filled distribution.

    Args:
        values: One value per cell
        plain_bin_count: Target number of plain thresholds
        max_mad_bins: Maximum number of MAD-multiple bins

    Returns:
        FeatureDistribution
    """
    positives = nonzero(values)
    med = median(positives)
    mad = get_mad(positives)

    return FeatureDistribution(
        mad=mad or 0.0,
        mad_groups=get_mad_groups(positives, mad, med, max_bins=max_mad_bins),
        mad_with_zeroes=get_mad(values) or 0.0,
        max=max(values) if values else 0.0,
        min=min(values) if values else 0.0,
        median=med or 0.0,
        median_with_zeroes=median(values) or 0.0,
        plain_groups=get_plain_groups(positives, bin_count=plain_bin_count),
        total=float(sum(values)) if values else 0.0,
    )


def compute_feature_distributions(tree: TreeNode, active_features: Iterable[str],
                                  plain_bin_count: int = 25,
                                  max_mad_bins: int = 25) -> Dict[str, FeatureDistribution]:
    """
    Distribution of every active feature over the tree's cells

    Args:
        tree: Tree with feature values merged into its cells
        active_features: Features to summarize
        plain_bin_count: Target number of plain thresholds
        max_mad_bins: Maximum number of MAD-multiple bins

    Returns:
        Feature name -> FeatureDistribution
    """
    distributions = {}
    for feature in active_features:
        values = get_feature_values(tree, feature)
        distributions[feature] = get_feature_distribution(
            values, plain_bin_count=plain_bin_count, max_mad_bins=max_mad_bins
        )
    return distributions
