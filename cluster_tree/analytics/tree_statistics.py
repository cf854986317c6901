#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tree Statistics Module for Cluster Tree Explorer
Builds the size, distance and depth distributions that bound the prune controls
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cluster_tree.analytics.distribution_statistics import (
    DegenerateDistributionError,
    get_mad,
    get_mad_multiple_count,
    get_threshold_sweep,
    median,
    nice_ticks,
)
from cluster_tree.models.node import TreeNode
from cluster_tree.models.tree_pruning import PrunerKind, TreePruner

logger = logging.getLogger(__name__)


@dataclass
class PruneDistribution:
    """Slider statistics for one threshold rule"""
    mad: float = 0.0
    median: float = 0.0
    plain_groups: Dict[float, int] = field(default_factory=dict)
    mad_groups: Dict[int, int] = field(default_factory=dict)


@dataclass
class Distributions:
    """Statistics for every value pruner plus the depth control"""
    depth_groups: Dict[int, int] = field(default_factory=dict)
    distance: PruneDistribution = field(default_factory=PruneDistribution)
    distance_search: PruneDistribution = field(default_factory=PruneDistribution)
    size: PruneDistribution = field(default_factory=PruneDistribution)


@dataclass
class TreeMetadata:
    """Simple counts and ranges of a tree"""
    leaf_count: int = 0
    node_count: int = 0
    min_distance: float = 0.0
    max_distance: float = 0.0
    min_value: float = 0.0
    max_value: float = 0.0


def get_max_cutoff_distance(tree: TreeNode) -> float:
    """
    Smallest distance among the root's grandchildren.

    Pruning by distance at this value still shows the first generation.
    A child without children contributes 0.
    """
    if not tree.children:
        return 0.0

    candidates = []
    for child in tree.children:
        if child.children:
            candidates.extend(grandchild.data.distance or 0.0 for grandchild in child.children)
        else:
            candidates.append(0.0)
    return float(min(candidates))


def get_max_cutoff_distance_search(tree: TreeNode) -> float:
    """Smallest distance among the root's children"""
    if not tree.children:
        return 0.0
    return float(min(child.data.distance or 0.0 for child in tree.children))


def get_max_cutoff_node_size(tree: TreeNode) -> float:
    """Smallest value among the root's children"""
    if not tree.children:
        return 0.0
    return float(min(child.value or 0.0 for child in tree.children))


def get_depth_groups(tree: TreeNode) -> Dict[int, int]:
    """
    Cumulative node counts by depth

    Returns:
        Mapping n -> number of nodes with depth <= n, for n from the deepest level down to 0
    """
    per_depth: Dict[int, int] = {}
    for node in tree.iter_preorder():
        relative = node.depth - tree.depth
        per_depth[relative] = per_depth.get(relative, 0) + 1

    max_depth = max(per_depth)
    groups = {}
    running = 0
    for depth in range(max_depth + 1):
        running += per_depth.get(depth, 0)
        groups[depth] = running

    return {depth: groups[depth] for depth in range(max_depth, -1, -1)}


class TreeStatisticsBuilder:
    """
    Class for computing prune-control distributions of a tree.

    The builder holds only bin settings; every method is a pure function of
    the tree it is given.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the builder

        Args:
            config: Application configuration; the ``pruning`` section sets the bin counts
        """
        pruning = (config or {}).get('pruning', {})
        self.plain_bin_count = pruning.get('plain_bin_count', 50)
        self.max_mad_bins = pruning.get('max_mad_bins', 50)

    def get_plain_groups(self, tree: TreeNode, kind: PrunerKind, cutoff: float) -> Dict[float, int]:
        """Remaining node count at each of about ``plain_bin_count`` thresholds over [0, cutoff]"""
        thresholds = nice_ticks(0.0, cutoff, self.plain_bin_count)
        return get_threshold_sweep(
            thresholds, lambda t: TreePruner.count_remaining(kind, tree, t)
        )

    def get_mad_groups(self, tree: TreeNode, kind: PrunerKind, cutoff: float,
                       med: Optional[float], mad: Optional[float]) -> Dict[int, int]:
        """
        Remaining node count at ``median + k * MAD`` for k = 0, 1, ... below the cutoff

        Args:
            tree: Tree to sweep
            kind: Rule to count with
            cutoff: Largest useful threshold
            med: Median of the rule's values
            mad: MAD of the rule's values

        Returns:
            Mapping k -> remaining node count; empty when the MAD is zero or missing
        """
        if med is None:
            return {}

        try:
            max_mads = get_mad_multiple_count(cutoff, med, mad)
        except DegenerateDistributionError as e:
            logger.debug(f"{kind.value} MAD groups skipped: {e}")
            return {}

        multiples = range(0, min(max(max_mads, 0), self.max_mad_bins))
        return {
            k: TreePruner.count_remaining(kind, tree, med + k * mad)
            for k in multiples
        }

    def build_distance_distribution(self, tree: TreeNode, kind: PrunerKind, cutoff: float,
                                    mad_cutoff: Optional[float] = None) -> PruneDistribution:
        """
        Median, MAD and both sweeps for one distance rule

        Args:
            tree: Tree to sweep
            kind: Distance rule to count with
            cutoff: Upper bound of the plain sweep
            mad_cutoff: Upper bound of the MAD sweep; ``cutoff`` when None

        Returns:
            PruneDistribution for the rule
        """
        if mad_cutoff is None:
            mad_cutoff = cutoff
        distances = [node.data.distance for node in tree.iter_preorder() if node.data.distance]
        med = median(distances)
        mad = get_mad(distances)

        return PruneDistribution(
            mad=mad or 0.0,
            median=med or 0.0,
            plain_groups=self.get_plain_groups(tree, kind, cutoff),
            mad_groups=self.get_mad_groups(tree, kind, mad_cutoff, med, mad),
        )

    def build_size_distribution(self, tree: TreeNode) -> PruneDistribution:
        cutoff = get_max_cutoff_node_size(tree)
        sizes = [node.value for node in tree.iter_preorder()]
        med = median(sizes)
        mad = get_mad(sizes)

        return PruneDistribution(
            mad=mad or 0.0,
            median=med or 0.0,
            plain_groups=self.get_plain_groups(tree, PrunerKind.SIZE, cutoff),
            mad_groups=self.get_mad_groups(tree, PrunerKind.SIZE, cutoff, med, mad),
        )

    def build_prune_metadata(self, tree: TreeNode) -> Distributions:
        """
        Compute every prune-control distribution of a tree

        Args:
            tree: Tree the prune controls act on

        Returns:
            Distributions snapshot
        """
        generation_cutoff = get_max_cutoff_distance(tree)
        distributions = Distributions(
            depth_groups=get_depth_groups(tree),
            distance=self.build_distance_distribution(
                tree, PrunerKind.DISTANCE, generation_cutoff
            ),
            # The search sweep stops at the first generation; its MAD sweep
            # shares the grandchildren bound of the distance rule
            distance_search=self.build_distance_distribution(
                tree, PrunerKind.DISTANCE_SEARCH, get_max_cutoff_distance_search(tree),
                mad_cutoff=generation_cutoff,
            ),
            size=self.build_size_distribution(tree),
        )

        logger.debug(f"Built prune metadata: {len(distributions.size.plain_groups)} size bins, "
                     f"{len(distributions.distance.plain_groups)} distance bins")
        return distributions

    @staticmethod
    def build_tree_metadata(tree: TreeNode) -> TreeMetadata:
        """
        Count nodes and leaves and find value and distance ranges

        Args:
            tree: Visible tree

        Returns:
            TreeMetadata, with 0 for any missing range
        """
        nodes: List[TreeNode] = tree.get_subtree_nodes()
        distances = [n.data.distance for n in nodes
                     if n.data.distance is not None and not math.isnan(n.data.distance)]
        values = [n.value for n in nodes]

        return TreeMetadata(
            leaf_count=sum(1 for n in nodes if n.is_leaf),
            node_count=len(nodes),
            min_distance=min(distances) if distances else 0.0,
            max_distance=max(distances) if distances else 0.0,
            min_value=min(values) if values else 0.0,
            max_value=max(values) if values else 0.0,
        )
