#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Explorer Session Module for Cluster Tree Explorer
Threads an immutable explorer state through load, annotate, prune and statistics stages
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from cluster_tree.analytics.feature_annotator import (
    FeatureDistribution,
    annotate_feature_counts,
    compute_feature_distributions,
    derive_default_thresholds,
    merge_features,
)
from cluster_tree.analytics.label_aggregator import LabelAggregator
from cluster_tree.analytics.tree_statistics import Distributions, TreeMetadata, TreeStatisticsBuilder
from cluster_tree.data.data_loader import TreeDataLoader
from cluster_tree.data.feature_source import FeatureSource, FeatureSourceError
from cluster_tree.models.node import TreeNode
from cluster_tree.models.prune_history import ClickPruneKind, PruneHistory
from cluster_tree.models.tree_builder import build_tree_from_rose
from cluster_tree.models.tree_pruning import NodeNotFoundError, PrunerKind
from cluster_tree.utils.config import load_configuration
from cluster_tree.utils.memory_management import MemoryReporter
from cluster_tree.workflow.execution_engine import RecomputeEngine

logger = logging.getLogger(__name__)

STAGE_ANNOTATE = "annotate"
STAGE_PRUNE = "prune"
STAGE_STATISTICS = "statistics"


@dataclass(frozen=True)
class ExplorerState:
    """
    Snapshot of everything the explorer derives from its inputs.

    ``labelled_tree`` is the built tree with labels counted and feature
    values merged into its cells; ``canonical_tree`` adds the high/low
    category counts for the active features. Snapshots are replaced, never
    edited.
    """
    labelled_tree: Optional[TreeNode] = None
    canonical_tree: Optional[TreeNode] = None
    visible_tree: Optional[TreeNode] = None
    prune_history: PruneHistory = field(default_factory=PruneHistory)
    loaded_features: Tuple[str, ...] = ()
    active_features: Tuple[str, ...] = ()
    thresholds: Mapping[str, Optional[float]] = field(default_factory=dict)
    feature_distributions: Mapping[str, FeatureDistribution] = field(default_factory=dict)
    distributions: Optional[Distributions] = None
    tree_metadata: Optional[TreeMetadata] = None

    @property
    def is_loaded(self) -> bool:
        return self.labelled_tree is not None


class ExplorerSession:
    """Class driving the explorer pipeline for one loaded tree"""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 feature_source: Optional[FeatureSource] = None):
        """
        Initialize the session

        Args:
            config: Application configuration (defaults when None)
            feature_source: Where feature values are fetched from
        """
        self.config = config or load_configuration()
        self.feature_source = feature_source
        self.state = ExplorerState()

        self.data_loader = TreeDataLoader(self.config)
        self.statistics_builder = TreeStatisticsBuilder(self.config)
        self.memory_reporter = MemoryReporter(self.config)

        features_config = self.config.get('features', {})
        self.feature_plain_bins = features_config.get('plain_bin_count', 25)
        self.feature_max_mad_bins = features_config.get('max_mad_bins', 25)

        self.engine = RecomputeEngine()
        self.engine.add_result_listener(self._apply_stage_result)

    # -- state plumbing -------------------------------------------------

    def _update(self, **changes) -> ExplorerState:
        self.state = replace(self.state, **changes)
        return self.state

    def _apply_stage_result(self, key: str, changes: Dict[str, Any]):
        self._update(**changes)
        logger.debug(f"Applied {key} stage: {', '.join(changes)}")

    def _require_loaded(self):
        if not self.state.is_loaded:
            raise RuntimeError("No tree loaded")

    @contextmanager
    def batch(self) -> Iterator['ExplorerSession']:
        """Coalesce several edits into a single recompute pass"""
        with self.engine.deferred():
            yield self

    # -- stages ---------------------------------------------------------

    def _annotate_stage(self) -> Dict[str, Any]:
        state = self.state
        return {
            'canonical_tree': annotate_feature_counts(
                state.labelled_tree, state.thresholds, state.active_features
            ),
            'feature_distributions': compute_feature_distributions(
                state.labelled_tree, state.active_features,
                plain_bin_count=self.feature_plain_bins,
                max_mad_bins=self.feature_max_mad_bins,
            ),
        }

    def _prune_stage(self) -> Dict[str, Any]:
        state = self.state
        if state.prune_history.is_pristine():
            logger.debug("Nothing pruned, visible tree is a copy of the canonical tree")
            visible = state.canonical_tree.recursive_copy()
        else:
            visible = state.prune_history.replay(state.canonical_tree)
        return {
            'visible_tree': visible,
            'tree_metadata': self.statistics_builder.build_tree_metadata(visible),
        }

    def _statistics_stage(self) -> Dict[str, Any]:
        state = self.state
        base = state.prune_history.base_tree(state.canonical_tree)
        distributions = self.statistics_builder.build_prune_metadata(base)
        self.memory_reporter.report(STAGE_STATISTICS)
        return {'distributions': distributions}

    def _schedule(self, *stages: str):
        runners = {
            STAGE_ANNOTATE: self._annotate_stage,
            STAGE_PRUNE: self._prune_stage,
            STAGE_STATISTICS: self._statistics_stage,
        }
        for stage in stages:
            self.engine.submit(stage, runners[stage])

    def _schedule_from_annotation(self):
        self._schedule(STAGE_ANNOTATE, STAGE_PRUNE, STAGE_STATISTICS)

    def _schedule_from_pruning(self):
        self._schedule(STAGE_PRUNE, STAGE_STATISTICS)

    # -- loading --------------------------------------------------------

    def load_tree(self, tree: TreeNode, label_map: Optional[Mapping[str, str]] = None) -> ExplorerState:
        """
        Start a session on a freshly built tree

        Labels are counted in place, prune history and features are reset.

        Args:
            tree: Tree produced by the tree builder
            label_map: Barcode id -> label

        Returns:
            The new state
        """
        LabelAggregator(label_map).aggregate(tree)

        self.state = ExplorerState(labelled_tree=tree)
        logger.info(f"Loaded tree with {tree.value:g} cells and {len(tree.get_subtree_nodes())} nodes")

        self._schedule_from_annotation()
        return self.state

    def load_rose(self, rose: List[Any], label_map: Optional[Mapping[str, str]] = None) -> ExplorerState:
        """Build the tree from its nested-array form and start the session on it"""
        return self.load_tree(build_tree_from_rose(rose), label_map)

    def load_files(self, tree_path: Union[str, Path],
                   label_path: Optional[Union[str, Path]] = None) -> ExplorerState:
        """
        Load the tree file and, optionally, the label file

        Raises:
            TreeFileError: If a file cannot be read
            MalformedTreeError: If the tree file does not describe a single rooted tree
        """
        label_map = self.data_loader.load_label_file(label_path) if label_path else None
        tree = self.data_loader.load_tree(tree_path)
        return self.load_tree(tree, label_map)

    # -- features -------------------------------------------------------

    def add_feature_maps(self, feature_maps: Mapping[str, Mapping[str, float]],
                         activate: bool = True) -> ExplorerState:
        """
        Merge fetched feature values into the cells and derive their default thresholds

        Args:
            feature_maps: Feature name -> (cell id -> value)
            activate: Also add the features to the active set

        Returns:
            The new state
        """
        self._require_loaded()
        if not feature_maps:
            return self.state

        state = self.state
        labelled = merge_features(state.labelled_tree, feature_maps)
        new_names = [name for name in feature_maps if name not in state.loaded_features]

        thresholds = dict(state.thresholds)
        thresholds.update(derive_default_thresholds(labelled, feature_maps.keys()))

        active = state.active_features
        if activate:
            active = active + tuple(name for name in feature_maps if name not in active)

        self._update(
            labelled_tree=labelled,
            loaded_features=state.loaded_features + tuple(new_names),
            thresholds=thresholds,
            active_features=active,
        )
        self._schedule_from_annotation()
        return self.state

    def add_features(self, names: Iterable[str], activate: bool = True) -> ExplorerState:
        """
        Fetch features from the feature source and merge them

        Raises:
            FeatureSourceError: If no source is set or a feature cannot be fetched
        """
        if self.feature_source is None:
            raise FeatureSourceError("No feature source configured")

        names = [name for name in names if name]
        to_fetch = [name for name in names if name not in self.state.loaded_features]
        feature_maps = self.feature_source.fetch_feature_maps(to_fetch)

        with self.batch():
            self.add_feature_maps(feature_maps, activate=False)
            if activate:
                self.set_active_features(list(self.state.active_features) + names)
        return self.state

    def set_active_features(self, names: Iterable[str]) -> ExplorerState:
        """Replace the active feature set; only loaded features can be active"""
        self._require_loaded()
        active = []
        for name in names:
            if name not in self.state.loaded_features:
                logger.warning(f"Feature {name} is not loaded, ignoring")
            elif name not in active:
                active.append(name)

        self._update(active_features=tuple(active))
        self._schedule_from_annotation()
        return self.state

    def remove_feature(self, name: str) -> ExplorerState:
        """Drop a feature from the active set (its cell values stay loaded)"""
        return self.set_active_features(f for f in self.state.active_features if f != name)

    def set_threshold(self, feature: str, value: Optional[float]) -> ExplorerState:
        """Set the high/low threshold of a feature"""
        self._require_loaded()
        thresholds = dict(self.state.thresholds)
        thresholds[feature] = value
        self._update(thresholds=thresholds)
        self._schedule_from_annotation()
        return self.state

    # -- pruning --------------------------------------------------------

    def _edit_history(self, edit) -> ExplorerState:
        self._require_loaded()
        history = self.state.prune_history.copy()
        edit(history)
        self._update(prune_history=history)
        self._schedule_from_pruning()
        return self.state

    def collapse_node(self, node_id: str) -> ExplorerState:
        return self._edit_history(lambda h: h.add_click_prune(ClickPruneKind.COLLAPSE, node_id))

    def remove_node(self, node_id: str) -> ExplorerState:
        return self._edit_history(lambda h: h.add_click_prune(ClickPruneKind.REMOVE, node_id))

    def set_root_node(self, node_id: str) -> ExplorerState:
        """
        View a node's subtree on its own

        Raises:
            NodeNotFoundError: If the node is not in the visible tree
        """
        self._require_loaded()
        visible = self.state.visible_tree
        if visible is None or visible.get_node_by_id(node_id) is None:
            raise NodeNotFoundError(f"Cannot re-root: node {node_id} not in the visible tree")
        return self._edit_history(lambda h: h.add_click_prune(ClickPruneKind.SET_ROOT, node_id))

    def set_value_pruner(self, kind: Union[PrunerKind, str], value: float) -> ExplorerState:
        """Set the active step's threshold rule"""
        kind = PrunerKind(kind)
        return self._edit_history(lambda h: h.set_value_pruner(kind, value))

    def clear_value_pruner(self) -> ExplorerState:
        return self._edit_history(lambda h: h.clear_value_pruner())

    def new_step(self) -> ExplorerState:
        """Freeze the active step and start a new one"""
        return self._edit_history(lambda h: h.new_step())

    def truncate(self, index: int) -> ExplorerState:
        """
        Revert to an earlier prune step

        Raises:
            IndexError: If index is outside the history
        """
        return self._edit_history(lambda h: h.truncate(index))

    def reset_prunes(self) -> ExplorerState:
        return self._edit_history(lambda h: h.reset())

    # -- output ---------------------------------------------------------

    def snapshot(self, include_tree: bool = False) -> Dict[str, Any]:
        """
        Plain read-only view of the derived state

        Args:
            include_tree: Add the visible tree as nested dictionaries

        Returns:
            Dictionary ready for JSON serialization
        """
        state = self.state
        history = state.prune_history
        snapshot = {
            'tree_metadata': state.tree_metadata,
            'distributions': state.distributions,
            'feature_distributions': dict(state.feature_distributions),
            'active_features': list(state.active_features),
            'thresholds': dict(state.thresholds),
            'prune_history': {
                'active_index': history.active_index,
                'steps': history.steps,
            },
        }
        if include_tree and state.visible_tree is not None:
            snapshot['visible_tree'] = state.visible_tree.to_dict()
        return snapshot
