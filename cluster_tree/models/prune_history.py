#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Prune History Module for Cluster Tree Explorer
Records prune steps and replays them against the canonical tree
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from cluster_tree.models.node import TreeNode
from cluster_tree.models.tree_pruning import PrunerKind, TreePruner

logger = logging.getLogger(__name__)


class ClickPruneKind(Enum):
    """Enumeration of prunes the user applies to one selected node"""
    COLLAPSE = "collapse"   # Hide the node's subtree, keep the node
    REMOVE = "remove"       # Drop the node and its subtree
    SET_ROOT = "setRoot"    # View the node's subtree on its own


@dataclass(frozen=True)
class ValuePruner:
    """A threshold rule with its current slider value"""
    kind: PrunerKind
    value: float


@dataclass(frozen=True)
class ClickPrune:
    """A prune of one node, by payload id"""
    kind: ClickPruneKind
    node_id: str


@dataclass
class PruneStep:
    """Click prunes applied in order, then at most one value pruner"""
    click_prune_history: List[ClickPrune] = field(default_factory=list)
    value_pruner: Optional[ValuePruner] = None

    @property
    def is_empty(self) -> bool:
        return not self.click_prune_history and self.value_pruner is None

    def apply(self, tree: TreeNode) -> TreeNode:
        """
        Apply this step to a tree

        Args:
            tree: Output of the previous step (or a copy of the canonical tree)

        Returns:
            New tree with the step's prunes applied
        """
        for click in self.click_prune_history:
            tree = apply_click_prune(tree, click)

        if self.value_pruner is not None:
            tree = TreePruner.apply(self.value_pruner.kind, tree, self.value_pruner.value)

        return tree


def apply_click_prune(tree: TreeNode, click: ClickPrune) -> TreeNode:
    """Apply one click prune to a tree, returning a new tree"""
    if click.kind == ClickPruneKind.COLLAPSE:
        return TreePruner.collapse_node(tree, click.node_id)
    elif click.kind == ClickPruneKind.REMOVE:
        return TreePruner.remove_node(tree, click.node_id)
    elif click.kind == ClickPruneKind.SET_ROOT:
        return TreePruner.set_root_node(tree, click.node_id)
    raise ValueError(f"Unknown click prune kind: {click.kind}")


def step_is_empty(step: PruneStep) -> bool:
    return step.is_empty


def steps_are_equal(step1: PruneStep, step2: PruneStep) -> bool:
    """Same number of click prunes and the same value pruner"""
    return (len(step1.click_prune_history) == len(step2.click_prune_history)
            and step1.value_pruner == step2.value_pruner)


def rerun_prunes(active_index: int, history: List[PruneStep], tree: TreeNode) -> TreeNode:
    """
    Replay steps 0..active_index against a fresh copy of a tree

    Args:
        active_index: Last step to apply (inclusive); -1 applies none
        history: Ordered prune steps
        tree: Canonical tree, left untouched

    Returns:
        The visible tree
    """
    working = tree.recursive_copy()
    for step in history[:active_index + 1]:
        working = step.apply(working)
    return working


class PruneHistory:
    """
    Ordered list of prune steps with an active index.

    Edits always go to the active step. Nothing is patched incrementally:
    every replay starts again from the canonical tree.
    """

    def __init__(self, steps: Optional[List[PruneStep]] = None):
        """
        Initialize the history

        Args:
            steps: Existing steps; a single empty step when None
        """
        self.steps: List[PruneStep] = list(steps) if steps else [PruneStep()]
        self.active_index = len(self.steps) - 1

    @property
    def active_step(self) -> PruneStep:
        return self.steps[self.active_index]

    def __len__(self) -> int:
        return len(self.steps)

    def copy(self) -> 'PruneHistory':
        """Copy the history so edits to the copy leave this one alone"""
        steps = [PruneStep(list(step.click_prune_history), step.value_pruner)
                 for step in self.steps]
        history = PruneHistory(steps)
        history.active_index = self.active_index
        return history

    def add_click_prune(self, kind: ClickPruneKind, node_id: str) -> ClickPrune:
        """Record a click prune on the active step"""
        click = ClickPrune(kind=kind, node_id=node_id)
        self.active_step.click_prune_history.append(click)
        logger.debug(f"Step {self.active_index}: {kind.value} on node {node_id}")
        return click

    def set_value_pruner(self, kind: PrunerKind, value: float) -> ValuePruner:
        """Set (or replace) the active step's value pruner"""
        pruner = ValuePruner(kind=kind, value=value)
        self.active_step.value_pruner = pruner
        logger.debug(f"Step {self.active_index}: {kind.value} pruner at {value}")
        return pruner

    def clear_value_pruner(self):
        self.active_step.value_pruner = None

    def new_step(self) -> int:
        """
        Start a new empty step after the active one

        Steps after the active one are discarded first. An empty active
        step is reused instead of stacking another empty one.

        Returns:
            Index of the new active step
        """
        self.truncate(self.active_index)
        if not self.active_step.is_empty:
            self.steps.append(PruneStep())
            self.active_index = len(self.steps) - 1
        return self.active_index

    def truncate(self, index: int):
        """
        Keep steps 0..index and make ``index`` the active step

        Args:
            index: Step to revert to

        Raises:
            IndexError: If index is outside the history
        """
        if index < 0 or index >= len(self.steps):
            raise IndexError(f"Prune step {index} out of range (0..{len(self.steps) - 1})")

        discarded = len(self.steps) - index - 1
        del self.steps[index + 1:]
        self.active_index = index
        if discarded:
            logger.info(f"Reverted prune history to step {index}, discarded {discarded} steps")

    def reset(self):
        """Drop every prune"""
        self.steps = [PruneStep()]
        self.active_index = 0

    def replay(self, canonical: TreeNode, index: Optional[int] = None) -> TreeNode:
        """
        Rebuild the visible tree for a step

        Args:
            canonical: Canonical tree, left untouched
            index: Last step to apply; the active step when None

        Returns:
            New visible tree
        """
        if index is None:
            index = self.active_index
        return rerun_prunes(index, self.steps, canonical)

    def base_tree(self, canonical: TreeNode) -> TreeNode:
        """The tree the active step starts from (all earlier steps applied)"""
        return rerun_prunes(self.active_index - 1, self.steps, canonical)

    def is_pristine(self) -> bool:
        """True when nothing has been pruned yet"""
        return self.active_index == 0 and self.active_step.is_empty
