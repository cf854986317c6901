#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tree Pruning Module for Cluster Tree Explorer
Implements threshold and click prunes that derive smaller trees from the canonical tree
"""

import logging
from enum import Enum

from cluster_tree.models.node import TreeNode

logger = logging.getLogger(__name__)


class NodeNotFoundError(Exception):
    """Raised when a prune names a node id that is not in the tree."""
    pass


class PrunerKind(Enum):
    """Enumeration of threshold-driven prune rules"""
    SIZE = "size"                        # Minimum subtree cell count
    DISTANCE = "distance"                # Minimum distance, cut below the node
    DISTANCE_SEARCH = "distanceSearch"   # Minimum distance, searched from the leaves
    DEPTH = "depth"                      # Maximum depth


def _below_distance(node: TreeNode, distance: float) -> bool:
    """Missing or zero distance counts as below any threshold"""
    return not node.data.distance or node.data.distance < distance


class TreePruner:
    """
    Pure prune functions over cluster trees.

    Every method copies its input first and returns the copy; the tree
    passed in is never modified. All rules are idempotent.
    """

    @staticmethod
    def prune_by_min_value(tree: TreeNode, min_size: float) -> TreeNode:
        """
        Remove every subtree whose root holds fewer than ``min_size`` cells

        Nodes are judged top-down, so a child is only looked at when its
        parent survived. The root is always kept.

        Args:
            tree: Root of the tree to prune
            min_size: Minimum ``value`` a node needs to stay

        Returns:
            Pruned copy of the tree
        """
        new_tree = tree.recursive_copy()
        stack = [new_tree]
        removed = 0

        while stack:
            node = stack.pop()
            if node.value < min_size and node.parent is not None:
                node.parent.remove_child(node)
                removed += 1
                continue
            stack.extend(reversed(node.children))

        logger.debug(f"Size prune at {min_size}: removed {removed} subtrees")
        return new_tree

    @staticmethod
    def prune_by_min_distance(tree: TreeNode, distance: float) -> TreeNode:
        """
        Cut the tree below every node whose distance is under ``distance``

        The node itself stays as a leaf boundary; only its descendants go.

        Args:
            tree: Root of the tree to prune
            distance: Minimum distance a node needs to keep its children

        Returns:
            Pruned copy of the tree
        """
        def cut(node: TreeNode, _index: int):
            if _below_distance(node, distance):
                node.clear_children()

        return tree.recursive_copy().each_before(cut)

    @staticmethod
    def prune_by_min_distance_search(tree: TreeNode, distance: float) -> TreeNode:
        """
        Detach every node whose distance is under ``distance``, leaves first

        Unlike ``prune_by_min_distance`` the failing node goes too, along
        with its whole subtree. The root is always kept.

        Args:
            tree: Root of the tree to prune
            distance: Minimum distance a node needs to stay

        Returns:
            Pruned copy of the tree
        """
        def detach(node: TreeNode, _index: int):
            if node.parent is not None and _below_distance(node, distance):
                node.parent.remove_child(node)

        return tree.recursive_copy().each_after(detach)

    @staticmethod
    def prune_by_depth(tree: TreeNode, depth: int) -> TreeNode:
        """
        Keep only nodes at depth ``depth`` or shallower

        Args:
            tree: Root of the tree to prune
            depth: Deepest level that stays visible

        Returns:
            Pruned copy of the tree
        """
        def cut(node: TreeNode, _index: int):
            if node.depth > depth and node.parent is not None:
                node.parent.clear_children()

        return tree.recursive_copy().each_after(cut)

    @staticmethod
    def collapse_node(tree: TreeNode, node_id: str) -> TreeNode:
        """
        Hide the subtree below a node, keeping the node as a leaf placeholder

        Unknown ids leave the copy unchanged.
        """
        def collapse(node: TreeNode, _index: int):
            if node.data.id == node_id:
                node.clear_children()

        return tree.recursive_copy().each_after(collapse)

    @staticmethod
    def remove_node(tree: TreeNode, node_id: str) -> TreeNode:
        """
        Detach a node and its subtree from the tree

        Args:
            tree: Root of the tree to prune
            node_id: Payload id of the node to remove

        Returns:
            Pruned copy of the tree; unchanged when the id is unknown or names the root
        """
        new_tree = tree.recursive_copy()
        target = new_tree.get_node_by_id(node_id)

        if target is None:
            logger.debug(f"Node {node_id} not in tree, nothing removed")
        elif target.parent is None:
            logger.warning(f"Refusing to remove root node {node_id}")
        else:
            target.parent.remove_child(target)

        return new_tree

    @staticmethod
    def set_root_node(tree: TreeNode, node_id: str) -> TreeNode:
        """
        Return the subtree under a node as a standalone tree

        The new root has no parent link and no parent id in its payload, so
        it can be flattened and stratified again.

        Args:
            tree: Tree to search
            node_id: Payload id of the new root

        Returns:
            Copy of the subtree, depths recomputed from the new root

        Raises:
            NodeNotFoundError: If no node has that id
        """
        target = tree.get_node_by_id(node_id)
        if target is None:
            raise NodeNotFoundError(f"Cannot re-root: node {node_id} not found")

        new_root = target.recursive_copy()
        new_root.parent = None
        new_root.data.parent_id = None
        return new_root

    @classmethod
    def apply(cls, kind: PrunerKind, tree: TreeNode, value: float) -> TreeNode:
        """Apply a threshold rule by kind"""
        if kind == PrunerKind.SIZE:
            return cls.prune_by_min_value(tree, value)
        elif kind == PrunerKind.DISTANCE:
            return cls.prune_by_min_distance(tree, value)
        elif kind == PrunerKind.DISTANCE_SEARCH:
            return cls.prune_by_min_distance_search(tree, value)
        elif kind == PrunerKind.DEPTH:
            return cls.prune_by_depth(tree, int(value))
        raise ValueError(f"Unknown pruner kind: {kind}")

    @staticmethod
    def count_remaining(kind: PrunerKind, tree: TreeNode, value: float) -> int:
        """
        Count the nodes a threshold rule would leave, without copying the tree

        Equal to ``len(TreePruner.apply(kind, tree, value).get_subtree_nodes())``.

        Args:
            kind: Rule to simulate
            tree: Root of the tree
            value: Rule threshold

        Returns:
            Number of remaining nodes
        """
        count = 0
        stack = [tree]

        while stack:
            node = stack.pop()
            is_root = node is tree

            if kind == PrunerKind.SIZE:
                if not is_root and node.value < value:
                    continue
                count += 1
                stack.extend(node.children)

            elif kind == PrunerKind.DISTANCE:
                count += 1
                if not _below_distance(node, value):
                    stack.extend(node.children)

            elif kind == PrunerKind.DISTANCE_SEARCH:
                if not is_root and _below_distance(node, value):
                    continue
                count += 1
                stack.extend(node.children)

            elif kind == PrunerKind.DEPTH:
                count += 1
                if node.depth - tree.depth < int(value):
                    stack.extend(node.children)

            else:
                raise ValueError(f"Unknown pruner kind: {kind}")

        return count

