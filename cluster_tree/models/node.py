#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Node Module for Cluster Tree Explorer
Represents cells, flattened nodes and linked nodes of the cluster tree
"""

import copy
import logging
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from cluster_tree.utils.serialization_utils import make_json_serializable

logger = logging.getLogger(__name__)


@dataclass
class Cell:
    """A single cell (item) owned by exactly one leaf of the tree"""
    barcode_id: str
    feature_counts: Dict[str, float] = field(default_factory=dict)


@dataclass
class FeatureCount:
    """Number of cells that fall into one high/low category"""
    scale_key: str
    quantity: float = 0


@dataclass
class FlatNode:
    """
    Data payload of a tree node, as produced by flattening the source file.

    Only leaves of the source tree carry ``items``; internal nodes keep None.
    """
    id: str
    parent_id: Optional[str] = None
    items: Optional[List[Cell]] = None
    distance: Optional[float] = None
    significance: Optional[float] = None
    feature_count: Dict[str, FeatureCount] = field(default_factory=dict)
    label_count: Dict[str, int] = field(default_factory=dict)

    def copy(self, copy_cells: bool = False) -> 'FlatNode':
        """
        Copy the payload

        Args:
            copy_cells: Deep-copy the cells as well instead of sharing them

        Returns:
            New FlatNode instance
        """
        if self.items is None:
            items = None
        elif copy_cells:
            items = copy.deepcopy(self.items)
        else:
            items = list(self.items)

        return FlatNode(
            id=self.id,
            parent_id=self.parent_id,
            items=items,
            distance=self.distance,
            significance=self.significance,
            feature_count={k: FeatureCount(v.scale_key, v.quantity)
                           for k, v in self.feature_count.items()},
            label_count=dict(self.label_count),
        )


class TreeNode:
    """Class representing a node in a cluster tree"""

    def __init__(self, data: FlatNode,
                 parent: Optional['TreeNode'] = None,
                 depth: int = 0):
        """
        Initialize a tree node

        Args:
            data: Payload for this node
            parent: Parent node (None for root)
            depth: Depth level in the tree (0 for root)
        """
        self.data = data
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self.depth = depth

        self.children: List['TreeNode'] = []

        self.value = 0.0            # Number of cells in the subtree
        self.node_id = None         # Pre-order index, assigned by the label aggregator

    @property
    def parent(self) -> Optional['TreeNode']:
        """Parent node, or None for the root or a detached node"""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @parent.setter
    def parent(self, node: Optional['TreeNode']):
        self._parent_ref = weakref.ref(node) if node is not None else None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def add_child(self, child: 'TreeNode'):
        """Append a child and link it back to this node"""
        if not isinstance(child, TreeNode):
            raise ValueError("Child must be a TreeNode instance")

        self.children.append(child)
        child.parent = self
        child.depth = self.depth + 1

    def remove_child(self, child: 'TreeNode'):
        """Detach a child from this node"""
        for i, existing in enumerate(self.children):
            if existing is child:
                del self.children[i]
                child.parent = None
                return

        logger.warning(f"Child {child.data.id} not found in node {self.data.id}")

    def clear_children(self):
        """Drop every child, turning this node into a leaf boundary"""
        for child in self.children:
            child.parent = None
        self.children = []

    def iter_preorder(self) -> Iterator['TreeNode']:
        """Iterate the subtree parent-first, children in order"""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def iter_postorder(self) -> Iterator['TreeNode']:
        """Iterate the subtree children-first"""
        stack = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                yield node
                continue
            stack.append((node, True))
            for child in reversed(node.children):
                stack.append((child, False))

    def each_before(self, callback: Callable[['TreeNode', int], Any]) -> 'TreeNode':
        """
        Call ``callback(node, index)`` for every node in pre-order.

        Children are read after the callback returns, so a callback that
        clears ``node.children`` stops the walk below that node.

        Returns:
            This node, for chaining
        """
        stack = [self]
        index = 0
        while stack:
            node = stack.pop()
            callback(node, index)
            index += 1
            stack.extend(reversed(node.children))
        return self

    def each_after(self, callback: Callable[['TreeNode', int], Any]) -> 'TreeNode':
        """
        Call ``callback(node, index)`` for every node in post-order.

        The visiting order is fixed before the first callback runs.

        Returns:
            This node, for chaining
        """
        for index, node in enumerate(list(self.iter_postorder())):
            callback(node, index)
        return self

    def get_subtree_nodes(self) -> List['TreeNode']:
        """Get all nodes in the subtree rooted at this node, in pre-order"""
        return list(self.iter_preorder())

    def get_leaf_nodes(self) -> List['TreeNode']:
        """
        Get all leaf nodes in the subtree

        Returns:
            List of nodes without children, in pre-order
        """
        return [node for node in self.iter_preorder() if not node.children]

    def get_node_by_id(self, node_id: str) -> Optional['TreeNode']:
        """
        Find a node by its payload id in the subtree

        Args:
            node_id: ID to search for

        Returns:
            TreeNode if found, None otherwise
        """
        for node in self.iter_preorder():
            if node.data.id == node_id:
                return node
        return None

    def sum_values(self) -> 'TreeNode':
        """Set ``value`` on every node to the number of cells in its subtree"""
        for node in self.iter_postorder():
            own = len(node.data.items) if node.data.items else 0
            node.value = own + sum(child.value for child in node.children)
        return self

    def sort_children(self, key: Callable[['TreeNode'], Any]) -> 'TreeNode':
        """Stable-sort the children of every node in the subtree"""
        for node in self.iter_preorder():
            if len(node.children) > 1:
                node.children.sort(key=key)
        return self

    def compute_depths(self) -> 'TreeNode':
        """Recompute ``depth`` relative to this node"""
        self.depth = 0
        for node in self.iter_preorder():
            for child in node.children:
                child.depth = node.depth + 1
        return self

    def copy(self, copy_cells: bool = False) -> 'TreeNode':
        """
        Create a copy of this node (without children or parent)

        Args:
            copy_cells: Deep-copy the cells carried by the payload

        Returns:
            New TreeNode instance
        """
        node = TreeNode(self.data.copy(copy_cells=copy_cells), depth=self.depth)
        node.value = self.value
        node.node_id = self.node_id
        return node

    def recursive_copy(self, copy_cells: bool = False) -> 'TreeNode':
        """
        Create a copy of this node including all children.

        The copy's root has no parent and depths are recomputed from it.
        No TreeNode or FlatNode instance is shared with the source; cells
        are shared unless ``copy_cells`` is set.

        Args:
            copy_cells: Deep-copy the cells as well

        Returns:
            New root TreeNode
        """
        root_copy = self.copy(copy_cells=copy_cells)
        root_copy.depth = 0

        stack = [(self, root_copy)]
        while stack:
            source, target = stack.pop()
            for child in source.children:
                child_copy = child.copy(copy_cells=copy_cells)
                target.add_child(child_copy)
                stack.append((child, child_copy))

        return root_copy

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the subtree to a nested dictionary for serialization

        Returns:
            Dictionary representation of the node and its descendants
        """
        def node_fields(node: 'TreeNode') -> Dict[str, Any]:
            return {
                'id': node.data.id,
                'node_id': node.node_id,
                'parent_id': node.data.parent_id,
                'depth': node.depth,
                'value': node.value,
                'distance': node.data.distance,
                'significance': node.data.significance,
                'item_count': len(node.data.items) if node.data.items is not None else None,
                'label_count': node.data.label_count,
                'feature_count': {k: {'scale_key': v.scale_key, 'quantity': v.quantity}
                                  for k, v in node.data.feature_count.items()},
                'children': [],
            }

        root_dict = node_fields(self)
        stack = [(self, root_dict)]
        while stack:
            node, node_dict = stack.pop()
            for child in node.children:
                child_dict = node_fields(child)
                node_dict['children'].append(child_dict)
                stack.append((child, child_dict))

        return make_json_serializable(root_dict)

    def __str__(self) -> str:
        if self.is_leaf:
            return f"Leaf {self.data.id}: {self.value:g} cells"
        return f"Node {self.data.id}: {self.value:g} cells, {len(self.children)} children"

    def __repr__(self) -> str:
        return (f"TreeNode(id={self.data.id}, node_id={self.node_id}, depth={self.depth}, "
                f"value={self.value}, distance={self.data.distance}, "
                f"children={len(self.children)})")
