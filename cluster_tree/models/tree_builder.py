#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tree Builder Module for Cluster Tree Explorer
Flattens the serialized rose tree and rebuilds a linked tree from the flat list
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

import networkx as nx

from cluster_tree.models.node import Cell, FlatNode, TreeNode

logger = logging.getLogger(__name__)


class MalformedTreeError(Exception):
    """Raised when the flat node list cannot be linked into a single tree."""
    pass


def _parse_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric value {value!r} in tree metadata")
        return None


def parse_cell(raw: Dict[str, Any]) -> Cell:
    """
    Build a Cell from one entry of a node's ``_item`` list

    Args:
        raw: Cell object with ``_barcode.unCell`` and optional ``_featureCounts``

    Returns:
        Cell instance
    """
    barcode = raw.get('_barcode') or {}
    if isinstance(barcode, dict):
        barcode_id = barcode.get('unCell')
        counts = barcode.get('_featureCounts') or raw.get('_featureCounts') or {}
    else:
        barcode_id = barcode
        counts = raw.get('_featureCounts') or {}

    if barcode_id is None:
        raise MalformedTreeError(f"Cell without barcode: {raw!r}")

    feature_counts = {}
    for name, value in counts.items():
        parsed = _parse_float(value)
        if parsed is not None:
            feature_counts[str(name)] = parsed

    return Cell(barcode_id=str(barcode_id), feature_counts=feature_counts)


def flatten(rose: List[Any]) -> List[FlatNode]:
    """
    Flatten a serialized rose tree into a pre-order list of FlatNodes.

    A node is an array whose first object element holds the metadata
    (``_item``, ``_distance``, ``_significance``) and whose array elements
    are lists of child subtrees. Every node gets a fresh unique id and the
    id of its parent (None for the root).

    Args:
        rose: Root node of the decoded JSON tree

    Returns:
        List of FlatNode in pre-order
    """
    if not isinstance(rose, list):
        raise MalformedTreeError(f"Tree root must be an array, got {type(rose).__name__}")

    nodes: List[FlatNode] = []
    stack = [(rose, None)]

    while stack:
        data, parent_id = stack.pop()
        if not isinstance(data, list):
            raise MalformedTreeError(f"Tree node must be an array, got {type(data).__name__}")

        meta = next((content for content in data if isinstance(content, dict)), None) or {}

        raw_items = meta.get('_item')
        items = [parse_cell(raw) for raw in raw_items] if raw_items is not None else None

        node = FlatNode(
            id=str(uuid.uuid4()),
            parent_id=parent_id,
            items=items,
            distance=_parse_float(meta.get('_distance')),
            significance=_parse_float(meta.get('_significance')),
        )
        nodes.append(node)

        children = [child for content in data if isinstance(content, list) for child in content]
        for child in reversed(children):
            stack.append((child, node.id))

    logger.debug(f"Flattened rose tree into {len(nodes)} nodes")
    return nodes


def stratify(flat_nodes: List[FlatNode]) -> TreeNode:
    """
    Link a flat node list into a tree using the parent ids.

    Children keep the order in which they appear in the list.

    Args:
        flat_nodes: Nodes with ``id`` and ``parent_id``

    Returns:
        Root TreeNode

    Raises:
        MalformedTreeError: empty input, duplicate ids, unknown parent ids,
            zero or several roots, or a cycle
    """
    if not flat_nodes:
        raise MalformedTreeError("Cannot build a tree from an empty node list")

    nodes_by_id: Dict[str, TreeNode] = {}
    for flat in flat_nodes:
        if flat.id in nodes_by_id:
            raise MalformedTreeError(f"Duplicate node id: {flat.id}")
        nodes_by_id[flat.id] = TreeNode(flat)

    roots = [flat for flat in flat_nodes if flat.parent_id is None]
    if not roots:
        raise MalformedTreeError("No root: every node has a parent")
    if len(roots) > 1:
        raise MalformedTreeError(f"Multiple roots: {', '.join(r.id for r in roots[:5])}")

    graph = nx.DiGraph()
    graph.add_nodes_from(nodes_by_id)
    for flat in flat_nodes:
        if flat.parent_id is None:
            continue
        parent = nodes_by_id.get(flat.parent_id)
        if parent is None:
            raise MalformedTreeError(f"Missing parent {flat.parent_id} for node {flat.id}")
        parent.children.append(nodes_by_id[flat.id])
        graph.add_edge(flat.parent_id, flat.id)

    if not nx.is_arborescence(graph):
        try:
            cycle = nx.find_cycle(graph)
        except nx.NetworkXNoCycle:
            raise MalformedTreeError("Parent links do not form a single connected tree") from None
        raise MalformedTreeError(f"Parent links form a cycle: {cycle}")

    root = nodes_by_id[roots[0].id]
    for node in root.iter_preorder():
        for child in node.children:
            child.parent = node
            child.depth = node.depth + 1

    return root


def build_tree(flat_nodes: List[FlatNode]) -> TreeNode:
    """
    Build the canonical tree from a flat node list.

    Stratifies, computes ``value`` (cells per subtree) and ``depth``, and
    orders siblings by descending value (stable for ties).

    Args:
        flat_nodes: Output of ``flatten``

    Returns:
        Root TreeNode
    """
    try:
        root = stratify(flat_nodes)
    except MalformedTreeError as e:
        logger.error(f"Error building tree: {e}", exc_info=True)
        raise

    root.sum_values()
    root.sort_children(key=lambda n: -n.value)
    root.compute_depths()

    logger.info(f"Built tree with {len(flat_nodes)} nodes and {root.value:g} cells")
    return root


def build_tree_from_rose(rose: List[Any]) -> TreeNode:
    """Flatten and rebuild a decoded rose tree in one step"""
    return build_tree(flatten(rose))


def to_rose(root: TreeNode) -> List[Any]:
    """
    Serialize a tree back into the nested-array form read by ``flatten``

    Args:
        root: Root of the tree to serialize

    Returns:
        Nested list structure ready for ``json.dump``
    """
    def encode(node: TreeNode) -> List[Any]:
        meta: Dict[str, Any] = {}
        if node.data.items is not None:
            meta['_item'] = [
                {'_barcode': {'unCell': cell.barcode_id},
                 '_featureCounts': dict(cell.feature_counts)}
                for cell in node.data.items
            ]
        if node.data.distance is not None:
            meta['_distance'] = node.data.distance
        if node.data.significance is not None:
            meta['_significance'] = node.data.significance
        return [meta, []]

    encoded = {id(root): encode(root)}
    for node in root.iter_preorder():
        for child in node.children:
            encoded[id(child)] = encode(child)
            encoded[id(node)][1].append(encoded[id(child)])

    return encoded[id(root)]
