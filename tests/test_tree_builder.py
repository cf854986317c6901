"""
Tests for flattening the nested-array tree and rebuilding the linked tree.
"""

import pytest

from cluster_tree.models.node import FlatNode
from cluster_tree.models.tree_builder import (
    MalformedTreeError,
    build_tree,
    build_tree_from_rose,
    flatten,
    parse_cell,
    stratify,
    to_rose,
)
from conftest import barcodes_of, branch, cell, leaf


def _shape(node):
    """Nested (own barcodes, children) signature of a subtree"""
    own = tuple(sorted(c.barcode_id for c in node.data.items or []))
    return own, tuple(_shape(child) for child in node.children)


def test_scenario_values_and_depths(scenario_tree):
    assert scenario_tree.value == 3
    assert [child.value for child in scenario_tree.children] == [2, 1]
    assert scenario_tree.depth == 0
    assert all(child.depth == 1 for child in scenario_tree.children)
    assert scenario_tree.parent is None
    assert all(child.parent is scenario_tree for child in scenario_tree.children)


def test_flatten_is_preorder_with_parent_ids(scenario_rose):
    flat = flatten(scenario_rose)

    assert len(flat) == 3
    assert flat[0].parent_id is None
    assert flat[1].parent_id == flat[0].id
    assert flat[2].parent_id == flat[0].id
    assert [c.barcode_id for c in flat[1].items] == ["x"]
    assert flat[1].distance == 1.0
    assert flat[0].items is None
    assert len({node.id for node in flat}) == 3


def test_flatten_assigns_fresh_ids(scenario_rose):
    first = {n.id for n in flatten(scenario_rose)}
    second = {n.id for n in flatten(scenario_rose)}
    assert not first & second


def test_parse_cell_reads_feature_counts_from_either_place():
    inner = parse_cell({"_barcode": {"unCell": "c1", "_featureCounts": {"CD3": "2.5"}}})
    outer = parse_cell({"_barcode": {"unCell": "c2"}, "_featureCounts": {"CD3": 4}})

    assert inner.barcode_id == "c1"
    assert inner.feature_counts == {"CD3": 2.5}
    assert outer.feature_counts == {"CD3": 4.0}


def test_parse_cell_without_barcode_is_malformed():
    with pytest.raises(MalformedTreeError):
        parse_cell({"_featureCounts": {}})


def test_flatten_rejects_non_array_root():
    with pytest.raises(MalformedTreeError):
        flatten({"_item": []})


def test_siblings_sorted_by_descending_size_stable_for_ties():
    rose = branch([leaf(["a"]), leaf(["b", "c", "d"]), leaf(["e"]), leaf(["f", "g"])])
    tree = build_tree_from_rose(rose)

    order = [[c.barcode_id for c in child.data.items] for child in tree.children]
    assert order == [["b", "c", "d"], ["f", "g"], ["a"], ["e"]]


def test_stratify_empty_list():
    with pytest.raises(MalformedTreeError):
        stratify([])


def test_stratify_missing_parent():
    nodes = [FlatNode(id="r"), FlatNode(id="a", parent_id="missing")]
    with pytest.raises(MalformedTreeError, match="Missing parent"):
        stratify(nodes)


def test_stratify_multiple_roots():
    nodes = [FlatNode(id="r1"), FlatNode(id="r2")]
    with pytest.raises(MalformedTreeError, match="Multiple roots"):
        stratify(nodes)


def test_stratify_duplicate_ids():
    nodes = [FlatNode(id="r"), FlatNode(id="a", parent_id="r"), FlatNode(id="a", parent_id="r")]
    with pytest.raises(MalformedTreeError, match="Duplicate"):
        stratify(nodes)


def test_stratify_cycle():
    nodes = [FlatNode(id="r"), FlatNode(id="a", parent_id="b"), FlatNode(id="b", parent_id="a")]
    with pytest.raises(MalformedTreeError):
        stratify(nodes)


def test_build_tree_single_leaf():
    tree = build_tree_from_rose(leaf(["1", "2"]))
    assert tree.value == 2
    assert tree.is_leaf
    assert tree.depth == 0


def test_build_tree_reads_pre_flattened_nodes(scenario_rose):
    tree = build_tree(flatten(scenario_rose))
    assert len(tree.get_subtree_nodes()) == 3


def test_deep_chain_builds_without_recursion():
    rose = leaf(["bottom"])
    for _ in range(3000):
        rose = branch([rose], distance=1)

    tree = build_tree_from_rose(rose)

    assert tree.value == 1
    assert max(node.depth for node in tree.iter_preorder()) == 3000
    copy = tree.recursive_copy()
    assert len(copy.get_subtree_nodes()) == 3001


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_round_trip_keeps_items_and_topology(rose_factory, seed):
    tree = build_tree_from_rose(rose_factory(seed))
    rebuilt = build_tree_from_rose(to_rose(tree))

    assert barcodes_of(rebuilt) == barcodes_of(tree)
    assert _shape(rebuilt) == _shape(tree)


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_value_equals_cells_below(rose_factory, seed):
    tree = build_tree_from_rose(rose_factory(seed))

    for node in tree.iter_preorder():
        below = sum(len(leaf_node.data.items or []) for leaf_node in node.get_leaf_nodes())
        assert node.value == below
        for child in node.children:
            assert child.depth == node.depth + 1


def test_feature_counts_survive_round_trip():
    rose = branch([[{"_item": [cell("c1", CD3=2.0)]}, []], leaf(["c2"])])
    rebuilt = build_tree_from_rose(to_rose(build_tree_from_rose(rose)))

    cells = {c.barcode_id: c for n in rebuilt.iter_preorder() for c in (n.data.items or [])}
    assert cells["c1"].feature_counts == {"CD3": 2.0}
    assert cells["c2"].feature_counts == {}
