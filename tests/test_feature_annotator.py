"""
Tests for feature merging, high/low categories and feature distributions.
"""

import pytest

from cluster_tree.analytics.feature_annotator import (
    MissingFeatureValueError,
    annotate_feature_counts,
    category_key,
    compute_feature_distributions,
    derive_default_thresholds,
    get_feature_distribution,
    get_scale_combinations,
    lookup_feature_value,
    merge_features,
    usable_features,
)
from cluster_tree.models.node import Cell
from cluster_tree.models.tree_builder import build_tree_from_rose
from conftest import find_leaf, leaf


def _quantities(node):
    return {key: count.quantity for key, count in node.data.feature_count.items()}


def test_single_feature_scenario():
    tree = build_tree_from_rose(leaf(["1", "2"]))
    merged = merge_features(tree, {"F": {"1": 5, "2": 1}})

    annotated = annotate_feature_counts(merged, {"F": 3}, ["F"])

    cells = {c.barcode_id: c for c in annotated.data.items}
    assert category_key(cells["1"], ["F"], {"F": 3}) == "high-F"
    assert category_key(cells["2"], ["F"], {"F": 3}) == "low-F"
    assert _quantities(annotated) == {"high-F": 1, "low-F": 1}
    assert annotated.data.feature_count["high-F"].scale_key == "high-F"


def test_merge_defaults_missing_cells_to_zero_and_copies_cells(scenario_tree):
    merged = merge_features(scenario_tree, {"F": {"x": 5, "y": 1}})

    merged_cells = {c.barcode_id: c for n in merged.iter_preorder() for c in (n.data.items or [])}
    assert merged_cells["x"].feature_counts["F"] == 5.0
    assert merged_cells["z"].feature_counts["F"] == 0.0

    original_cells = [c for n in scenario_tree.iter_preorder() for c in (n.data.items or [])]
    assert all("F" not in c.feature_counts for c in original_cells)


def test_lookup_feature_value_raises_for_missing_cell():
    with pytest.raises(MissingFeatureValueError):
        lookup_feature_value({"a": 1.0}, Cell("b"))


def test_default_threshold_is_median_of_nonzero(scenario_tree):
    merged = merge_features(scenario_tree, {"F": {"x": 5, "y": 1}, "G": {}})

    thresholds = derive_default_thresholds(merged, ["F", "G"])

    assert thresholds == {"F": 3.0, "G": None}


def test_features_without_positive_threshold_are_not_categorized(scenario_tree):
    merged = merge_features(scenario_tree, {"G": {}})

    annotated = annotate_feature_counts(merged, {"G": None}, ["G"])

    assert all(n.data.feature_count == {} for n in annotated.iter_preorder())
    assert usable_features(["G", "H"], {"G": None, "H": 0}) == []


def test_category_key_uses_sorted_feature_names():
    cell = Cell("c", {"A": 10.0, "B": 1.0})
    features = usable_features(["B", "A"], {"A": 5.0, "B": 5.0})

    assert features == ["A", "B"]
    assert category_key(cell, features, {"A": 5.0, "B": 5.0}) == "high-A-low-B"


def test_zero_value_is_low_even_with_tiny_threshold():
    assert category_key(Cell("c", {"A": 0.0}), ["A"], {"A": 1e-9}) == "low-A"


def test_internal_nodes_sum_children_categories(scenario_tree):
    merged = merge_features(scenario_tree, {"F": {"x": 5, "y": 1, "z": 4}})

    annotated = annotate_feature_counts(merged, {"F": 3.0}, ["F"])

    assert _quantities(annotated) == {"high-F": 2, "low-F": 1}
    assert _quantities(find_leaf(annotated, "y")) == {"high-F": 1, "low-F": 1}
    assert _quantities(find_leaf(annotated, "x")) == {"high-F": 1}


def test_annotation_leaves_input_tree_alone(scenario_tree):
    merged = merge_features(scenario_tree, {"F": {"x": 5}})
    annotate_feature_counts(merged, {"F": 1.0}, ["F"])

    assert all(n.data.feature_count == {} for n in merged.iter_preorder())


def test_no_active_features_gives_empty_counts(scenario_tree):
    annotated = annotate_feature_counts(scenario_tree, {}, [])
    assert all(n.data.feature_count == {} for n in annotated.iter_preorder())


def test_scale_combinations():
    assert get_scale_combinations(["B", "A"]) == [
        "high-A-high-B", "high-A-low-B", "low-A-high-B", "low-A-low-B",
    ]
    assert get_scale_combinations(["F"]) == ["high-F", "low-F"]
    assert get_scale_combinations([]) == []


def test_every_category_key_is_a_scale_combination(scenario_tree):
    merged = merge_features(scenario_tree, {"A": {"x": 5, "y": 1, "z": 2}, "B": {"x": 1, "y": 7}})
    annotated = annotate_feature_counts(merged, {"A": 2.0, "B": 2.0}, ["A", "B"])

    combinations = set(get_scale_combinations(["A", "B"]))
    assert set(annotated.data.feature_count) <= combinations


def test_feature_distribution_fields():
    distribution = get_feature_distribution([0, 0, 1, 2, 3, 4, 100])

    assert distribution.median == 3.0
    assert distribution.mad == 1.0
    assert distribution.median_with_zeroes == 2.0
    assert distribution.mad_with_zeroes == 2.0
    assert distribution.min == 0
    assert distribution.max == 100
    assert distribution.total == 110.0

    assert distribution.mad_groups[0] == 2
    assert len(distribution.mad_groups) <= 25
    assert all(isinstance(k, int) and 0 <= k <= 97 for k in distribution.mad_groups)

    thresholds = sorted(distribution.plain_groups)
    assert thresholds[0] >= 1 and thresholds[-1] <= 100
    counts = [distribution.plain_groups[t] for t in thresholds]
    assert counts == sorted(counts, reverse=True)


def test_zero_mad_gives_single_bin():
    distribution = get_feature_distribution([1, 2, 2, 2, 5])
    assert distribution.mad == 0.0
    assert distribution.mad_groups == {0: 1}


def test_all_zero_feature_gives_zeroed_distribution():
    distribution = get_feature_distribution([0, 0, 0])

    assert distribution.median == 0.0
    assert distribution.mad == 0.0
    assert distribution.plain_groups == {}
    assert distribution.mad_groups == {}
    assert distribution.total == 0.0


def test_empty_feature_gives_zeroed_distribution():
    distribution = get_feature_distribution([])
    assert distribution.max == 0.0
    assert distribution.mad_groups == {}


def test_compute_feature_distributions_per_active_feature(scenario_tree):
    merged = merge_features(scenario_tree, {"F": {"x": 5, "y": 1}, "G": {"z": 2}})

    distributions = compute_feature_distributions(merged, ["F"], plain_bin_count=10)

    assert set(distributions) == {"F"}
    assert distributions["F"].total == 6.0
    assert distributions["F"].min == 0.0
    assert len(distributions["F"].plain_groups) <= 11
