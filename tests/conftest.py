"""
Shared fixtures for the cluster tree explorer tests.

Trees are written in the nested-array form the tree builder reads:
``[metadata, [child, child, ...]]``.
"""

import itertools
import random
import sys
from pathlib import Path

import pytest

# Ensure the project root is on the path when running without an install
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cluster_tree.models.tree_builder import build_tree_from_rose  # noqa: E402


def cell(barcode, **features):
    entry = {"_barcode": {"unCell": str(barcode)}}
    if features:
        entry["_featureCounts"] = features
    return entry


def leaf(barcodes, distance=None):
    meta = {"_item": [cell(b) for b in barcodes]}
    if distance is not None:
        meta["_distance"] = distance
    return [meta, []]


def branch(children, distance=None):
    meta = {}
    if distance is not None:
        meta["_distance"] = distance
    return [meta, list(children)]


def make_random_rose(seed, max_depth=5, max_children=3):
    """Random tree whose distances shrink towards the leaves; about half the leaves lack a distance"""
    rng = random.Random(seed)
    counter = itertools.count()

    def node(depth, distance):
        if depth >= max_depth or (depth > 1 and rng.random() < 0.3):
            barcodes = [f"cell{next(counter)}" for _ in range(rng.randint(1, 6))]
            return leaf(barcodes, round(distance, 3) if rng.random() < 0.5 else None)
        children = [node(depth + 1, distance * rng.uniform(0.3, 0.9))
                    for _ in range(rng.randint(2, max_children))]
        return branch(children, round(distance, 3))

    return node(0, 100.0)


@pytest.fixture
def scenario_rose():
    """A -> [B(dist 1, items [x]), C(dist 3, items [y, z])]"""
    return branch([leaf(["x"], distance=1), leaf(["y", "z"], distance=3)])


@pytest.fixture
def scenario_tree(scenario_rose):
    return build_tree_from_rose(scenario_rose)


@pytest.fixture
def distance_rose():
    """R(10) -> [P(5) -> [L1(no distance, 3 cells), L2(2, 1 cell)], Q(1, 2 cells)]"""
    return branch([
        branch([leaf(["a1", "a2", "a3"]), leaf(["b1"], distance=2)], distance=5),
        leaf(["q1", "q2"], distance=1),
    ], distance=10)


@pytest.fixture
def distance_tree(distance_rose):
    return build_tree_from_rose(distance_rose)


@pytest.fixture
def label_map():
    return {"x": "red", "y": "blue", "z": "red", "a1": "T", "a2": "B", "a3": "T", "b1": "NK"}


@pytest.fixture
def rose_factory():
    return make_random_rose


@pytest.fixture
def random_tree():
    return build_tree_from_rose(make_random_rose(7))


def find_leaf(tree, barcode):
    """The node whose own cells include a barcode"""
    for node in tree.iter_preorder():
        if node.data.items and any(c.barcode_id == barcode for c in node.data.items):
            return node
    return None


def barcodes_of(tree):
    """Sorted barcodes of every cell held by the tree's nodes"""
    return sorted(c.barcode_id for n in tree.iter_preorder() for c in (n.data.items or []))
