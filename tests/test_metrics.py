import math

import numpy as np
import pytest

from sphere_bvh import build, BVHConfig
from sphere_bvh.core.metrics import MetricsCalculator
from sphere_bvh.core.structures import AABB, Primitive, LeafNode, Tree


def test_sah_cost_of_single_leaf_is_one():
    tree = build([Primitive([0, 0, 0], 1.0)], leaf_threshold=1)
    assert MetricsCalculator().compute_sah_cost(tree) == pytest.approx(1.0)


def test_sah_cost_of_line_scenario(line_spheres):
    tree = build(line_spheres, leaf_threshold=2)
    # SA: root 184, internal 104, leaves 64 (x2), 24 (x1), 64 (x2)
    expected = (184 + 104 + 2 * 64 + 24 + 2 * 64) / 184
    assert MetricsCalculator().compute_sah_cost(tree) == pytest.approx(expected)


def test_sah_cost_uses_configured_weights(line_spheres):
    tree = build(line_spheres, leaf_threshold=2)
    config = BVHConfig(traversal_cost=0.0, intersection_cost=2.0)
    expected = 2.0 * (2 * 64 + 24 + 2 * 64) / 184
    assert MetricsCalculator(config).compute_sah_cost(tree) == pytest.approx(expected)


def test_sah_cost_is_infinite_for_flat_root():
    prim = Primitive([0, 0, 0], 1.0)
    flat = AABB([0, 0, 0], [0, 0, 0])
    tree = Tree(nodes=[LeafNode(flat, 0, 1)], primitives=[prim], order=np.arange(1))
    assert math.isinf(MetricsCalculator().compute_sah_cost(tree))


def test_tree_stats(line_spheres):
    tree = build(line_spheres, leaf_threshold=2)
    stats = MetricsCalculator(BVHConfig(leaf_threshold=2)).compute_tree_stats(tree)

    assert stats['node_count'] == 5
    assert stats['leaf_count'] == 3
    assert stats['internal_count'] == 2
    assert stats['depth'] == 2
    assert stats['min_leaf_size'] == 1
    assert stats['max_leaf_size'] == 2
    assert stats['mean_leaf_size'] == pytest.approx(5 / 3)
    assert stats['oversized_leaves'] == 0


def test_oversized_leaves_counted_for_coincident_input():
    prims = [Primitive([1, 1, 1], 0.5) for _ in range(5)]
    tree = build(prims, leaf_threshold=2)
    assert MetricsCalculator(BVHConfig(leaf_threshold=2)).count_oversized_leaves(tree) == 1


def test_check_invariants_accepts_built_tree(random_spheres):
    tree = build(random_spheres, leaf_threshold=4)
    MetricsCalculator().check_invariants(tree)


def test_check_invariants_detects_gap(line_spheres):
    tree = build(line_spheres, leaf_threshold=2)
    leaf = tree.nodes[1]
    leaf.end -= 1
    with pytest.raises(ValueError):
        MetricsCalculator().check_invariants(tree)


def test_check_invariants_detects_stale_bounds(line_spheres):
    tree = build(line_spheres, leaf_threshold=2)
    tree.nodes[0].bounds = AABB([0, 0, 0], [1, 1, 1])
    with pytest.raises(ValueError):
        MetricsCalculator().check_invariants(tree)
