import numpy as np
import pytest

from conftest import spheres_on_x
from sphere_bvh import build, BVHBuilder, BVHConfig, EmptyInputError
from sphere_bvh.core.structures import AABB, Primitive, LeafNode, InternalNode


def source_sets(tree):
    """Исходные индексы примитивов каждого листа"""
    return [frozenset(tree.order[leaf.start:leaf.end].tolist()) for leaf in tree.iter_leaves()]


def assert_tree_valid(tree, threshold):
    n = len(tree.primitives)
    covered = np.zeros(n, dtype=np.int64)

    for idx, node in tree.iter_nodes():
        if isinstance(node, InternalNode):
            assert node.left > idx and node.right > idx
            expected = tree.nodes[node.left].bounds.union(tree.nodes[node.right].bounds)
            assert node.bounds == expected
        else:
            assert node.end > node.start
            covered[node.start:node.end] += 1
            expected = AABB.empty()
            for prim in tree.primitives[node.start:node.end]:
                expected = expected.union(prim.bounds())
            assert node.bounds == expected

            if node.count() > threshold:
                positions = np.stack([p.position for p in tree.leaf_primitives(node)])
                assert (positions == positions[0]).all()

    assert (covered == 1).all()


def test_midpoint_split_scenario(line_spheres):
    tree = build(line_spheres, leaf_threshold=2)

    assert len(tree.nodes) == 5
    root = tree.nodes[0]
    assert isinstance(root, InternalNode)
    assert (root.left, root.right) == (1, 2)

    right = tree.nodes[2]
    assert isinstance(right, InternalNode)
    assert (right.left, right.right) == (3, 4)

    assert isinstance(tree.nodes[1], LeafNode)
    assert source_sets(tree) == [frozenset({0, 1}), frozenset({2}), frozenset({3, 4})]
    assert [leaf.count() for leaf in tree.iter_leaves()] == [2, 1, 2]

    assert_tree_valid(tree, 2)


def test_single_primitive():
    p = Primitive([1.0, 2.0, 3.0], 0.5)
    tree = build([p], leaf_threshold=1)

    assert len(tree.nodes) == 1
    leaf = tree.nodes[0]
    assert isinstance(leaf, LeafNode)
    assert (leaf.start, leaf.end) == (0, 1)
    assert leaf.bounds == p.bounds()


def test_empty_input_raises():
    with pytest.raises(EmptyInputError):
        build([], leaf_threshold=2)
    assert issubclass(EmptyInputError, ValueError)


@pytest.mark.parametrize("threshold", [0, -3, 1.5, True])
def test_invalid_threshold_rejected(threshold, line_spheres):
    with pytest.raises(ValueError):
        build(line_spheres, leaf_threshold=threshold)


def test_non_primitive_input_rejected():
    with pytest.raises(TypeError):
        build([(0.0, 0.0, 0.0)], leaf_threshold=1)


def test_coincident_primitives_stay_in_one_leaf():
    prims = [Primitive([3.0, -1.0, 2.0], 1.0) for _ in range(10)]
    builder = BVHBuilder(BVHConfig(leaf_threshold=2))
    tree = builder.build(prims)

    assert len(tree.nodes) == 1
    leaf = tree.nodes[0]
    assert isinstance(leaf, LeafNode)
    assert (leaf.start, leaf.end) == (0, 10)
    assert builder.stats['degenerate_splits'] == 1
    assert builder.stats['splits_performed'] == 0


def test_coincident_cluster_among_spread_primitives():
    prims = spheres_on_x([-40, -20, 0, 20, 40])
    prims += [Primitive([7.0, 0.0, 0.0], 1.0) for _ in range(6)]
    builder = BVHBuilder(BVHConfig(leaf_threshold=1))
    tree = builder.build(prims)

    assert_tree_valid(tree, 1)
    oversized = [leaf for leaf in tree.iter_leaves() if leaf.count() > 1]
    assert len(oversized) == 1
    assert sorted(tree.order[oversized[0].start:oversized[0].end].tolist()) == list(range(5, 11))
    assert builder.stats['degenerate_splits'] == 1


@pytest.mark.parametrize("threshold", [1, 2, 4, 7])
def test_random_scene_invariants(random_spheres, threshold):
    tree = build(random_spheres, leaf_threshold=threshold)
    assert_tree_valid(tree, threshold)
    assert all(leaf.count() <= threshold for leaf in tree.iter_leaves())


def test_build_is_deterministic(random_spheres):
    first = build(random_spheres, leaf_threshold=3)
    second = build(random_spheres, leaf_threshold=3)

    assert len(first.nodes) == len(second.nodes)
    for a, b in zip(first.nodes, second.nodes):
        assert type(a) is type(b)
        assert a.bounds == b.bounds
    assert source_sets(first) == source_sets(second)


def test_input_sequence_is_not_mutated(random_spheres):
    original = list(random_spheres)
    tree = build(random_spheres, leaf_threshold=2)

    assert all(a is b for a, b in zip(random_spheres, original))
    assert sorted(tree.order.tolist()) == list(range(len(original)))
    for k, prim in enumerate(tree.primitives):
        assert prim is original[tree.order[k]]


def test_split_follows_longest_axis():
    prims = [Primitive([0.0, y, 0.0], 1.0) for y in (-10.0, -5.0, 5.0, 10.0)]
    tree = build(prims, leaf_threshold=2)

    root = tree.nodes[0]
    assert isinstance(root, InternalNode)
    left = tree.nodes[root.left]
    right = tree.nodes[root.right]
    assert left.bounds.upper[1] <= 0.0
    assert right.bounds.lower[1] >= 0.0
    assert source_sets(tree) == [frozenset({0, 1}), frozenset({2, 3})]


@pytest.mark.parametrize("extent,axis", [
    ((1, 1, 1), 0),
    ((1, 2, 2), 1),
    ((1, 2, 3), 2),
    ((3, 1, 3), 0),
    ((1, 1, 2), 2),
])
def test_choose_split_axis_tie_break(extent, axis):
    box = AABB([0, 0, 0], extent)
    assert BVHBuilder.choose_split_axis(box) == axis


def test_chain_of_doubling_positions():
    xs = [2.0 ** i for i in range(41)]
    tree = build(spheres_on_x(xs, radius=0.25), leaf_threshold=1)

    assert len(tree.nodes) == 81
    assert tree.leaf_count() == 41
    assert tree.depth() == 40
    assert_tree_valid(tree, 1)


def test_subdivide_reenters_internal_nodes(random_spheres):
    builder = BVHBuilder(BVHConfig(leaf_threshold=8))
    tree = builder.build(random_spheres)
    snapshot = [(type(node), node.bounds) for node in tree.nodes]

    # Все листья уже в пределах порога: повторный проход ничего не меняет
    builder.subdivide(0, 8)
    assert [(type(node), node.bounds) for node in builder.nodes] == snapshot
    assert_tree_valid(tree, 8)
