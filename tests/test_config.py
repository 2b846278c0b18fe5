import argparse

import pytest

from sphere_bvh.config import BVHConfig, DEFAULT_LEAF_THRESHOLD, DEFAULT_RADIUS


def test_defaults_are_valid():
    config = BVHConfig()
    config.validate()
    assert config.leaf_threshold == DEFAULT_LEAF_THRESHOLD
    assert config.default_radius == DEFAULT_RADIUS
    assert config.trace_enabled is False


@pytest.mark.parametrize("kwargs", [
    {'leaf_threshold': 0},
    {'leaf_threshold': 2.0},
    {'default_radius': 0.0},
    {'traversal_cost': -1.0},
    {'trace_max_primitives': -1},
])
def test_validate_rejects(kwargs):
    with pytest.raises(ValueError):
        BVHConfig(**kwargs).validate()


def test_save_and_load(tmp_path):
    path = tmp_path / 'nested' / 'config.json'
    BVHConfig(leaf_threshold=7, default_radius=0.5, trace_enabled=True).save(path)

    loaded = BVHConfig.load(path)
    assert loaded == BVHConfig(leaf_threshold=7, default_radius=0.5, trace_enabled=True)


def test_from_args_overrides_only_given_values():
    base = BVHConfig(leaf_threshold=9, default_radius=2.0)
    args = argparse.Namespace(leaf_threshold=None, default_radius=3.0,
                              trace_json=True, trace_max_primitives=None)

    config = BVHConfig.from_args(args, base)
    assert config.leaf_threshold == 9
    assert config.default_radius == 3.0
    assert config.trace_enabled is True


def test_from_args_validates():
    args = argparse.Namespace(leaf_threshold=0)
    with pytest.raises(ValueError):
        BVHConfig.from_args(args)
