import numpy as np
import pytest

from sphere_bvh.core.structures import Primitive


def spheres_on_x(xs, radius=1.0):
    """Сферы с центрами на оси X"""
    return [Primitive([x, 0.0, 0.0], radius) for x in xs]


@pytest.fixture
def line_spheres():
    return spheres_on_x([-10, -5, 0, 5, 10])


@pytest.fixture
def random_spheres():
    rng = np.random.default_rng(42)
    positions = rng.uniform(-500.0, 500.0, size=(200, 3))
    radii = rng.uniform(4.0, 5.0, size=200)
    return [Primitive(p, r) for p, r in zip(positions, radii)]
