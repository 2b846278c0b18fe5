from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterator, List, Tuple, Union
import numpy as np


@dataclass
class AABB:
    """
    Axis-Aligned Bounding Box в мировых координатах

    Attributes:
        lower: Минимальный угол (x, y, z)
        upper: Максимальный угол (x, y, z)

    Пустой бокс (lower=+inf, upper=-inf) нейтрален относительно union.
    """
    lower: np.ndarray  # shape: (3,), dtype: float64
    upper: np.ndarray  # shape: (3,), dtype: float64

    def __post_init__(self):
        """Валидация данных после инициализации"""
        self.lower = np.asarray(self.lower, dtype=np.float64).copy()
        self.upper = np.asarray(self.upper, dtype=np.float64).copy()

        if self.lower.shape != (3,) or self.upper.shape != (3,):
            raise ValueError("AABB corners must be 3D vectors")

    @classmethod
    def empty(cls) -> 'AABB':
        """Бокс до первого вычисления границ"""
        return cls(np.full(3, np.inf), np.full(3, -np.inf))

    def is_empty(self) -> bool:
        return bool(np.any(self.lower > self.upper))

    def union(self, other: 'AABB') -> 'AABB':
        """Покомпонентный min нижних и max верхних углов"""
        return AABB(np.minimum(self.lower, other.lower),
                    np.maximum(self.upper, other.upper))

    def extent(self) -> np.ndarray:
        """Размеры по осям"""
        return self.upper - self.lower

    def center(self) -> np.ndarray:
        return (self.lower + self.upper) / 2.0

    def surface_area(self) -> float:
        """Площадь поверхности параллелепипеда"""
        if self.is_empty():
            return 0.0
        dx, dy, dz = self.extent()
        return float(2 * (dx * dy + dx * dz + dy * dz))

    def volume(self) -> float:
        """Объём параллелепипеда"""
        if self.is_empty():
            return 0.0
        return float(np.prod(self.extent()))

    def to_dict(self) -> dict:
        return {
            'lower': self.lower.tolist(),
            'upper': self.upper.tolist()
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, AABB):
            return NotImplemented
        return (np.array_equal(self.lower, other.lower)
                and np.array_equal(self.upper, other.upper))


@dataclass
class Primitive:
    """
    Сфера, ограниченная радиусом

    Attributes:
        position: Центр (x, y, z)
        radius: Радиус (> 0)
    """
    position: np.ndarray  # shape: (3,), dtype: float64
    radius: float

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64).copy()
        self.radius = float(self.radius)

        if self.position.shape != (3,):
            raise ValueError("Primitive position must be a 3D vector")

        if not np.isfinite(self.position).all() or not np.isfinite(self.radius):
            raise ValueError("Primitive position and radius must be finite")

        if self.radius <= 0:
            raise ValueError(f"Primitive radius must be positive, got {self.radius}")

    def bounds(self) -> AABB:
        """Куб, описанный вокруг сферы"""
        return AABB(self.position - self.radius, self.position + self.radius)

    def to_dict(self) -> dict:
        return {
            'position': self.position.tolist(),
            'radius': self.radius
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, Primitive):
            return NotImplemented
        return np.array_equal(self.position, other.position) and self.radius == other.radius


@dataclass
class LeafNode:
    """
    Лист BVH

    Attributes:
        bounds: Ограничивающий бокс примитивов диапазона
        start: Первый индекс в массиве примитивов
        end: Индекс за последним (не включительно)
    """
    bounds: AABB
    start: int
    end: int

    def count(self) -> int:
        """Количество примитивов в листе"""
        return self.end - self.start


@dataclass
class InternalNode:
    """
    Внутренний узел BVH

    Attributes:
        bounds: Объединение границ детей
        left, right: Индексы детей в арене узлов
    """
    bounds: AABB
    left: int
    right: int


Node = Union[LeafNode, InternalNode]


@dataclass
class Tree:
    """
    Готовое дерево: арена узлов и переставленный массив примитивов

    Attributes:
        nodes: Арена узлов, корень всегда с индексом 0
        primitives: Примитивы в порядке после разбиения
        order: order[k] - исходный индекс примитива, стоящего в слоте k
    """
    nodes: List[Node]
    primitives: List[Primitive]
    order: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))

    @property
    def root(self) -> Node:
        return self.nodes[0]

    def iter_nodes(self) -> Iterator[Tuple[int, Node]]:
        """Итератор по узлам, достижимым из корня (сначала левый)"""
        stack = [0]
        while stack:
            idx = stack.pop()
            node = self.nodes[idx]
            yield idx, node
            if isinstance(node, InternalNode):
                stack.append(node.right)
                stack.append(node.left)

    def iter_leaves(self) -> Iterator[LeafNode]:
        """Итератор по листовым узлам"""
        for _, node in self.iter_nodes():
            if isinstance(node, LeafNode):
                yield node

    def leaf_ranges(self) -> List[Tuple[int, int]]:
        return [(leaf.start, leaf.end) for leaf in self.iter_leaves()]

    def depth(self, idx: int = 0) -> int:
        """Глубина поддерева с корнем idx"""
        best = 0
        stack = [(idx, 0)]
        while stack:
            node_idx, level = stack.pop()
            node = self.nodes[node_idx]
            if isinstance(node, InternalNode):
                stack.append((node.left, level + 1))
                stack.append((node.right, level + 1))
            else:
                best = max(best, level)
        return best

    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    def leaf_count(self) -> int:
        return sum(1 for _ in self.iter_leaves())

    def leaf_primitives(self, leaf: LeafNode) -> List[Primitive]:
        return self.primitives[leaf.start:leaf.end]

    def polyline(self) -> np.ndarray:
        """Центры примитивов в порядке после разбиения, shape (n, 3)"""
        if not self.primitives:
            return np.empty((0, 3), dtype=np.float64)
        return np.stack([p.position for p in self.primitives])

    def get_stats(self) -> dict:
        """Статистика дерева"""
        leaf_sizes = [leaf.count() for leaf in self.iter_leaves()]
        return {
            'depth': self.depth(),
            'node_count': self.node_count(),
            'leaf_count': len(leaf_sizes),
            'total_primitives': sum(leaf_sizes),
            'min_leaf_size': min(leaf_sizes) if leaf_sizes else 0,
            'max_leaf_size': max(leaf_sizes) if leaf_sizes else 0,
            'median_leaf_size': int(np.median(leaf_sizes)) if leaf_sizes else 0
        }
