import numpy as np
import time
from typing import Iterable, List, Optional, Tuple
import logging

from .structures import AABB, Primitive, LeafNode, InternalNode, Node, Tree
from ..config import BVHConfig, AXIS_NAMES, DEFAULT_LEAF_THRESHOLD
from ..visualization.tracer import TraceRecorder

logger = logging.getLogger(__name__)


class EmptyInputError(ValueError):
    """Попытка построить BVH над пустым набором примитивов"""


class BVHBuilder:
    """Построитель BVH с разбиением по середине самой длинной оси"""

    def __init__(self, config: BVHConfig, trace: Optional[TraceRecorder] = None):
        """
        Args:
            config: Конфигурация
            trace: Опциональный трассировщик для визуализации
        """
        self.config = config
        self.trace = trace

        # Рабочее состояние (заполняется в build)
        self.nodes: List[Node] = []
        self._positions = np.empty((0, 3), dtype=np.float64)
        self._radii = np.empty(0, dtype=np.float64)
        self._order = np.empty(0, dtype=np.int64)

        # Статистика построения
        self.stats = {
            'build_time': 0.0,
            'nodes_created': 0,
            'splits_performed': 0,
            'degenerate_splits': 0
        }

    def build(self, primitives: Iterable[Primitive]) -> Tree:
        """
        Построение BVH дерева

        Args:
            primitives: Непустая последовательность примитивов

        Returns:
            Дерево с ареной узлов и переставленным массивом примитивов

        Raises:
            EmptyInputError: Если примитивов нет
            ValueError: Если конфигурация некорректна
        """
        start_time = time.perf_counter()
        self.config.validate()

        primitives = list(primitives)
        if not primitives:
            raise EmptyInputError("Cannot build a BVH over an empty primitive set")

        for i, prim in enumerate(primitives):
            if not isinstance(prim, Primitive):
                raise TypeError(f"Expected Primitive at index {i}, got {type(prim).__name__}")

        n = len(primitives)
        threshold = self.config.leaf_threshold

        # Копии координат: разбиение переставляет их на месте
        self._positions = np.stack([p.position for p in primitives]).astype(np.float64)
        self._radii = np.array([p.radius for p in primitives], dtype=np.float64)
        self._order = np.arange(n, dtype=np.int64)

        self.stats['nodes_created'] = 1
        self.stats['splits_performed'] = 0
        self.stats['degenerate_splits'] = 0

        logger.info(f"Building BVH for {n} primitives with leaf_threshold={threshold}")

        # Корень: один лист на весь массив
        self.nodes = [LeafNode(AABB.empty(), 0, n)]
        self.compute_bounds(0)
        self.subdivide(0, threshold)

        tree = Tree(
            nodes=self.nodes,
            primitives=[primitives[k] for k in self._order],
            order=self._order.copy()
        )

        # Финальная трассировка
        if self.trace:
            self.trace.record_final_tree(tree)
            self.trace.close()

        self.stats['build_time'] = time.perf_counter() - start_time

        tree_stats = tree.get_stats()
        logger.info(
            f"BVH built in {self.stats['build_time']:.4f}s: "
            f"{tree_stats['node_count']} nodes, "
            f"{tree_stats['leaf_count']} leaves, "
            f"depth={tree_stats['depth']}"
        )
        if self.stats['degenerate_splits']:
            logger.info(f"{self.stats['degenerate_splits']} leaves kept above threshold (one-sided split)")

        return tree

    def compute_bounds(self, node_idx: int) -> None:
        """
        Пересчёт границ узла

        Для листа - объединение боксов его примитивов,
        для внутреннего узла - объединение границ детей (они уже должны быть посчитаны).
        """
        node = self.nodes[node_idx]

        if isinstance(node, InternalNode):
            left = self.nodes[node.left]
            right = self.nodes[node.right]
            node.bounds = left.bounds.union(right.bounds)
        elif isinstance(node, LeafNode):
            pos = self._positions[node.start:node.end]
            rad = self._radii[node.start:node.end, None]
            node.bounds = AABB((pos - rad).min(axis=0), (pos + rad).max(axis=0))
        else:
            raise TypeError(f"Unknown node type: {type(node).__name__}")

    def subdivide(self, node_idx: int, threshold: int) -> None:
        """
        Разбиение поддерева с корнем node_idx

        Обход в глубину, левый потомок целиком раньше правого, поэтому порядок
        узлов в арене совпадает с рекурсивным построением. Стек вместо рекурсии:
        на вытянутых распределениях глубина доходит до n / threshold.
        """
        stack = [node_idx]
        converted = []

        while stack:
            idx = stack.pop()
            node = self.nodes[idx]

            if isinstance(node, InternalNode):
                stack.append(node.right)
                stack.append(node.left)
                continue

            children = self._split_leaf(idx, node, threshold)
            if children is None:
                continue

            left, right = children
            self.nodes[idx] = InternalNode(node.bounds, left, right)
            converted.append(idx)

            stack.append(right)
            stack.append(left)

        # Снизу вверх: дети всегда имеют больший индекс, чем родитель
        for idx in reversed(converted):
            self.compute_bounds(idx)

    def _split_leaf(self,
                    node_idx: int,
                    leaf: LeafNode,
                    threshold: int) -> Optional[Tuple[int, int]]:
        """
        Попытка разбить лист на два

        Returns:
            Индексы новых листов или None, если лист остаётся терминальным
        """
        count = leaf.end - leaf.start
        if count <= threshold:
            return None

        axis = self.choose_split_axis(leaf.bounds)
        extent = leaf.bounds.extent()
        split = leaf.bounds.lower[axis] + extent[axis] / 2.0

        mid = self._partition(leaf.start, leaf.end, axis, split)

        if mid == leaf.start or mid == leaf.end:
            # Все примитивы по одну сторону плоскости: оставляем лист как есть
            self.stats['degenerate_splits'] += 1
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    f"[Split] node={node_idx} one-sided on {AXIS_NAMES[axis]} at {split:.6g}, "
                    f"keeping leaf of {count} primitives"
                )
            if self.trace:
                self.trace.record_split_decision(
                    self._decision_row(node_idx, leaf, axis, split, mid, 'degenerate')
                )
            return None

        left = len(self.nodes)
        self.nodes.append(LeafNode(AABB.empty(), leaf.start, mid))
        right = len(self.nodes)
        self.nodes.append(LeafNode(AABB.empty(), mid, leaf.end))

        self.compute_bounds(left)
        self.compute_bounds(right)

        self.stats['nodes_created'] += 2
        self.stats['splits_performed'] += 1

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"[Split] node={node_idx} axis={AXIS_NAMES[axis]} plane={split:.6g} "
                f"nL={mid - leaf.start} nR={leaf.end - mid} -> ({left}, {right})"
            )

        if self.trace:
            self.trace.record_split_decision(
                self._decision_row(node_idx, leaf, axis, split, mid, 'split')
            )

        return left, right

    @staticmethod
    def choose_split_axis(bounds: AABB) -> int:
        """Самая длинная ось; при равенстве выигрывает меньший индекс"""
        extent = bounds.extent()
        axis = 0
        if extent[1] > extent[0]:
            axis = 1
        if extent[2] > extent[axis]:
            axis = 2
        return axis

    def _partition(self, start: int, end: int, axis: int, split: float) -> int:
        """
        Разбиение диапазона [start, end) на месте двумя указателями

        Returns:
            Первый индекс примитива с координатой >= split
        """
        coords = self._positions[:, axis]
        i, j = start, end - 1
        while i <= j:
            if coords[i] < split:
                i += 1
            else:
                self._swap(i, j)
                j -= 1
        return i

    def _swap(self, i: int, j: int) -> None:
        if i == j:
            return
        self._positions[[i, j]] = self._positions[[j, i]]
        self._radii[[i, j]] = self._radii[[j, i]]
        self._order[[i, j]] = self._order[[j, i]]

    def _decision_row(self,
                      node_idx: int,
                      leaf: LeafNode,
                      axis: int,
                      split: float,
                      mid: int,
                      decision: str) -> dict:
        """Строка статистики для CSV трассировки"""
        return {
            'node': node_idx,
            'start': leaf.start,
            'end': leaf.end,
            'count': leaf.end - leaf.start,
            'split_axis': AXIS_NAMES[axis],
            'split_position': float(split),
            'left_count': mid - leaf.start,
            'right_count': leaf.end - mid,
            'decision': decision
        }


def build(primitives: Iterable[Primitive],
          leaf_threshold: int = DEFAULT_LEAF_THRESHOLD) -> Tree:
    """
    Построение BVH с конфигурацией по умолчанию

    Args:
        primitives: Непустая последовательность примитивов
        leaf_threshold: Максимум примитивов в листе (>= 1)

    Returns:
        Построенное дерево
    """
    config = BVHConfig(leaf_threshold=leaf_threshold)
    return BVHBuilder(config).build(primitives)
