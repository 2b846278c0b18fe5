import numpy as np
from typing import Optional
import logging

from .structures import Tree, LeafNode, InternalNode
from ..config import BVHConfig, AREA_EPSILON

logger = logging.getLogger(__name__)


class MetricsCalculator:
    """Метрики качества построенного дерева"""

    def __init__(self, config: Optional[BVHConfig] = None):
        self.config = config if config is not None else BVHConfig()

    def compute_sah_cost(self, tree: Tree) -> float:
        """
        Surface Area Heuristic (SAH) для всего дерева

        C = sum_internal(c_trav * SA(n)) / SA(root)
          + sum_leaf(c_isect * count(n) * SA(n)) / SA(root)

        Args:
            tree: Построенное дерево

        Returns:
            Ожидаемая стоимость обхода (inf если площадь корня нулевая)
        """
        surface_root = tree.root.bounds.surface_area()
        if surface_root <= AREA_EPSILON:
            return float('inf')

        c_trav = self.config.traversal_cost
        c_isect = self.config.intersection_cost

        cost = 0.0
        for _, node in tree.iter_nodes():
            area = node.bounds.surface_area()
            if isinstance(node, InternalNode):
                cost += c_trav * area
            else:
                cost += c_isect * node.count() * area

        cost /= surface_root

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"SAH cost: {cost:.4f} (root SA={surface_root:.4f})")

        return cost

    def count_oversized_leaves(self, tree: Tree) -> int:
        """Листья, оставшиеся больше порога после одностороннего разреза"""
        threshold = self.config.leaf_threshold
        return sum(1 for leaf in tree.iter_leaves() if leaf.count() > threshold)

    def compute_tree_stats(self, tree: Tree) -> dict:
        """
        Сводная статистика дерева

        Returns:
            Словарь с глубиной, числом узлов и распределением размеров листьев
        """
        stats = tree.get_stats()
        leaf_sizes = np.array([leaf.count() for leaf in tree.iter_leaves()], dtype=np.int64)

        stats['internal_count'] = stats['node_count'] - stats['leaf_count']
        stats['mean_leaf_size'] = float(leaf_sizes.mean()) if leaf_sizes.size else 0.0
        stats['std_leaf_size'] = float(leaf_sizes.std()) if leaf_sizes.size else 0.0
        stats['oversized_leaves'] = self.count_oversized_leaves(tree)
        stats['sah_cost'] = self.compute_sah_cost(tree)

        return stats

    def check_invariants(self, tree: Tree) -> None:
        """
        Проверка структурных инвариантов дерева

        Raises:
            ValueError: Если нарушено покрытие диапазона или согласованность границ
        """
        n = len(tree.primitives)
        covered = np.zeros(n, dtype=np.int64)

        for idx, node in tree.iter_nodes():
            if isinstance(node, InternalNode):
                if node.left <= idx or node.right <= idx:
                    raise ValueError(f"Node {idx}: children must follow parent in the arena")
                expected = tree.nodes[node.left].bounds.union(tree.nodes[node.right].bounds)
            elif isinstance(node, LeafNode):
                if node.end <= node.start:
                    raise ValueError(f"Node {idx}: empty leaf range [{node.start}, {node.end})")
                covered[node.start:node.end] += 1
                expected = tree.primitives[node.start].bounds()
                for prim in tree.primitives[node.start + 1:node.end]:
                    expected = expected.union(prim.bounds())
            else:
                raise ValueError(f"Node {idx}: unknown node type {type(node).__name__}")

            if node.bounds != expected:
                raise ValueError(f"Node {idx}: bounds do not match its contents")

        if not np.all(covered == 1):
            raise ValueError("Leaf ranges do not partition the primitive array")
