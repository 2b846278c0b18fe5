"""
Ядро: структуры BVH, построитель и метрики
"""
from .structures import AABB, Primitive, LeafNode, InternalNode, Node, Tree

__all__ = ['AABB', 'Primitive', 'LeafNode', 'InternalNode', 'Node', 'Tree']
