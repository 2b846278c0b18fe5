"""
Модуль ввода-вывода для BVH
"""
from .loaders import (
    load_primitives,
    primitives_from_arrays,
    validate_primitives
)
from .exporters import (
    export_tree,
    export_tree_json,
    export_leaves_text,
    export_statistics
)

__all__ = [
    'load_primitives',
    'primitives_from_arrays',
    'validate_primitives',
    'export_tree',
    'export_tree_json',
    'export_leaves_text',
    'export_statistics'
]
