from __future__ import annotations
from typing import Any

# 1) Версия пакета
from importlib.metadata import version as _pkg_version, PackageNotFoundError

try:
    # имя дистрибутива как в setup.py
    __version__ = _pkg_version("sphere-bvh")
except PackageNotFoundError:
    # в editable/develop-режиме пакет может быть не «установлен»
    __version__ = "1.0.0"

__all__ = [
    "__version__", "build", "BVHBuilder", "EmptyInputError",
    "BVHConfig", "AABB", "Primitive", "LeafNode", "InternalNode", "Tree",
]

_LAZY = {
    "build": ".core.builder",
    "BVHBuilder": ".core.builder",
    "EmptyInputError": ".core.builder",
    "BVHConfig": ".config",
    "AABB": ".core.structures",
    "Primitive": ".core.structures",
    "LeafNode": ".core.structures",
    "InternalNode": ".core.structures",
    "Tree": ".core.structures",
}


# 2) Ленивый экспорт для публичного API (избегаем ранних импортов)
def __getattr__(name: str) -> Any:
    if name in _LAZY:
        from importlib import import_module
        module = import_module(_LAZY[name], __name__)
        return getattr(module, name)
    raise AttributeError(name)
