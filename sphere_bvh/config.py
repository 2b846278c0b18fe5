"""
Конфигурация и константы для построения BVH над сферами
"""
from dataclasses import dataclass, asdict
from typing import Optional
import json
import numbers
from pathlib import Path

# ============ КОНСТАНТЫ ============

# Разбиение
DEFAULT_LEAF_THRESHOLD = 2  # Максимум примитивов в листе
AXIS_NAMES = ('X', 'Y', 'Z')

# Примитивы
DEFAULT_RADIUS = 5.0  # Радиус для входных файлов без столбца r

# SAH (Surface Area Heuristic)
SAH_TRAVERSAL_COST = 1.0  # Стоимость обхода внутреннего узла
SAH_INTERSECTION_COST = 1.0  # Стоимость пересечения с одним примитивом

# Эпсилоны
AREA_EPSILON = 1e-12  # Минимальная площадь поверхности корня

# Трассировка
TRACE_MAX_PRIMITIVES = 100_000  # Предел примитивов в JSON снимке


@dataclass
class BVHConfig:
    """Конфигурация построителя BVH"""

    # ======== Разбиение ========
    leaf_threshold: int = DEFAULT_LEAF_THRESHOLD

    # ======== Загрузка ========
    default_radius: float = DEFAULT_RADIUS

    # ======== Метрики ========
    traversal_cost: float = SAH_TRAVERSAL_COST
    intersection_cost: float = SAH_INTERSECTION_COST

    # ======== Трассировка ========
    trace_enabled: bool = False
    trace_max_primitives: int = TRACE_MAX_PRIMITIVES

    def validate(self) -> None:
        """Проверка корректности конфигурации"""
        if isinstance(self.leaf_threshold, bool) or not isinstance(self.leaf_threshold, numbers.Integral):
            raise ValueError(
                f"leaf_threshold должен быть целым числом, получено: {self.leaf_threshold!r}"
            )

        if self.leaf_threshold < 1:
            raise ValueError(f"leaf_threshold должен быть >= 1, получено: {self.leaf_threshold}")

        if not self.default_radius > 0:
            raise ValueError(f"default_radius должен быть > 0, получено: {self.default_radius}")

        if self.traversal_cost < 0 or self.intersection_cost < 0:
            raise ValueError("Стоимости SAH не могут быть отрицательными")

        if self.trace_max_primitives < 0:
            raise ValueError(
                f"trace_max_primitives должно быть >= 0, получено: {self.trace_max_primitives}"
            )

    def save(self, path: Path) -> None:
        """Сохранение конфигурации в JSON"""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: Path) -> 'BVHConfig':
        """Загрузка конфигурации из JSON"""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls(**data)

    @classmethod
    def from_args(cls, args, base: Optional['BVHConfig'] = None) -> 'BVHConfig':
        """
        Создание конфигурации из аргументов командной строки

        Args:
            args: Результат argparse
            base: Конфигурация из файла, поверх которой применяются аргументы
        """
        config = base if base is not None else cls()

        # Обновляем только то, что явно задано
        if getattr(args, 'leaf_threshold', None) is not None:
            config.leaf_threshold = args.leaf_threshold
        if getattr(args, 'default_radius', None) is not None:
            config.default_radius = args.default_radius
        if getattr(args, 'trace_json', False):
            config.trace_enabled = True
        if getattr(args, 'trace_max_primitives', None) is not None:
            config.trace_max_primitives = args.trace_max_primitives

        config.validate()
        return config
