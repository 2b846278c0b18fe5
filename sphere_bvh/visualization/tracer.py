"""
Трассировщик для сбора данных визуализации процесса построения
"""
import json
import csv
from pathlib import Path
from typing import Optional, Any
from dataclasses import dataclass, field
import logging

from ..config import TRACE_MAX_PRIMITIVES
from ..core.structures import Tree, InternalNode

logger = logging.getLogger(__name__)


@dataclass
class TraceRecorder:
    """
    Сборщик артефактов для визуализации построения BVH

    Записывает:
    1. Решения о разбиении (CSV, построчно по мере построения)
    2. Снимок готового дерева: все боксы, все примитивы и ломаную
       через центры примитивов в порядке после разбиения (JSON)
    """
    max_primitives: int = TRACE_MAX_PRIMITIVES
    data: dict = field(default_factory=dict)

    _have_tree: bool = False
    _n_decisions: int = 0
    _stats_file: Optional[Any] = None
    _stats_writer: Optional[Any] = None
    _stats_header_written: bool = False

    def __post_init__(self):
        """Инициализация структуры данных"""
        self.data = {
            'metadata': {
                'version': '1.0',
                'description': 'BVH construction trace for visualization'
            },
            'decisions': []
        }

    def record_final_tree(self, tree: Tree) -> None:
        """
        Запись снимка готового дерева

        Args:
            tree: Построенное дерево
        """
        if self._have_tree:
            return

        boxes = []
        for idx, node in enumerate(tree.nodes):
            boxes.append({
                'index': idx,
                'kind': 'internal' if isinstance(node, InternalNode) else 'leaf',
                'lower': node.bounds.lower.tolist(),
                'upper': node.bounds.upper.tolist()
            })

        n = len(tree.primitives)
        shown = tree.primitives[:self.max_primitives]
        if n > len(shown):
            logger.warning(f"Trace truncated to {len(shown)} of {n} primitives")

        self.data['tree'] = {
            'boxes': boxes,
            'primitives': [p.to_dict() for p in shown],
            'polyline': [p.position.tolist() for p in shown],
            'total_nodes': len(boxes),
            'total_primitives': n
        }

        self._have_tree = True
        logger.debug(f"Recorded {len(boxes)} boxes and {len(shown)} primitives")

    def record_split_decision(self, data: dict) -> None:
        """Записывает одно решение о разбиении (в память и, если открыт, в CSV)"""
        self.data['decisions'].append(data)
        self._n_decisions += 1

        if not self._stats_writer:
            return

        if not self._stats_header_written:
            self._stats_writer.writerow(data.keys())
            self._stats_header_written = True
        self._stats_writer.writerow(data.values())

    def start_stats_recording(self, path: Path) -> None:
        """Открывает CSV-файл для записи статистики разбиений."""
        path.parent.mkdir(parents=True, exist_ok=True)
        self._stats_file = open(path, 'w', newline='', encoding='utf-8')
        self._stats_writer = csv.writer(self._stats_file)
        self._stats_header_written = False
        logger.info(f"Split statistics recording enabled, saving to {path}")

    def close(self) -> None:
        """Закрывает CSV-файл статистики."""
        if self._stats_file:
            self._stats_file.close()
            self._stats_file = None
            self._stats_writer = None
            logger.debug("Stats CSV file closed.")

    def dump(self, path: Path) -> None:
        """
        Сохранение трассировки в JSON файл

        Args:
            path: Путь к выходному файлу
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.data, f, ensure_ascii=False, indent=2)

        logger.info(f"Trace saved to {path}")

    def get_summary(self) -> dict:
        """Краткая сводка по трассировке"""
        summary = {
            'has_tree': self._have_tree,
            'n_decisions': self._n_decisions
        }

        if 'tree' in self.data:
            summary['n_boxes'] = self.data['tree']['total_nodes']
            summary['n_primitives'] = self.data['tree']['total_primitives']

        return summary
