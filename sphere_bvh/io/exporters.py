import json
import numpy as np
from pathlib import Path
from typing import Optional, List, Any, Union
from dataclasses import asdict
import logging

from ..core.structures import Tree, LeafNode, InternalNode
from ..core.metrics import MetricsCalculator

logger = logging.getLogger(__name__)


def export_tree(tree: Tree,
                output_dir: Union[str, Path],
                formats: List[str]) -> None:
    """
    Экспорт дерева в указанные форматы

    Args:
        tree: Построенное дерево
        output_dir: Выходная директория
        formats: Список форматов ['json', 'xyz', 'txt', 'pts']
    """
    out_path = Path(output_dir)
    out_path.mkdir(parents=True, exist_ok=True)

    for fmt in formats:
        if fmt == 'none':
            continue

        logger.info(f"Exporting to {fmt.upper()} format...")

        if fmt == 'json':
            export_tree_json(tree, out_path / 'tree.json')

        elif fmt in ['xyz', 'txt', 'pts']:
            export_leaves_text(tree, out_path / f'leaves_{fmt}', extension=fmt)

        else:
            logger.warning(f"Unknown export format: {fmt}")


def node_to_dict(index: int, node: Union[LeafNode, InternalNode]) -> dict:
    """Сериализация одного узла арены"""
    if isinstance(node, InternalNode):
        return {
            'index': index,
            'kind': 'internal',
            'bounds': node.bounds.to_dict(),
            'left': node.left,
            'right': node.right
        }
    return {
        'index': index,
        'kind': 'leaf',
        'bounds': node.bounds.to_dict(),
        'start': node.start,
        'end': node.end
    }


def export_tree_json(tree: Tree, output_file: Path) -> None:
    """
    Экспорт арены узлов и переставленных примитивов в JSON

    Формат:
    {
        "root": 0,
        "nodes": [
            {"index": 0, "kind": "internal", "bounds": {...}, "left": 1, "right": 2},
            {"index": 1, "kind": "leaf", "bounds": {...}, "start": 0, "end": 2},
            ...
        ],
        "primitives": [
            {"position": [x, y, z], "radius": r, "source_index": i},
            ...
        ]
    }
    """
    primitives_data = []
    for k, prim in enumerate(tree.primitives):
        item = prim.to_dict()
        if k < tree.order.size:
            item['source_index'] = int(tree.order[k])
        primitives_data.append(item)

    data = {
        'root': 0,
        'nodes': [node_to_dict(i, node) for i, node in enumerate(tree.nodes)],
        'primitives': primitives_data
    }

    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    logger.info(f"Exported {len(tree.nodes)} nodes to {output_file}")


def export_leaves_text(tree: Tree,
                       output_dir: Path,
                       extension: str = 'xyz') -> int:
    """
    Экспорт примитивов каждого листа в отдельный текстовый файл

    Args:
        tree: Построенное дерево
        output_dir: Директория для файлов
        extension: Расширение файлов ('xyz', 'txt', 'pts')

    Returns:
        Количество записанных файлов
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    n_leaves = 0
    for i, leaf in enumerate(tree.iter_leaves()):
        rows = np.array(
            [np.append(p.position, p.radius) for p in tree.leaf_primitives(leaf)],
            dtype=np.float64
        )
        output_file = output_dir / f'leaf_{i:05d}.{extension}'
        np.savetxt(output_file.as_posix(), rows, fmt='%.6f')
        n_leaves += 1

    logger.info(f"Exported {n_leaves} leaves to {output_dir}")
    return n_leaves


def export_statistics(tree: Tree,
                      output_file: Path,
                      build_time: Optional[float] = None,
                      peak_memory_mb: Optional[float] = None,
                      cpu_time_sec: Optional[float] = None,
                      config: Optional[Any] = None) -> dict:
    """
    Экспорт статистики построения дерева

    Args:
        tree: Построенное дерево
        output_file: Путь к выходному JSON файлу
        build_time: Время построения (секунды)
        peak_memory_mb: Память процесса после построения (МБ)
        cpu_time_sec: Процессорное время построения (секунды)
        config: Конфигурация построителя
    """
    metrics = MetricsCalculator(config)
    stats = metrics.compute_tree_stats(tree)
    positions = tree.polyline()
    n = len(tree.primitives)

    result = {
        'input': {
            'total_primitives': n,
            'bbox_min': tree.root.bounds.lower.tolist(),
            'bbox_max': tree.root.bounds.upper.tolist(),
            'centroid': positions.mean(axis=0).tolist() if n else None
        },
        'tree': {
            'depth': stats['depth'],
            'total_nodes': stats['node_count'],
            'leaf_nodes': stats['leaf_count'],
            'internal_nodes': stats['internal_count'],
            'sah_cost': stats['sah_cost'] if np.isfinite(stats['sah_cost']) else None
        },
        'leaves': {
            'min_size': stats['min_leaf_size'],
            'max_size': stats['max_leaf_size'],
            'mean_size': stats['mean_leaf_size'],
            'median_size': stats['median_leaf_size'],
            'std_size': stats['std_leaf_size'],
            'oversized': stats['oversized_leaves']
        }
    }

    if build_time is not None:
        result['performance'] = {
            'build_time_wall_sec': build_time,
            'build_time_cpu_sec': cpu_time_sec,
            'peak_memory_mb': peak_memory_mb,
            'primitives_per_sec_wall': n / build_time if build_time > 0 else 0,
            'primitives_per_sec_cpu': n / cpu_time_sec if cpu_time_sec else 0
        }

    if config is not None:
        result['config'] = asdict(config)

    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(result, f, ensure_ascii=False, indent=2)

    logger.info(f"Exported statistics to {output_file}")
    return result
