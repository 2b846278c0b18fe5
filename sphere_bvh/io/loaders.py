"""
Загрузчики наборов примитивов из файлов
"""
import json
import numpy as np
from numpy.typing import NDArray
from pathlib import Path
from typing import Tuple, Dict, Any, List, Optional, Union
import logging

from ..config import DEFAULT_RADIUS
from ..core.structures import Primitive

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = ('.txt', '.xyz', '.pts', '.csv')


def load_primitives(file_path: Union[str, Path],
                    default_radius: float = DEFAULT_RADIUS) -> Tuple[List[Primitive], Dict[str, Any]]:
    """
    Универсальный загрузчик набора примитивов

    Args:
        file_path: Путь к файлу
        default_radius: Радиус для данных без столбца r

    Returns:
        (primitives, metadata)

    Поддерживаемые форматы:
        .txt/.xyz/.pts/.csv: Таблица чисел, столбцы x y z [r]
        .json: Список {"position": [x, y, z], "radius": r}
        .npy: Массив N×3 или N×4
        .npz: Ключи positions и (опционально) radii
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Файл не найден: {path}")

    ext = path.suffix.lower()
    metadata: Dict[str, Any] = {
        'format': ext.lstrip('.'),
        'source_path': path.as_posix(),
        'filename': path.name
    }

    logger.info(f"Loading {ext} file: {path.name}")

    if ext in TEXT_EXTENSIONS:
        positions, radii, meta = _load_text_format(path)
    elif ext == '.json':
        positions, radii, meta = _load_json_format(path)
    elif ext in ('.npy', '.npz'):
        positions, radii, meta = _load_numpy_format(path)
    else:
        raise ValueError(f"Неподдерживаемый формат: {ext}")

    metadata.update(meta)
    if radii is None:
        radii = np.full(positions.shape[0], float(default_radius))
        metadata['default_radius'] = float(default_radius)
        logger.debug(f"No radius column, using default radius {default_radius}")

    primitives = primitives_from_arrays(positions, radii)

    logger.info(f"Loaded {len(primitives):,} primitives from {path.name}")
    return primitives, metadata


def primitives_from_arrays(positions: NDArray[np.floating],
                           radii: NDArray[np.floating]) -> List[Primitive]:
    """
    Сборка примитивов из массивов координат и радиусов

    Args:
        positions: Массив N×3
        radii: Массив N (или скаляр)
    """
    positions = np.asarray(positions, dtype=np.float64)
    if positions.ndim != 2 or positions.shape[1] != 3:
        raise ValueError(f"Positions must have shape (N, 3), got {positions.shape}")

    radii = np.broadcast_to(np.asarray(radii, dtype=np.float64), (positions.shape[0],))
    return [Primitive(pos, r) for pos, r in zip(positions, radii)]


def _split_columns(arr: np.ndarray, path: Path) -> Tuple[np.ndarray, Optional[np.ndarray], dict]:
    """Разделение таблицы на координаты и радиусы"""
    if arr.ndim == 1:
        if arr.size in (3, 4):
            arr = arr.reshape(1, -1)
        elif arr.size % 3 == 0:
            arr = arr.reshape(-1, 3)
        else:
            raise ValueError(f"В файле {path} не удаётся разобрать столбцы x y z")

    if arr.shape[1] < 3:
        raise ValueError(f"В файле {path} меньше 3 столбцов (x y z)")

    positions = arr[:, :3].astype(np.float64)
    radii = arr[:, 3].astype(np.float64) if arr.shape[1] > 3 else None

    metadata = {'columns': int(arr.shape[1])}
    if arr.shape[1] > 4:
        logger.debug(f"Ignoring {arr.shape[1] - 4} extra columns")

    return positions, radii, metadata


def _load_text_format(path: Path) -> Tuple[np.ndarray, Optional[np.ndarray], dict]:
    """Загрузка текстовых форматов (TXT, XYZ, PTS, CSV)"""
    delimiter = ',' if path.suffix.lower() == '.csv' else None
    try:
        arr = np.loadtxt(path.as_posix(), dtype=np.float64, delimiter=delimiter, ndmin=2)
    except ValueError as e:
        raise ValueError(f"Ошибка чтения текстового файла {path}: {e}") from e

    if arr.size == 0:
        return np.empty((0, 3)), None, {'columns': 0}

    return _split_columns(arr, path)


def _load_json_format(path: Path) -> Tuple[np.ndarray, Optional[np.ndarray], dict]:
    """Загрузка JSON: список примитивов или объект с ключом primitives"""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Ошибка чтения JSON файла {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get('primitives')
    if not isinstance(data, list):
        raise ValueError(f"В файле {path} ожидается список примитивов")

    positions = []
    radii = []
    has_radius = True
    for i, item in enumerate(data):
        if not isinstance(item, dict) or 'position' not in item:
            raise ValueError(f"Примитив #{i} в {path} не содержит поля position")
        positions.append(item['position'])
        if 'radius' in item:
            radii.append(item['radius'])
        else:
            has_radius = False

    if not positions:
        return np.empty((0, 3)), None, {'columns': 0}

    try:
        positions_arr = np.asarray(positions, dtype=np.float64)
    except ValueError as e:
        raise ValueError(f"Некорректные координаты в {path}: {e}") from e

    if positions_arr.ndim != 2 or positions_arr.shape[1] != 3:
        raise ValueError(f"В файле {path} position должен содержать 3 числа")

    radii_arr = np.asarray(radii, dtype=np.float64) if has_radius else None
    if radii and not has_radius:
        logger.warning(f"Only some primitives in {path.name} have a radius, using default for all")

    return positions_arr, radii_arr, {'columns': 4 if has_radius else 3}


def _load_numpy_format(path: Path) -> Tuple[np.ndarray, Optional[np.ndarray], dict]:
    """Загрузка .npy (N×3 / N×4) и .npz (positions, radii)"""
    if path.suffix.lower() == '.npy':
        arr = np.load(path.as_posix(), allow_pickle=False)
        if arr.size == 0:
            return np.empty((0, 3)), None, {'columns': 0}
        return _split_columns(np.asarray(arr, dtype=np.float64), path)

    with np.load(path.as_posix(), allow_pickle=False) as archive:
        if 'positions' not in archive.files:
            raise ValueError(f"В архиве {path} нет массива positions")
        positions = np.asarray(archive['positions'], dtype=np.float64)
        radii = np.asarray(archive['radii'], dtype=np.float64) if 'radii' in archive.files else None

    if positions.size == 0:
        return np.empty((0, 3)), None, {'columns': 0}
    if positions.ndim != 2 or positions.shape[1] != 3:
        raise ValueError(f"positions в {path} должен иметь форму (N, 3), получено {positions.shape}")
    if radii is not None and radii.shape != (positions.shape[0],):
        raise ValueError(f"radii в {path} должен иметь форму ({positions.shape[0]},), получено {radii.shape}")

    return positions, radii, {'columns': 4 if radii is not None else 3}


def validate_primitives(primitives: List[Primitive],
                        min_count: int = 1,
                        max_count: Optional[int] = None) -> None:
    """
    Валидация загруженного набора примитивов

    Args:
        primitives: Список примитивов
        min_count: Минимальное количество
        max_count: Максимальное количество (опционально)

    Raises:
        ValueError: Если данные не соответствуют требованиям
    """
    if not isinstance(primitives, list):
        raise TypeError("Expected list of Primitive")

    n = len(primitives)

    if n < min_count:
        raise ValueError(f"Too few primitives: {n} < {min_count}")

    if max_count and n > max_count:
        raise ValueError(f"Too many primitives: {n} > {max_count}")

    if n == 0:
        return

    positions = np.stack([p.position for p in primitives])
    radii = np.array([p.radius for p in primitives])

    if not np.isfinite(positions).all():
        n_invalid = (~np.isfinite(positions)).any(axis=1).sum()
        raise ValueError(f"Found {n_invalid} primitives with NaN or Inf coordinates")

    if not (radii > 0).all():
        raise ValueError(f"Found {(radii <= 0).sum()} primitives with non-positive radius")

    # Совпадающие центры допустимы, но дают листья больше порога
    n_unique = np.unique(positions, axis=0).shape[0]
    if n_unique < n:
        logger.warning(f"{n - n_unique} primitives share a position with another one")
