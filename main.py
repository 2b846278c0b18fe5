#!/usr/bin/env python
"""
Sphere BVH - Точка входа для CLI

Построение BVH над набором сфер разбиением по середине самой длинной оси
"""
import psutil
import os
import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path, verbose: bool, quiet: bool = False):
    """Настраивает раздельное логирование в файл и консоль."""
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Уровень для файла всегда DEBUG, для консоли - в зависимости от флагов
    if verbose:
        console_level = logging.DEBUG
    elif quiet:
        console_level = logging.WARNING
    else:
        console_level = logging.INFO
    file_level = logging.DEBUG

    # Корневой логгер
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Убираем все предыдущие обработчики, чтобы избежать дублирования
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    # Обработчик для файла (всегда пишет DEBUG)
    file_handler = logging.FileHandler(log_path, mode='w', encoding='utf-8')
    file_handler.setLevel(file_level)
    file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    file_handler.setFormatter(file_formatter)
    root_logger.addHandler(file_handler)

    # Обработчик для консоли
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)


# Импорты модулей проекта
from sphere_bvh import __version__
from sphere_bvh.config import BVHConfig
from sphere_bvh.core.builder import BVHBuilder
from sphere_bvh.core.metrics import MetricsCalculator
from sphere_bvh.io.loaders import load_primitives, validate_primitives
from sphere_bvh.io.exporters import export_tree, export_statistics
from sphere_bvh.visualization.tracer import TraceRecorder


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Парсинг аргументов командной строки"""
    parser = argparse.ArgumentParser(
        description='Sphere BVH - построение иерархии ограничивающих объёмов',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
    Примеры использования:
    %(prog)s --input spheres.xyz --output out/ --export json xyz
    %(prog)s --input spheres.json --leaf-threshold 4 --stats
    %(prog)s --input spheres.npz --trace-json --stats-csv
            """
    )

    # Основные параметры
    parser.add_argument('--input', '-i', required=True, type=str,
                        help='Путь к файлу с примитивами')
    parser.add_argument('--output', '-o', default='output', type=str,
                        help='Выходная директория (по умолчанию: output)')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    # Экспорт
    parser.add_argument('--export', nargs='+',
                        choices=['none', 'json', 'xyz', 'txt', 'pts'],
                        default=['json'],
                        help='Форматы экспорта (можно несколько)')

    # Параметры построения
    group_algo = parser.add_argument_group('Параметры построения')
    group_algo.add_argument('--leaf-threshold', type=int,
                            help='Максимум примитивов в листе (по умолчанию: 2)')
    group_algo.add_argument('--default-radius', type=float,
                            help='Радиус для файлов без столбца r (по умолчанию: 5.0)')

    # Визуализация и отладка
    group_debug = parser.add_argument_group('Визуализация и отладка')
    group_debug.add_argument('--trace-json', action='store_true',
                             help='Сохранить JSON снимок дерева для визуализации')
    group_debug.add_argument('--trace-max-primitives', type=int,
                             help='Предел примитивов в снимке')
    group_debug.add_argument('--stats', action='store_true',
                             help='Экспортировать статистику построения')
    group_debug.add_argument('--stats-csv', action='store_true',
                             help='Сохранить CSV файл со статистикой по каждому разбиению')
    group_debug.add_argument('--verbose', '-v', action='store_true',
                             help='Подробный вывод')
    group_debug.add_argument('--quiet', '-q', action='store_true',
                             help='Минимальный вывод')

    # Дополнительные опции
    parser.add_argument('--config', type=str,
                        help='Путь к файлу конфигурации JSON')
    parser.add_argument('--save-config', type=str,
                        help='Сохранить текущую конфигурацию в файл')

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Основная функция"""
    args = parse_arguments(argv)
    output_dir = Path(args.output)
    log_file_path = output_dir / 'build_log.txt'
    setup_logging(log_file_path, args.verbose, args.quiet)
    logger.info(f"Detailed logs are being saved to {log_file_path}")
    process = psutil.Process(os.getpid())
    trace = None
    try:
        # ============ 1. Загрузка конфигурации ============
        base = None
        if args.config:
            logger.info(f"Loading config from {args.config}")
            base = BVHConfig.load(Path(args.config))
        config = BVHConfig.from_args(args, base)

        if args.save_config:
            config.save(Path(args.save_config))
            logger.info(f"Config saved to {args.save_config}")

        # ============ 2. Загрузка данных ============
        input_path = Path(args.input)
        if not input_path.exists():
            raise FileNotFoundError(f"Input file not found: {input_path}")

        start_time = time.perf_counter()
        primitives, metadata = load_primitives(input_path, config.default_radius)
        load_time = time.perf_counter() - start_time

        logger.info(f"Loaded {len(primitives):,} primitives in {load_time:.2f}s")

        logger.debug(f"Input metadata: {metadata}")
        validate_primitives(primitives)

        # ============ 3. Настройка трассировки ============
        if config.trace_enabled or args.stats_csv:
            trace = TraceRecorder(max_primitives=config.trace_max_primitives)
            logger.info("Trace/Stats recorder enabled")

        if args.stats_csv:
            trace.start_stats_recording(output_dir / 'split_statistics.csv')

        # ============ 4. Построение BVH ============
        logger.info("Building BVH...")
        builder = BVHBuilder(config, trace)
        cpu_time_before = process.cpu_times()

        start_time = time.perf_counter()
        tree = builder.build(primitives)
        build_time = time.perf_counter() - start_time

        cpu_time_after = process.cpu_times()
        cpu_time_sec = ((cpu_time_after.user - cpu_time_before.user)
                        + (cpu_time_after.system - cpu_time_before.system))

        # Текущее потребление сразу после построения, близко к пику
        peak_memory_mb = process.memory_info().rss / (1024 * 1024)

        if args.verbose:
            tree_stats = MetricsCalculator(config).compute_tree_stats(tree)
            logger.debug(f"Leaf sizes: min={tree_stats['min_leaf_size']}, "
                         f"max={tree_stats['max_leaf_size']}, "
                         f"median={tree_stats['median_leaf_size']}, "
                         f"SAH={tree_stats['sah_cost']:.4f}")

        # ============ 5. Экспорт результатов ============
        output_dir.mkdir(parents=True, exist_ok=True)

        export_formats = [fmt for fmt in args.export if fmt != 'none']
        if export_formats:
            logger.info(f"Exporting to formats: {', '.join(export_formats)}")
            export_tree(tree, output_dir, export_formats)

        if config.trace_enabled and trace:
            trace_file = output_dir / 'trace.json'
            trace.dump(trace_file)

        if args.stats:
            stats_file = output_dir / 'statistics.json'
            export_statistics(
                tree, stats_file,
                build_time, peak_memory_mb, cpu_time_sec, config
            )

        # ============ 6. Итоговая информация ============
        logger.info("=" * 60)
        logger.info("Sphere BVH completed successfully!")
        logger.info(f"Input: {len(primitives):,} primitives from {input_path.name}")
        logger.info(f"Output: {tree.leaf_count()} leaves, {len(tree.nodes)} nodes in {output_dir}")
        logger.info(f"Total time: {load_time + build_time:.2f}s")
        logger.info("=" * 60)

        return 0

    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        return 130

    except FileNotFoundError as e:
        logger.error(f"File error: {e}")
        return 1

    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 2

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 255

    finally:
        if trace:
            trace.close()


if __name__ == '__main__':
    sys.exit(main())
