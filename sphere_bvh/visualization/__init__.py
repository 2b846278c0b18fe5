"""
Модуль визуализации для BVH
"""
from .tracer import TraceRecorder

__all__ = ['TraceRecorder']
