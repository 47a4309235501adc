"""2x2 and global pooling reductions."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from .types import POOL_WINDOW, Array, Cell, PoolingStep


def window_origin(row: int, col: int) -> Cell:
    """Top-left source cell of pooled cell ``(row, col)``; independent of conv stride."""

    return row * POOL_WINDOW, col * POOL_WINDOW


def read_window(source: Array, row: int, col: int) -> Array:
    top, left = window_origin(row, col)
    window = np.asarray(source[top : top + POOL_WINDOW, left : left + POOL_WINDOW], dtype=np.float64)
    if window.shape != (POOL_WINDOW, POOL_WINDOW):
        raise IndexError(f"Pooling window ({row}, {col}) exceeds a {source.shape} source")
    return window.copy()


def _extreme(window: Array, pick_max: bool) -> Tuple[float, Cell]:
    best_value = float(window[0, 0])
    best_cell: Cell = (0, 0)
    for i in range(window.shape[0]):
        for j in range(window.shape[1]):
            value = float(window[i, j])
            if (pick_max and value > best_value) or (not pick_max and value < best_value):
                best_value = value
                best_cell = (i, j)
    return best_value, best_cell


def reduce_window(window: Array, kind: str) -> Tuple[Optional[float], Optional[Cell]]:
    """Reduce one window; unset cells make the whole result unset."""

    if np.isnan(window).any():
        return None, None
    if kind == "max":
        return _extreme(window, pick_max=True)
    if kind == "min":
        return _extreme(window, pick_max=False)
    if kind == "average":
        return float(window.sum() / window.size), None
    raise ValueError(f"Unknown window pooling kind: {kind}")


def pool_cell(source: Array, row: int, col: int, kind: str) -> PoolingStep:
    window = read_window(source, row, col)
    value, winner = reduce_window(window, kind)
    return PoolingStep(row=row, col=col, window=window, value=value, winner=winner)


def global_average(source: Array) -> PoolingStep:
    """Mean over the whole map; ``value`` is ``None`` when no cell is computed."""

    source = np.asarray(source, dtype=np.float64)
    computed = source[~np.isnan(source)]
    value = float(computed.mean()) if computed.size else None
    return PoolingStep(row=0, col=0, window=source.copy(), value=value, winner=None)


def pool_step(source: Array, index: int, pool_size: int, kind: str) -> PoolingStep:
    """Execute step ``index`` of the pooling stage in row-major order."""

    if kind == "globalAverage":
        return global_average(source)
    row, col = divmod(index, pool_size)
    return pool_cell(source, row, col, kind)


__all__ = [
    "global_average",
    "pool_cell",
    "pool_step",
    "read_window",
    "reduce_window",
    "window_origin",
]
