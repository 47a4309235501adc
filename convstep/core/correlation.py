"""Read-only queries mapping a downstream cell back to what produced it.

Every function takes the maps it reads as explicit arguments and never
mutates them. A query against an unset cell returns ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .convolution import compute_cell
from .pooling import read_window, reduce_window, window_origin
from .types import Array, Cell, is_computed


@dataclass(frozen=True)
class ConvolutionContributors:
    """Input window behind one feature-map cell.

    ``origin`` is in padded-input coordinates and ``dominant`` is the
    window-relative cell with the largest absolute product.
    """

    origin: Cell
    window: Array
    products: Array
    dominant: Cell
    sum: float


@dataclass(frozen=True)
class PoolingContributors:
    origin: Cell
    cells: Tuple[Cell, ...]
    winner: Optional[Cell]
    value: float


@dataclass(frozen=True)
class InputContribution:
    index: int
    value: float
    weight: float
    product: float


def _in_bounds(values: Array, row: int, col: int) -> bool:
    rows, cols = values.shape[:2]
    return 0 <= row < rows and 0 <= col < cols


def _dominant(products: Array) -> Cell:
    best: Cell = (0, 0)
    best_abs = -1.0
    for i in range(products.shape[0]):
        for j in range(products.shape[1]):
            magnitude = abs(float(products[i, j]))
            if magnitude > best_abs:
                best_abs = magnitude
                best = (i, j)
    return best


def convolution_contributors(
    padded: Array,
    kernel: Array,
    feature_map: Array,
    stride: int,
    out_row: int,
    out_col: int,
) -> ConvolutionContributors | None:
    if not _in_bounds(feature_map, out_row, out_col):
        return None
    if not is_computed(float(feature_map[out_row, out_col])):
        return None
    step = compute_cell(padded, kernel, out_row, out_col, stride)
    return ConvolutionContributors(
        origin=(out_row * stride, out_col * stride),
        window=step.input_window,
        products=step.multiplications,
        dominant=_dominant(step.multiplications),
        sum=step.sum,
    )


def pooling_contributors(
    source: Array, pooled_map: Array, kind: str, pooled_row: int, pooled_col: int
) -> PoolingContributors | None:
    """Source cells behind a pooled cell.

    ``max``/``min`` report the winning cell (window-relative); ``average``
    reports all four cells with no winner; ``globalAverage`` reports every
    source cell. Coordinates outside the pooled map return ``None``.
    """

    if not _in_bounds(pooled_map, pooled_row, pooled_col):
        return None
    value =float(pooled_map[pooled_row, pooled_col])
    if not is_computed(value):
        return None
    if kind == "globalAverage":
        rows, cols = source.shape
        cells = tuple((r, c) for r in range(rows) for c in range(cols))
        return PoolingContributors(origin=(0, 0), cells=cells, winner=None, value=value)
    window = read_window(source, pooled_row, pooled_col)
    top, left = window_origin(pooled_row, pooled_col)
    cells = tuple((top + i, left + j) for i in range(window.shape[0]) for j in range(window.shape[1]))
    _, winner = reduce_window(window, kind)
    return PoolingContributors(origin=(top, left), cells=cells, winner=winner, value=value)


def activation_source(
    feature_map: Array, activated_map: Array, row: int, col: int
) -> Tuple[float, float] | None:
    """Return ``(raw, activated)`` for a cell of the activated map."""

    if not (_in_bounds(activated_map, row, col) and _in_bounds(feature_map, row, col)):
        return None
    activated = float(activated_map[row, col])
    raw = float(feature_map[row, col])
    if not (is_computed(activated) and is_computed(raw)):
        return None
    return raw, activated


def flatten_index_of(row: int, col: int, source_size: int) -> int:
    if not (0 <= row < source_size and 0 <= col < source_size):
        raise IndexError(f"({row}, {col}) outside a {source_size}x{source_size} source")
    return row * source_size + col


def flatten_position_of(index: int, source_size: int) -> Cell:
    """Inverse of :func:`flatten_index_of`."""

    if not 0 <= index < source_size * source_size:
        raise IndexError(f"index {index} outside a vector of length {source_size ** 2}")
    row, col = divmod(index, source_size)
    return row, col


def dense_contributors(
    vector: Array, weights: Array, neuron: int, k: int = 5
) -> List[InputContribution]:
    """Top ``k`` inputs of ``neuron`` ranked by ``|x * w|``, lowest index on ties."""

    if not 0 <= neuron < weights.shape[0]:
        return []
    row = np.asarray(weights[neuron], dtype=np.float64)
    contributions = []
    for idx, x in enumerate(np.asarray(vector, dtype=np.float64)):
        if not is_computed(float(x)):
            continue
        w = float(row[idx])
        contributions.append(InputContribution(idx, float(x), w, float(x) * w))
    contributions.sort(key=lambda item: (-abs(item.product), item.index))
    return contributions[: max(0, k)]


__all__ = [
    "ConvolutionContributors",
    "InputContribution",
    "PoolingContributors",
    "activation_source",
    "convolution_contributors",
    "dense_contributors",
    "flatten_index_of",
    "flatten_position_of",
]
