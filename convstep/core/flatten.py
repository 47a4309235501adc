"""Row-major linearisation of a 2-D source map."""

from __future__ import annotations

import numpy as np

from .types import Array, FlattenStep, null_map


def conform_source(source: Array | None, size: int) -> Array:
    """Return ``source`` if it is ``size x size``, else an unset map of that size.

    A map left over from a previous configuration must never be indexed with
    the new dimensions.
    """

    if source is None:
        return null_map(size)
    source = np.asarray(source, dtype=np.float64)
    if source.ndim != 2 or source.shape != (size, size):
        return null_map(size)
    return source


def flatten_row(source: Array, row: int) -> FlattenStep:
    size = source.shape[1]
    values = np.asarray(source[row, :], dtype=np.float64).copy()
    return FlattenStep(row=row, values=values, start_index=row * size)


def flatten(source: Array) -> Array:
    source = np.asarray(source, dtype=np.float64)
    size = source.shape[0]
    vector = np.empty(size * size, dtype=np.float64)
    for row in range(size):
        step = flatten_row(source, row)
        vector[step.start_index : step.start_index + size] = step.values
    return vector


__all__ = ["conform_source", "flatten", "flatten_row"]
