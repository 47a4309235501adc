"""Core typing contracts for convstep."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

Array = np.ndarray

# Unset cells in every derived map are NaN; see :func:`is_computed`.
NULL = float("nan")

INPUT_SIZE = 28
KERNEL_SIZE = 3
POOL_WINDOW = 2

DATASETS = ("mnist", "fashion")
FILTER_KINDS = ("topEdge", "bottomEdge", "leftEdge", "rightEdge")
PADDINGS = (0, 1, 2)
STRIDES = (1, 2)
POOLING_KINDS = ("max", "min", "average", "globalAverage")
ACTIVATION_KINDS = ("none", "relu", "sigmoid", "softmax")
DENSE_ACTIVATION_KINDS = ("none", "relu", "softmax")
POOLING_SOURCES = ("raw", "activated")
FLATTEN_SOURCES = ("raw", "activated", "pooled")
DENSE_LAYER_SIZES = (5, 10, 16, 32)
STAGES = ("convolution", "activation", "pooling", "flatten", "dense")

Cell = Tuple[int, int]


def null_map(size: int) -> Array:
    """Return a ``size x size`` map with every cell unset."""

    return np.full((max(0, size), max(0, size)), np.nan, dtype=np.float64)


def null_vector(length: int) -> Array:
    return np.full(max(0, length), np.nan, dtype=np.float64)


def is_computed(value: float | None) -> bool:
    """Return ``True`` when ``value`` holds a computed number."""

    if value is None:
        return False
    return not np.isnan(value)


def to_optional(values: Array) -> list:
    """Convert a NaN-marked array into nested lists with ``None`` for unset cells."""

    arr = np.asarray(values, dtype=np.float64)
    out = arr.astype(object)
    out[np.isnan(arr)] = None
    return out.tolist()


@dataclass(frozen=True)
class ConvolutionStep:
    """One executed convolution cell with its full arithmetic."""

    row: int
    col: int
    input_window: Array
    filter_window: Array
    multiplications: Array
    sum: float


@dataclass(frozen=True)
class PoolingStep:
    """One executed pooling cell.

    ``winner`` is the window-relative coordinate of the selected value for
    ``max``/``min`` pooling and ``None`` when every cell contributes.
    """

    row: int
    col: int
    window: Array
    value: Optional[float]
    winner: Optional[Cell] = None


@dataclass(frozen=True)
class FlattenStep:
    """One flattened source row and where it landed in the vector."""

    row: int
    values: Array
    start_index: int


@dataclass(frozen=True)
class DenseStep:
    """A single multiply-accumulate for one neuron."""

    neuron: int
    index: int
    input_value: float
    weight: float
    product: float
    running_sum: float
    output: Optional[float] = None


@dataclass(frozen=True)
class ActivationStep:
    row: int
    col: int
    raw: float
    value: float


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`convstep.simulation.presets.run_pipeline`."""

    steps: int
    trace_path: str
    manifest_path: str
    summary_path: str = ""
    predicted_class: Optional[int] = None


@dataclass(frozen=True)
class StageProgress:
    """Progress of a single stage: ``is_complete`` iff ``step_index == total_steps``.

    For the dense stage the step counters follow the selected neuron, while
    ``all_tracks_complete`` reports whether every neuron has finished.
    """

    stage: str
    step_index: int
    total_steps: int
    is_playing: bool
    is_started: bool
    all_tracks_complete: bool = False

    @property
    def is_complete(self) -> bool:
        return self.step_index == self.total_steps


__all__: List[str] = [
    "ACTIVATION_KINDS",
    "ActivationStep",
    "Array",
    "Cell",
    "ConvolutionStep",
    "DATASETS",
    "DENSE_ACTIVATION_KINDS",
    "DENSE_LAYER_SIZES",
    "DenseStep",
    "FILTER_KINDS",
    "FLATTEN_SOURCES",
    "FlattenStep",
    "INPUT_SIZE",
    "KERNEL_SIZE",
    "NULL",
    "PADDINGS",
    "POOLING_KINDS",
    "POOLING_SOURCES",
    "POOL_WINDOW",
    "PoolingStep",
    "RunResult",
    "STAGES",
    "STRIDES",
    "StageProgress",
    "is_computed",
    "null_map",
    "null_vector",
    "to_optional",
]
