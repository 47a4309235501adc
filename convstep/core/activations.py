"""Activation utilities for convstep."""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from .types import Array


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def sigmoid(x: Array) -> Array:
    x = np.asarray(x, dtype=np.float64)
    # Split by sign so large magnitudes never overflow ``exp``.
    out = np.empty_like(x)
    pos = x >= 0
    out[pos] = 1.0 / (1.0 + np.exp(-x[pos]))
    exp_x = np.exp(x[~pos])
    out[~pos] = exp_x / (1.0 + exp_x)
    return out


def identity(x: Array) -> Array:
    return np.asarray(x, dtype=np.float64).copy()


def softmax(z: Array) -> Array:
    """Numerically stable softmax over every element of ``z``, keeping its shape."""

    z = np.asarray(z, dtype=np.float64)
    if z.size == 0:
        return z.copy()
    shifted = z - np.max(z)
    e = np.exp(shifted)
    return e / e.sum()


def activate_cell(value: float, kind: str) -> float:
    """Apply a pointwise activation to one cell; ``softmax`` needs the whole map."""

    if math.isnan(value):
        return value
    if kind == "none":
        return float(value)
    if kind == "relu":
        return max(0.0, float(value))
    if kind == "sigmoid":
        return float(sigmoid(np.array([value]))[0])
    if kind == "softmax":
        raise ValueError("softmax is defined over a whole map, use activate_map")
    raise ValueError(f"Unknown activation: {kind}")


def activate_map(feature_map: Array, kind: str) -> Array:
    """Apply ``kind`` to a 2-D feature map.

    Unset (NaN) cells stay unset. For ``softmax`` the normalisation runs over
    all cells of the map, so a map with any unset cell yields an all-unset
    result.
    """

    feature_map = np.asarray(feature_map, dtype=np.float64)
    if kind == "none":
        return identity(feature_map)
    if kind == "relu":
        out = relu(feature_map)
        out[np.isnan(feature_map)] = np.nan
        return out
    if kind == "sigmoid":
        out = np.full_like(feature_map, np.nan)
        mask = ~np.isnan(feature_map)
        out[mask] = sigmoid(feature_map[mask])
        return out
    if kind == "softmax":
        if feature_map.size == 0 or np.isnan(feature_map).any():
            return np.full_like(feature_map, np.nan)
        return softmax(feature_map)
    raise ValueError(f"Unknown activation: {kind}")


def activate_dense(outputs: Array, kind: str) -> Array:
    """Apply the dense-layer activation to raw neuron outputs.

    ``softmax`` requires every neuron; until then the result is all-unset.
    """

    outputs = np.asarray(outputs, dtype=np.float64)
    if kind == "none":
        return identity(outputs)
    if kind == "relu":
        out = relu(outputs)
        out[np.isnan(outputs)] = np.nan
        return out
    if kind == "softmax":
        if outputs.size == 0 or np.isnan(outputs).any():
            return np.full_like(outputs, np.nan)
        return softmax(outputs)
    raise ValueError(f"Unknown dense activation: {kind}")


def predicted_class(activated: Array) -> Optional[int]:
    """Argmax with the lowest index winning ties; ``None`` until every value is set."""

    activated = np.asarray(activated, dtype=np.float64)
    if activated.size == 0 or np.isnan(activated).any():
        return None
    return int(np.argmax(activated))


__all__ = [
    "activate_cell",
    "activate_dense",
    "activate_map",
    "identity",
    "predicted_class",
    "relu",
    "sigmoid",
    "softmax",
]
