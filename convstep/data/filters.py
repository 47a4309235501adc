"""Fixed 3x3 edge-detection kernels."""

from __future__ import annotations

from typing import Dict, Iterable

import numpy as np

from ..core.types import Array

_FILTERS: Dict[str, Array] = {
    "topEdge": np.array([[1, 1, 1], [0, 0, 0], [-1, -1, -1]], dtype=np.float64),
    "bottomEdge": np.array([[-1, -1, -1], [0, 0, 0], [1, 1, 1]], dtype=np.float64),
    "leftEdge": np.array([[1, 0, -1], [1, 0, -1], [1, 0, -1]], dtype=np.float64),
    "rightEdge": np.array([[-1, 0, 1], [-1, 0, 1], [-1, 0, 1]], dtype=np.float64),
}

FILTER_LABELS = {
    "topEdge": "Top Edge",
    "bottomEdge": "Bottom Edge",
    "leftEdge": "Left Edge",
    "rightEdge": "Right Edge",
}


def get_filter(kind: str) -> Array:
    """Return a copy of the kernel registered as ``kind``."""

    try:
        return _FILTERS[kind].copy()
    except KeyError as exc:
        raise KeyError(f"Unknown filter: {kind}") from exc


def available_filters() -> Iterable[str]:
    return sorted(_FILTERS)


__all__ = ["FILTER_LABELS", "available_filters", "get_filter"]
