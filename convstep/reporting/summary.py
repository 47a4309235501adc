"""Deterministic run summarisation helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Optional

import numpy as np

from ..core.types import Array, to_optional


def map_statistics(values: Array) -> Mapping[str, Any]:
    """min/max/mean over computed cells plus how many cells are set."""

    arr = np.asarray(values, dtype=np.float64)
    computed = arr[~np.isnan(arr)]
    if computed.size == 0:
        return {"shape": list(arr.shape), "computed": 0, "min": None, "max": None, "mean": None}
    return {
        "shape": list(arr.shape),
        "computed": int(computed.size),
        "min": float(np.min(computed)),
        "max": float(np.max(computed)),
        "mean": float(np.mean(computed)),
    }


def build_summary(
    *,
    config: Mapping[str, object],
    maps: Mapping[str, Array],
    step_counts: Mapping[str, int],
    activated_outputs: Array,
    predicted_class: Optional[int],
    class_label: Optional[str] = None,
) -> Mapping[str, object]:
    return {
        "version": 1,
        "config": dict(config),
        "steps": {name: int(count) for name, count in sorted(step_counts.items())},
        "maps": {name: map_statistics(values) for name, values in maps.items()},
        "outputs": to_optional(activated_outputs),
        "predicted_class": predicted_class,
        "predicted_label": class_label,
    }


def write_summary(out_summary_json: str | Path, summary: Mapping[str, object]) -> str:
    """Write ``summary`` as stable, sorted JSON."""

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["build_summary", "map_statistics", "write_summary"]
