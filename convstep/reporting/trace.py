"""Step-trace sinks for simulation runs."""

from __future__ import annotations

import json
from dataclasses import fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

import numpy as np

from ..core.types import to_optional


def record_payload(record: object) -> Dict[str, Any]:
    """Convert a step record dataclass into JSON-safe values (unset cells become ``None``)."""

    if record is None:
        return {}
    if not is_dataclass(record):
        raise TypeError(f"Cannot serialise step record of type {type(record).__name__}")
    payload: Dict[str, Any] = {}
    for item in fields(record):
        value = getattr(record, item.name)
        if isinstance(value, np.ndarray):
            payload[item.name] = to_optional(value)
        elif isinstance(value, float) and np.isnan(value):
            payload[item.name] = None
        elif isinstance(value, tuple):
            payload[item.name] = list(value)
        else:
            payload[item.name] = value
    return payload


class JsonlSink:
    """Append-only JSONL writer, one line per executed step."""

    def __init__(self, path: str | Path, *, run_id: str | None = None) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.run_id = run_id
        self.count = 0

    def on_step(self, stage: str, index: int, record: object) -> None:
        entry = {"stage": stage, "index": int(index)}
        if self.run_id is not None:
            entry["run_id"] = self.run_id
        entry.update(record_payload(record))
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, sort_keys=True) + "\n")
        self.count += 1

    __call__ = on_step


class StepCounter:
    """Count executed steps per stage, keeping the last record of each."""

    def __init__(self) -> None:
        self.counts: Dict[str, int] = {}
        self.last: Dict[str, Tuple[int, object]] = {}

    def on_step(self, stage: str, index: int, record: object) -> None:
        self.counts[stage] = self.counts.get(stage, 0) + 1
        self.last[stage] = (int(index), record)

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def read_trace(path: str | Path) -> List[Mapping[str, Any]]:
    records: List[Mapping[str, Any]] = []
    for line in Path(path).read_text().splitlines():
        line = line.strip()
        if line:
            records.append(json.loads(line))
    return records


__all__ = ["JsonlSink", "StepCounter", "read_trace", "record_payload"]
