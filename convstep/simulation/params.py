"""Validated configuration record and the store that owns it."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Callable, Dict, List, Mapping, Sequence, Tuple

from ..core.types import (
    ACTIVATION_KINDS,
    DATASETS,
    DENSE_ACTIVATION_KINDS,
    FILTER_KINDS,
    FLATTEN_SOURCES,
    PADDINGS,
    POOLING_KINDS,
    POOLING_SOURCES,
    STRIDES,
)

logger = logging.getLogger(__name__)

MAX_DENSE_LAYER_SIZE = 64
NUM_CLASSES = 10


@dataclass(frozen=True)
class Configuration:
    """Every user-selected value the derived structures depend on."""

    dataset: str = "mnist"
    sample_class: int = 7
    filter_kind: str = "topEdge"
    padding: int = 0
    stride: int = 1
    pooling_kind: str = "max"
    activation_kind: str = "relu"
    dense_activation_kind: str = "none"
    dense_layer_size: int = 10
    dense_seed: int = 42

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


CONFIG_FIELDS: Tuple[str, ...] = tuple(f.name for f in fields(Configuration))
SELECTION_FIELDS: Tuple[str, ...] = ("pooling_source", "flatten_source")

Subscriber = Callable[[str, "ParameterStore"], None]


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


class ParameterStore:
    """Holds the :class:`Configuration` plus the pooling/flatten source selections.

    Setters never raise on bad input: out-of-range numbers are clamped and
    unknown kinds are ignored. Every accepted change to a configuration field
    bumps :attr:`generation`; a change to a source selection bumps only that
    selection's version. Subscribers are told which field changed.
    """

    def __init__(
        self,
        config: Configuration | None = None,
        *,
        pooling_source: str = "activated",
        flatten_source: str = "pooled",
    ) -> None:
        self._config = config or Configuration()
        self._selections: Dict[str, str] = {
            "pooling_source": pooling_source if pooling_source in POOLING_SOURCES else "activated",
            "flatten_source": flatten_source if flatten_source in FLATTEN_SOURCES else "pooled",
        }
        self.generation = 0
        self._versions: Dict[str, int] = {name: 0 for name in SELECTION_FIELDS}
        self._subscribers: List[Subscriber] = []

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ParameterStore":
        store = cls()
        store.update(**dict(values))
        store.generation = 0
        store._versions = {name: 0 for name in SELECTION_FIELDS}
        return store

    # ------------------------------------------------------------------
    # Read access

    @property
    def config(self) -> Configuration:
        return self._config

    @property
    def pooling_source(self) -> str:
        return self._selections["pooling_source"]

    @property
    def flatten_source(self) -> str:
        return self._selections["flatten_source"]

    def fingerprint(self, selections: Sequence[str] = ()) -> Tuple[int, ...]:
        """Stamp a stage records when it starts and compares before trusting its data."""

        return (self.generation, *(self._versions[name] for name in selections))

    def as_dict(self) -> Dict[str, Any]:
        payload = self._config.to_dict()
        payload.update(self._selections)
        return payload

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Setters

    def set_dataset(self, value: str) -> bool:
        return self._set_choice("dataset", value, DATASETS)

    def set_sample_class(self, value: int) -> bool:
        number = _as_int(value)
        if number is None:
            return self._reject("sample_class", value)
        return self._set_config("sample_class", _clamp(number, 0, NUM_CLASSES - 1), value)

    def set_filter_kind(self, value: str) -> bool:
        return self._set_choice("filter_kind", value, FILTER_KINDS)

    def set_padding(self, value: int) -> bool:
        number = _as_int(value)
        if number is None:
            return self._reject("padding", value)
        return self._set_config("padding", _clamp(number, min(PADDINGS), max(PADDINGS)), value)

    def set_stride(self, value: int) -> bool:
        number = _as_int(value)
        if number is None:
            return self._reject("stride", value)
        return self._set_config("stride", _clamp(number, min(STRIDES), max(STRIDES)), value)

    def set_pooling_kind(self, value: str) -> bool:
        return self._set_choice("pooling_kind", value, POOLING_KINDS)

    def set_activation_kind(self, value: str) -> bool:
        return self._set_choice("activation_kind", value, ACTIVATION_KINDS)

    def set_dense_activation_kind(self, value: str) -> bool:
        return self._set_choice("dense_activation_kind", value, DENSE_ACTIVATION_KINDS)

    def set_dense_layer_size(self, value: int) -> bool:
        number = _as_int(value)
        if number is None:
            return self._reject("dense_layer_size", value)
        return self._set_config("dense_layer_size", _clamp(number, 1, MAX_DENSE_LAYER_SIZE), value)

    def set_dense_seed(self, value: int) -> bool:
        number = _as_int(value)
        if number is None:
            return self._reject("dense_seed", value)
        return self._set_config("dense_seed", number, value)

    def set_pooling_source(self, value: str) -> bool:
        return self._set_selection("pooling_source", value, POOLING_SOURCES)

    def set_flatten_source(self, value: str) -> bool:
        return self._set_selection("flatten_source", value, FLATTEN_SOURCES)

    def update(self, **changes: Any) -> List[str]:
        """Apply several setters; return the names of the fields that changed."""

        changed: List[str] = []
        for name, value in changes.items():
            setter = getattr(self, f"set_{name}", None)
            if name not in CONFIG_FIELDS + SELECTION_FIELDS or setter is None:
                logger.debug("ignoring unknown parameter %r", name)
                continue
            if setter(value):
                changed.append(name)
        return changed

    # ------------------------------------------------------------------
    # Internal helpers

    def _set_choice(self, name: str, value: Any, choices: Sequence[str]) -> bool:
        if value not in choices:
            return self._reject(name, value)
        return self._set_config(name, value, value)

    def _set_config(self, name: str, value: Any, requested: Any) -> bool:
        if value != requested:
            logger.debug("clamped %s from %r to %r", name, requested, value)
        if getattr(self._config, name) == value:
            return False
        self._config = replace(self._config, **{name: value})
        self.generation += 1
        self._notify(name)
        return True

    def _set_selection(self, name: str, value: Any, choices: Sequence[str]) -> bool:
        if value not in choices:
            return self._reject(name, value)
        if self._selections[name] == value:
            return False
        self._selections[name] = value
        self._versions[name] += 1
        self._notify(name)
        return True

    def _reject(self, name: str, value: Any) -> bool:
        logger.debug("ignoring invalid %s=%r", name, value)
        return False

    def _notify(self, name: str) -> None:
        for callback in list(self._subscribers):
            callback(name, self)


__all__ = ["CONFIG_FIELDS", "Configuration", "ParameterStore", "SELECTION_FIELDS"]
