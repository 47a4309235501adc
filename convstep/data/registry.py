"""Sample-set registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Tuple

import numpy as np

from ..core.types import INPUT_SIZE, Array


@dataclass(frozen=True)
class SampleSet:
    """A family of fixed input images, one per class.

    Attributes
    ----------
    name:
        Registry identifier, e.g. ``"mnist"``.
    labels:
        Human-readable class label for each class index.
    images:
        Mapping from class index to a square ``uint8``-valued image in
        ``[0, 255]`` stored as ``float64``.
    provenance:
        Free-form metadata describing how the images were produced.
    """

    name: str
    labels: Tuple[str, ...]
    images: Mapping[int, Array]
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def num_classes(self) -> int:
        return len(self.labels)

    def image(self, class_index: int) -> Array:
        if class_index not in self.images:
            raise KeyError(f"Class {class_index} not in sample set {self.name!r}")
        return self.images[class_index].copy()


SampleSetFactory = Callable[..., SampleSet]


_REGISTRY: MutableMapping[str, SampleSetFactory] = {}
_CACHE: Dict[str, SampleSet] = {}


def register_dataset(
    name: str | None = None,
    factory: SampleSetFactory | None = None,
) -> Callable[[SampleSetFactory], SampleSetFactory] | SampleSetFactory:
    """Register a sample-set factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("mnist")
        def make_mnist():
            ...

    or directly::

        register_dataset("mnist", make_mnist)
    """

    def _decorator(func: SampleSetFactory) -> SampleSetFactory:
        key = str(name or func.__name__)
        _REGISTRY[key] = func
        _CACHE.pop(key, None)
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str) -> SampleSet:
    """Return the :class:`SampleSet` registered as ``dataset``."""

    if dataset not in _REGISTRY:
        raise KeyError(f"Unknown dataset: {dataset}")
    if dataset not in _CACHE:
        sample_set = _REGISTRY[dataset]()
        _validate(sample_set)
        _CACHE[dataset] = sample_set
    return _CACHE[dataset]


def get_sample(dataset: str, class_index: int) -> Array:
    """Return a copy of the input image for ``class_index`` in ``dataset``."""

    return get_dataset(dataset).image(class_index)


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate(sample_set: SampleSet) -> None:
    if len(sample_set.images) != sample_set.num_classes:
        raise ValueError(
            f"Sample set {sample_set.name!r} has {len(sample_set.images)} images "
            f"for {sample_set.num_classes} labels"
        )
    for cls, image in sample_set.images.items():
        if image.shape != (INPUT_SIZE, INPUT_SIZE):
            raise ValueError(f"Class {cls} image has shape {image.shape}")
        if np.min(image) < 0 or np.max(image) > 255:
            raise ValueError(f"Class {cls} image values outside [0, 255]")


__all__ = [
    "SampleSet",
    "available_datasets",
    "get_dataset",
    "get_sample",
    "register_dataset",
]
