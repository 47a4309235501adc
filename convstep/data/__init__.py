"""Input samples and filter kernels."""

# Ensure built-in sample sets register themselves when the package is imported.
from . import samples as _samples  # noqa: F401
from .filters import FILTER_LABELS, available_filters, get_filter
from .registry import (
    SampleSet,
    available_datasets,
    get_dataset,
    get_sample,
    register_dataset,
)

__all__ = [
    "FILTER_LABELS",
    "SampleSet",
    "available_datasets",
    "available_filters",
    "get_dataset",
    "get_filter",
    "get_sample",
    "register_dataset",
]
