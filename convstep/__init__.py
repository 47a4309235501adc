"""convstep public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .data import available_datasets, available_filters, get_filter, get_sample
from .simulation.params import Configuration, ParameterStore
from .simulation.presets import config_hash, load_config_file, load_preset, presets, run_pipeline
from .simulation.scheduler import ManualScheduler
from .simulation.simulator import Simulator

__all__ = [
    "Configuration",
    "ManualScheduler",
    "ParameterStore",
    "Simulator",
    "activations",
    "available_datasets",
    "available_filters",
    "config_hash",
    "get_filter",
    "get_sample",
    "load_config_file",
    "load_preset",
    "presets",
    "run_pipeline",
    "types",
]
