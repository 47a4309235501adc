"""Stateful orchestration of the step-by-step forward pass."""

from .gate import PhaseGate
from .params import Configuration, ParameterStore
from .presets import config_hash, load_config_file, load_preset, run_pipeline
from .progress import StageController
from .scheduler import ManualScheduler, Scheduler
from .simulator import Simulator

__all__ = [
    "Configuration",
    "ManualScheduler",
    "ParameterStore",
    "PhaseGate",
    "Scheduler",
    "Simulator",
    "StageController",
    "config_hash",
    "load_config_file",
    "load_preset",
    "run_pipeline",
]
