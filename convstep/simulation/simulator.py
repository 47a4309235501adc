"""In-process boundary of the simulation engine."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..core import correlation
from ..core.types import STAGES, Array, StageProgress, to_optional
from .gate import PhaseGate
from .params import Configuration, ParameterStore, _as_int
from .progress import DEFAULT_TICK_INTERVAL, StageController
from .scheduler import ManualScheduler, Scheduler
from .stages import (
    ActivationStage,
    ConvolutionStage,
    DenseStage,
    FlattenStage,
    PoolingStage,
)

logger = logging.getLogger(__name__)


class Simulator:
    """Configuration setters, per-stage controls, read accessors and correlation queries.

    Every configuration setter cascades: all stages are invalidated and any
    running auto-play timers are cancelled. Changing the pooling source
    invalidates pooling and everything that reads it; changing the flatten
    source invalidates flatten and dense.
    """

    def __init__(
        self,
        store: ParameterStore | None = None,
        *,
        scheduler: Scheduler | None = None,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.store = store or ParameterStore()
        self.scheduler: Scheduler = scheduler or ManualScheduler()

        self.convolution = ConvolutionStage(self.store)
        self.activation = ActivationStage(self.store, self.convolution)
        self.pooling = PoolingStage(self.store, self.convolution)
        self.flatten = FlattenStage(self.store, self.convolution, self.pooling)
        self.dense = DenseStage(self.store, self.flatten)

        self.gate = PhaseGate(self.is_complete)
        self._controllers: Dict[str, StageController] = {}
        for stage in (self.convolution, self.activation, self.pooling, self.flatten, self.dense):
            self._controllers[stage.name] = StageController(
                stage,
                self.gate,
                self.scheduler,
                tick_interval=tick_interval,
                callbacks=callbacks,
            )
        self._unsubscribe = self.store.subscribe(self._on_parameter_change)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any], **kwargs: Any) -> "Simulator":
        return cls(ParameterStore.from_mapping(values), **kwargs)

    # ------------------------------------------------------------------
    # Configuration

    @property
    def config(self) -> Configuration:
        return self.store.config

    def configure(self, **changes: Any) -> List[str]:
        return self.store.update(**changes)

    def set_dataset(self, value: str) -> bool:
        return self.store.set_dataset(value)

    def set_sample_class(self, value: int) -> bool:
        return self.store.set_sample_class(value)

    def set_filter_kind(self, value: str) -> bool:
        return self.store.set_filter_kind(value)

    def set_padding(self, value: int) -> bool:
        return self.store.set_padding(value)

    def set_stride(self, value: int) -> bool:
        return self.store.set_stride(value)

    def set_pooling_kind(self, value: str) -> bool:
        return self.store.set_pooling_kind(value)

    def set_activation_kind(self, value: str) -> bool:
        return self.store.set_activation_kind(value)

    def set_dense_activation_kind(self, value: str) -> bool:
        return self.store.set_dense_activation_kind(value)

    def set_dense_layer_size(self, value: int) -> bool:
        return self.store.set_dense_layer_size(value)

    def set_dense_seed(self, value: int) -> bool:
        return self.store.set_dense_seed(value)

    def set_pooling_source(self, value: str) -> bool:
        return self.store.set_pooling_source(value)

    def set_flatten_source(self, value: str) -> bool:
        return self.store.set_flatten_source(value)

    def _on_parameter_change(self, name: str, store: ParameterStore) -> None:
        for controller in self._controllers.values():
            controller.sync()

    # ------------------------------------------------------------------
    # Stage controls

    def stage(self, name: str) -> StageController:
        try:
            return self._controllers[name]
        except KeyError as exc:
            raise KeyError(f"Unknown stage: {name}") from exc

    def start_stage(self, name: str) -> bool:
        return self.stage(name).start()

    def step(self, name: str) -> object | None:
        return self.stage(name).step()

    def toggle_play(self, name: str) -> bool:
        return self.stage(name).toggle_play()

    def reset(self, name: str) -> None:
        self.stage(name).reset()

    def reset_all(self) -> None:
        for controller in self._controllers.values():
            controller.invalidate()

    def select_neuron(self, neuron: int) -> bool:
        """Switch the dense neuron being stepped; other neurons keep their progress."""

        index = _as_int(neuron)
        if index is None:
            logger.debug("Ignoring non-integer neuron %r", neuron)
            return False
        controller = self.stage("dense")
        if controller.is_playing:
            return False
        return self.dense.select_neuron(index)

    def is_complete(self, name: str) -> bool:
        return self.stage(name).is_fully_complete

    def progress(self, name: str) -> StageProgress:
        return self.stage(name).progress()

    def completion_flags(self) -> Dict[str, bool]:
        """One-way read of every stage's completion, for navigation breadcrumbs."""

        return {name: self.is_complete(name) for name in STAGES}

    def run_stage(self, name: str) -> int:
        """Step ``name`` to completion (every neuron for the dense stage)."""

        controller = self.stage(name)
        if name != "dense":
            return controller.run()
        executed = 0
        selected = self.dense.selected_neuron
        for neuron in range(self.dense.layer_size):
            self.dense.select_neuron(neuron)
            executed += controller.run()
        self.dense.select_neuron(selected)
        return executed

    def run_to_completion(self, stages: Sequence[str] = STAGES) -> Dict[str, int]:
        return {name: self.run_stage(name) for name in stages}

    def close(self) -> None:
        for controller in self._controllers.values():
            controller.close()
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Read accessors

    @property
    def input_image(self) -> Array:
        return self.convolution.input_image

    @property
    def padded_input(self) -> Array:
        return self.convolution.padded_input

    @property
    def kernel(self) -> Array:
        return self.convolution.kernel

    @property
    def feature_map(self) -> Array:
        return self.convolution.feature_map

    @property
    def activated_map(self) -> Array:
        return self.activation.activated_map

    @property
    def pooling_source_map(self) -> Array:
        return self.pooling.source_map

    @property
    def pooled_map(self) -> Array:
        return self.pooling.pooled_map

    @property
    def flatten_source_map(self) -> Array:
        return self.flatten.source_map

    @property
    def flattened_vector(self) -> Array:
        return self.flatten.flattened_vector

    @property
    def dense_weights(self) -> Array:
        return self.dense.parameters.weights

    @property
    def dense_biases(self) -> Array:
        return self.dense.parameters.biases

    @property
    def neuron_outputs(self) -> Array:
        return self.dense.neuron_outputs

    @property
    def activated_outputs(self) -> Array:
        return self.dense.activated_outputs

    @property
    def predicted_class(self) -> Optional[int]:
        return self.dense.predicted_class

    def current_step(self, name: str) -> object | None:
        """Record of the most recent step executed by ``name``."""

        self.stage(name).sync()
        return getattr(self, name).current

    def snapshot(self) -> Dict[str, Any]:
        """JSON-friendly view of configuration, progress and derived structures."""

        return {
            "config": self.store.as_dict(),
            "generation": self.store.generation,
            "progress": {name: self._progress_entry(name) for name in STAGES},
            "feature_map": to_optional(self.feature_map),
            "activated_map": to_optional(self.activated_map),
            "pooled_map": to_optional(self.pooled_map),
            "flattened_vector": to_optional(self.flattened_vector),
            "neuron_outputs": to_optional(self.neuron_outputs),
            "activated_outputs": to_optional(self.activated_outputs),
            "predicted_class": self.predicted_class,
        }

    def _progress_entry(self, name: str) -> Dict[str, Any]:
        progress = self.progress(name)
        return {
            "step": progress.step_index,
            "total": progress.total_steps,
            "playing": progress.is_playing,
            "complete": progress.all_tracks_complete,
        }

    # ------------------------------------------------------------------
    # Correlation queries

    def convolution_contributors(self, row: int, col: int):
        return correlation.convolution_contributors(
            self.padded_input, self.kernel, self.feature_map, self.config.stride, row, col
        )

    def pooling_contributors(self, row: int, col: int):
        return correlation.pooling_contributors(
            self.pooling_source_map, self.pooled_map, self.config.pooling_kind, row, col
        )

    def activation_source(self, row: int, col: int):
        return correlation.activation_source(self.feature_map, self.activated_map, row, col)

    def flatten_index_of(self, row: int, col: int) -> int:
        return correlation.flatten_index_of(row, col, self.flatten.source_size)

    def flatten_position_of(self, index: int):
        return correlation.flatten_position_of(index, self.flatten.source_size)

    def dense_contributors(self, neuron: int | None = None, k: int = 5):
        index = self.dense.selected_neuron if neuron is None else _as_int(neuron)
        if index is None:
            return []
        return correlation.dense_contributors(self.flattened_vector, self.dense_weights, index, k)

__all__ = ["Simulator"]
