"""Per-stage step functions and the derived structures they own.

Each stage is the only writer of its structure. Downstream stages read
upstream structures through the upstream stage's accessors and never
mutate them. A stage records the store fingerprint when it begins and
reports itself stale once the fingerprint moves on.
"""

from __future__ import annotations

from typing import Dict, Hashable, Optional, Protocol, Sequence, Tuple

import numpy as np

from ..core.activations import activate_cell, activate_dense, activate_map, predicted_class
from ..core.convolution import compute_cell, pad_input
from ..core.dense import DenseParameters, NeuronAccumulator, init_dense_parameters
from ..core.flatten import conform_source, flatten_row
from ..core.pooling import pool_step
from ..core.shapes import StageShapes, compute_shapes
from ..core.types import (
    ActivationStep,
    Array,
    ConvolutionStep,
    DenseStep,
    FlattenStep,
    PoolingStep,
    null_map,
    null_vector,
)
from ..data import get_filter, get_sample
from .params import ParameterStore


class Stage(Protocol):
    """Contract between a stage and its :class:`~convstep.simulation.progress.StageController`."""

    name: str

    def total_steps(self) -> int:
        """Steps needed to complete the current track."""

    def tracks(self) -> Sequence[Hashable]:
        """Independent progress tracks; a single ``None`` track for most stages."""

    def current_track(self) -> Hashable:
        """Track advanced by the next ``step``."""

    def begin(self) -> None:
        """Create empty structures and stamp the store fingerprint."""

    def execute(self, track: Hashable, index: int) -> object:
        """Compute and write exactly one step."""

    def clear(self) -> None:
        """Discard every derived structure."""

    def is_stale(self) -> bool:
        """``True`` when the structures were built for an older configuration."""


class _BaseStage:
    name = "stage"
    selections: Tuple[str, ...] = ()

    def __init__(self, store: ParameterStore) -> None:
        self.store = store
        self._fingerprint: Tuple[int, ...] | None = None
        self.current: Optional[object] = None

    @property
    def shapes(self) -> StageShapes:
        config = self.store.config
        return compute_shapes(
            padding=config.padding,
            stride=config.stride,
            pooling_kind=config.pooling_kind,
            flatten_source=self.store.flatten_source,
            dense_layer_size=config.dense_layer_size,
        )

    def tracks(self) -> Sequence[Hashable]:
        return (None,)

    def current_track(self) -> Hashable:
        return None

    def begin(self) -> None:
        self._fingerprint = self.store.fingerprint(self.selections)
        self.current = None

    def clear(self) -> None:
        self._fingerprint = None
        self.current = None

    def is_stale(self) -> bool:
        return self._fingerprint is not None and self._fingerprint != self.store.fingerprint(
            self.selections
        )

    @property
    def is_fresh(self) -> bool:
        return self._fingerprint is not None and not self.is_stale()


class ConvolutionStage(_BaseStage):
    """Owns the padded input and the FeatureMap."""

    name = "convolution"

    def __init__(self, store: ParameterStore) -> None:
        super().__init__(store)
        self._padded: Array | None = None
        self._kernel: Array | None = None
        self._feature_map: Array | None = None

    @property
    def input_image(self) -> Array:
        config = self.store.config
        return get_sample(config.dataset, config.sample_class)

    @property
    def kernel(self) -> Array:
        return get_filter(self.store.config.filter_kind)

    @property
    def padded_input(self) -> Array:
        if self.is_fresh and self._padded is not None:
            return self._padded
        return pad_input(self.input_image, self.store.config.padding)

    @property
    def feature_map(self) -> Array:
        size = self.shapes.conv_size
        if self.is_fresh and self._feature_map is not None:
            return self._feature_map
        return null_map(size)

    def total_steps(self) -> int:
        return self.shapes.conv_steps

    def begin(self) -> None:
        super().begin()
        self._kernel = self.kernel
        self._padded = pad_input(self.input_image, self.store.config.padding)
        self._feature_map = null_map(self.shapes.conv_size)

    def execute(self, track: Hashable, index: int) -> ConvolutionStep:
        assert self._padded is not None and self._kernel is not None
        assert self._feature_map is not None
        row, col = divmod(index, self._feature_map.shape[1])
        step = compute_cell(self._padded, self._kernel, row, col, self.store.config.stride)
        self._feature_map[row, col] = step.sum
        self.current = step
        return step

    def clear(self) -> None:
        super().clear()
        self._padded = None
        self._kernel = None
        self._feature_map = None


class ActivationStage(_BaseStage):
    """Owns the ActivatedMap, filled one cell per step."""

    name = "activation"

    def __init__(self, store: ParameterStore, convolution: ConvolutionStage) -> None:
        super().__init__(store)
        self.convolution = convolution
        self._activated: Array | None = None
        self._softmax: Array | None = None

    @property
    def kind(self) -> str:
        return self.store.config.activation_kind

    @property
    def activated_map(self) -> Array:
        if self.is_fresh and self._activated is not None:
            return self._activated
        return null_map(self.shapes.conv_size)

    def total_steps(self) -> int:
        return self.shapes.activation_steps

    def begin(self) -> None:
        super().begin()
        self._activated = null_map(self.shapes.conv_size)
        self._softmax = None

    def execute(self, track: Hashable, index: int) -> ActivationStep:
        assert self._activated is not None
        row, col = divmod(index, self._activated.shape[1])
        raw = float(self.convolution.feature_map[row, col])
        if self.kind == "softmax":
            # Needs every logit; convolution is complete before this stage runs.
            if self._softmax is None:
                self._softmax = activate_map(self.convolution.feature_map, "softmax")
            value = float(self._softmax[row, col])
        else:
            value = activate_cell(raw, self.kind)
        self._activated[row, col] = value
        self.current = ActivationStep(row=row, col=col, raw=raw, value=value)
        return self.current

    def clear(self) -> None:
        super().clear()
        self._activated = None
        self._softmax = None


def _source_from_convolution(convolution: ConvolutionStage, source: str) -> Array:
    """Raw FeatureMap, or the activation applied to the whole FeatureMap."""

    feature_map = convolution.feature_map
    if source == "raw":
        return feature_map.copy()
    return activate_map(feature_map, convolution.store.config.activation_kind)


class PoolingStage(_BaseStage):
    """Owns the PooledMap."""

    name = "pooling"
    selections = ("pooling_source",)

    def __init__(self, store: ParameterStore, convolution: ConvolutionStage) -> None:
        super().__init__(store)
        self.convolution = convolution
        self._source: Array | None = None
        self._pooled: Array | None = None

    @property
    def kind(self) -> str:
        return self.store.config.pooling_kind

    @property
    def source_map(self) -> Array:
        """The map the pooling windows read from."""

        if self.is_fresh and self._source is not None:
            return self._source
        return _source_from_convolution(self.convolution, self.store.pooling_source)

    @property
    def pooled_map(self) -> Array:
        if self.is_fresh and self._pooled is not None:
            return self._pooled
        return null_map(self.shapes.pool_size)

    def total_steps(self) -> int:
        return self.shapes.pool_steps

    def begin(self) -> None:
        super().begin()
        self._source = _source_from_convolution(self.convolution, self.store.pooling_source)
        self._pooled = null_map(self.shapes.pool_size)

    def execute(self, track: Hashable, index: int) -> PoolingStep:
        assert self._source is not None and self._pooled is not None
        size = self._pooled.shape[0]
        step = pool_step(self._source, index, size, self.kind)
        self._pooled[step.row, step.col] = np.nan if step.value is None else step.value
        self.current = step
        return step

    def clear(self) -> None:
        super().clear()
        self._source = None
        self._pooled = None


class FlattenStage(_BaseStage):
    """Owns the FlattenedVector, filled one source row per step."""

    name = "flatten"
    selections = ("pooling_source", "flatten_source")

    def __init__(
        self, store: ParameterStore, convolution: ConvolutionStage, pooling: PoolingStage
    ) -> None:
        super().__init__(store)
        self.convolution = convolution
        self.pooling = pooling
        self._source: Array | None = None
        self._vector: Array | None = None
        self._filled = 0

    @property
    def source(self) -> str:
        return self.store.flatten_source

    @property
    def source_size(self) -> int:
        return self.shapes.flatten_source_size

    @property
    def source_map(self) -> Array:
        """Selected source, substituted by an unset map if its shape is stale."""

        if self.is_fresh and self._source is not None:
            return self._source
        return self._read_source()

    def _read_source(self) -> Array:
        if self.source == "pooled":
            raw = self.pooling.pooled_map.copy()
        else:
            raw = _source_from_convolution(self.convolution, self.source)
        return conform_source(raw, self.source_size)

    @property
    def flattened_vector(self) -> Array:
        if self.is_fresh and self._vector is not None:
            return self._vector
        return null_vector(self.source_size**2)

    @property
    def filled_length(self) -> int:
        return self._filled if self.is_fresh else 0

    def total_steps(self) -> int:
        return self.shapes.flatten_steps

    def begin(self) -> None:
        super().begin()
        self._source = self._read_source()
        self._vector = null_vector(self.source_size**2)
        self._filled = 0

    def execute(self, track: Hashable, index: int) -> FlattenStep:
        assert self._source is not None and self._vector is not None
        step = flatten_row(self._source, index)
        end = step.start_index + step.values.size
        self._vector[step.start_index : end] = step.values
        self._filled = end
        self.current = step
        return step

    def clear(self) -> None:
        super().clear()
        self._source = None
        self._vector = None
        self._filled = 0


class DenseStage(_BaseStage):
    """Owns weights, biases and NeuronOutputs; one track per neuron."""

    name = "dense"
    selections = ("pooling_source", "flatten_source")

    def __init__(self, store: ParameterStore, flatten: FlattenStage) -> None:
        super().__init__(store)
        self.flatten = flatten
        self.selected_neuron = 0
        self._params: DenseParameters | None = None
        self._inputs: Array | None = None
        self._accumulators: Dict[int, NeuronAccumulator] = {}
        self._outputs: Array | None = None

    @property
    def layer_size(self) -> int:
        return self.store.config.dense_layer_size

    @property
    def parameters(self) -> DenseParameters:
        if self.is_fresh and self._params is not None:
            return self._params
        config = self.store.config
        return init_dense_parameters(self.shapes.dense_input_length, config.dense_layer_size, config.dense_seed)

    @property
    def neuron_outputs(self) -> Array:
        if self.is_fresh and self._outputs is not None:
            return self._outputs
        return null_vector(self.layer_size)

    @property
    def activated_outputs(self) -> Array:
        return activate_dense(self.neuron_outputs, self.store.config.dense_activation_kind)

    @property
    def predicted_class(self) -> Optional[int]:
        return predicted_class(self.activated_outputs)

    def running_sum(self, neuron: int | None = None) -> float:
        neuron = self.selected_neuron if neuron is None else neuron
        acc = self._accumulators.get(neuron) if self.is_fresh else None
        return acc.running_sum if acc is not None else 0.0

    def select_neuron(self, neuron: int) -> bool:
        if not 0 <= neuron < self.layer_size:
            return False
        self.selected_neuron = neuron
        return True

    def tracks(self) -> Sequence[Hashable]:
        return tuple(range(self.layer_size))

    def current_track(self) -> Hashable:
        if self.selected_neuron >= self.layer_size:
            self.selected_neuron = 0
        return self.selected_neuron

    def total_steps(self) -> int:
        return self.shapes.dense_steps

    def begin(self) -> None:
        super().begin()
        config = self.store.config
        input_length = self.shapes.dense_input_length
        self._params = init_dense_parameters(input_length, config.dense_layer_size, config.dense_seed)
        self._inputs = self.flatten.flattened_vector.copy()
        self._accumulators = {n: NeuronAccumulator(n) for n in range(config.dense_layer_size)}
        self._outputs = null_vector(config.dense_layer_size)
        if input_length == 0:
            self._outputs[:] = self._params.biases

    def execute(self, track: Hashable, index: int) -> DenseStep:
        assert self._params is not None and self._inputs is not None and self._outputs is not None
        neuron = int(track)  # type: ignore[arg-type]
        step = self._accumulators[neuron].advance(self._inputs, self._params)
        if step.output is not None:
            self._outputs[neuron] = step.output
        self.current = step
        return step

    def clear(self) -> None:
        super().clear()
        self._params = None
        self._inputs = None
        self._accumulators = {}
        self._outputs = None


__all__ = [
    "ActivationStage",
    "ConvolutionStage",
    "DenseStage",
    "FlattenStage",
    "PoolingStage",
    "Stage",
]
