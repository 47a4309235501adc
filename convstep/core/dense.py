"""Fully-connected layer arithmetic, one multiply-accumulate at a time."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from .types import Array, DenseStep


@dataclass(frozen=True)
class DenseParameters:
    """Fixed weights ``[layer_size][input_length]`` and biases ``[layer_size]``."""

    weights: Array
    biases: Array
    seed: int = 0

    @property
    def layer_size(self) -> int:
        return int(self.weights.shape[0])

    @property
    def input_length(self) -> int:
        return int(self.weights.shape[1])


def init_dense_parameters(input_length: int, layer_size: int, seed: int = 0) -> DenseParameters:
    """Seeded Xavier-uniform weights and small uniform biases; never trained."""

    rng = np.random.default_rng(seed)
    limit = math.sqrt(6.0 / max(1, input_length + layer_size))
    weights = rng.uniform(-limit, limit, size=(layer_size, input_length))
    biases = rng.uniform(-0.1, 0.1, size=layer_size)
    return DenseParameters(weights=weights, biases=biases, seed=seed)


def multiply_accumulate(running_sum: float, x: float, w: float) -> tuple[float, float]:
    """Return ``(product, new_sum)``; an unset input contributes ``0``."""

    product = 0.0 if math.isnan(x) else float(x) * float(w)
    return product, running_sum + product


def finish_neuron(running_sum: float, bias: float) -> float:
    return running_sum + float(bias)


@dataclass
class NeuronAccumulator:
    """Running state of one neuron between steps."""

    neuron: int
    running_sum: float = 0.0
    steps: int = 0
    output: float | None = None

    def advance(self, vector: Array, params: DenseParameters) -> DenseStep:
        index = self.steps
        x = float(vector[index])
        w = float(params.weights[self.neuron, index])
        product, self.running_sum = multiply_accumulate(self.running_sum, x, w)
        self.steps += 1
        if self.steps == params.input_length:
            self.output = finish_neuron(self.running_sum, params.biases[self.neuron])
        step = DenseStep(
            neuron=self.neuron,
            index=index,
            input_value=x,
            weight=w,
            product=product,
            running_sum=self.running_sum,
            output=self.output,
        )
        return step


def neuron_output(vector: Array, params: DenseParameters, neuron: int) -> float:
    """Reference result for one neuron, accumulated in the same order as the steps."""

    acc = NeuronAccumulator(neuron)
    for _ in range(params.input_length):
        acc.advance(vector, params)
    if acc.output is None:
        return finish_neuron(0.0, params.biases[neuron])
    return acc.output


__all__ = [
    "DenseParameters",
    "NeuronAccumulator",
    "finish_neuron",
    "init_dense_parameters",
    "multiply_accumulate",
    "neuron_output",
]
