"""Closed-form output dimensions for every stage."""

from __future__ import annotations

from dataclasses import dataclass

from .types import INPUT_SIZE, KERNEL_SIZE, POOL_WINDOW


def conv_output_size(
    input_size: int = INPUT_SIZE,
    kernel_size: int = KERNEL_SIZE,
    padding: int = 0,
    stride: int = 1,
) -> int:
    """Return ``floor((N - K + 2P) / S) + 1``, or ``0`` when no window fits."""

    if stride <= 0:
        raise ValueError(f"stride must be positive, got {stride}")
    span = input_size - kernel_size + 2 * padding
    if span < 0:
        return 0
    return span // stride + 1


def pool_output_size(conv_size: int, pooling_kind: str = "max") -> int:
    """Pooled map size for a fixed 2x2/stride-2 window, ``1`` for global pooling."""

    if conv_size <= 0:
        return 0
    if pooling_kind == "globalAverage":
        return 1
    return conv_size // POOL_WINDOW


def flatten_length(source_size: int) -> int:
    return max(0, source_size) ** 2


@dataclass(frozen=True)
class StageShapes:
    """Every size derived from a configuration."""

    conv_size: int
    pool_size: int
    flatten_source_size: int
    dense_input_length: int
    dense_layer_size: int

    @property
    def conv_steps(self) -> int:
        return self.conv_size**2

    @property
    def activation_steps(self) -> int:
        return self.conv_size**2

    @property
    def pool_steps(self) -> int:
        return self.pool_size**2

    @property
    def flatten_steps(self) -> int:
        return self.flatten_source_size

    @property
    def dense_steps(self) -> int:
        """Multiply-accumulate steps for one neuron."""

        return self.dense_input_length

    @property
    def total_steps(self) -> int:
        """Steps for a full pass, counting every dense neuron."""

        return (
            self.conv_steps
            + self.activation_steps
            + self.pool_steps
            + self.flatten_steps
            + self.dense_steps * self.dense_layer_size
        )


def flatten_source_size(conv_size: int, pool_size: int, flatten_source: str) -> int:
    if flatten_source == "pooled":
        return pool_size
    if flatten_source in {"raw", "activated"}:
        return conv_size
    raise ValueError(f"Unknown flatten source: {flatten_source}")


def compute_shapes(
    *,
    padding: int,
    stride: int,
    pooling_kind: str,
    flatten_source: str,
    dense_layer_size: int,
    input_size: int = INPUT_SIZE,
    kernel_size: int = KERNEL_SIZE,
) -> StageShapes:
    conv_size = conv_output_size(input_size, kernel_size, padding, stride)
    pool_size = pool_output_size(conv_size, pooling_kind)
    source_size = flatten_source_size(conv_size, pool_size, flatten_source)
    return StageShapes(
        conv_size=conv_size,
        pool_size=pool_size,
        flatten_source_size=source_size,
        dense_input_length=flatten_length(source_size),
        dense_layer_size=dense_layer_size,
    )


__all__ = [
    "StageShapes",
    "compute_shapes",
    "conv_output_size",
    "flatten_length",
    "flatten_source_size",
    "pool_output_size",
]
