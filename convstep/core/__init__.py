"""Pure numeric transforms for convstep."""

from . import activations, convolution, correlation, dense, flatten, pooling, shapes, types

__all__ = [
    "activations",
    "convolution",
    "correlation",
    "dense",
    "flatten",
    "pooling",
    "shapes",
    "types",
]
