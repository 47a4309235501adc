"""Single-cell convolution arithmetic over a zero-padded input."""

from __future__ import annotations

import numpy as np

from .shapes import conv_output_size
from .types import Array, ConvolutionStep, null_map


def pad_input(image: Array, padding: int) -> Array:
    """Return ``image`` surrounded by ``padding`` rows/cols of zeros."""

    image = np.asarray(image, dtype=np.float64)
    if padding == 0:
        return image.copy()
    return np.pad(image, ((padding, padding), (padding, padding)), mode="constant")


def compute_cell(
    padded: Array, kernel: Array, out_row: int, out_col: int, stride: int = 1
) -> ConvolutionStep:
    """Compute output cell ``(out_row, out_col)``.

    The window origin in padded coordinates is ``(out_row * stride,
    out_col * stride)``. The result is the plain sum of the element-wise
    products; there is no bias and no normalisation.
    """

    k_h, k_w = kernel.shape
    top = out_row * stride
    left = out_col * stride
    window = np.asarray(padded[top : top + k_h, left : left + k_w], dtype=np.float64)
    if window.shape != kernel.shape:
        raise IndexError(
            f"Window at ({out_row}, {out_col}) with stride {stride} exceeds padded input"
        )
    multiplications = np.zeros((k_h, k_w), dtype=np.float64)
    total = 0.0
    for i in range(k_h):
        for j in range(k_w):
            product = float(window[i, j]) * float(kernel[i, j])
            multiplications[i, j] = product
            total += product
    return ConvolutionStep(
        row=out_row,
        col=out_col,
        input_window=window.copy(),
        filter_window=np.asarray(kernel, dtype=np.float64).copy(),
        multiplications=multiplications,
        sum=total,
    )


def convolve(padded: Array, kernel: Array, stride: int = 1) -> Array:
    """Convolve the whole padded input cell by cell."""

    size = conv_output_size(padded.shape[0], kernel.shape[0], 0, stride)
    out = null_map(size)
    for r in range(size):
        for c in range(size):
            out[r, c] = compute_cell(padded, kernel, r, c, stride).sum
    return out


__all__ = ["compute_cell", "convolve", "pad_input"]
