"""Procedural 28x28 samples resembling MNIST digits and Fashion-MNIST items.

Glyphs are small bitmaps upscaled onto the canvas and softened with a 3x3
box blur so edges carry intermediate intensities, like anti-aliased scans.
"""

from __future__ import annotations

from typing import Dict, Sequence

import numpy as np

from ..core.types import INPUT_SIZE, Array
from .registry import SampleSet, register_dataset

_DIGIT_GLYPHS = {
    0: ["01110", "10001", "10011", "10101", "11001", "10001", "01110"],
    1: ["00100", "01100", "00100", "00100", "00100", "00100", "01110"],
    2: ["01110", "10001", "00001", "00010", "00100", "01000", "11111"],
    3: ["11110", "00001", "00001", "01110", "00001", "00001", "11110"],
    4: ["00010", "00110", "01010", "10010", "11111", "00010", "00010"],
    5: ["11111", "10000", "11110", "00001", "00001", "10001", "01110"],
    6: ["00110", "01000", "10000", "11110", "10001", "10001", "01110"],
    7: ["11111", "00001", "00010", "00100", "01000", "01000", "01000"],
    8: ["01110", "10001", "10001", "01110", "10001", "10001", "01110"],
    9: ["01110", "10001", "10001", "01111", "00001", "00010", "01100"],
}

_FASHION_GLYPHS = {
    0: ["1100011", "1111111", "0111110", "0111110", "0111110", "0111110", "0111110"],
    1: ["0111110", "0111110", "0110110", "0110110", "0110110", "0110110", "0110110"],
    2: ["0110110", "1111111", "1111111", "1011101", "1011101", "1011101", "0011100"],
    3: ["0011100", "0011100", "0111110", "0111110", "1111111", "1111111", "1111111"],
    4: ["1110111", "1111111", "1111111", "1101011", "1101011", "1101011", "1101011"],
    5: ["0000000", "0000000", "0000001", "0010011", "0101101", "1111111", "0000000"],
    6: ["1101011", "1111111", "1011101", "1011101", "0011100", "0011100", "0011100"],
    7: ["0000000", "0000000", "0001100", "0011110", "1111111", "1111111", "0000000"],
    8: ["0011100", "0100010", "1111111", "1111111", "1111111", "1111111", "1111111"],
    9: ["0011100", "0011100", "0011100", "0011110", "0111111", "1111111", "0000000"],
}

MNIST_LABELS = ("Zero", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine")
FASHION_LABELS = (
    "T-shirt/top",
    "Trouser",
    "Pullover",
    "Dress",
    "Coat",
    "Sandal",
    "Shirt",
    "Sneaker",
    "Bag",
    "Ankle boot",
)


def _box_blur(image: Array) -> Array:
    padded = np.pad(image, 1, mode="constant")
    out = np.zeros_like(image)
    for dr in range(3):
        for dc in range(3):
            out += padded[dr : dr + image.shape[0], dc : dc + image.shape[1]]
    return out / 9.0


def render_glyph(rows: Sequence[str], scale: int, size: int = INPUT_SIZE) -> Array:
    """Upscale a bitmap glyph onto a centred ``size x size`` canvas in ``[0, 255]``."""

    bitmap = np.array([[1.0 if ch == "1" else 0.0 for ch in row] for row in rows])
    glyph = np.kron(bitmap, np.ones((scale, scale)))
    if glyph.shape[0] > size or glyph.shape[1] > size:
        raise ValueError(f"Glyph of shape {glyph.shape} does not fit a {size}x{size} canvas")
    canvas = np.zeros((size, size), dtype=np.float64)
    top = (size - glyph.shape[0]) // 2
    left = (size - glyph.shape[1]) // 2
    canvas[top : top + glyph.shape[0], left : left + glyph.shape[1]] = glyph
    blurred = _box_blur(canvas)
    return np.round(blurred / blurred.max() * 255.0) if blurred.max() > 0 else blurred


def _render_all(glyphs: Dict[int, Sequence[str]], scale: int) -> Dict[int, Array]:
    return {cls: render_glyph(rows, scale) for cls, rows in sorted(glyphs.items())}


@register_dataset("mnist")
def make_mnist() -> SampleSet:
    return SampleSet(
        name="mnist",
        labels=MNIST_LABELS,
        images=_render_all(_DIGIT_GLYPHS, scale=3),
        provenance={"type": "procedural", "glyph": "5x7", "scale": 3},
    )


@register_dataset("fashion")
def make_fashion() -> SampleSet:
    return SampleSet(
        name="fashion",
        labels=FASHION_LABELS,
        images=_render_all(_FASHION_GLYPHS, scale=3),
        provenance={"type": "procedural", "glyph": "7x7", "scale": 3},
    )


__all__ = ["FASHION_LABELS", "MNIST_LABELS", "make_fashion", "make_mnist", "render_glyph"]
