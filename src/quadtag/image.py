from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Tuple

import numpy as np
from PIL import Image

from .types import Point2D


class FloatImage:
    """Read-only luminance image; ``get(x, y)`` reads column *x*, row *y*."""

    def __init__(self, data: Any) -> None:
        arr = np.asarray(data, dtype=float)
        if arr.ndim != 2:
            raise ValueError(f"image must be a 2D array, got ndim={arr.ndim}")
        arr = arr.copy()
        arr.setflags(write=False)
        self._data = arr

    @property
    def width(self) -> int:
        return int(self._data.shape[1])

    @property
    def height(self) -> int:
        return int(self._data.shape[0])

    @property
    def data(self) -> np.ndarray:
        return self._data

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get(self, x: int, y: int) -> float:
        return float(self._data[y, x])


def round_pixel(p: Point2D) -> Tuple[int, int]:
    return int(math.floor(p[0] + 0.5)), int(math.floor(p[1] + 0.5))


def load_image(path: str | Path) -> FloatImage:
    """Load any Pillow-readable file as grayscale luminance in [0, 1]."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Image not found: {p}")
    with Image.open(p) as img:
        gray = img.convert("L")
        arr = np.asarray(gray, dtype=np.float64) / 255.0
    return FloatImage(arr)
