"""Per-quad illumination model.

Two surfaces ``g(x, y) = a*x + b*y + c*x*y + d`` are fitted in normalized tag
coordinates, one to the white quiet-zone samples and one to the black border
samples.  The decode threshold is the midpoint of both surfaces, which keeps
bit decisions stable under lighting gradients across the tag.
"""
from __future__ import annotations

from typing import List, Tuple

import numpy as np

# Below this many samples the bilinear fit is underdetermined in practice.
MIN_FIT_OBSERVATIONS = 6


class LinearGrayModel:
    def __init__(self) -> None:
        self._obs: List[Tuple[float, float, float]] = []
        self._coef: np.ndarray | None = None

    def __len__(self) -> int:
        return len(self._obs)

    def add_observation(self, x: float, y: float, gray: float) -> None:
        self._obs.append((float(x), float(y), float(gray)))
        self._coef = None

    def fit(self) -> np.ndarray:
        coef = np.zeros(4, dtype=float)
        if len(self._obs) >= MIN_FIT_OBSERVATIONS:
            obs = np.asarray(self._obs, dtype=float)
            x, y, g = obs[:, 0], obs[:, 1], obs[:, 2]
            design = np.stack([x, y, x * y, np.ones_like(x)], axis=1)
            coef, *_ = np.linalg.lstsq(design, g, rcond=None)
        elif self._obs:
            coef[3] = float(np.mean([g for _, _, g in self._obs]))
        self._coef = coef
        return coef

    def interpolate(self, x: float, y: float) -> float:
        if self._coef is None:
            self.fit()
        a, b, c, d = self._coef  # type: ignore[misc]
        return float(a * x + b * y + c * x * y + d)


class GrayModel:
    """White/black calibration surfaces answering ``threshold(xn, yn)``."""

    def __init__(self) -> None:
        self._white = LinearGrayModel()
        self._black = LinearGrayModel()
        self._fitted = False

    @property
    def white_count(self) -> int:
        return len(self._white)

    @property
    def black_count(self) -> int:
        return len(self._black)

    @property
    def fitted(self) -> bool:
        return self._fitted

    def add_white_obs(self, xn: float, yn: float, value: float) -> None:
        if self._fitted:
            raise RuntimeError("GrayModel already fitted")
        self._white.add_observation(xn, yn, value)

    def add_black_obs(self, xn: float, yn: float, value: float) -> None:
        if self._fitted:
            raise RuntimeError("GrayModel already fitted")
        self._black.add_observation(xn, yn, value)

    def fit(self) -> None:
        if self._fitted:
            raise RuntimeError("GrayModel.fit() must be called exactly once")
        self._white.fit()
        self._black.fit()
        self._fitted = True

    def white(self, xn: float, yn: float) -> float:
        return self._white.interpolate(xn, yn)

    def black(self, xn: float, yn: float) -> float:
        return self._black.interpolate(xn, yn)

    def threshold(self, xn: float, yn: float) -> float:
        if not self._fitted:
            raise RuntimeError("GrayModel.threshold() called before fit()")
        return 0.5 * (self._white.interpolate(xn, yn) + self._black.interpolate(xn, yn))
