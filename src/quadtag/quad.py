from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from .gray_model import GrayModel
from .image import FloatImage, round_pixel
from .types import Point2D, Segment


log = logging.getLogger(__name__)


def is_on_outer_border(xb: int, yb: int, lb: int) -> bool:
    """White quiet-zone ring, one cell outside the tag."""
    return xb == -1 or xb == lb or yb == -1 or yb == lb


def is_on_inner_border(xb: int, yb: int, lb: int) -> bool:
    """Outermost black ring of the tag."""
    if is_on_outer_border(xb, yb, lb):
        return False
    return xb == 0 or xb == lb - 1 or yb == 0 or yb == lb - 1


def is_inside_inner_border(xb: int, yb: int, lb: int) -> bool:
    return 0 < xb < lb - 1 and 0 < yb < lb - 1


class Quad:
    """Four image-space corners plus the bilinear map from tag space.

    Tag space is ``[-1, 1]^2`` for :meth:`interpolate` and ``[0, 1]^2`` for
    :meth:`interpolate01`.  ``(0, 0)``, ``(1, 0)``, ``(1, 1)`` and ``(0, 1)``
    in the unit square land on ``p[0]``, ``p[1]``, ``p[2]`` and ``p[3]``.
    """

    def __init__(
        self,
        corners: Sequence[Point2D],
        segments: Optional[Sequence[Segment]] = None,
        obs_perimeter: Optional[float] = None,
        start: int = -1,
    ) -> None:
        pts = np.array(corners, dtype=float)
        if pts.shape != (4, 2):
            raise ValueError(f"Quad needs exactly 4 corner points, got shape {pts.shape}")
        pts.setflags(write=False)
        self._p = pts
        self.segments: Tuple[Segment, ...] = tuple(segments) if segments is not None else ()
        self.obs_perimeter = obs_perimeter
        # index of the graph segment the search walk started from
        self.start = int(start)

        x0, y0 = float(pts[0, 0]), float(pts[0, 1])
        x3, y3 = float(pts[3, 0]), float(pts[3, 1])
        self._p0 = (x0, y0)
        self._p3 = (x3, y3)
        self._p01 = (float(pts[1, 0]) - x0, float(pts[1, 1]) - y0)
        self._p32 = (float(pts[2, 0]) - x3, float(pts[2, 1]) - y3)

    def __repr__(self) -> str:
        corners = ", ".join(f"({x:.2f}, {y:.2f})" for x, y in self._p)
        return f"Quad[{corners}]"

    @property
    def p(self) -> np.ndarray:
        return self._p

    @property
    def corners(self) -> Tuple[Point2D, Point2D, Point2D, Point2D]:
        return tuple((float(x), float(y)) for x, y in self._p)  # type: ignore[return-value]

    @property
    def perimeter(self) -> Optional[float]:
        """Observed perimeter, i.e. the summed bounding segment lengths."""
        if not self.segments:
            return None
        return self.obs_perimeter

    @property
    def corner_perimeter(self) -> float:
        edges = self._p - np.roll(self._p, 1, axis=0)
        return float(np.linalg.norm(edges, axis=1).sum())

    @property
    def area(self) -> float:
        x = self._p[:, 0]
        y = self._p[:, 1]
        return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) * 0.5)

    def interpolate(self, u: float, v: float) -> Point2D:
        kx = (u + 1.0) / 2.0
        ky = (v + 1.0) / 2.0
        r1x = self._p0[0] + self._p01[0] * kx
        r1y = self._p0[1] + self._p01[1] * kx
        r2x = self._p3[0] + self._p32[0] * kx
        r2y = self._p3[1] + self._p32[1] * kx
        return (r1x + (r2x - r1x) * ky, r1y + (r2y - r1y) * ky)

    def interpolate01(self, u: float, v: float) -> Point2D:
        return self.interpolate(2.0 * u - 1.0, 2.0 * v - 1.0)

    def make_gray_model(self, image: FloatImage, length_bits: int) -> GrayModel:
        model = GrayModel()
        lb = int(length_bits)

        # only the boundary ring carries calibration samples
        for yb in range(-1, lb + 1):
            yn = (yb + 0.5) / lb
            for xb in range(-1, lb + 1):
                if is_inside_inner_border(xb, yb, lb):
                    continue

                xn = (xb + 0.5) / lb
                xi, yi = round_pixel(self.interpolate01(xn, yn))
                if not image.contains(xi, yi):
                    continue

                v = image.get(xi, yi)
                if is_on_outer_border(xb, yb, lb):
                    model.add_white_obs(xn, yn, v)
                elif is_on_inner_border(xb, yb, lb):
                    model.add_black_obs(xn, yn, v)

        model.fit()
        return model

    def decode_payload(
        self,
        image: FloatImage,
        model: GrayModel,
        dimension_bits: int,
        black_border: int,
    ) -> Optional[int]:
        """Sample the payload cells; ``None`` if any sample leaves the image.

        Rows run from ``yb = dimension_bits - 1`` down to 0, columns left to
        right, and the first sampled bit ends up as the most significant one.
        """

        code = 0
        lb = 2 * black_border + dimension_bits

        for yb in range(dimension_bits - 1, -1, -1):
            yn = (black_border + yb + 0.5) / lb
            for xb in range(dimension_bits):
                xn = (black_border + xb + 0.5) / lb

                xi, yi = round_pixel(self.interpolate01(xn, yn))
                if not image.contains(xi, yi):
                    return None

                threshold = model.threshold(xn, yn)
                code <<= 1
                if image.get(xi, yi) > threshold:
                    code |= 1
        return code

    def to_tag_code(
        self, image: FloatImage, dimension_bits: int, black_border: int
    ) -> Optional[int]:
        lb = 2 * black_border + dimension_bits
        model = self.make_gray_model(image, lb)
        code = self.decode_payload(image, model, dimension_bits, black_border)
        if code is None and log.isEnabledFor(logging.DEBUG):
            log.debug("[decode] %r: payload sample outside image", self)
        return code
