from __future__ import annotations

import math
from typing import Optional

from .types import Point2D

TWO_PI = 2.0 * math.pi


def mod2pi(angle: float) -> float:
    """Normalize *angle* into (-pi, pi]."""
    angle = math.fmod(angle + math.pi, TWO_PI)
    if angle <= 0.0:
        angle += TWO_PI
    return angle - math.pi


def distance2d(a: Point2D, b: Point2D) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])



def line_intersection(
    a0: Point2D,
    a1: Point2D,
    b0: Point2D,
    b1: Point2D,
    eps: float = 1e-10,
) -> Optional[Point2D]:
    """Intersect the infinite lines through ``a0-a1`` and ``b0-b1``.

    Returns ``None`` when either line is degenerate or the unit directions
    are (nearly) parallel, i.e. ``|cross| < eps``.
    """

    adx = a1[0] - a0[0]
    ady = a1[1] - a0[1]
    bdx = b1[0] - b0[0]
    bdy = b1[1] - b0[1]
    alen = math.hypot(adx, ady)
    blen = math.hypot(bdx, bdy)
    if alen == 0.0 or blen == 0.0:
        return None
    adx /= alen
    ady /= alen
    bdx /= blen
    bdy /= blen

    det = adx * bdy - ady * bdx
    if abs(det) < eps:
        return None

    # a0 + t * da == b0 + s * db, solved for t
    t = ((b0[0] - a0[0]) * bdy - (b0[1] - a0[1]) * bdx) / det
    return (a0[0] + t * adx, a0[1] + t * ady)
