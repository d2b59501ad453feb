from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Literal, Tuple

Point2D = Tuple[float, float]

RejectReason = Literal["no_loop", "parallel", "winding", "too_small", "aspect"]

REJECT_REASONS: Tuple[RejectReason, ...] = (
    "no_loop",
    "parallel",
    "winding",
    "too_small",
    "aspect",
)


@dataclass
class Segment:
    x0: float; y0: float; x1: float; y1: float
    id: int = -1
    children: List[int] = field(default_factory=list, compare=False, repr=False)

    @property
    def start(self) -> Point2D:
        return (self.x0, self.y0)

    @property
    def end(self) -> Point2D:
        return (self.x1, self.y1)

    @property
    def length(self) -> float:
        return math.hypot(self.x1 - self.x0, self.y1 - self.y0)

    @property
    def theta(self) -> float:
        # atan2 already lands in (-pi, pi]
        return math.atan2(self.y1 - self.y0, self.x1 - self.x0)


@dataclass(frozen=True)
class SearchParams:
    """Thresholds for the terminal quad test.

    ``min_edge_length`` applies to the four edges and both diagonals,
    ``max_aspect_ratio`` to longest / shortest edge.  The winding window is
    a tolerance band around ``-2*pi``.
    """

    min_edge_length: float = 6.0
    max_aspect_ratio: float = 32.0
    winding_min: float = -7.0
    winding_max: float = -5.0
    parallel_eps: float = 1e-10

    def __post_init__(self) -> None:
        if self.min_edge_length < 0:
            raise ValueError("min_edge_length must be >= 0")
        if self.max_aspect_ratio < 1.0:
            raise ValueError("max_aspect_ratio must be >= 1")
        if self.winding_min > self.winding_max:
            raise ValueError("winding_min must not exceed winding_max")


@dataclass(frozen=True)
class TagLayout:
    dimension_bits: int
    black_border: int = 1

    def __post_init__(self) -> None:
        if self.dimension_bits <= 0:
            raise ValueError("dimension_bits must be > 0")
        if self.black_border <= 0:
            raise ValueError("black_border must be > 0")

    @property
    def length_bits(self) -> int:
        return 2 * self.black_border + self.dimension_bits

    @property
    def payload_bits(self) -> int:
        return self.dimension_bits * self.dimension_bits
