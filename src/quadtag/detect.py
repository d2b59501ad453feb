"""High-level detection entry point: graph search followed by payload decode."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from .config import search_params_from_config, tag_layout_from_config
from .graph import SegmentGraph
from .image import FloatImage
from .metrics import MetricsTracker, Timer, get_tracker
from .quad import Quad
from .search import search_all

log = logging.getLogger(__name__)


@dataclass
class Detection:
    quad: Quad
    code: Optional[int]
    start: int = -1

    @property
    def decoded(self) -> bool:
        return self.code is not None


def detect_tags(
    graph: SegmentGraph,
    image: FloatImage,
    cfg: Mapping[str, Any],
    *,
    stats: Optional[MetricsTracker] = None,
) -> List[Detection]:
    """Find quads in *graph* and decode each against *image*."""

    params = search_params_from_config(cfg)
    layout = tag_layout_from_config(cfg)
    search_cfg = cfg.get("search", {}) or {}
    decode_cfg = cfg.get("decode", {}) or {}
    workers = int(search_cfg.get("workers", 1))
    drop_failed = bool(decode_cfg.get("drop_failed", False))
    tracker = stats if stats is not None else get_tracker()

    quads = search_all(graph, params, workers=workers, stats=tracker)

    detections: List[Detection] = []
    with Timer("decode", tracker=tracker, logger=log):
        for quad in quads:
            code = quad.to_tag_code(image, layout.dimension_bits, layout.black_border)
            if tracker is not None:
                tracker.increment("decode.ok" if code is not None else "decode.out_of_image")
            if code is None and drop_failed:
                continue
            detections.append(Detection(quad=quad, code=code, start=quad.start))

    decoded = sum(1 for det in detections if det.decoded)
    log.info(
        "[decode] %d quads, %d decoded (%dx%d bits, border %d)",
        len(quads),
        decoded,
        layout.dimension_bits,
        layout.dimension_bits,
        layout.black_border,
    )
    return detections
