from __future__ import annotations

import csv
import math
import os
from typing import Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw

from .detect import Detection
from .image import FloatImage

QUAD_GREEN = "#00C853"
QUAD_RED = "#F44336"
CORNER_BLUE = "#2979FF"
LABEL_BG = "#FFFFFF"


def _format_float(value: Optional[float], precision: int = 4) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return ""
    fmt = f"{{:.{precision}f}}"
    return fmt.format(value)


def format_code(code: Optional[int], payload_bits: Optional[int] = None) -> str:
    if code is None:
        return ""
    if payload_bits:
        width = (payload_bits + 3) // 4
        return f"0x{code:0{width}x}"
    return f"0x{code:x}"


def write_report_csv(
    outdir: str,
    image_name: str,
    detections: Sequence[Detection],
    payload_bits: Optional[int] = None,
) -> str:
    os.makedirs(outdir, exist_ok=True)
    base_name = os.path.splitext(os.path.basename(image_name))[0]
    csv_path = os.path.join(outdir, f"{base_name}_quads.csv")

    fieldnames = [
        "image_file",
        "id",
        "start_segment",
        "x0", "y0", "x1", "y1", "x2", "y2", "x3", "y3",
        "obs_perimeter",
        "area",
        "code",
        "notes",
    ]

    with open(csv_path, "w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        for idx, det in enumerate(detections, start=1):
            row = {
                "image_file": os.path.basename(image_name),
                "id": idx,
                "start_segment": det.start,
                "obs_perimeter": _format_float(det.quad.perimeter, 3),
                "area": _format_float(det.quad.area, 2),
                "code": format_code(det.code, payload_bits),
                "notes": "" if det.decoded else "payload outside image",
            }
            for i, (x, y) in enumerate(det.quad.corners):
                row[f"x{i}"] = _format_float(x, 3)
                row[f"y{i}"] = _format_float(y, 3)
            writer.writerow(row)
    return csv_path


def _to_rgb(image: FloatImage) -> Image.Image:
    data = image.data
    hi = float(data.max()) if data.size else 1.0
    scale = 255.0 if hi <= 1.0 else 1.0
    arr = np.clip(data * scale, 0, 255).astype(np.uint8)
    return Image.fromarray(arr).convert("RGB")


def write_quad_overlay(
    image: FloatImage,
    detections: Sequence[Detection],
    out_path: str,
    *,
    corner_radius: float = 2.5,
    payload_bits: Optional[int] = None,
) -> str:
    """Draw quad outlines, corner 0 marker and decoded codes onto *image*."""

    canvas = _to_rgb(image)
    draw = ImageDraw.Draw(canvas)
    for idx, det in enumerate(detections, start=1):
        pts = [(float(x), float(y)) for x, y in det.quad.corners]
        color = QUAD_GREEN if det.decoded else QUAD_RED
        draw.line(pts + [pts[0]], fill=color, width=2)
        cx, cy = pts[0]
        draw.ellipse(
            (cx - corner_radius, cy - corner_radius, cx + corner_radius, cy + corner_radius),
            outline=CORNER_BLUE,
            width=2,
        )
        mx = sum(p[0] for p in pts) / 4.0
        my = sum(p[1] for p in pts) / 4.0
        label = f"#{idx}"
        if det.decoded:
            label += f" {format_code(det.code, payload_bits)}"
        bbox: Tuple[float, float, float, float] = draw.textbbox((mx, my), label)
        draw.rectangle(bbox, fill=LABEL_BG)
        draw.text((mx, my), label, fill=color)

    parent = os.path.dirname(out_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    canvas.save(out_path)
    return out_path
