from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, List, Mapping, Tuple

import yaml

SegmentRow = Tuple[float, float, float, float]

_KEYS = ("x0", "y0", "x1", "y1")


def _row_from_item(item: Any, where: str) -> SegmentRow:
    if isinstance(item, Mapping):
        missing = [k for k in _KEYS if k not in item]
        if missing:
            raise ValueError(f"{where}: missing keys {', '.join(missing)}")
        values = [item[k] for k in _KEYS]
    elif isinstance(item, (list, tuple)):
        if len(item) != 4:
            raise ValueError(f"{where}: expected 4 values, got {len(item)}")
        values = list(item)
    else:
        raise ValueError(f"{where}: unsupported segment entry {item!r}")
    try:
        x0, y0, x1, y1 = (float(v) for v in values)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{where}: non-numeric coordinate ({exc})") from exc
    return x0, y0, x1, y1


def _load_csv(path: Path) -> List[SegmentRow]:
    rows: List[SegmentRow] = []
    with open(path, newline="", encoding="utf-8") as handle:
        for lineno, raw in enumerate(csv.reader(handle), start=1):
            cells = [c.strip() for c in raw]
            if not cells or not any(cells):
                continue
            if lineno == 1 and [c.lower() for c in cells] == list(_KEYS):
                continue
            rows.append(_row_from_item(cells, f"{path.name}:{lineno}"))
    return rows


def load_segments(path: str | Path) -> List[SegmentRow]:
    """Read ``(x0, y0, x1, y1)`` rows from YAML, JSON or CSV.

    YAML/JSON files hold either a list or a mapping with a ``segments`` list;
    entries are 4-number lists or mappings with x0/y0/x1/y1 keys.
    """

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Segment file not found: {p}")
    if p.suffix.lower() == ".csv":
        return _load_csv(p)

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Segment file could not be parsed: {exc}") from exc
    if isinstance(data, Mapping):
        data = data.get("segments")
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("Segment file must contain a list of segments")
    return [_row_from_item(item, f"{p.name}[{idx}]") for idx, item in enumerate(data)]
