import json
import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from quadtag.io_segments import load_segments


def test_load_yaml_rows_and_mappings(tmp_path: Path) -> None:
    path = tmp_path / "segs.yaml"
    path.write_text(
        "segments:\n"
        "  - [0, 0, 10, 0]\n"
        "  - {x0: 10, y0: 1, x1: 10, y1: 20}\n",
        encoding="utf-8",
    )
    assert load_segments(path) == [(0.0, 0.0, 10.0, 0.0), (10.0, 1.0, 10.0, 20.0)]


def test_load_json_list(tmp_path: Path) -> None:
    path = tmp_path / "segs.json"
    path.write_text(json.dumps([[1, 2, 3, 4], [5.5, 6, 7, 8]]), encoding="utf-8")
    assert load_segments(path) == [(1.0, 2.0, 3.0, 4.0), (5.5, 6.0, 7.0, 8.0)]


def test_load_csv_with_header(tmp_path: Path) -> None:
    path = tmp_path / "segs.csv"
    path.write_text("x0,y0,x1,y1\n0,0,10,0\n\n10,1,10,20\n", encoding="utf-8")
    assert load_segments(path) == [(0.0, 0.0, 10.0, 0.0), (10.0, 1.0, 10.0, 20.0)]


def test_empty_yaml_gives_no_segments(tmp_path: Path) -> None:
    path = tmp_path / "segs.yaml"
    path.write_text("segments: []\n", encoding="utf-8")
    assert load_segments(path) == []


@pytest.mark.parametrize(
    "content",
    [
        "- [0, 0, 10]\n",
        "- {x0: 1, y0: 2, x1: 3}\n",
        "- [a, 0, 1, 1]\n",
        "segments: 5\n",
    ],
)
def test_malformed_segments_raise(tmp_path: Path, content: str) -> None:
    path = tmp_path / "segs.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ValueError):
        load_segments(path)


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_segments(tmp_path / "nope.yaml")
