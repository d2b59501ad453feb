from __future__ import annotations

import csv
import os
import subprocess
import sys
import textwrap
from pathlib import Path

import numpy as np
import yaml
from PIL import Image

sys.path.insert(0, os.path.dirname(__file__))

from synthetic_tags import expected_code, loop_corners, loop_segments, render_tag

BITS = [[0, 1, 1, 0], [1, 0, 0, 1], [1, 1, 0, 0], [0, 0, 1, 1]]


def _write_png(path: Path, image: np.ndarray) -> None:
    Image.fromarray(np.clip(image * 255.0, 0, 255).astype(np.uint8)).save(path)


def _run_cli(args: list[str], cwd: Path) -> subprocess.CompletedProcess[str]:
    env = os.environ.copy()
    project_root = Path(__file__).resolve().parents[1]
    src_path = project_root / "src"
    pythonpath = env.get("PYTHONPATH", "")
    new_path = str(src_path)
    if pythonpath:
        new_path = os.pathsep.join([new_path, pythonpath])
    env["PYTHONPATH"] = new_path
    env["COLUMNS"] = "200"
    return subprocess.run(
        [sys.executable, "-m", "quadtag.cli", *args],
        cwd=str(cwd),
        env=env,
        text=True,
        capture_output=True,
    )


def _write_config(path: Path, extra: str = "") -> None:
    base = textwrap.dedent(
        """
        graph:
          max_gap: 4.0
          min_length: 4.0
        search:
          min_edge_length: 6.0
          max_aspect_ratio: 32.0
        decode:
          dimension_bits: 4
          black_border: 1
        """
    ).strip()
    if extra:
        base += "\n" + extra.strip()
    path.write_text(base + "\n", encoding="utf-8")


def _scene(tmp_path: Path) -> tuple[Path, Path]:
    image_path = tmp_path / "scene.png"
    _write_png(image_path, render_tag(np.transpose(BITS).tolist()))
    corners = loop_corners(20.0, 20.0, 60.0, 60.0)
    segs_path = tmp_path / "segments.yaml"
    segs_path.write_text(
        yaml.safe_dump({"segments": [list(row) for row in loop_segments(corners, gap=1.5)]}),
        encoding="utf-8",
    )
    return image_path, segs_path


def test_detect_writes_report_and_overlay(tmp_path: Path) -> None:
    image_path, segs_path = _scene(tmp_path)
    config_path = tmp_path / "config.yaml"
    _write_config(config_path)
    outdir = tmp_path / "out"

    result = _run_cli(
        ["detect", str(image_path), str(segs_path), "--config", str(config_path), "--outdir", str(outdir)],
        tmp_path,
    )

    assert result.returncode == 0, result.stdout + result.stderr
    report = outdir / "scene_quads.csv"
    assert report.exists()
    assert (outdir / "scene_quads.png").exists()
    with open(report, newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == 1
    assert int(rows[0]["code"], 16) == expected_code(BITS)


def test_detect_opts_override_rejects_small_tags(tmp_path: Path) -> None:
    image_path, segs_path = _scene(tmp_path)
    config_path = tmp_path / "config.yaml"
    _write_config(config_path)
    outdir = tmp_path / "out"

    result = _run_cli(
        [
            "detect",
            str(image_path),
            str(segs_path),
            "--config",
            str(config_path),
            "--outdir",
            str(outdir),
            "--no-overlay",
            "--opts",
            "search.min_edge_length=500",
        ],
        tmp_path,
    )

    assert result.returncode == 0, result.stdout + result.stderr
    assert "No quads found" in result.stdout
    assert not (outdir / "scene_quads.png").exists()


def test_detect_reports_bad_config(tmp_path: Path) -> None:
    image_path, segs_path = _scene(tmp_path)
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- not a mapping\n", encoding="utf-8")

    result = _run_cli(["detect", str(image_path), str(segs_path), "--config", str(config_path)], tmp_path)

    assert result.returncode == 2
    assert "mapping" in result.stderr


def test_decode_known_corners(tmp_path: Path) -> None:
    image_path = tmp_path / "tag.png"
    _write_png(image_path, render_tag(BITS))

    result = _run_cli(
        [
            "decode",
            str(image_path),
            "--corner", "20,20",
            "--corner", "80,20",
            "--corner", "80,80",
            "--corner", "20,80",
            "--dimension-bits", "4",
        ],
        tmp_path,
    )

    assert result.returncode == 0, result.stdout + result.stderr
    assert result.stdout.strip() == f"0x{expected_code(BITS):04x}"


def test_decode_outside_image_fails(tmp_path: Path) -> None:
    image_path = tmp_path / "tag.png"
    _write_png(image_path, render_tag(BITS))

    result = _run_cli(
        [
            "decode",
            str(image_path),
            "--corner", "200,200",
            "--corner", "260,200",
            "--corner", "260,260",
            "--corner", "200,260",
            "--dimension-bits", "4",
        ],
        tmp_path,
    )

    assert result.returncode == 1
