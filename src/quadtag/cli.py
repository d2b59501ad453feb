from __future__ import annotations

import logging
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import typer
import yaml
from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from .config import (
    load_config_with_defaults,
    parse_override,
    set_nested,
    tag_layout_from_config,
)
from .detect import Detection, detect_tags
from .graph import SegmentGraph
from .image import load_image
from .io_segments import load_segments
from .metrics import MetricsTracker, Timer, use_tracker
from .overlays import format_code, write_quad_overlay, write_report_csv
from .quad import Quad


log = logging.getLogger(__name__)


PACKAGE_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = PACKAGE_ROOT / "configs" / "default.yaml"


class Logger:
    def __init__(self, verbose: bool) -> None:
        self.verbose = verbose
        theme = Theme({
            "info": "cyan",
            "step": "bold cyan",
            "warning": "bold yellow",
            "error": "bold red",
        })
        self.console = Console(theme=theme, highlight=False)
        self.err_console = Console(theme=theme, highlight=False, stderr=True)

    def _print(self, message: str, style: str | None = None, *, err: bool = False) -> None:
        target = self.err_console if err else self.console
        if style:
            target.print(f"[{style}]{message}[/{style}]")
        else:
            target.print(message)

    def info(self, message: str) -> None:
        self._print(message, style="info")

    def step(self, message: str) -> None:
        self.console.print(f"[step]▶ {message}")

    def warn(self, message: str) -> None:
        self._print(message, style="warning")

    def error(self, message: str) -> None:
        self._print(message, style="error", err=True)

    def debug(self, message: str) -> None:
        if self.verbose:
            self.console.print(f"[dim]{message}[/dim]")


class _LoggingBridge(logging.Handler):
    def __init__(self, cli_logger: Logger, level: int) -> None:
        super().__init__(level)
        self._cli_logger = cli_logger

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        msg = self.format(record)
        if record.levelno >= logging.ERROR:
            self._cli_logger.error(msg)
        elif record.levelno >= logging.WARNING:
            self._cli_logger.warn(msg)
        elif record.levelno >= logging.INFO:
            self._cli_logger.info(msg)
        else:
            self._cli_logger.debug(msg)


def _install_logging(logger: Logger, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    package_logger = logging.getLogger("quadtag")
    package_logger.setLevel(log_level)
    package_logger.propagate = False
    for handler in list(package_logger.handlers):
        if isinstance(handler, _LoggingBridge):
            package_logger.removeHandler(handler)
    bridge = _LoggingBridge(logger, log_level)
    bridge.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(bridge)


def _load_cfg(config: Optional[Path], opts: Sequence[str]) -> Dict[str, Any]:
    path: Optional[Path] = config
    if path is None and DEFAULT_CONFIG_PATH.exists():
        path = DEFAULT_CONFIG_PATH
    cfg = load_config_with_defaults(path)
    for entry in opts:
        key_path, value = parse_override(entry)
        set_nested(cfg, key_path, value)
    return cfg


def _parse_corner(text: str) -> Tuple[float, float]:
    parts = [p for p in text.replace(";", ",").split(",") if p.strip()]
    if len(parts) != 2:
        raise ValueError(f"corner must look like 'x,y', got {text!r}")
    try:
        return float(parts[0]), float(parts[1])
    except ValueError as exc:
        raise ValueError(f"corner {text!r} is not numeric") from exc


def _build_table(detections: Sequence[Detection], payload_bits: int) -> Table:
    table = Table(title="Quads", show_lines=False)
    for column in ("#", "corners", "perimeter", "code"):
        table.add_column(column)
    for idx, det in enumerate(detections, start=1):
        corners = " ".join(f"({x:.1f},{y:.1f})" for x, y in det.quad.corners)
        perimeter = det.quad.perimeter
        table.add_row(
            str(idx),
            corners,
            "" if perimeter is None else f"{perimeter:.1f}",
            format_code(det.code, payload_bits) if det.decoded else "[red]outside image[/red]",
        )
    return table


def _log_timing_summary(tracker: MetricsTracker) -> None:
    log.info(
        "[timing] search=%.3fs | decode=%.3fs",
        tracker.get_time("search"),
        tracker.get_time("decode"),
    )
    rejects = " | ".join(f"{k}={v}" for k, v in tracker.reject_counts().items())
    log.info("[search] accepted=%d | %s", tracker.get_count("search.accepted"), rejects)


def _handle_known_exception(logger: Logger, exc: Exception, *, prefix: str | None = None) -> None:
    message = str(exc) if str(exc) else exc.__class__.__name__
    if prefix:
        message = f"{prefix}: {message}"
    logger.error(message)


app = typer.Typer(help="Square fiducial quad search & payload decode")


@app.command("detect")
def detect(
    image: Path = typer.Argument(..., exists=True, readable=True, resolve_path=True, help="Input image"),
    segments: Path = typer.Argument(
        ..., exists=True, readable=True, resolve_path=True, help="Segments (YAML, JSON or CSV)"
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        resolve_path=True,
        help="YAML config (defaults to configs/default.yaml)",
    ),
    outdir: Path = typer.Option(Path("out"), "--outdir", resolve_path=True, help="Output directory"),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="Search worker threads"),
    no_overlay: bool = typer.Option(False, "--no-overlay", help="Skip the PNG overlay"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    opts: List[str] = typer.Option(
        [],
        "--opts",
        help="Override config values, e.g. --opts search.min_edge_length=10",
        show_default=False,
        metavar="PATH=VALUE",
    ),
) -> None:
    logger = Logger(verbose=verbose)
    _install_logging(logger, verbose)
    tracker = MetricsTracker()

    try:
        with use_tracker(tracker):
            with Timer("total.detect"):
                logger.step("Loading configuration")
                cfg = _load_cfg(config, opts)
                if workers is not None:
                    set_nested(cfg, ("search", "workers"), int(workers))
                if verbose:
                    config_yaml = yaml.safe_dump(cfg, sort_keys=True, allow_unicode=True)
                    logger.debug("Active config:\n" + textwrap.indent(config_yaml, "  "))
                layout = tag_layout_from_config(cfg)

                logger.step("Loading image and segments")
                img = load_image(image)
                rows = load_segments(segments)
                graph = SegmentGraph.from_segments(rows)
                graph_cfg: Mapping[str, Any] = cfg.get("graph", {}) or {}
                graph.link_children(
                    float(graph_cfg.get("max_gap", 4.0)),
                    float(graph_cfg.get("min_length", 0.0)),
                )
                logger.info(f"{img.width}x{img.height} px, {len(graph)} segments")

                logger.step("Searching quads")
                detections = detect_tags(graph, img, cfg, stats=tracker)

                logger.step("Writing outputs")
                csv_path = write_report_csv(str(outdir), image.name, detections, layout.payload_bits)
                logger.info(f"Report: {csv_path}")
                if not no_overlay:
                    overlay_path = write_quad_overlay(
                        img,
                        detections,
                        str(outdir / f"{image.stem}_quads.png"),
                        payload_bits=layout.payload_bits,
                    )
                    logger.info(f"Overlay: {overlay_path}")
    except (FileNotFoundError, ValueError) as exc:
        _handle_known_exception(logger, exc)
        raise typer.Exit(code=2) from exc

    logger.console.print(_build_table(detections, layout.payload_bits))
    if not detections:
        logger.warn("No quads found")
    _log_timing_summary(tracker)


@app.command("decode")
def decode(
    image: Path = typer.Argument(..., exists=True, readable=True, resolve_path=True, help="Input image"),
    corners: List[str] = typer.Option(
        ...,
        "--corner",
        "-c",
        help="Corner as x,y; pass exactly four times in quad order",
        metavar="X,Y",
    ),
    dimension_bits: int = typer.Option(6, "--dimension-bits", min=1, help="Payload cells per side"),
    black_border: int = typer.Option(1, "--black-border", min=1, help="Black border width in cells"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    logger = Logger(verbose=verbose)
    _install_logging(logger, verbose)

    try:
        if len(corners) != 4:
            raise ValueError(f"exactly 4 --corner values required, got {len(corners)}")
        quad = Quad([_parse_corner(c) for c in corners])
        img = load_image(image)
    except (FileNotFoundError, ValueError) as exc:
        _handle_known_exception(logger, exc)
        raise typer.Exit(code=2) from exc

    code = quad.to_tag_code(img, dimension_bits, black_border)
    if code is None:
        logger.error("Payload samples fall outside the image")
        raise typer.Exit(code=1)
    typer.echo(format_code(code, dimension_bits * dimension_bits))


if __name__ == "__main__":  # pragma: no cover
    app()
