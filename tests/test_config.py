import os
import sys
import textwrap
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from quadtag.config import (
    HARDCODED_DEFAULTS,
    deep_merge,
    load_config,
    load_config_with_defaults,
    parse_override,
    search_params_from_config,
    set_nested,
    tag_layout_from_config,
)
from quadtag.types import SearchParams


def test_defaults_match_search_params() -> None:
    params = search_params_from_config(HARDCODED_DEFAULTS)
    assert params == SearchParams()
    assert params.min_edge_length == 6.0
    assert params.max_aspect_ratio == 32.0


def test_deep_merge_keeps_base_untouched() -> None:
    base = {"search": {"min_edge_length": 6.0, "workers": 1}, "decode": {"black_border": 1}}
    merged = deep_merge(base, {"search": {"workers": 4}})
    assert merged["search"] == {"min_edge_length": 6.0, "workers": 4}
    assert base["search"]["workers"] == 1


def test_set_nested_creates_sections() -> None:
    cfg: dict = {}
    set_nested(cfg, ("search", "min_edge_length"), 9.0)
    assert cfg == {"search": {"min_edge_length": 9.0}}


@pytest.mark.parametrize(
    "entry, path, value",
    [
        ("search.min_edge_length=8", ("search", "min_edge_length"), 8),
        ("decode.drop_failed=true", ("decode", "drop_failed"), True),
        ("graph.max_gap = 2.5", ("graph", "max_gap"), 2.5),
    ],
)
def test_parse_override(entry: str, path, value) -> None:
    assert parse_override(entry) == (path, value)


@pytest.mark.parametrize("entry", ["search.min_edge_length", "=3"])
def test_parse_override_rejects_malformed(entry: str) -> None:
    with pytest.raises(ValueError):
        parse_override(entry)


def test_load_config_with_defaults_merges_file(tmp_path: Path) -> None:
    path = tmp_path / "cfg.yaml"
    path.write_text(
        textwrap.dedent(
            """
            search:
              max_aspect_ratio: 8.0
            decode:
              dimension_bits: 4
            """
        ),
        encoding="utf-8",
    )
    cfg = load_config_with_defaults(path)

    assert search_params_from_config(cfg).max_aspect_ratio == 8.0
    assert search_params_from_config(cfg).min_edge_length == 6.0
    layout = tag_layout_from_config(cfg)
    assert layout.dimension_bits == 4
    assert layout.length_bits == 6
    assert layout.payload_bits == 16


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))


def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "cfg.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config_with_defaults(path)


def test_load_config_empty_file_gives_defaults(tmp_path: Path) -> None:
    path = tmp_path / "cfg.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config_with_defaults(path) == HARDCODED_DEFAULTS


def test_invalid_values_raise_value_error() -> None:
    cfg = deep_merge(HARDCODED_DEFAULTS, {"search": {"max_aspect_ratio": "wide"}})
    with pytest.raises(ValueError):
        search_params_from_config(cfg)
    cfg = deep_merge(HARDCODED_DEFAULTS, {"decode": {"dimension_bits": 0}})
    with pytest.raises(ValueError):
        tag_layout_from_config(cfg)


def test_shipped_default_yaml_matches_hardcoded_defaults() -> None:
    path = Path(__file__).resolve().parents[1] / "configs" / "default.yaml"
    assert load_config_with_defaults(path) == HARDCODED_DEFAULTS
