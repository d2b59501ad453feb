from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Sequence, Tuple

import yaml

from .types import SearchParams, TagLayout


HARDCODED_DEFAULTS: Dict[str, Any] = {
    "graph": {
        "max_gap": 4.0,
        "min_length": 4.0,
    },
    "search": {
        "min_edge_length": 6.0,
        "max_aspect_ratio": 32.0,
        "winding_min": -7.0,
        "winding_max": -5.0,
        "parallel_eps": 1e-10,
        "workers": 1,
    },
    "decode": {
        "dimension_bits": 6,
        "black_border": 1,
        "drop_failed": False,
    },
}


def load_config(path: str) -> dict:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    return yaml.safe_load(p.read_text(encoding="utf-8"))


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key in base:
        value = base[key]
        if isinstance(value, Mapping):
            result[key] = copy.deepcopy(value)
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = deep_merge(result[key], value)  # type: ignore[arg-type]
        else:
            result[key] = value
    return result


def set_nested(config: MutableMapping[str, Any], path: Sequence[str], value: Any) -> None:
    if not path:
        return
    cursor: MutableMapping[str, Any] = config
    for key in path[:-1]:
        next_value = cursor.get(key)
        if not isinstance(next_value, MutableMapping):
            next_value = {}
            cursor[key] = next_value
        cursor = next_value
    cursor[path[-1]] = value


def parse_override(entry: str) -> Tuple[Tuple[str, ...], Any]:
    """Parse ``"search.min_edge_length=8"`` into a key path and a YAML value."""

    if "=" not in entry:
        raise ValueError("--opts expects 'path=value'")
    raw_path, raw_value = entry.split("=", 1)
    path = tuple(part.strip() for part in raw_path.split(".") if part.strip())
    if not path:
        raise ValueError("--opts needs a key path, e.g. search.min_edge_length")
    try:
        value = yaml.safe_load(raw_value)
    except yaml.YAMLError as exc:
        raise ValueError(f"--opts {raw_path}: value could not be parsed ({exc})") from exc
    return path, value


def load_config_with_defaults(path: Optional[Path]) -> Dict[str, Any]:
    """Merge the YAML file at *path* over :data:`HARDCODED_DEFAULTS`.

    ``None`` yields the defaults alone.
    """

    if path is None:
        return deep_merge(HARDCODED_DEFAULTS, {})
    try:
        loaded = load_config(str(path))
    except yaml.YAMLError as exc:
        raise ValueError(f"Config could not be read: {exc}") from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, MutableMapping):
        raise ValueError("Config root must be a mapping")
    return deep_merge(HARDCODED_DEFAULTS, dict(loaded))


def _section(cfg: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = cfg.get(name, {})
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ValueError(f"{name} config must be a mapping")
    return section


def search_params_from_config(cfg: Mapping[str, Any]) -> SearchParams:
    section = _section(cfg, "search")
    defaults = SearchParams()
    try:
        return SearchParams(
            min_edge_length=float(section.get("min_edge_length", defaults.min_edge_length)),
            max_aspect_ratio=float(section.get("max_aspect_ratio", defaults.max_aspect_ratio)),
            winding_min=float(section.get("winding_min", defaults.winding_min)),
            winding_max=float(section.get("winding_max", defaults.winding_max)),
            parallel_eps=float(section.get("parallel_eps", defaults.parallel_eps)),
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid search config: {exc}") from exc


def tag_layout_from_config(cfg: Mapping[str, Any]) -> TagLayout:
    section = _section(cfg, "decode")
    try:
        return TagLayout(
            dimension_bits=int(section.get("dimension_bits", 6)),
            black_border=int(section.get("black_border", 1)),
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid decode config: {exc}") from exc
