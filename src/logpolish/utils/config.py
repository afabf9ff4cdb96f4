# src/logpolish/utils/config.py
from __future__ import annotations

from dataclasses import fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

import numpy as np
import yaml


def load_yaml(path: Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    obj = yaml.safe_load(p.read_text(encoding="utf-8"))
    return obj if isinstance(obj, dict) else {}


def deep_get(d: Mapping[str, Any], key: str, default: Any = None) -> Any:
    cur: Any = d
    for part in key.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            return default
        cur = cur[part]
    return cur


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), Mapping):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def as_plain_dict(x: Any) -> Any:
    """
    JSON-ready copy: dataclasses, mappings, tuples and numpy scalars/arrays
    become dicts, lists and Python numbers. Non-finite floats become None.
    """
    if hasattr(x, "to_dict") and callable(x.to_dict):
        return as_plain_dict(x.to_dict())
    if is_dataclass(x) and not isinstance(x, type):
        return {f.name: as_plain_dict(getattr(x, f.name)) for f in fields(x)}
    if isinstance(x, Mapping):
        return {str(k): as_plain_dict(v) for k, v in x.items()}
    if isinstance(x, (list, tuple, set, frozenset)):
        return [as_plain_dict(v) for v in x]
    if isinstance(x, np.ndarray):
        return [as_plain_dict(v) for v in x.tolist()]
    if isinstance(x, np.generic):
        x = x.item()
    if isinstance(x, float) and not np.isfinite(x):
        return None
    if isinstance(x, Path):
        return str(x)
    return x
