# src/logpolish/config/defaults.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from logpolish.utils.config import deep_merge, load_yaml

from .schema import ProcessingOptions, RuntimeConfig

ENV_MAX_CONCURRENT = "LOGPOLISH_MAX_CONCURRENT"
ENV_TIMEOUT_S = "LOGPOLISH_TIMEOUT_S"
ENV_SIGNING_KEY = "LOGPOLISH_SIGNING_KEY"
ENV_NULL_VALUE = "LOGPOLISH_NULL_VALUE"
ENV_LOG_LEVEL = "LOGPOLISH_LOG_LEVEL"


def default_options() -> ProcessingOptions:
    return ProcessingOptions()


def default_runtime() -> RuntimeConfig:
    return RuntimeConfig()


def load_options(path: Optional[Path] = None, overrides: Optional[Mapping[str, Any]] = None) -> ProcessingOptions:
    """
    Defaults <- YAML file <- explicit overrides. The YAML may hold the options at
    top level or under a `processing:` key.
    """
    base: Dict[str, Any] = default_options().to_dict()
    if path is not None:
        doc = load_yaml(Path(path))
        base = deep_merge(base, doc.get("processing", doc))
    if overrides:
        base = deep_merge(base, overrides)
    return ProcessingOptions.from_dict(base)


def _env_overrides(env: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if env.get(ENV_MAX_CONCURRENT):
        out["max_concurrent"] = int(env[ENV_MAX_CONCURRENT])
    if env.get(ENV_TIMEOUT_S):
        out["timeout_s"] = float(env[ENV_TIMEOUT_S])
    if env.get(ENV_SIGNING_KEY):
        out["signing_key"] = env[ENV_SIGNING_KEY]
    if env.get(ENV_NULL_VALUE):
        out["null_value"] = float(env[ENV_NULL_VALUE])
    if env.get(ENV_LOG_LEVEL):
        out["log_level"] = env[ENV_LOG_LEVEL].upper()
    return out


def load_runtime(path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> RuntimeConfig:
    """
    Defaults <- YAML `runtime:` section <- LOGPOLISH_* environment variables.
    """
    d: Dict[str, Any] = {}
    if path is not None:
        doc = load_yaml(Path(path))
        d = dict(doc.get("runtime", {}) or {})
    d = deep_merge(d, _env_overrides(os.environ if env is None else env))
    return RuntimeConfig.from_dict(d)
