# src/logpolish/__init__.py
from __future__ import annotations

"""
logpolish

Well-log (LAS) conditioning: parse, standardize mnemonics and units, denoise,
despike, validate, score and certify.

Heavy submodules are imported on first attribute access.
"""

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

_EXPORTS = {
    "Orchestrator": "logpolish.orchestrator",
    "ProcessingResult": "logpolish.orchestrator",
    "ProcessingCertificate": "logpolish.orchestrator",
    "ProcessingStep": "logpolish.orchestrator",
    "CancelToken": "logpolish.orchestrator",
    "compute_signature": "logpolish.orchestrator",
    "ProcessingOptions": "logpolish.config.schema",
    "RuntimeConfig": "logpolish.config.schema",
    "LogFile": "logpolish.io.logfile",
    "Curve": "logpolish.io.logfile",
    "ParseError": "logpolish.io.las",
    "load_log": "logpolish.io.las",
    "write_las": "logpolish.io.las",
    "run_batch": "logpolish.pipelines.batch",
}

__all__ = ["__version__", *_EXPORTS]


def __getattr__(name: str) -> Any:
    mod = _EXPORTS.get(name)
    if mod is None:
        raise AttributeError(f"module 'logpolish' has no attribute {name!r}")
    return getattr(import_module(mod), name)
