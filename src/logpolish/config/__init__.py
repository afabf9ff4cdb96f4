# src/logpolish/config/__init__.py
from __future__ import annotations

from .schema import (
    DenoiseOptions,
    DespikeOptions,
    MnemonicOptions,
    ProcessingOptions,
    RuntimeConfig,
    ValidationOptions,
)

__all__ = [
    "DenoiseOptions",
    "DespikeOptions",
    "MnemonicOptions",
    "ProcessingOptions",
    "RuntimeConfig",
    "ValidationOptions",
]
