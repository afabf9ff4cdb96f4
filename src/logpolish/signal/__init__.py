# src/logpolish/signal/__init__.py
from __future__ import annotations

from .denoise import DenoiseOutcome, denoise_log, denoise_values
from .despike import DespikeOutcome, SpikeResult, despike_log, despike_values

__all__ = [
    "DenoiseOutcome",
    "denoise_log",
    "denoise_values",
    "DespikeOutcome",
    "SpikeResult",
    "despike_log",
    "despike_values",
]
