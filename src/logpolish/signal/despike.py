# src/logpolish/signal/despike.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from logpolish.config.schema import DespikeOptions
from logpolish.io.logfile import LogFile, null_mask
from logpolish.signal.interp import replace_flagged

logger = logging.getLogger(__name__)

# Consistency constant for MeanAD when MAD collapses to zero
MEAN_AD_SCALE = 1.253314
MODIFIED_Z_SCALE = 0.6745


# -----------------------------------------------------------------------------
# Robust statistics
# -----------------------------------------------------------------------------

def rolling_median_mad(x: np.ndarray, window_size: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Centered rolling median and raw MAD. Windows shrink at the ends instead of padding.
    """
    x = np.asarray(x, dtype="float64")
    n = x.size
    half = max(0, int(window_size) // 2)
    w = 2 * half + 1
    med = np.empty(n, dtype="float64")
    mad = np.empty(n, dtype="float64")

    if n >= w:
        win = sliding_window_view(x, w)
        m = np.median(win, axis=1)
        med[half:n - half] = m
        mad[half:n - half] = np.median(np.abs(win - m[:, None]), axis=1)
        edges = list(range(min(half, n))) + list(range(max(half, n - half), n))
    else:
        edges = list(range(n))

    for i in edges:
        seg = x[max(0, i - half):min(n, i + half + 1)]
        m = float(np.median(seg))
        med[i] = m
        mad[i] = float(np.median(np.abs(seg - m)))
    return med, mad


def _spread_floor(x: np.ndarray) -> float:
    """Curve-wide MAD, or scaled MeanAD when the MAD is zero."""
    if x.size == 0:
        return 0.0
    med = float(np.median(x))
    dev = np.abs(x - med)
    mad = float(np.median(dev))
    if mad > 0:
        return mad
    return MEAN_AD_SCALE * float(np.mean(dev))


# -----------------------------------------------------------------------------
# Detectors (operate on the valid subsequence only)
# -----------------------------------------------------------------------------

def hampel(x: np.ndarray, *, window_size: int, threshold: float) -> np.ndarray:
    x = np.asarray(x, dtype="float64")
    if x.size == 0:
        return np.zeros(0, dtype=bool)
    med, mad = rolling_median_mad(x, window_size)
    floor = _spread_floor(x)
    scale = np.where(mad > 0, mad, floor)
    dev = np.abs(x - med)
    return (scale > 0) & (dev > float(threshold) * scale)


def modified_zscore(x: np.ndarray, *, threshold: float) -> np.ndarray:
    x = np.asarray(x, dtype="float64")
    if x.size == 0:
        return np.zeros(0, dtype=bool)
    med = float(np.median(x))
    dev = x - med
    mad = float(np.median(np.abs(dev)))
    if mad > 0:
        z = MODIFIED_Z_SCALE * dev / mad
    else:
        mean_ad = float(np.mean(np.abs(dev)))
        if mean_ad <= 0:
            return np.zeros(x.size, dtype=bool)
        z = dev / (MEAN_AD_SCALE * mean_ad)
    return np.abs(z) > float(threshold)


def iqr(x: np.ndarray, *, threshold: float) -> np.ndarray:
    x = np.asarray(x, dtype="float64")
    if x.size == 0:
        return np.zeros(0, dtype=bool)
    q1, q3 = np.percentile(x, [25.0, 75.0])
    k = float(threshold) * float(q3 - q1)
    return (x < q1 - k) | (x > q3 + k)


def detect_spikes(x: np.ndarray, opts: DespikeOptions) -> np.ndarray:
    if opts.method in ("hampel", "manual"):
        return hampel(x, window_size=opts.window_size, threshold=opts.threshold)
    if opts.method == "modified_zscore":
        return modified_zscore(x, threshold=opts.threshold)
    if opts.method == "iqr":
        return iqr(x, threshold=opts.threshold)
    raise ValueError(f"Unknown despike method: {opts.method!r}")


# -----------------------------------------------------------------------------
# Single curve
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class SpikeResult:
    """
    cleaned:
      full-length column; sentinel positions identical to the input
    spike_indices:
      row indices (into the full column) flagged as spikes
    """
    cleaned: np.ndarray
    spike_indices: np.ndarray
    replaced: int

    @property
    def detected(self) -> int:
        return int(self.spike_indices.size)


def despike_values(
    values: np.ndarray,
    opts: DespikeOptions,
    *,
    null_value: float,
    depth: Optional[np.ndarray] = None,
) -> SpikeResult:
    y = np.asarray(values, dtype="float64").copy()
    ok = ~null_mask(y, null_value)
    pos = np.flatnonzero(ok)
    x = y[ok]

    bad = detect_spikes(x, opts)
    spike_rows = pos[bad]
    if not bad.any() or opts.method == "manual":
        return SpikeResult(cleaned=y, spike_indices=spike_rows, replaced=0)

    xd = None if depth is None else np.asarray(depth, dtype="float64")[ok]
    fixed = replace_flagged(
        x,
        bad,
        opts.replacement_method,
        x=xd,
        window_size=opts.window_size,
        null_value=null_value,
    )
    y[pos] = fixed
    return SpikeResult(cleaned=y, spike_indices=spike_rows, replaced=int(bad.sum()))


# -----------------------------------------------------------------------------
# Whole log
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class DespikeOutcome:
    log: LogFile
    per_curve: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    curves_affected: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def spikes_detected(self) -> int:
        return sum(int(m.get("spikes_detected", 0)) for m in self.per_curve.values())

    @property
    def spikes_replaced(self) -> int:
        return sum(int(m.get("spikes_replaced", 0)) for m in self.per_curve.values())


def despike_log(log: LogFile, opts: DespikeOptions) -> DespikeOutcome:
    """
    Despike every continuous curve. A curve that fails is left unmodified and
    reported as a warning; the rest of the log is still processed.
    """
    grid = log.grid.copy()
    depth = grid.depth
    per_curve: Dict[str, Dict[str, Any]] = {}
    affected: List[str] = []
    warnings: List[str] = []

    labels = log.curve_labels()
    for i in log.continuous_indices():
        label = labels[i]
        try:
            res = despike_values(grid.column(i), opts, null_value=grid.null_value, depth=depth)
        except Exception as e:
            logger.warning("despike failed for %s: %s", label, e)
            warnings.append(f"Despike failed for {label}: {type(e).__name__}: {e}")
            continue

        per_curve[label] = {
            "spikes_detected": res.detected,
            "spikes_replaced": res.replaced,
            "spike_indices": [int(k) for k in res.spike_indices],
        }
        if res.replaced:
            grid = grid.with_column(i, res.cleaned)
            affected.append(label)

    return DespikeOutcome(
        log=log.with_grid(grid),
        per_curve=per_curve,
        curves_affected=tuple(affected),
        warnings=tuple(warnings),
    )
