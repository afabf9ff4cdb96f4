# src/logpolish/signal/denoise.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import numpy as np
import pywt
from scipy.ndimage import convolve1d, uniform_filter1d

from logpolish.config.schema import DenoiseOptions
from logpolish.io.logfile import LogFile, null_mask
from logpolish.signal.despike import hampel

logger = logging.getLogger(__name__)

PRESERVE_SPIKES_THRESHOLD = 3.0


# -----------------------------------------------------------------------------
# Savitzky-Golay (least squares)
# -----------------------------------------------------------------------------

def savgol_weights(offsets: np.ndarray, order: int) -> np.ndarray:
    """
    Least-squares weights that evaluate the local polynomial fit at offset 0.

    offsets:
      sample positions relative to the output sample (need not be symmetric)
    order:
      reduced to len(offsets) - 1 when the window is too short

    Solves the normal equations of the Vandermonde design matrix:
      w = A (A^T A)^-1 e0
    """
    t = np.asarray(offsets, dtype="float64")
    p = int(min(max(0, order), t.size - 1))
    A = np.vander(t, p + 1, increasing=True)
    e0 = np.zeros(p + 1, dtype="float64")
    e0[0] = 1.0
    return A @ np.linalg.solve(A.T @ A, e0)


def savitzky_golay(x: np.ndarray, *, window_size: int, polynomial_order: int) -> np.ndarray:
    x = np.asarray(x, dtype="float64")
    n = x.size
    if n == 0:
        return x.copy()
    half = int(window_size) // 2
    out = np.empty(n, dtype="float64")

    w = 2 * half + 1
    if n >= w:
        coeffs = savgol_weights(np.arange(-half, half + 1), polynomial_order)
        out[half:n - half] = np.convolve(x, coeffs[::-1], mode="valid")
        edges = list(range(half)) + list(range(n - half, n))
    else:
        edges = list(range(n))

    # Clipped windows near the ends: asymmetric fit, evaluated at the sample itself
    for i in edges:
        lo, hi = max(0, i - half), min(n - 1, i + half)
        idx = np.arange(lo, hi + 1)
        out[i] = float(savgol_weights(idx - i, polynomial_order) @ x[lo:hi + 1])
    return out


# -----------------------------------------------------------------------------
# Kernel smoothers (partial windows renormalised at the ends)
# -----------------------------------------------------------------------------

def moving_average(x: np.ndarray, *, window_size: int) -> np.ndarray:
    x = np.asarray(x, dtype="float64")
    if x.size == 0:
        return x.copy()
    size = 2 * (int(window_size) // 2) + 1
    # zero padding, then divide by the in-range share of the window
    num = uniform_filter1d(x, size=size, mode="constant", cval=0.0)
    den = uniform_filter1d(np.ones_like(x), size=size, mode="constant", cval=0.0)
    return num / den


def gaussian_kernel(window_size: int) -> np.ndarray:
    half = int(window_size) // 2
    sigma = max(float(window_size) / 6.0, 1e-6)
    t = np.arange(-half, half + 1, dtype="float64")
    k = np.exp(-0.5 * (t / sigma) ** 2)
    return k / k.sum()


def gaussian(x: np.ndarray, *, window_size: int) -> np.ndarray:
    x = np.asarray(x, dtype="float64")
    if x.size == 0:
        return x.copy()
    k = gaussian_kernel(window_size)
    num = convolve1d(x, k, mode="constant", cval=0.0)
    den = convolve1d(np.ones_like(x), k, mode="constant", cval=0.0)
    return num / den


# -----------------------------------------------------------------------------
# Wavelet shrinkage
# -----------------------------------------------------------------------------

def wavelet(x: np.ndarray, *, name: str = "db4", mode: str = "soft") -> np.ndarray:
    """
    VisuShrink: universal threshold sigma*sqrt(2 ln n), sigma from the finest detail band.
    Sequences too short for one decomposition level come back unchanged.
    """
    x = np.asarray(x, dtype="float64")
    n = x.size
    w = pywt.Wavelet(name)
    level = pywt.dwt_max_level(n, w.dec_len)
    if n < 8 or level < 1:
        return x.copy()

    coeffs = pywt.wavedec(x, w, mode="symmetric", level=level)
    detail = coeffs[-1]
    sigma = float(np.median(np.abs(detail)) / 0.6745) if detail.size else 0.0
    if sigma <= 0:
        return x.copy()
    uthresh = sigma * math.sqrt(2.0 * math.log(n))
    coeffs[1:] = [pywt.threshold(c, value=uthresh, mode=mode) for c in coeffs[1:]]
    return np.asarray(pywt.waverec(coeffs, w, mode="symmetric"), dtype="float64")[:n]


# -----------------------------------------------------------------------------
# Single curve
# -----------------------------------------------------------------------------

def smooth(x: np.ndarray, opts: DenoiseOptions) -> np.ndarray:
    if opts.method == "savitzky_golay":
        return savitzky_golay(x, window_size=opts.window_size, polynomial_order=opts.polynomial_order)
    if opts.method == "moving_average":
        return moving_average(x, window_size=opts.window_size)
    if opts.method == "gaussian":
        return gaussian(x, window_size=opts.window_size)
    if opts.method == "wavelet":
        return wavelet(x, name=opts.wavelet)
    raise ValueError(f"Unknown denoise method: {opts.method!r}")


def blend(original: np.ndarray, filtered: np.ndarray, strength: float) -> np.ndarray:
    s = float(strength)
    return np.asarray(original, dtype="float64") * (1.0 - s) + np.asarray(filtered, dtype="float64") * s


def noise_reduction_pct(original: np.ndarray, processed: np.ndarray) -> float:
    v0 = float(np.var(original)) if np.size(original) else 0.0
    if v0 <= 0:
        return 0.0
    return (v0 - float(np.var(processed))) / v0 * 100.0


@dataclass(frozen=True)
class DenoiseResult:
    values: np.ndarray
    points_processed: int
    noise_reduction_pct: float
    spikes_preserved: int = 0


def denoise_values(values: np.ndarray, opts: DenoiseOptions, *, null_value: float) -> DenoiseResult:
    """
    Smooth the non-sentinel subsequence of one column and write it back in place.
    Sentinel positions are returned untouched.
    """
    y = np.asarray(values, dtype="float64").copy()
    ok = ~null_mask(y, null_value)
    x = y[ok]
    if x.size == 0:
        return DenoiseResult(values=y, points_processed=0, noise_reduction_pct=0.0)

    out = blend(x, smooth(x, opts), opts.strength)

    kept = 0
    if opts.preserve_spikes:
        spikes = hampel(x, window_size=opts.window_size, threshold=PRESERVE_SPIKES_THRESHOLD)
        out[spikes] = x[spikes]
        kept = int(spikes.sum())

    if not np.all(np.isfinite(out)):
        raise FloatingPointError("smoothing produced non-finite values")

    y[ok] = out
    return DenoiseResult(
        values=y,
        points_processed=int(x.size),
        noise_reduction_pct=float(noise_reduction_pct(x, out)),
        spikes_preserved=kept,
    )


# -----------------------------------------------------------------------------
# Whole log
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class DenoiseOutcome:
    log: LogFile
    per_curve: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    curves_affected: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def points_processed(self) -> int:
        return sum(int(m.get("points_processed", 0)) for m in self.per_curve.values())

    @property
    def mean_noise_reduction_pct(self) -> float:
        v = [float(m["noise_reduction_pct"]) for m in self.per_curve.values()]
        return float(np.mean(v)) if v else 0.0


def denoise_log(log: LogFile, opts: DenoiseOptions) -> DenoiseOutcome:
    """
    Condition every continuous curve. A curve that fails is left unmodified and
    reported as a warning; the rest of the log is still processed.
    """
    grid = log.grid.copy()
    per_curve: Dict[str, Dict[str, Any]] = {}
    affected: List[str] = []
    warnings: List[str] = []

    labels = log.curve_labels()
    for i in log.continuous_indices():
        label = labels[i]
        try:
            res = denoise_values(grid.column(i), opts, null_value=grid.null_value)
        except Exception as e:
            logger.warning("denoise failed for %s: %s", label, e)
            warnings.append(f"Denoise failed for {label}: {type(e).__name__}: {e}")
            continue

        per_curve[label] = {
            "points_processed": res.points_processed,
            "noise_reduction_pct": round(res.noise_reduction_pct, 4),
            "spikes_preserved": res.spikes_preserved,
        }
        if res.points_processed:
            grid = grid.with_column(i, res.values)
            affected.append(label)

    return DenoiseOutcome(
        log=log.with_grid(grid),
        per_curve=per_curve,
        curves_affected=tuple(affected),
        warnings=tuple(warnings),
    )
