# src/logpolish/signal/interp.py
from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.interpolate import PchipInterpolator


def _positions(x: Optional[np.ndarray], n: int) -> np.ndarray:
    """
    Interpolation abscissa: depth when strictly increasing, else sample position.
    """
    if x is not None:
        xx = np.asarray(x, dtype="float64").reshape(-1)
        if xx.size == n and np.all(np.isfinite(xx)) and (n < 2 or np.all(np.diff(xx) > 0)):
            return xx
    return np.arange(n, dtype="float64")


def _clamped(xq: np.ndarray, xc: np.ndarray, yc: np.ndarray, yq: np.ndarray) -> np.ndarray:
    out = np.asarray(yq, dtype="float64").copy()
    out[xq < xc[0]] = yc[0]
    out[xq > xc[-1]] = yc[-1]
    bad = ~np.isfinite(out)
    if bad.any():
        out[bad] = np.interp(xq[bad], xc, yc)
    return out


def replace_median(values: np.ndarray, bad: np.ndarray, *, window_size: int) -> np.ndarray:
    """
    Replace flagged samples with the median of the unflagged samples in a centered window.
    Windows with no unflagged sample take the median of all unflagged samples.
    """
    src = np.asarray(values, dtype="float64")
    y = src.copy()
    m = np.asarray(bad, dtype=bool)
    n = y.size
    if n == 0 or not m.any():
        return y
    half = max(1, int(window_size) // 2)
    clean = src[~m]
    fallback = float(np.median(clean)) if clean.size else float(np.median(src))

    for i in np.flatnonzero(m):
        lo, hi = max(0, i - half), min(n, i + half + 1)
        w_ok = src[lo:hi][~m[lo:hi]]
        y[i] = float(np.median(w_ok)) if w_ok.size else fallback
    return y


def replace_linear(values: np.ndarray, bad: np.ndarray, *, x: Optional[np.ndarray] = None, window_size: int = 5) -> np.ndarray:
    y = np.asarray(values, dtype="float64").copy()
    m = np.asarray(bad, dtype=bool)
    if not m.any():
        return y
    if int((~m).sum()) < 2:
        return replace_median(values, m, window_size=window_size)
    xx = _positions(x, y.size)
    y[m] = np.interp(xx[m], xx[~m], y[~m])
    return y


def replace_pchip(values: np.ndarray, bad: np.ndarray, *, x: Optional[np.ndarray] = None, window_size: int = 5) -> np.ndarray:
    """
    Monotone piecewise cubic Hermite replacement through the unflagged samples.
    No overshoot between neighbours; samples beyond either end take the nearest clean value.
    """
    y = np.asarray(values, dtype="float64").copy()
    m = np.asarray(bad, dtype=bool)
    if not m.any():
        return y
    if int((~m).sum()) < 2:
        return replace_median(values, m, window_size=window_size)
    xx = _positions(x, y.size)
    xc, yc = xx[~m], y[~m]
    f = PchipInterpolator(xc, yc, extrapolate=False)
    y[m] = _clamped(xx[m], xc, yc, f(xx[m]))
    return y


def replace_null(values: np.ndarray, bad: np.ndarray, *, null_value: float) -> np.ndarray:
    y = np.asarray(values, dtype="float64").copy()
    y[np.asarray(bad, dtype=bool)] = float(null_value)
    return y


def replace_flagged(
    values: np.ndarray,
    bad: np.ndarray,
    method: str,
    *,
    x: Optional[np.ndarray] = None,
    window_size: int = 5,
    null_value: float,
) -> np.ndarray:
    if method == "pchip":
        return replace_pchip(values, bad, x=x, window_size=window_size)
    if method == "linear":
        return replace_linear(values, bad, x=x, window_size=window_size)
    if method == "median":
        return replace_median(values, bad, window_size=window_size)
    if method == "null":
        return replace_null(values, bad, null_value=null_value)
    raise ValueError(f"Unknown replacement method: {method!r}")
