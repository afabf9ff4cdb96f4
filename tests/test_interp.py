from __future__ import annotations

import numpy as np
import pytest

from logpolish.signal.interp import replace_flagged, replace_linear, replace_median, replace_pchip


def _mask(n: int, *idx: int) -> np.ndarray:
    m = np.zeros(n, dtype=bool)
    m[list(idx)] = True
    return m


def test_pchip_does_not_overshoot_a_step() -> None:
    y = np.array([0.0, 0.0, 0.0, 999.0, 10.0, 10.0, 10.0])
    out = replace_pchip(y, _mask(7, 3))
    assert 0.0 <= out[3] <= 10.0
    np.testing.assert_array_equal(np.delete(out, 3), np.delete(y, 3))


def test_pchip_clamps_ends() -> None:
    y = np.array([999.0, 5.0, 6.0, 7.0, 999.0])
    out = replace_pchip(y, _mask(5, 0, 4))
    assert out[0] == 5.0
    assert out[4] == 7.0


def test_pchip_uses_depth_when_monotonic() -> None:
    y = np.array([0.0, 999.0, 10.0])
    out = replace_pchip(y, _mask(3, 1), x=np.array([0.0, 9.0, 10.0]))
    assert out[1] > 5.0


def test_linear_and_median() -> None:
    y = np.array([0.0, 999.0, 2.0])
    assert replace_linear(y, _mask(3, 1))[1] == pytest.approx(1.0)
    # non-monotonic depth falls back to sample positions
    assert replace_linear(y, _mask(3, 1), x=np.array([3.0, 2.0, 1.0]))[1] == pytest.approx(1.0)

    z = np.array([1.0, 2.0, 100.0, 4.0, 5.0])
    assert replace_median(z, _mask(5, 2), window_size=3) == pytest.approx([1.0, 2.0, 3.0, 4.0, 5.0])


def test_too_few_clean_samples_falls_back_to_median() -> None:
    y = np.array([999.0, 4.0, 999.0])
    out = replace_pchip(y, _mask(3, 0, 2))
    np.testing.assert_array_equal(out, [4.0, 4.0, 4.0])


def test_replace_flagged_dispatch() -> None:
    y = np.array([1.0, 50.0, 3.0])
    assert replace_flagged(y, _mask(3, 1), "null", null_value=-999.25)[1] == -999.25
    with pytest.raises(ValueError):
        replace_flagged(y, _mask(3, 1), "spline", null_value=-999.25)
