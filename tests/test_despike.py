from __future__ import annotations

import numpy as np
import pytest

from conftest import NULL, make_log
from logpolish.config.schema import DespikeOptions
from logpolish.signal import despike as despike_mod
from logpolish.signal.despike import despike_log, despike_values, hampel, iqr, modified_zscore

GR = np.array([NULL, 50.0, 55.0, 1000.0, 52.0, 51.0])
DEPTH = 1000.0 + 0.5 * np.arange(GR.size)


def test_hampel_replaces_spike_with_pchip() -> None:
    opts = DespikeOptions(method="hampel", threshold=3.0, window_size=3, replacement_method="pchip")
    res = despike_values(GR, opts, null_value=NULL, depth=DEPTH)

    assert res.spike_indices.tolist() == [3]
    assert res.detected == 1
    assert res.replaced == 1
    assert 52.0 <= res.cleaned[3] <= 55.0
    assert res.cleaned[0] == NULL
    np.testing.assert_array_equal(np.delete(res.cleaned, 3), np.delete(GR, 3))


def test_median_replacement() -> None:
    opts = DespikeOptions(window_size=3, replacement_method="median")
    res = despike_values(GR, opts, null_value=NULL)
    assert res.cleaned[3] == pytest.approx(53.5)


def test_null_replacement() -> None:
    opts = DespikeOptions(window_size=3, replacement_method="null")
    res = despike_values(GR, opts, null_value=NULL)
    assert res.cleaned[3] == NULL


def test_manual_mode_only_reports() -> None:
    opts = DespikeOptions(method="manual", window_size=3)
    res = despike_values(GR, opts, null_value=NULL)
    assert res.spike_indices.tolist() == [3]
    assert res.replaced == 0
    np.testing.assert_array_equal(res.cleaned, GR)


@pytest.mark.parametrize("method", ["hampel", "modified_zscore", "iqr"])
def test_smooth_curve_has_no_spikes(method: str) -> None:
    x = 70.0 + 25.0 * np.sin(np.arange(200) / 6.0)
    res = despike_values(x, DespikeOptions(method=method), null_value=NULL)
    assert res.detected == 0
    np.testing.assert_array_equal(res.cleaned, x)


@pytest.mark.parametrize("method", ["modified_zscore", "iqr"])
def test_global_detectors_find_a_large_spike(method: str) -> None:
    x = 70.0 + 25.0 * np.sin(np.arange(200) / 6.0)
    x[50] = 5000.0
    res = despike_values(x, DespikeOptions(method=method), null_value=NULL)
    assert 50 in res.spike_indices.tolist()
    assert res.cleaned[50] < 200.0


def test_quantized_step_is_not_a_spike() -> None:
    x = np.array([10.0] * 20 + [10.5] * 20)
    assert not hampel(x, window_size=7, threshold=3.0).any()


def test_constant_curve_flags_nothing() -> None:
    x = np.full(30, 4.0)
    assert not hampel(x, window_size=7, threshold=3.0).any()
    assert not modified_zscore(x, threshold=3.0).any()
    assert not iqr(x, threshold=3.0).any()


def test_despike_log_skips_depth_and_keeps_input() -> None:
    log = make_log([("GR", "GAPI", GR.tolist())])
    out = despike_log(log, DespikeOptions(window_size=3))

    assert out.curves_affected == ("GR",)
    assert out.spikes_detected == 1
    assert out.spikes_replaced == 1
    assert out.per_curve["GR"]["spike_indices"] == [3]
    assert "DEPT" not in out.per_curve
    np.testing.assert_array_equal(out.log.depth, log.depth)
    assert log.values("GR")[3] == 1000.0


def test_one_failing_curve_does_not_stop_the_rest(monkeypatch) -> None:
    real = despike_mod.despike_values
    calls = {"n": 0}

    def flaky(values, opts, **kw):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("boom")
        return real(values, opts, **kw)

    monkeypatch.setattr(despike_mod, "despike_values", flaky)
    log = make_log([("GR", "GAPI", GR.tolist()), ("SP", "MV", GR.tolist())])
    out = despike_log(log, DespikeOptions(window_size=3))

    assert len(out.warnings) == 1 and "GR" in out.warnings[0]
    assert out.curves_affected == ("SP",)
    np.testing.assert_array_equal(out.log.values("GR"), GR)


def test_repeated_mnemonics_are_counted_separately() -> None:
    log = make_log([("GR", "GAPI", GR.tolist()), ("GR", "GAPI", GR.tolist())])
    out = despike_log(log, DespikeOptions(window_size=3))

    assert set(out.per_curve) == {"GR", "GR:1"}
    assert out.spikes_detected == 2
    assert out.spikes_replaced == 2
    assert out.curves_affected == ("GR", "GR:1")
