from __future__ import annotations

import numpy as np
import pytest

from conftest import NULL, make_log
from logpolish.io.frame import curve_stats, logfile_to_dataframe, qc_table
from logpolish.qc.quality import assess_quality


def test_dataframe_uses_nan_for_sentinels() -> None:
    log = make_log([("GR", "GAPI", [50.0, NULL, 70.0]), ("GR", "GAPI", [1.0, 2.0, 3.0])])
    df = logfile_to_dataframe(log)
    assert list(df.columns) == ["DEPT", "GR", "GR:1"]
    assert np.isnan(df["GR"].iloc[1])
    assert log.values("GR")[1] == NULL


def test_depth_index_and_subset() -> None:
    log = make_log([("GR", "GAPI", [50.0, 60.0]), ("RHOB", "G/CC", [2.3, 2.4])])
    df = logfile_to_dataframe(log, curves=["RHOB"], depth_index=True)
    assert list(df.columns) == ["RHOB"]
    assert df.index.name == "DEPT"
    assert df.index[0] == 1000.0
    with pytest.raises(KeyError):
        logfile_to_dataframe(log, curves=["NOPE"])


def test_curve_stats_and_qc_table() -> None:
    log = make_log([("GR", "GAPI", [50.0, NULL, 70.0])])
    st = curve_stats(log)
    assert st.loc[1, "n_valid"] == 2
    assert st.loc[1, "mean"] == pytest.approx(60.0)

    t = qc_table(assess_quality(log))
    assert list(t["mnemonic"]) == ["GR"]
    assert t.loc[0, "n_valid"] == 2
