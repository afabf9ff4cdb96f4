from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pytest

from logpolish.io.logfile import Curve, LogFile, SampleGrid

NULL = -999.25


def make_las(
    rows: Sequence[Sequence[object]],
    curves: Sequence[Tuple[str, str, str]],
    *,
    null: str = "-999.25",
    wrap: str = "NO",
    step: str = "0.5",
) -> str:
    lines: List[str] = [
        "~Version Information",
        " VERS.   2.0 : CWLS LOG ASCII STANDARD - VERSION 2.0",
        f" WRAP.   {wrap} : One line per depth step",
        "~Well Information",
        " STRT.M  1000.0 : Start depth",
        " STOP.M  1100.0 : Stop depth",
        f" STEP.M  {step} : Step",
        f" NULL.   {null} : Null value",
        " COMP.   ACME PETROLEUM : Company",
        " WELL.   ACME #1 : Well",
        " FLD.    WILDCAT : Field",
        "~Curve Information",
    ]
    for mn, unit, descr in curves:
        lines.append(f" {mn}.{unit} : {descr}")
    lines.append("~Parameter Information")
    lines.append(" BHT.DEGF 150.0 : Bottom hole temperature")
    lines.append("~A")
    for r in rows:
        lines.append(" ".join(str(v) for v in r))
    return "\n".join(lines) + "\n"


STANDARD_CURVES = (
    ("DEPT", "M", "Depth"),
    ("GR", "GAPI", "Gamma ray"),
    ("RHOB", "G/CC", "Bulk density"),
    ("NPHI", "V/V", "Neutron porosity"),
)


def synthetic_rows(n: int = 80, *, seed: int = 0) -> List[List[str]]:
    rng = np.random.default_rng(seed)
    i = np.arange(n)
    depth = 1000.0 + 0.5 * i
    gr = 70.0 + 25.0 * np.sin(i / 6.0) + rng.normal(0.0, 3.0, n)
    rhob = 2.35 + 0.08 * np.sin(i / 9.0) + rng.normal(0.0, 0.01, n)
    nphi = 0.18 + 0.04 * np.cos(i / 7.0) + rng.normal(0.0, 0.005, n)
    gr[30] = 290.0
    rows = []
    for k in range(n):
        g = "-999.25" if k == 10 else f"{gr[k]:.4f}"
        rows.append([f"{depth[k]:.2f}", g, f"{rhob[k]:.4f}", f"{nphi[k]:.4f}"])
    return rows


@pytest.fixture
def las_text() -> str:
    return make_las(synthetic_rows(), STANDARD_CURVES)


@pytest.fixture
def las_path(tmp_path: Path, las_text: str) -> Path:
    p = tmp_path / "well_a.las"
    p.write_text(las_text, encoding="utf-8")
    return p


@pytest.fixture
def fixed_clock():
    t = dt.datetime(2024, 5, 1, 12, 0, 0, tzinfo=dt.timezone.utc)
    return lambda: t


def make_log(
    columns: Sequence[Tuple[str, str, Sequence[float]]],
    *,
    depth: Optional[Sequence[float]] = None,
    null_value: float = NULL,
    name: str = "test.las",
) -> LogFile:
    """
    Build a LogFile in memory: a DEPT column followed by the given (mnemonic, unit, values).
    """
    n = len(columns[0][2]) if columns else len(depth or [])
    d = np.asarray(depth if depth is not None else 1000.0 + 0.5 * np.arange(n), dtype="float64")
    curves = [Curve("DEPT", "M", "Depth", data_type="depth", category="depth")]
    cols = [d]
    for mn, unit, vals in columns:
        curves.append(Curve(mn, unit, mn))
        cols.append(np.asarray(vals, dtype="float64"))
    grid = SampleGrid(np.column_stack(cols), null_value=null_value)
    return LogFile(name=name, curves=tuple(curves), grid=grid)
