# src/logpolish/io/frame.py
from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from logpolish.io.logfile import LogFile, null_mask
from logpolish.qc.quality import QCResult


def logfile_to_dataframe(
    log: LogFile,
    *,
    use_standard_names: bool = False,
    curves: Optional[Sequence[str]] = None,
    depth_index: bool = False,
) -> pd.DataFrame:
    """
    One column per curve, sentinel samples as NaN.

    curves:
      optional subset (matched by mnemonic, standard or original name)
    depth_index:
      if True, the depth column becomes the index
    """
    names = log.curve_labels(use_standard_names)
    data = log.grid.data.copy()
    data[null_mask(data, log.null_value)] = np.nan
    df = pd.DataFrame(data, columns=names)

    depth_name = names[log.grid.depth_index] if names else None
    if curves is not None:
        keep: List[str] = []
        for c in curves:
            i = log.curve_index(c)
            if i is None:
                raise KeyError(f"Curve not found: {c}")
            keep.append(names[i])
        if depth_index and depth_name is not None and depth_name not in keep:
            keep.insert(0, depth_name)
        df = df[keep]

    if depth_index and depth_name is not None:
        df = df.set_index(depth_name)
    return df


def curve_stats(log: LogFile) -> pd.DataFrame:
    """
    Per-curve unit, validity count and basic statistics (NaN-aware).
    """
    df = logfile_to_dataframe(log)
    rows = []
    for c, col in zip(log.curves, df.columns):
        s = df[col]
        rows.append({
            "mnemonic": c.mnemonic,
            "standard": c.standard_mnemonic,
            "unit": c.unit,
            "category": c.category,
            "data_type": c.data_type,
            "n_valid": int(s.notna().sum()),
            "min": s.min(),
            "max": s.max(),
            "mean": s.mean(),
            "std": s.std(),
        })
    return pd.DataFrame(rows)


def qc_table(qc: QCResult) -> pd.DataFrame:
    cols = ["mnemonic", "n_samples", "n_valid", "completeness_pct", "noise_pct",
            "spike_count", "physically_valid", "score", "grade"]
    return pd.DataFrame([c.to_dict() for c in qc.curves], columns=cols)
