# src/logpolish/io/logfile.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Literal, Optional, Sequence, Tuple

import numpy as np

DEFAULT_NULL_VALUE: float = -999.25

DataType = Literal["depth", "log", "computed"]

# Semantic categories carried on each curve. "custom" is anything the alias
# tables do not recognise.
CURVE_CATEGORIES: Tuple[str, ...] = (
    "gamma_ray",
    "resistivity",
    "porosity",
    "density",
    "sonic",
    "caliper",
    "sp",
    "photoelectric",
    "drilling",
    "temperature",
    "depth",
    "custom",
)


# =============================================================================
# Sentinel helpers
# =============================================================================

def null_mask(values: np.ndarray, null_value: float, *, atol: float = 1e-9) -> np.ndarray:
    """
    True where a sample is "no measurement": non-finite, or equal to the sentinel.
    """
    x = np.asarray(values, dtype="float64")
    return ~np.isfinite(x) | np.isclose(x, float(null_value), rtol=0.0, atol=float(atol))


def valid_mask(values: np.ndarray, null_value: float) -> np.ndarray:
    return ~null_mask(values, null_value)


# =============================================================================
# Header models
# =============================================================================

@dataclass(frozen=True)
class HeaderItem:
    """One `MNEMONIC.UNIT VALUE : DESCRIPTION` line from ~V / ~W / ~P."""
    mnemonic: str
    unit: str = ""
    value: str = ""
    description: str = ""

    def as_float(self) -> Optional[float]:
        try:
            return float(self.value)
        except (TypeError, ValueError):
            return None


@dataclass(frozen=True)
class WellHeader:
    company: str = ""
    well: str = ""
    field: str = ""
    location: str = ""
    province: str = ""
    country: str = ""
    service_company: str = ""
    date: str = ""
    uwi: str = ""
    api: str = ""

    start: float = float("nan")
    stop: float = float("nan")
    step: float = float("nan")
    null_value: float = DEFAULT_NULL_VALUE
    depth_unit: str = ""


@dataclass(frozen=True)
class Curve:
    mnemonic: str
    unit: str = ""
    description: str = ""

    # As read from the file; never rewritten by later stages
    original_mnemonic: str = ""
    original_unit: str = ""

    standard_mnemonic: Optional[str] = None
    standard_unit: Optional[str] = None
    category: str = "custom"
    data_type: DataType = "log"
    confidence: int = 0

    def __post_init__(self) -> None:
        if not self.original_mnemonic:
            object.__setattr__(self, "original_mnemonic", self.mnemonic)
        if not self.original_unit and self.unit:
            object.__setattr__(self, "original_unit", self.unit)

    @property
    def key(self) -> str:
        """Canonical name when standardized, otherwise the mnemonic."""
        return self.standard_mnemonic or self.mnemonic

    @property
    def is_continuous(self) -> bool:
        return self.data_type == "log"


# =============================================================================
# Sample grid
# =============================================================================

@dataclass(frozen=True)
class SampleGrid:
    """
    Depth-indexed numeric rows.

    data:
      float64 array (n_rows, n_curves); column i belongs to LogFile.curves[i]
    depth_index:
      column holding depth (normally 0)
    null_value:
      sentinel meaning "no measurement"; never a real sample
    """
    data: np.ndarray
    depth_index: int = 0
    null_value: float = DEFAULT_NULL_VALUE

    def __post_init__(self) -> None:
        arr = np.asarray(self.data, dtype="float64")
        if arr.ndim == 1:
            arr = arr.reshape(-1, 1)
        if arr.ndim != 2:
            raise ValueError(f"SampleGrid.data must be 2-D, got shape {arr.shape}")
        object.__setattr__(self, "data", arr)

    @property
    def n_rows(self) -> int:
        return int(self.data.shape[0])

    @property
    def n_curves(self) -> int:
        return int(self.data.shape[1])

    @property
    def depth(self) -> np.ndarray:
        return self.data[:, self.depth_index].copy()

    def column(self, i: int) -> np.ndarray:
        return self.data[:, int(i)].copy()

    def with_column(self, i: int, values: np.ndarray) -> "SampleGrid":
        v = np.asarray(values, dtype="float64").reshape(-1)
        if v.size != self.n_rows:
            raise ValueError(f"Column length {v.size} does not match grid rows {self.n_rows}")
        out = self.data.copy()
        out[:, int(i)] = v
        return replace(self, data=out)

    def copy(self) -> "SampleGrid":
        return replace(self, data=self.data.copy())


# =============================================================================
# Log file
# =============================================================================

@dataclass(frozen=True)
class LogFile:
    name: str
    version: str = "2.0"
    wrap: bool = False
    well: WellHeader = field(default_factory=WellHeader)
    curves: Tuple[Curve, ...] = ()
    grid: SampleGrid = field(default_factory=lambda: SampleGrid(np.zeros((0, 0))))
    version_items: Tuple[HeaderItem, ...] = ()
    well_items: Tuple[HeaderItem, ...] = ()
    parameters: Tuple[HeaderItem, ...] = ()
    other: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.grid.n_rows > 0 and self.grid.n_curves != len(self.curves):
            raise ValueError(
                f"Grid has {self.grid.n_curves} columns but {len(self.curves)} curves are declared"
            )

    @property
    def null_value(self) -> float:
        return float(self.grid.null_value)

    @property
    def depth(self) -> np.ndarray:
        return self.grid.depth

    def curve_index(self, name: str) -> Optional[int]:
        """
        Find a curve by mnemonic, standard mnemonic or original mnemonic (case-insensitive).
        """
        target = (name or "").strip().upper()
        if not target:
            return None
        for attr in ("mnemonic", "standard_mnemonic", "original_mnemonic"):
            for i, c in enumerate(self.curves):
                v = getattr(c, attr)
                if v and v.upper() == target:
                    return i
        return None

    def values(self, name: str) -> np.ndarray:
        i = self.curve_index(name)
        if i is None:
            raise KeyError(f"Curve not found: {name}")
        return self.grid.column(i)

    def curve_labels(self, use_standard_names: bool = False) -> List[str]:
        """
        Unique per-column labels; repeated names get a ":N" suffix as LAS readers do.

        Per-curve results are keyed by these so that two curves sharing a
        mnemonic (a repeat GR pass, say) stay separate.
        """
        seen: Dict[str, int] = {}
        out: List[str] = []
        for c in self.curves:
            base = (c.key if use_standard_names else c.mnemonic) or "UNNAMED"
            k = seen.get(base.upper(), 0)
            seen[base.upper()] = k + 1
            out.append(base if k == 0 else f"{base}:{k}")
        return out

    def continuous_indices(self) -> List[int]:
        return [i for i, c in enumerate(self.curves) if c.is_continuous]

    def with_curves(self, curves: Sequence[Curve]) -> "LogFile":
        return replace(self, curves=tuple(curves))

    def with_grid(self, grid: SampleGrid) -> "LogFile":
        return replace(self, grid=grid)

    def copy(self) -> "LogFile":
        return replace(self, grid=self.grid.copy())

    def summary(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "version": self.version,
            "wrap": self.wrap,
            "well": self.well.well,
            "company": self.well.company,
            "field": self.well.field,
            "n_rows": self.grid.n_rows,
            "curves": [c.mnemonic for c in self.curves],
            "null_value": self.null_value,
        }
