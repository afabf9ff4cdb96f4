# src/logpolish/config/schema.py
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional, Sequence, Tuple

from logpolish.io.logfile import DEFAULT_NULL_VALUE

DenoiseMethod = Literal["savitzky_golay", "moving_average", "gaussian", "wavelet"]
DespikeMethod = Literal["hampel", "modified_zscore", "iqr", "manual"]
ReplacementMethod = Literal["pchip", "linear", "median", "null"]
MnemonicStandard = Literal["api", "cwls", "custom"]

DENOISE_METHODS: Tuple[str, ...] = ("savitzky_golay", "moving_average", "gaussian", "wavelet")
DESPIKE_METHODS: Tuple[str, ...] = ("hampel", "modified_zscore", "iqr", "manual")
REPLACEMENT_METHODS: Tuple[str, ...] = ("pchip", "linear", "median", "null")
MNEMONIC_STANDARDS: Tuple[str, ...] = ("api", "cwls", "custom")

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", str(key)).lower()


def _pick(cls: Any, d: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Keep only keys that are dataclass fields of cls; accepts camelCase keys.
    """
    names = set(getattr(cls, "__dataclass_fields__", {}).keys())
    out: Dict[str, Any] = {}
    for k, v in (d or {}).items():
        sk = _snake(k)
        if sk in names:
            out[sk] = v
    return out


@dataclass(frozen=True)
class DenoiseOptions:
    enabled: bool = True
    method: DenoiseMethod = "savitzky_golay"
    window_size: int = 5
    polynomial_order: int = 2
    strength: float = 0.8
    preserve_spikes: bool = False
    wavelet: str = "db4"

    def __post_init__(self) -> None:
        if self.method not in DENOISE_METHODS:
            raise ValueError(f"Unknown denoise method: {self.method!r} (expected one of {DENOISE_METHODS})")
        if int(self.window_size) < 1:
            raise ValueError("denoise window_size must be >= 1")
        if not (0.0 <= float(self.strength) <= 1.0):
            raise ValueError("denoise strength must be within [0, 1]")
        if self.method == "savitzky_golay":
            if int(self.window_size) % 2 == 0:
                raise ValueError("savitzky_golay window_size must be odd")
            if int(self.polynomial_order) < 0:
                raise ValueError("polynomial_order must be >= 0")
            if int(self.polynomial_order) >= int(self.window_size):
                raise ValueError("polynomial_order must be smaller than window_size")

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "DenoiseOptions":
        kw = _pick(cls, d)
        if kw.get("polynomial_order") is None:
            kw.pop("polynomial_order", None)
        return cls(**kw)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DespikeOptions:
    enabled: bool = True
    method: DespikeMethod = "hampel"
    threshold: float = 3.0
    window_size: int = 7
    replacement_method: ReplacementMethod = "pchip"

    def __post_init__(self) -> None:
        if self.method not in DESPIKE_METHODS:
            raise ValueError(f"Unknown despike method: {self.method!r} (expected one of {DESPIKE_METHODS})")
        if self.replacement_method not in REPLACEMENT_METHODS:
            raise ValueError(
                f"Unknown replacement method: {self.replacement_method!r} (expected one of {REPLACEMENT_METHODS})"
            )
        if int(self.window_size) < 1:
            raise ValueError("despike window_size must be >= 1")
        if float(self.threshold) <= 0.0:
            raise ValueError("despike threshold must be > 0")

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "DespikeOptions":
        return cls(**_pick(cls, d))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ValidationOptions:
    """
    physical_ranges:
      per curve type (canonical mnemonic, e.g. "RHOB") hard-bound overrides as (min, max);
      types not listed use the built-in bounds table
    """
    enabled: bool = True
    physical_ranges: Mapping[str, Tuple[float, float]] = field(default_factory=dict)
    cross_validation: bool = True
    flag_outliers: bool = True

    def __post_init__(self) -> None:
        ranges: Dict[str, Tuple[float, float]] = {}
        for k, v in dict(self.physical_ranges or {}).items():
            if isinstance(v, Mapping):
                lo, hi = float(v["min"]), float(v["max"])
            else:
                lo, hi = float(v[0]), float(v[1])
            if lo > hi:
                raise ValueError(f"physical range for {k!r} has min > max")
            ranges[str(k).upper()] = (lo, hi)
        object.__setattr__(self, "physical_ranges", ranges)

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "ValidationOptions":
        return cls(**_pick(cls, d))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "physical_ranges": {k: {"min": lo, "max": hi} for k, (lo, hi) in sorted(self.physical_ranges.items())},
            "cross_validation": self.cross_validation,
            "flag_outliers": self.flag_outliers,
        }


@dataclass(frozen=True)
class MnemonicOptions:
    enabled: bool = True
    standard: MnemonicStandard = "api"
    auto_standardize: bool = True
    preserve_original: bool = True
    convert_units: bool = True
    custom_aliases: Mapping[str, Sequence[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.standard not in MNEMONIC_STANDARDS:
            raise ValueError(f"Unknown mnemonic standard: {self.standard!r} (expected one of {MNEMONIC_STANDARDS})")
        aliases = {str(k).upper(): tuple(str(a) for a in v) for k, v in dict(self.custom_aliases or {}).items()}
        object.__setattr__(self, "custom_aliases", aliases)

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "MnemonicOptions":
        return cls(**_pick(cls, d))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "standard": self.standard,
            "auto_standardize": self.auto_standardize,
            "preserve_original": self.preserve_original,
            "convert_units": self.convert_units,
            "custom_aliases": {k: list(v) for k, v in sorted(self.custom_aliases.items())},
        }


@dataclass(frozen=True)
class ProcessingOptions:
    denoise: DenoiseOptions = field(default_factory=DenoiseOptions)
    despike: DespikeOptions = field(default_factory=DespikeOptions)
    validation: ValidationOptions = field(default_factory=ValidationOptions)
    mnemonics: MnemonicOptions = field(default_factory=MnemonicOptions)

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "ProcessingOptions":
        d = d or {}
        return cls(
            denoise=DenoiseOptions.from_dict(d.get("denoise")),
            despike=DespikeOptions.from_dict(d.get("despike")),
            validation=ValidationOptions.from_dict(d.get("validation")),
            mnemonics=MnemonicOptions.from_dict(d.get("mnemonics")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "denoise": self.denoise.to_dict(),
            "despike": self.despike.to_dict(),
            "validation": self.validation.to_dict(),
            "mnemonics": self.mnemonics.to_dict(),
        }


@dataclass(frozen=True)
class RuntimeConfig:
    max_concurrent: int = 5
    timeout_s: float = 300.0
    signing_key: Optional[str] = None
    null_value: float = DEFAULT_NULL_VALUE
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if int(self.max_concurrent) < 1:
            raise ValueError("max_concurrent must be >= 1")
        if float(self.timeout_s) <= 0.0:
            raise ValueError("timeout_s must be > 0")

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "RuntimeConfig":
        return cls(**_pick(cls, d))
