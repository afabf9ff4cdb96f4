from __future__ import annotations

from pathlib import Path

import pytest

from logpolish.config.defaults import load_options, load_runtime
from logpolish.config.schema import (
    DenoiseOptions,
    DespikeOptions,
    MnemonicOptions,
    ProcessingOptions,
    RuntimeConfig,
    ValidationOptions,
)


def test_defaults() -> None:
    o = ProcessingOptions()
    assert o.denoise.method == "savitzky_golay"
    assert o.denoise.window_size == 5
    assert o.despike.method == "hampel"
    assert o.despike.replacement_method == "pchip"
    assert o.mnemonics.standard == "api"
    assert o.validation.physical_ranges == {}


def test_from_dict_accepts_camel_case() -> None:
    o = ProcessingOptions.from_dict({
        "denoise": {"method": "gaussian", "windowSize": 9, "preserveSpikes": True},
        "despike": {"replacementMethod": "median", "threshold": 2.5},
        "validation": {"physicalRanges": {"rhob": {"min": 1.0, "max": 3.5}}},
        "mnemonics": {"standard": "custom", "customAliases": {"kth": ["THOR"]}},
    })
    assert o.denoise.method == "gaussian"
    assert o.denoise.window_size == 9
    assert o.denoise.preserve_spikes is True
    assert o.despike.replacement_method == "median"
    assert o.validation.physical_ranges == {"RHOB": (1.0, 3.5)}
    assert o.mnemonics.custom_aliases == {"KTH": ("THOR",)}


def test_to_dict_round_trips() -> None:
    o = ProcessingOptions.from_dict({"validation": {"physical_ranges": {"GR": [0, 250]}}})
    assert ProcessingOptions.from_dict(o.to_dict()) == o


@pytest.mark.parametrize(
    "build",
    [
        lambda: DenoiseOptions(method="fft"),
        lambda: DenoiseOptions(window_size=4),
        lambda: DenoiseOptions(window_size=5, polynomial_order=5),
        lambda: DenoiseOptions(strength=1.5),
        lambda: DespikeOptions(method="magic"),
        lambda: DespikeOptions(replacement_method="spline"),
        lambda: DespikeOptions(threshold=0.0),
        lambda: ValidationOptions(physical_ranges={"GR": (10.0, 1.0)}),
        lambda: MnemonicOptions(standard="iso"),
        lambda: RuntimeConfig(max_concurrent=0),
    ],
)
def test_invalid_options_raise(build) -> None:
    with pytest.raises(ValueError):
        build()


def test_even_window_is_fine_for_moving_average() -> None:
    assert DenoiseOptions(method="moving_average", window_size=4).window_size == 4


def test_load_options_from_yaml(tmp_path: Path) -> None:
    p = tmp_path / "opts.yaml"
    p.write_text(
        "processing:\n"
        "  denoise:\n"
        "    method: wavelet\n"
        "  despike:\n"
        "    enabled: false\n",
        encoding="utf-8",
    )
    o = load_options(p, overrides={"denoise": {"strength": 0.5}})
    assert o.denoise.method == "wavelet"
    assert o.denoise.strength == 0.5
    assert o.denoise.window_size == 5
    assert o.despike.enabled is False


def test_load_options_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_options(tmp_path / "missing.yaml")


def test_load_runtime_env_overrides_yaml(tmp_path: Path) -> None:
    p = tmp_path / "rt.yaml"
    p.write_text("runtime:\n  max_concurrent: 2\n  timeout_s: 10\n", encoding="utf-8")
    rt = load_runtime(p, env={"LOGPOLISH_TIMEOUT_S": "30", "LOGPOLISH_SIGNING_KEY": "k", "LOGPOLISH_LOG_LEVEL": "debug"})
    assert rt.max_concurrent == 2
    assert rt.timeout_s == 30.0
    assert rt.signing_key == "k"
    assert rt.log_level == "DEBUG"
    assert load_runtime(env={}) == RuntimeConfig()
