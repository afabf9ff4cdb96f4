from __future__ import annotations

import math
from pathlib import Path

import numpy as np

from logpolish.utils.config import as_plain_dict, deep_get, deep_merge
from logpolish.utils.hash_utils import canonical_json, sha256_hex, sign, verify
from logpolish.utils.state_json import read_json, write_json_atomic


def test_canonical_json_is_order_independent() -> None:
    a = canonical_json({"b": 1, "a": [1, 2], "c": "ü"})
    b = canonical_json({"c": "ü", "a": (1, 2), "b": 1})
    assert a == b == '{"a":[1,2],"b":1,"c":"ü"}'


def test_sign_and_verify() -> None:
    assert sign("x") == sha256_hex("x")
    keyed = sign("x", "secret")
    assert keyed != sign("x")
    assert verify("x", keyed, "secret")
    assert not verify("y", keyed, "secret")
    assert not verify("x", keyed, "other")


def test_as_plain_dict_numpy_and_nan() -> None:
    out = as_plain_dict({"a": np.float64(1.5), "b": np.array([1, 2]), "c": math.nan, "p": Path("x")})
    assert out == {"a": 1.5, "b": [1, 2], "c": None, "p": "x"}


def test_deep_merge_and_get() -> None:
    m = deep_merge({"a": {"b": 1, "c": 2}, "x": 1}, {"a": {"b": 10}})
    assert m == {"a": {"b": 10, "c": 2}, "x": 1}
    assert deep_get(m, "a.b") == 10
    assert deep_get(m, "a.z", default="d") == "d"


def test_write_json_atomic(tmp_path: Path) -> None:
    p = write_json_atomic(tmp_path / "sub" / "r.json", {"v": float("nan"), "k": (1, 2)})
    assert read_json(p) == {"v": None, "k": [1, 2]}
    assert [q.name for q in p.parent.iterdir()] == ["r.json"]

    write_json_atomic(p, {"v": 2})
    assert read_json(p) == {"v": 2}
