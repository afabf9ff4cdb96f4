# src/logpolish/utils/hash_utils.py
from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Optional

from logpolish.utils.config import as_plain_dict


def canonical_json(obj: Any) -> str:
    """
    Stable serialization: sorted keys, compact separators, UTF-8 kept as-is.
    """
    return json.dumps(as_plain_dict(obj), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def sha256_hex(s: str) -> str:
    return hashlib.sha256((s or "").encode("utf-8")).hexdigest()


def sign(payload: str, key: Optional[str] = None) -> str:
    """
    SHA-256 hex digest of payload, or HMAC-SHA-256 when a key is given.
    """
    data = (payload or "").encode("utf-8")
    if key:
        return hmac.new(key.encode("utf-8"), data, hashlib.sha256).hexdigest()
    return hashlib.sha256(data).hexdigest()


def verify(payload: str, signature: str, key: Optional[str] = None) -> bool:
    return hmac.compare_digest(sign(payload, key), str(signature or ""))
