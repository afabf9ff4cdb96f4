# src/logpolish/utils/state_json.py
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from logpolish.utils.config import as_plain_dict


def write_json_atomic(path: Path, obj: Any) -> Path:
    """
    Write JSON next to the target and rename into place; readers never see a partial file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(as_plain_dict(obj), indent=2, sort_keys=True, ensure_ascii=False)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=str(path.parent), encoding="utf-8", suffix=".tmp") as tf:
        tf.write(payload)
        tmp = tf.name
    try:
        os.replace(tmp, str(path))
    except OSError:
        Path(tmp).unlink(missing_ok=True)
        raise
    return path


def read_json(path: Path) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))
