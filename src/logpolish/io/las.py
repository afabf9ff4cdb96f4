# src/logpolish/io/las.py
from __future__ import annotations

import io
import logging
import os
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TextIO, Tuple, Union

import lasio
import numpy as np

from logpolish.curves.normalize_header import infer_data_type, standardize_mnemonic
from logpolish.io.logfile import DEFAULT_NULL_VALUE, Curve, HeaderItem, LogFile, SampleGrid, WellHeader

logger = logging.getLogger(__name__)

NULL_LITERALS: Tuple[str, ...] = ("-999.25", "-999", "NULL")


class ParseError(ValueError):
    """Raised when LAS text is structurally unparseable."""

    def __init__(self, message: str, *, line_no: Optional[int] = None) -> None:
        self.line_no = line_no
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)


@dataclass(frozen=True)
class ParserConfig:
    # Used when the ~W section has no NULL entry
    null_value: float = DEFAULT_NULL_VALUE
    extra_null_literals: Tuple[str, ...] = ()


# =============================================================================
# Decoding
# =============================================================================

def decode_las_bytes(blob: bytes) -> str:
    """
    UTF-8 (BOM tolerated) first, latin-1 second. NUL bytes mean binary content.
    """
    if b"\x00" in blob:
        raise ParseError("unreadable encoding (binary content)")
    try:
        return blob.decode("utf-8-sig")
    except UnicodeDecodeError:
        return blob.decode("latin-1")


# =============================================================================
# Header sections (read by lasio)
# =============================================================================

def _split_at_data(text: str) -> Tuple[str, List[Tuple[int, str]], List[str]]:
    """
    Split LAS text at the ~A marker.

    Returns the header text (everything before ~A), the numbered data lines and
    the section letters in file order.
    """
    header: List[str] = []
    data_lines: List[Tuple[int, str]] = []
    order: List[str] = []
    in_data = False

    for line_no, raw in enumerate(text.splitlines(), start=1):
        s = raw.strip()
        if in_data:
            if s and not s.startswith("#"):
                data_lines.append((line_no, s))
            continue
        if s.startswith("~"):
            letter = s[1:2].upper()
            order.append(letter)
            if letter == "A":
                if "C" not in order:
                    raise ParseError("~A section appears before ~C", line_no=line_no)
                in_data = True
                continue
        header.append(raw)

    return "\n".join(header) + "\n", data_lines, order


def _read_header(header_text: str, *, name: str) -> "lasio.LASFile":
    try:
        return lasio.read(io.StringIO(header_text), ignore_data=True, mnemonic_case="preserve")
    except Exception as e:
        raise ParseError(f"corrupt LAS header in {name or '<text>'}: {e}") from e


def _value_text(v: object) -> str:
    if v is None:
        return ""
    if isinstance(v, (float, np.floating)) and not np.isfinite(v):
        return ""
    return str(v).strip()


def _header_items(section: Sequence[object], letter: str) -> List[HeaderItem]:
    out: List[HeaderItem] = []
    for it in section:
        # lasio suffixes duplicates (GR:1, GR:2) on .mnemonic; keep the raw name
        mnem = str(getattr(it, "original_mnemonic", it.mnemonic)).strip()
        if not mnem:
            raise ParseError(f"corrupt ~{letter} header line: no mnemonic before {it.unit!r}")
        out.append(HeaderItem(
            mnemonic=mnem,
            unit=str(it.unit or "").strip(),
            value=_value_text(it.value),
            description=str(it.descr or "").strip(),
        ))
    return out


def _to_float(s: str) -> float:
    try:
        return float(s)
    except (TypeError, ValueError):
        return float("nan")


_WELL_KEYS: Dict[str, str] = {
    "COMP": "company",
    "WELL": "well",
    "FLD": "field",
    "LOC": "location",
    "PROV": "province",
    "CNTY": "country",
    "CTRY": "country",
    "SRVC": "service_company",
    "DATE": "date",
    "UWI": "uwi",
    "API": "api",
}


def _build_well_header(items: Sequence[HeaderItem], *, default_null: float) -> WellHeader:
    kw: Dict[str, object] = {}
    null_value = float(default_null)
    for it in items:
        key = it.mnemonic.strip().upper()
        if key in _WELL_KEYS:
            kw[_WELL_KEYS[key]] = it.value
        elif key in {"STRT", "STOP", "STEP"}:
            name = {"STRT": "start", "STOP": "stop", "STEP": "step"}[key]
            kw[name] = _to_float(it.value)
            if key == "STRT" and it.unit:
                kw["depth_unit"] = it.unit
        elif key == "NULL" and it.value:
            v = it.as_float()
            if v is None:
                raise ParseError(f"header NULL value is not numeric: {it.value!r}")
            null_value = v
    return WellHeader(null_value=null_value, **kw)  # type: ignore[arg-type]


# =============================================================================
# Data rows
# =============================================================================

_SPLIT_RE = re.compile(r"[\s,]+")


def _null_tokens(cfg: ParserConfig, header_null: Optional[str]) -> set:
    out = {t.upper() for t in NULL_LITERALS}
    out.update(t.upper() for t in cfg.extra_null_literals)
    if header_null:
        out.add(header_null.strip().upper())
    return out


def _token_value(tok: str, null_tokens: set, null_value: float) -> float:
    if tok.upper() in null_tokens:
        return null_value
    try:
        v = float(tok)
    except ValueError:
        return null_value
    if not np.isfinite(v) or v == null_value:
        return null_value
    return v


def _row_from_tokens(
    tokens: Sequence[str],
    *,
    n_curves: int,
    null_tokens: set,
    null_value: float,
    line_no: int,
) -> List[float]:
    if not tokens:
        raise ParseError("empty data row", line_no=line_no)
    # depth included: a bad depth is kept as the sentinel and left to depth QC
    row = [_token_value(tok, null_tokens, null_value) for tok in tokens[:n_curves]]
    # short rows are padded so curve/column alignment holds
    while len(row) < n_curves:
        row.append(null_value)
    return row


# =============================================================================
# Public API
# =============================================================================

def parse_las_text(text: str, *, name: str = "", cfg: Optional[ParserConfig] = None) -> LogFile:
    """
    Parse LAS text into a LogFile. Pure transform.

    Header sections are read by lasio; the ~A block is tokenized here so that
    null literals, short rows and wrapped rows follow the sentinel rules.

    Raises ParseError for: missing ~C, missing ~A, ~A before ~C, an empty curve
    list, a non-numeric NULL and header lines lasio cannot read.
    """
    cfg = cfg or ParserConfig()

    header_text, data_lines, order = _split_at_data(text)
    if "C" not in order:
        raise ParseError("missing ~C (curve) section")

    las = _read_header(header_text, name=name)
    curve_items = _header_items(las.curves, "C")
    if not curve_items:
        raise ParseError("~C section declares no curves")
    if "A" not in order:
        raise ParseError("missing ~A (data) section")

    # lasio fills absent sections with its own defaults; only keep what the file has
    version_items = _header_items(las.version, "V") if "V" in order else []
    well_items = _header_items(las.well, "W") if "W" in order else []
    param_items = _header_items(las.params, "P") if "P" in order else []
    other = [s.strip() for s in str(las.other or "").splitlines() if s.strip()] if "O" in order else []

    version = "2.0"
    wrap = False
    for it in version_items:
        key = it.mnemonic.upper()
        if key == "VERS" and it.value:
            version = it.value
        elif key == "WRAP":
            wrap = it.value.strip().upper().startswith("Y")

    well = _build_well_header(well_items, default_null=cfg.null_value)
    null_value = float(well.null_value)
    header_null = next((it.value for it in well_items if it.mnemonic.upper() == "NULL"), None)
    null_tokens = _null_tokens(cfg, header_null)

    n_curves = len(curve_items)
    rows: List[List[float]] = []
    if wrap:
        buf: List[str] = []
        buf_line = 0
        for line_no, s in data_lines:
            if not buf:
                buf_line = line_no
            buf.extend(t for t in _SPLIT_RE.split(s) if t)
            while len(buf) >= n_curves:
                rows.append(_row_from_tokens(
                    buf[:n_curves], n_curves=n_curves, null_tokens=null_tokens,
                    null_value=null_value, line_no=buf_line,
                ))
                del buf[:n_curves]
                buf_line = line_no
        if buf:
            logger.warning("%s: trailing partial wrapped row (%d of %d values) padded", name, len(buf), n_curves)
            rows.append(_row_from_tokens(
                buf, n_curves=n_curves, null_tokens=null_tokens, null_value=null_value, line_no=buf_line,
            ))
    else:
        for line_no, s in data_lines:
            tokens = [t for t in _SPLIT_RE.split(s) if t]
            rows.append(_row_from_tokens(
                tokens, n_curves=n_curves, null_tokens=null_tokens, null_value=null_value, line_no=line_no,
            ))

    data = np.asarray(rows, dtype="float64") if rows else np.zeros((0, n_curves), dtype="float64")

    curves: List[Curve] = []
    for i, it in enumerate(curve_items):
        dtype = infer_data_type(it.mnemonic, position=i)
        match = standardize_mnemonic(it.mnemonic)
        category = "depth" if dtype == "depth" else match.curve_type
        curves.append(Curve(
            mnemonic=it.mnemonic,
            unit=it.unit,
            description=it.description,
            category=category,
            data_type=dtype,  # type: ignore[arg-type]
        ))

    logger.debug("%s: parsed %d curves x %d rows (wrap=%s)", name, n_curves, data.shape[0], wrap)

    return LogFile(
        name=name,
        version=version,
        wrap=wrap,
        well=well,
        curves=tuple(curves),
        grid=SampleGrid(data=data, depth_index=0, null_value=null_value),
        version_items=tuple(version_items),
        well_items=tuple(well_items),
        parameters=tuple(param_items),
        other=tuple(other),
    )


def parse_las_bytes(blob: bytes, *, name: str = "", cfg: Optional[ParserConfig] = None) -> LogFile:
    return parse_las_text(decode_las_bytes(blob), name=name, cfg=cfg)


def read_las_file(path: Union[str, Path], *, cfg: Optional[ParserConfig] = None) -> LogFile:
    p = Path(os.path.expanduser(str(path)))
    try:
        blob = p.read_bytes()
    except OSError as e:
        raise ParseError(f"cannot read {p}: {e}") from e
    return parse_las_bytes(blob, name=p.name, cfg=cfg)


def load_log(source: Union[str, bytes, Path], *, name: str = "", cfg: Optional[ParserConfig] = None) -> LogFile:
    """
    Accept LAS text, raw bytes, or a filesystem path.
    """
    if isinstance(source, bytes):
        return parse_las_bytes(source, name=name, cfg=cfg)
    if isinstance(source, Path):
        log = read_las_file(source, cfg=cfg)
        return log if not name else _renamed(log, name)
    if "\n" not in source:
        # "~/logs/a.las" is a path; os.path leaves an unknown "~user" untouched
        p = Path(os.path.expanduser(source))
        if p.exists():
            log = read_las_file(p, cfg=cfg)
            return log if not name else _renamed(log, name)
    return parse_las_text(source, name=name, cfg=cfg)


def _renamed(log: LogFile, name: str) -> LogFile:
    return replace(log, name=name)


# =============================================================================
# Export (LAS 2.0 via lasio)
# =============================================================================

def write_las(
    log: LogFile,
    target: Union[str, Path, TextIO, None] = None,
    *,
    use_standard_names: bool = False,
) -> str:
    """
    Write a LogFile as LAS 2.0. Sentinel samples are written as the NULL value.

    Returns the LAS text; also writes it to `target` when given.
    """
    las = lasio.LASFile()
    las.well["NULL"] = log.null_value
    w = log.well
    for key, val in (
        ("WELL", w.well), ("COMP", w.company), ("FLD", w.field), ("LOC", w.location),
        ("SRVC", w.service_company), ("DATE", w.date), ("UWI", w.uwi), ("API", w.api),
    ):
        if val:
            las.well[key] = val

    for it in log.parameters:
        las.params.append(lasio.HeaderItem(it.mnemonic, unit=it.unit, value=it.value, descr=it.description))
    if log.other:
        las.other = "\n".join(log.other)

    used: set = set()
    for i, c in enumerate(log.curves):
        mn = c.mnemonic
        unit = c.unit
        if use_standard_names and c.standard_mnemonic:
            mn = c.standard_mnemonic
            unit = c.standard_unit or c.unit
        if mn.upper() in used:
            mn = c.original_mnemonic if c.original_mnemonic.upper() not in used else f"{mn}:{i}"
        used.add(mn.upper())
        las.append_curve(mn, log.grid.column(i), unit=unit, descr=c.description)

    buf = io.StringIO()
    las.write(buf, version=2.0, wrap=False)
    text = buf.getvalue()

    if target is not None:
        if isinstance(target, (str, Path)):
            p = Path(target)
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(text, encoding="utf-8")
        else:
            target.write(text)
    return text
