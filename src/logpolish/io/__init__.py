# src/logpolish/io/__init__.py
from __future__ import annotations

from .logfile import DEFAULT_NULL_VALUE, Curve, HeaderItem, LogFile, SampleGrid, WellHeader, null_mask, valid_mask
from .las import ParseError, ParserConfig, load_log, parse_las_bytes, parse_las_text, read_las_file, write_las

__all__ = [
    "DEFAULT_NULL_VALUE",
    "Curve",
    "HeaderItem",
    "LogFile",
    "SampleGrid",
    "WellHeader",
    "null_mask",
    "valid_mask",
    "ParseError",
    "ParserConfig",
    "load_log",
    "parse_las_bytes",
    "parse_las_text",
    "read_las_file",
    "write_las",
]
