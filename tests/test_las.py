from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from conftest import NULL, STANDARD_CURVES, make_las
from logpolish.io.las import (
    ParseError,
    ParserConfig,
    decode_las_bytes,
    load_log,
    parse_las_bytes,
    parse_las_text,
    read_las_file,
    write_las,
)


def test_header_sections_map_onto_log() -> None:
    text = "\n".join([
        "~Version Information",
        " VERS.   2.0 : CWLS LOG ASCII STANDARD - VERSION 2.0",
        " WRAP.   NO : One line per depth step",
        "~Well Information",
        " STRT.FT  1500.0 : Start depth",
        " STOP.FT  1501.0 : Stop depth",
        " STEP.FT  0.5 : Step",
        " NULL.    -999.25 : Null value",
        " WELL.    ACME #1 : Well",
        "~Curve Information",
        " DEPT.FT : Depth",
        " GR.GAPI : Gamma ray",
        " GR.GAPI : Gamma ray repeat pass",
        "~Other",
        " Logged after casing",
        "~A",
        "1500.0 50 51",
        "1500.5 52 53",
        "",
    ])
    log = parse_las_text(text)

    # repeated mnemonics keep their raw names
    assert [c.mnemonic for c in log.curves] == ["DEPT", "GR", "GR"]
    assert [c.unit for c in log.curves] == ["FT", "GAPI", "GAPI"]
    assert log.curves[2].description == "Gamma ray repeat pass"
    assert log.well.start == 1500.0 and log.well.step == 0.5
    assert log.well.depth_unit == "FT"
    assert log.well.well == "ACME #1"
    assert [it.mnemonic for it in log.version_items] == ["VERS", "WRAP"]
    assert log.other == ("Logged after casing",)
    assert log.parameters == ()
    np.testing.assert_array_equal(log.grid.column(2), [51.0, 53.0])


def test_file_without_well_section_uses_configured_null() -> None:
    log = parse_las_text("~C\nDEPT.M : depth\nGR.GAPI : gamma\n~A\n1000 -999.25\n1001 50\n")
    assert log.null_value == NULL
    assert log.well_items == ()
    assert log.values("GR")[0] == NULL


def test_parse_basic(las_text: str) -> None:
    log = parse_las_text(las_text, name="a.las")

    assert log.name == "a.las"
    assert log.version == "2.0"
    assert log.wrap is False
    assert [c.mnemonic for c in log.curves] == ["DEPT", "GR", "RHOB", "NPHI"]
    assert [c.unit for c in log.curves] == ["M", "GAPI", "G/CC", "V/V"]
    assert log.well.well == "ACME #1"
    assert log.well.company == "ACME PETROLEUM"
    assert log.well.step == 0.5
    assert log.well.depth_unit == "M"
    assert log.null_value == NULL
    assert log.grid.n_rows == 80
    assert log.depth[0] == pytest.approx(1000.0)
    assert log.curves[0].data_type == "depth"
    assert log.curves[1].category == "gamma_ray"
    assert log.curves[2].category == "density"
    assert log.values("GR")[10] == NULL
    assert log.parameters[0].mnemonic == "BHT"


def test_null_literals_and_garbage_become_sentinel() -> None:
    text = make_las(
        [
            ["1000.0", "NULL", "2.3", "0.2"],
            ["1000.5", "-999", "abc", "0.21"],
            ["1001.0", "55", "2.4", "-999.25"],
        ],
        STANDARD_CURVES,
    )
    log = parse_las_text(text)
    gr = log.values("GR")
    rhob = log.values("RHOB")
    nphi = log.values("NPHI")
    assert gr[0] == NULL and gr[1] == NULL and gr[2] == 55.0
    assert rhob[1] == NULL
    assert nphi[2] == NULL


def test_header_null_literal_is_used() -> None:
    text = make_las([["1000.0", "-9999", "2.3", "0.2"]], STANDARD_CURVES, null="-9999")
    log = parse_las_text(text)
    assert log.null_value == -9999.0
    assert log.values("GR")[0] == -9999.0


def test_short_rows_padded_and_extra_columns_dropped() -> None:
    text = make_las(
        [
            ["1000.0", "50"],
            ["1000.5", "51", "2.4", "0.2", "99", "98"],
        ],
        STANDARD_CURVES,
    )
    log = parse_las_text(text)
    assert log.grid.data.shape == (2, 4)
    np.testing.assert_array_equal(log.grid.data[0], [1000.0, 50.0, NULL, NULL])
    np.testing.assert_array_equal(log.grid.data[1], [1000.5, 51.0, 2.4, 0.2])


def test_wrapped_rows_are_regrouped() -> None:
    text = make_las(
        [
            ["1000.0", "50"],
            ["2.3", "0.20", "1000.5"],
            ["51", "2.4", "0.21"],
            ["1001.0", "52"],
        ],
        STANDARD_CURVES,
        wrap="YES",
    )
    log = parse_las_text(text)
    assert log.wrap is True
    assert log.grid.n_rows == 3
    np.testing.assert_array_equal(log.grid.data[1], [1000.5, 51.0, 2.4, 0.21])
    # trailing partial row is padded, not dropped
    np.testing.assert_array_equal(log.grid.data[2], [1001.0, 52.0, NULL, NULL])


def test_commas_are_delimiters() -> None:
    text = make_las([["1000.0,50,2.3,0.2"]], STANDARD_CURVES)
    log = parse_las_text(text)
    np.testing.assert_array_equal(log.grid.data[0], [1000.0, 50.0, 2.3, 0.2])


def test_missing_curve_section_raises() -> None:
    with pytest.raises(ParseError, match="~C"):
        parse_las_text("~V\nVERS. 2.0 :\n~A\n1000 1 2\n")


def test_missing_data_section_raises() -> None:
    with pytest.raises(ParseError, match="~A"):
        parse_las_text("~V\nVERS. 2.0 :\n~C\nDEPT.M : depth\nGR.GAPI : gamma\n")


def test_data_before_curves_raises() -> None:
    with pytest.raises(ParseError):
        parse_las_text("~A\n1000 1\n~C\nDEPT.M : depth\n")


def test_empty_curve_section_raises() -> None:
    with pytest.raises(ParseError, match="no curves"):
        parse_las_text("~C\n~A\n1000 1\n")


def test_non_numeric_header_null_raises() -> None:
    with pytest.raises(ParseError, match="NULL"):
        parse_las_text(make_las([["1000", "1", "2", "3"]], STANDARD_CURVES, null="abc"))


def test_corrupt_header_line_raises() -> None:
    with pytest.raises(ParseError):
        parse_las_text("~C\nDEPT.M : depth\n.GAPI : no mnemonic\n~A\n1000 1\n")


def test_null_or_junk_depth_keeps_row_as_sentinel() -> None:
    text = make_las(
        [
            ["1000.0", "50", "2.30", "0.20"],
            ["-999.25", "51", "2.31", "0.21"],
            ["oops", "52", "2.32", "0.22"],
            ["1001.5", "53", "2.33", "0.23"],
        ],
        STANDARD_CURVES,
    )
    log = parse_las_text(text)

    assert log.grid.n_rows == 4
    assert log.depth[1] == NULL
    assert log.depth[2] == NULL
    np.testing.assert_array_equal(log.grid.data[1], [NULL, 51.0, 2.31, 0.21])


def test_decode_latin1_and_reject_binary() -> None:
    assert decode_las_bytes("~C\nDEPT.M : Tiefe ü\n".encode("latin-1")).endswith("ü\n")
    assert decode_las_bytes(b"\xef\xbb\xbf~V\n").startswith("~V")
    with pytest.raises(ParseError):
        decode_las_bytes(b"~V\x00\x00binary")


def test_bytes_path_and_text_sources(tmp_path: Path, las_text: str) -> None:
    p = tmp_path / "x.las"
    p.write_text(las_text, encoding="utf-8")

    a = read_las_file(p)
    b = parse_las_bytes(las_text.encode("utf-8"), name="x.las")
    c = load_log(str(p))
    d = load_log(las_text, name="mem.las")

    assert a.name == "x.las" and c.name == "x.las" and d.name == "mem.las"
    np.testing.assert_array_equal(a.grid.data, b.grid.data)
    np.testing.assert_array_equal(a.grid.data, d.grid.data)


def test_missing_file_is_parse_error(tmp_path: Path) -> None:
    with pytest.raises(ParseError):
        read_las_file(tmp_path / "nope.las")


def test_extra_null_literals() -> None:
    text = make_las([["1000.0", "N/A", "2.3", "0.2"]], STANDARD_CURVES)
    log = parse_las_text(text, cfg=ParserConfig(extra_null_literals=("N/A",)))
    assert log.values("GR")[0] == NULL


def test_write_las_reads_back(tmp_path: Path, las_text: str) -> None:
    log = parse_las_text(las_text, name="a.las")
    out = tmp_path / "out" / "a.las"
    text = write_las(log, out)

    assert out.exists()
    back = parse_las_text(text)
    assert [c.mnemonic for c in back.curves] == ["DEPT", "GR", "RHOB", "NPHI"]
    assert back.grid.data.shape == log.grid.data.shape
    assert back.null_value == pytest.approx(NULL)
    np.testing.assert_allclose(back.grid.data, log.grid.data, atol=1e-4)
    assert back.well.well == "ACME #1"


def test_load_log_expands_home_directory(tmp_path: Path, las_text: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    (tmp_path / "logs").mkdir()
    (tmp_path / "logs" / "a.las").write_text(las_text, encoding="utf-8")

    log = load_log("~/logs/a.las")
    assert log.name == "a.las"
    assert log.grid.n_rows == 80
    assert read_las_file("~/logs/a.las").grid.n_rows == 80
