from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from logpolish.cli.run_pipeline import app
from logpolish.utils.state_json import read_json

runner = CliRunner()


def test_process_writes_outputs(tmp_path: Path, las_path: Path) -> None:
    out = tmp_path / "out"
    r = runner.invoke(app, ["process", str(las_path), "--out", str(out), "--user", "cli"])
    assert r.exit_code == 0, r.output

    assert read_json(out / "well_a.result.json")["status"] == "ok"
    assert read_json(out / "well_a.certificate.json")["userId"] == "cli"
    assert (out / "well_a.processed.las").read_text(encoding="utf-8").lstrip().startswith("~")


def test_process_with_yaml_options(tmp_path: Path, las_path: Path) -> None:
    cfg = tmp_path / "opts.yaml"
    cfg.write_text("processing:\n  denoise:\n    enabled: false\n", encoding="utf-8")
    out = tmp_path / "out"
    r = runner.invoke(app, ["process", str(las_path), "--options", str(cfg), "--out", str(out)])
    assert r.exit_code == 0, r.output
    stages = [s["stage"] for s in read_json(out / "well_a.result.json")["history"]]
    assert "denoise" not in stages


def test_bad_file_exits_nonzero(tmp_path: Path) -> None:
    bad = tmp_path / "bad.las"
    bad.write_text("garbage\n", encoding="utf-8")
    out = tmp_path / "out"
    r = runner.invoke(app, ["process", str(bad), "--out", str(out)])
    assert r.exit_code == 1
    assert read_json(out / "bad.result.json")["status"] == "failed"

    r = runner.invoke(app, ["inspect", str(bad)])
    assert r.exit_code == 1


def test_inspect(las_path: Path) -> None:
    r = runner.invoke(app, ["inspect", str(las_path)])
    assert r.exit_code == 0, r.output
    assert "ACME" in r.output


def test_batch_command(tmp_path: Path, las_path: Path) -> None:
    out = tmp_path / "out"
    r = runner.invoke(app, ["batch", str(las_path), "--out", str(out), "--workers", "1"])
    assert r.exit_code == 0, r.output
    assert read_json(out / "batch_summary.json")["n_ok"] == 1
