# src/logpolish/cli/run_pipeline.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from logpolish.config.defaults import load_options, load_runtime
from logpolish.curves.normalize_header import standardize_mnemonic
from logpolish.io.frame import curve_stats
from logpolish.io.las import ParseError, ParserConfig, load_log, write_las
from logpolish.orchestrator import Orchestrator, ProcessingResult
from logpolish.pipelines.batch import run_batch
from logpolish.qc.quality import assess_quality
from logpolish.utils.state_json import write_json_atomic

app = typer.Typer(add_completion=False, help="Condition, validate and certify LAS well logs.")
console = Console()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _write_outputs(res: ProcessingResult, out_dir: Path, *, standard_names: bool) -> List[Path]:
    stem = Path(res.file_name).stem or "log"
    written = [write_json_atomic(out_dir / f"{stem}.result.json", res.to_dict())]
    if res.certificate is not None:
        written.append(write_json_atomic(out_dir / f"{stem}.certificate.json", res.certificate.to_dict()))
    if res.log is not None:
        las_path = out_dir / f"{stem}.processed.las"
        write_las(res.log, las_path, use_standard_names=standard_names)
        written.append(las_path)
    return written


def _result_table(res: ProcessingResult) -> Table:
    t = Table(title=f"{res.file_name}: {res.status}")
    t.add_column("curve")
    t.add_column("grade")
    t.add_column("score", justify="right")
    t.add_column("complete %", justify="right")
    t.add_column("noise %", justify="right")
    t.add_column("spikes", justify="right")
    if res.qc is not None:
        for c in res.qc.curves:
            t.add_row(c.mnemonic, c.grade, f"{c.score:.1f}", f"{c.completeness_pct:.1f}",
                      f"{c.noise_pct:.1f}", str(c.spike_count))
    return t


@app.command()
def process(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="LAS file"),
    options: Optional[Path] = typer.Option(None, "--options", exists=True, help="YAML processing options"),
    user: str = typer.Option("anonymous", "--user", help="User id recorded on the certificate"),
    out: Path = typer.Option(Path("out"), "--out", help="Output directory"),
    standard_names: bool = typer.Option(False, help="Write standardized mnemonics to the LAS output"),
    log_level: Optional[str] = typer.Option(None, help="Logging level (default LOGPOLISH_LOG_LEVEL or INFO)"),
):
    """Run the full pipeline on one file."""
    rt = load_runtime(options)
    _setup_logging(log_level or rt.log_level)
    opts = load_options(options)

    res = Orchestrator(opts, rt).process_file(file, user_id=user)
    console.print(_result_table(res))
    for w in res.warnings:
        print(f"[yellow]warning[/yellow] {w}")
    for e in res.errors:
        print(f"[red]error[/red] {e}")

    for p in _write_outputs(res, out, standard_names=standard_names):
        print("[green]Wrote[/green]", p)

    if res.success and res.qc is not None and res.initial_qc is not None:
        print(
            f"[bold]Quality[/bold] {res.initial_qc.overall_score:.2f} -> {res.qc.overall_score:.2f} "
            f"({res.qc.grade}), signature {res.certificate.signature[:16] if res.certificate else '-'}"
        )
    else:
        raise typer.Exit(code=1)


@app.command()
def batch(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="LAS files"),
    options: Optional[Path] = typer.Option(None, "--options", exists=True, help="YAML processing options"),
    user: str = typer.Option("anonymous", "--user"),
    out: Path = typer.Option(Path("out"), "--out"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Concurrent pipelines (default LOGPOLISH_MAX_CONCURRENT)"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Per-file timeout in seconds"),
    standard_names: bool = typer.Option(False),
    log_level: Optional[str] = typer.Option(None),
):
    """Process many files concurrently."""
    rt = load_runtime(options)
    _setup_logging(log_level or rt.log_level)
    opts = load_options(options)

    summary = run_batch(files, options=opts, runtime=rt, user_id=user, max_workers=workers, timeout_s=timeout)

    t = Table(title=f"batch: {len(summary.results)} files in {summary.elapsed_s:.1f}s")
    t.add_column("file")
    t.add_column("status")
    t.add_column("score", justify="right")
    t.add_column("improvement", justify="right")
    for r in summary.results:
        _write_outputs(r, out, standard_names=standard_names)
        t.add_row(
            r.file_name,
            r.status,
            f"{r.qc.overall_score:.2f}" if r.qc else "-",
            f"{r.quality_improvement:+.2f}" if r.quality_improvement is not None else "-",
        )
    console.print(t)

    p = write_json_atomic(out / "batch_summary.json", summary.to_dict())
    print("[green]Wrote[/green]", p)
    if summary.n_ok != len(summary.results):
        raise typer.Exit(code=1)


@app.command()
def inspect(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="LAS file"),
    null_value: Optional[float] = typer.Option(None, help="Sentinel for missing samples"),
):
    """Show header, curves, mnemonic matches and an initial quality score."""
    rt = load_runtime()
    _setup_logging(rt.log_level)
    try:
        log = load_log(file, cfg=ParserConfig(null_value=rt.null_value if null_value is None else null_value))
    except ParseError as e:
        print(f"[red]ParseError[/red] {e}")
        raise typer.Exit(code=1)

    w = log.well
    print(f"[bold]{log.name}[/bold] LAS {log.version} wrap={log.wrap} well={w.well!r} company={w.company!r}")
    print(f"depth {w.start:g} .. {w.stop:g} step {w.step:g} {w.depth_unit}  null={log.null_value:g}  rows={log.grid.n_rows}")

    stats = curve_stats(log)
    t = Table(title="curves")
    for col in ("mnemonic", "unit", "type", "match", "conf", "valid", "min", "max"):
        t.add_column(col)
    for c, (_, row) in zip(log.curves, stats.iterrows()):
        m = standardize_mnemonic(c.mnemonic)
        t.add_row(
            c.mnemonic,
            c.unit,
            c.data_type,
            m.standardized if m.matched else "-",
            str(m.confidence),
            str(int(row["n_valid"])),
            f"{row['min']:.4g}",
            f"{row['max']:.4g}",
        )
    console.print(t)

    qc = assess_quality(log)
    print(f"[bold]Initial quality[/bold] {qc.overall_score:.2f} ({qc.grade})")
    for r in qc.recommendations[:10]:
        colour = {"critical": "red", "warning": "yellow"}.get(r.severity, "cyan")
        print(f"[{colour}]{r.severity}[/{colour}] {r.message}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
