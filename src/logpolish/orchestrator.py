# src/logpolish/orchestrator.py
from __future__ import annotations

import datetime as _dt
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import psutil

from logpolish.config.schema import ProcessingOptions, RuntimeConfig
from logpolish.curves.normalize_header import standardize_curves
from logpolish.io.las import ParseError, ParserConfig, load_log
from logpolish.io.logfile import LogFile
from logpolish.qc.quality import QCResult, assess_quality
from logpolish.qc.validation import validate_log
from logpolish.signal.denoise import denoise_log
from logpolish.signal.despike import despike_log
from logpolish.utils.hash_utils import canonical_json, sign

logger = logging.getLogger(__name__)

CERTIFICATE_VERSION = "1.0.0"
CERTIFICATE_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "logpolish/certificate")

Source = Union[str, bytes, Path, LogFile]
Clock = Callable[[], _dt.datetime]


class PipelineState(str, Enum):
    PARSED = "parsed"
    STANDARDIZED = "standardized"
    VALIDATED = "validated"
    DENOISED = "denoised"
    DESPIKED = "despiked"
    SCORED = "scored"
    CERTIFIED = "certified"


class PipelineCancelled(RuntimeError):
    pass


class PipelineTimeout(RuntimeError):
    pass


class CancelToken:
    """Cooperative cancellation flag, checked between stages."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def _utc_now() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


def _iso(ts: _dt.datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=_dt.timezone.utc)
    return ts.astimezone(_dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _rss_mb() -> Optional[float]:
    """Best effort resident set size of this process."""
    try:
        return float(psutil.Process().memory_info().rss) / (1024.0 * 1024.0)
    except (psutil.Error, OSError):
        return None


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcessingStep:
    index: int
    stage: str
    timestamp: str
    status: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    curves_affected: Tuple[str, ...] = ()
    metrics: Dict[str, Any] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()
    description: str = ""

    @property
    def algorithm(self) -> str:
        method = self.parameters.get("method") or self.parameters.get("standard")
        return f"{self.stage}:{method}" if method else self.stage

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "stage": self.stage,
            "timestamp": self.timestamp,
            "status": self.status,
            "parameters": dict(self.parameters),
            "curves_affected": list(self.curves_affected),
            "metrics": dict(self.metrics),
            "warnings": list(self.warnings),
            "description": self.description,
        }


@dataclass(frozen=True)
class ProcessingCertificate:
    id: str
    file_name: str
    user_id: str
    timestamp: str
    version: str
    processing_steps: int
    quality_improvement: float
    initial_quality: float
    final_quality: float
    algorithms: Tuple[str, ...]
    signature: str

    def to_dict(self) -> Dict[str, Any]:
        # Field names of the exchanged certificate document
        return {
            "id": self.id,
            "fileName": self.file_name,
            "userId": self.user_id,
            "timestamp": self.timestamp,
            "version": self.version,
            "processingSteps": self.processing_steps,
            "qualityImprovement": self.quality_improvement,
            "initialQuality": self.initial_quality,
            "finalQuality": self.final_quality,
            "algorithms": list(self.algorithms),
            "signature": self.signature,
        }


def history_payload(file_name: str, user_id: str, history: Sequence[ProcessingStep]) -> str:
    return f"{file_name}|{user_id}|{canonical_json([s.to_dict() for s in history])}"


def compute_signature(
    file_name: str,
    user_id: str,
    history: Sequence[ProcessingStep],
    *,
    key: Optional[str] = None,
) -> str:
    """
    Pure function of (file name, user id, ordered history). Reordering steps or
    changing any recorded parameter changes the result.
    """
    return sign(history_payload(file_name, user_id, history), key)


def certificate_id(signature: str) -> str:
    return str(uuid.uuid5(CERTIFICATE_NAMESPACE, signature))


@dataclass(frozen=True)
class ProcessingResult:
    success: bool
    status: str
    state: PipelineState
    file_name: str
    user_id: str
    log: Optional[LogFile] = None
    initial_qc: Optional[QCResult] = None
    qc: Optional[QCResult] = None
    history: Tuple[ProcessingStep, ...] = ()
    certificate: Optional[ProcessingCertificate] = None
    warnings: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()
    execution_time_s: float = 0.0
    memory_delta_mb: Optional[float] = None

    @property
    def quality_improvement(self) -> Optional[float]:
        if self.qc is None or self.initial_qc is None:
            return None
        return round(self.qc.overall_score - self.initial_qc.overall_score, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status,
            "state": self.state.value,
            "file_name": self.file_name,
            "user_id": self.user_id,
            "log": self.log.summary() if self.log is not None else None,
            "initial_qc": self.initial_qc.to_dict() if self.initial_qc else None,
            "qc": self.qc.to_dict() if self.qc else None,
            "quality_improvement": self.quality_improvement,
            "history": [s.to_dict() for s in self.history],
            "certificate": self.certificate.to_dict() if self.certificate else None,
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "execution_time_s": round(self.execution_time_s, 4),
            "memory_delta_mb": None if self.memory_delta_mb is None else round(self.memory_delta_mb, 2),
        }


# -----------------------------------------------------------------------------
# Orchestrator
# -----------------------------------------------------------------------------

@dataclass
class _Run:
    """Mutable working state owned by one Orchestrator.run call."""
    file_name: str
    user_id: str
    cancel: Optional[CancelToken]
    deadline: Optional[float]
    state: PipelineState = PipelineState.PARSED
    history: List[ProcessingStep] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class Orchestrator:
    """
    Runs one file through: parse, standardize, validate, denoise, despike, score, certify.

    Disabled stages are skipped. Stage failures become warnings on a "failed"
    step and the log passes through unchanged. Parse failures, cancellation and
    the deadline end the run without a certificate.
    """

    def __init__(
        self,
        options: Optional[ProcessingOptions] = None,
        runtime: Optional[RuntimeConfig] = None,
        *,
        clock: Optional[Clock] = None,
        parser_config: Optional[ParserConfig] = None,
    ) -> None:
        self.options = options or ProcessingOptions()
        self.runtime = runtime or RuntimeConfig()
        self.clock: Clock = clock or _utc_now
        self.parser_config = parser_config or ParserConfig(null_value=self.runtime.null_value)

    # -- helpers --------------------------------------------------------------

    def _checkpoint(self, run: _Run) -> None:
        if run.cancel is not None and run.cancel.cancelled:
            raise PipelineCancelled(run.cancel.reason or "cancelled")
        if run.deadline is not None and time.monotonic() > run.deadline:
            raise PipelineTimeout(f"deadline exceeded after stage {run.state.value}")

    def _append(
        self,
        run: _Run,
        stage: str,
        *,
        status: str = "ok",
        parameters: Optional[Dict[str, Any]] = None,
        curves_affected: Sequence[str] = (),
        metrics: Optional[Dict[str, Any]] = None,
        warnings: Sequence[str] = (),
        description: str = "",
    ) -> ProcessingStep:
        step = ProcessingStep(
            index=len(run.history),
            stage=stage,
            timestamp=_iso(self.clock()),
            status=status,
            parameters=dict(parameters or {}),
            curves_affected=tuple(curves_affected),
            metrics=dict(metrics or {}),
            warnings=tuple(warnings),
            description=description,
        )
        run.history.append(step)
        run.warnings.extend(step.warnings)
        return step

    def _guarded(
        self,
        run: _Run,
        stage: str,
        parameters: Dict[str, Any],
        log: LogFile,
        fn: Callable[[LogFile], Tuple[LogFile, Dict[str, Any]]],
    ) -> LogFile:
        """
        Run one stage; on failure record a failed step and return the input unchanged.
        """
        logger.info("[%s] %s start", run.file_name, stage)
        try:
            out, rec = fn(log)
        except Exception as e:
            logger.warning("[%s] %s failed: %s", run.file_name, stage, e)
            self._append(
                run,
                stage,
                status="failed",
                parameters=parameters,
                warnings=[f"{stage} failed: {type(e).__name__}: {e}"],
                description=f"{stage} failed; data passed through unchanged",
            )
            return log
        self._append(run, stage, parameters=parameters, **rec)
        logger.info("[%s] %s done", run.file_name, stage)
        return out

    # -- stages ---------------------------------------------------------------

    def _standardize(self, log: LogFile) -> Tuple[LogFile, Dict[str, Any]]:
        res = standardize_curves(log, self.options.mnemonics)
        changed = [m["original"] for m in res.mappings if m["applied"]]
        metrics = res.metrics()
        metrics["mappings"] = list(res.mappings)
        metrics["conversions"] = list(res.conversions)
        metrics["suggestions"] = list(res.suggestions)
        return res.log, {
            "curves_affected": changed,
            "metrics": metrics,
            "warnings": list(res.warnings),
            "description": f"Standardized {res.n_standardized} of {len(res.mappings)} mnemonics ({self.options.mnemonics.standard})",
        }

    def _validate(self, log: LogFile) -> Tuple[LogFile, Dict[str, Any]]:
        report = validate_log(log, self.options.validation)
        metrics = report.summary()
        metrics["issues"] = [i.to_dict() for i in report.issues]
        return log, {
            "curves_affected": list(report.curves_checked),
            "metrics": metrics,
            "description": f"Validation found {report.errors} errors, {report.warnings} warnings",
        }

    def _denoise(self, log: LogFile) -> Tuple[LogFile, Dict[str, Any]]:
        res = denoise_log(log, self.options.denoise)
        return res.log, {
            "curves_affected": list(res.curves_affected),
            "metrics": {
                "points_processed": res.points_processed,
                "mean_noise_reduction_pct": round(res.mean_noise_reduction_pct, 4),
                "per_curve": dict(res.per_curve),
            },
            "warnings": list(res.warnings),
            "description": f"Denoised {len(res.curves_affected)} curves with {self.options.denoise.method}",
        }

    def _despike(self, log: LogFile) -> Tuple[LogFile, Dict[str, Any]]:
        res = despike_log(log, self.options.despike)
        return res.log, {
            "curves_affected": list(res.curves_affected),
            "metrics": {
                "spikes_detected": res.spikes_detected,
                "spikes_replaced": res.spikes_replaced,
                "per_curve": dict(res.per_curve),
            },
            "warnings": list(res.warnings),
            "description": (
                f"Detected {res.spikes_detected} spikes with {self.options.despike.method}, "
                f"replaced {res.spikes_replaced}"
            ),
        }

    # -- entry points ---------------------------------------------------------

    def run(
        self,
        source: Source,
        *,
        file_name: Optional[str] = None,
        user_id: str = "anonymous",
        cancel: Optional[CancelToken] = None,
        deadline_s: Optional[float] = None,
    ) -> ProcessingResult:
        t0 = time.monotonic()
        rss0 = _rss_mb()
        if file_name is None:
            file_name = source.name if isinstance(source, (Path, LogFile)) else "memory.las"
            if isinstance(source, str) and "\n" not in source and "~" not in source:
                file_name = Path(source).name
        limit = self.runtime.timeout_s if deadline_s is None else deadline_s
        run = _Run(
            file_name=str(file_name),
            user_id=str(user_id),
            cancel=cancel,
            deadline=(t0 + float(limit)) if limit is not None else None,
        )

        def _finish(status: str, *, log=None, initial=None, qc=None, cert=None, errors=()) -> ProcessingResult:
            rss1 = _rss_mb()
            return ProcessingResult(
                success=(status == "ok"),
                status=status,
                state=run.state,
                file_name=run.file_name,
                user_id=run.user_id,
                log=log,
                initial_qc=initial,
                qc=qc,
                history=tuple(run.history),
                certificate=cert,
                warnings=tuple(run.warnings),
                errors=tuple(errors),
                execution_time_s=time.monotonic() - t0,
                memory_delta_mb=(rss1 - rss0) if (rss0 is not None and rss1 is not None) else None,
            )

        # Parsed
        try:
            log = source if isinstance(source, LogFile) else load_log(source, name=run.file_name, cfg=self.parser_config)
        except ParseError as e:
            logger.error("[%s] parse failed: %s", run.file_name, e)
            return _finish("failed", errors=[f"ParseError: {e}"])

        self._append(
            run,
            "parse",
            parameters={"null_value": log.null_value},
            curves_affected=log.curve_labels(),
            metrics={"n_rows": log.grid.n_rows, "n_curves": len(log.curves), "version": log.version, "wrap": log.wrap},
            description=f"Parsed {len(log.curves)} curves, {log.grid.n_rows} rows",
        )

        opts = self.options
        initial: Optional[QCResult] = None
        try:
            initial = assess_quality(log, validation_opts=opts.validation)

            self._checkpoint(run)
            if opts.mnemonics.enabled:
                log = self._guarded(run, "standardize", opts.mnemonics.to_dict(), log, self._standardize)
                run.state = PipelineState.STANDARDIZED
                self._checkpoint(run)

            if opts.validation.enabled:
                log = self._guarded(run, "validate", opts.validation.to_dict(), log, self._validate)
                run.state = PipelineState.VALIDATED
                self._checkpoint(run)

            if opts.denoise.enabled:
                log = self._guarded(run, "denoise", opts.denoise.to_dict(), log, self._denoise)
                run.state = PipelineState.DENOISED
                self._checkpoint(run)

            if opts.despike.enabled:
                log = self._guarded(run, "despike", opts.despike.to_dict(), log, self._despike)
                run.state = PipelineState.DESPIKED
                self._checkpoint(run)

            final = assess_quality(log, validation_opts=opts.validation)
            improvement = round(final.overall_score - initial.overall_score, 2)
            self._append(
                run,
                "score",
                metrics={
                    "initial_score": initial.overall_score,
                    "final_score": final.overall_score,
                    "quality_improvement": improvement,
                    "grade": final.grade,
                },
                description=f"Quality {initial.overall_score:.2f} -> {final.overall_score:.2f} ({final.grade})",
            )
            run.state = PipelineState.SCORED
            self._checkpoint(run)

        except PipelineCancelled as e:
            logger.info("[%s] cancelled after %s: %s", run.file_name, run.state.value, e)
            return _finish("cancelled", initial=initial, errors=[f"cancelled after {run.state.value}: {e}"])
        except PipelineTimeout as e:
            logger.error("[%s] timed out: %s", run.file_name, e)
            return _finish("timeout", initial=initial, errors=[f"timeout: {e}"])
        except Exception as e:
            logger.exception("[%s] processing failed", run.file_name)
            return _finish("failed", initial=initial, errors=[f"{type(e).__name__}: {e}"])

        # Certified
        signature = compute_signature(run.file_name, run.user_id, run.history, key=self.runtime.signing_key)
        cert = ProcessingCertificate(
            id=certificate_id(signature),
            file_name=run.file_name,
            user_id=run.user_id,
            timestamp=_iso(self.clock()),
            version=CERTIFICATE_VERSION,
            processing_steps=len(run.history),
            quality_improvement=improvement,
            initial_quality=initial.overall_score,
            final_quality=final.overall_score,
            algorithms=tuple(s.algorithm for s in run.history if s.status == "ok"),
            signature=signature,
        )
        run.state = PipelineState.CERTIFIED
        logger.info(
            "[%s] certified in %.2fs, quality %+.2f",
            run.file_name, time.monotonic() - t0, improvement,
        )
        return _finish("ok", log=log, initial=initial, qc=final, cert=cert)

    def process_file(
        self,
        path: Path,
        *,
        user_id: str = "anonymous",
        cancel: Optional[CancelToken] = None,
        deadline_s: Optional[float] = None,
    ) -> ProcessingResult:
        p = Path(path)
        return self.run(p, file_name=p.name, user_id=user_id, cancel=cancel, deadline_s=deadline_s)
