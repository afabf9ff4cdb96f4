# src/logpolish/pipelines/batch.py
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from logpolish.config.schema import ProcessingOptions, RuntimeConfig
from logpolish.orchestrator import CancelToken, Clock, Orchestrator, PipelineState, ProcessingResult

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int, int, ProcessingResult], None]


@dataclass(frozen=True)
class BatchSummary:
    results: Tuple[ProcessingResult, ...]
    elapsed_s: float

    def _count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def n_ok(self) -> int:
        return self._count("ok")

    @property
    def n_failed(self) -> int:
        return self._count("failed")

    @property
    def n_timeout(self) -> int:
        return self._count("timeout")

    @property
    def n_cancelled(self) -> int:
        return self._count("cancelled")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_files": len(self.results),
            "n_ok": self.n_ok,
            "n_failed": self.n_failed,
            "n_timeout": self.n_timeout,
            "n_cancelled": self.n_cancelled,
            "elapsed_s": round(self.elapsed_s, 4),
            "results": [
                {
                    "file_name": r.file_name,
                    "status": r.status,
                    "score": r.qc.overall_score if r.qc else None,
                    "quality_improvement": r.quality_improvement,
                    "signature": r.certificate.signature if r.certificate else None,
                    "errors": list(r.errors),
                }
                for r in self.results
            ],
        }


def _aborted(path: Path, user_id: str, status: str, message: str, elapsed: float) -> ProcessingResult:
    return ProcessingResult(
        success=False,
        status=status,
        state=PipelineState.PARSED,
        file_name=Path(path).name,
        user_id=user_id,
        errors=(message,),
        execution_time_s=elapsed,
    )


def run_batch(
    paths: Sequence[Path],
    *,
    options: Optional[ProcessingOptions] = None,
    runtime: Optional[RuntimeConfig] = None,
    user_id: str = "anonymous",
    max_workers: Optional[int] = None,
    timeout_s: Optional[float] = None,
    cancel: Optional[CancelToken] = None,
    clock: Optional[Clock] = None,
    progress: Optional[ProgressFn] = None,
    poll_s: float = 0.05,
) -> BatchSummary:
    """
    Process files on a bounded thread pool, one independent pipeline per file.

    - at most max_workers (default runtime.max_concurrent) pipelines run at once
    - a pipeline running longer than timeout_s is reported as "timeout" and asked
      to stop at its next stage boundary; the batch does not wait for it
    - setting `cancel` stops queued files and asks running ones to stop
    - results come back in input order
    """
    rt = runtime or RuntimeConfig()
    workers = int(max_workers or rt.max_concurrent)
    limit = float(timeout_s if timeout_s is not None else rt.timeout_s)
    orch = Orchestrator(options, rt, clock=clock)

    paths = [Path(p) for p in paths]
    n = len(paths)
    results: List[Optional[ProcessingResult]] = [None] * n
    tokens = [CancelToken() for _ in paths]
    started: Dict[int, float] = {}
    lock = threading.Lock()
    t0 = time.monotonic()

    def _work(i: int) -> ProcessingResult:
        with lock:
            started[i] = time.monotonic()
        return orch.process_file(paths[i], user_id=user_id, cancel=tokens[i], deadline_s=limit)

    def _settle(i: int, res: ProcessingResult) -> None:
        results[i] = res
        logger.info("[batch] %d/%d %s: %s", sum(r is not None for r in results), n, res.file_name, res.status)
        if progress is not None:
            progress(i, n, res)

    ex = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="logpolish")
    try:
        futures: Dict[Future, int] = {ex.submit(_work, i): i for i in range(n)}
        pending = set(futures)

        while pending:
            done, pending = wait(pending, timeout=poll_s, return_when=FIRST_COMPLETED)
            for f in done:
                i = futures[f]
                if results[i] is not None:
                    continue
                if f.cancelled():
                    _settle(i, _aborted(paths[i], user_id, "cancelled", "cancelled before start", 0.0))
                    continue
                exc = f.exception()
                if exc is not None:
                    logger.error("[batch] %s crashed: %s", paths[i].name, exc)
                    _settle(i, _aborted(paths[i], user_id, "failed", f"{type(exc).__name__}: {exc}", 0.0))
                else:
                    _settle(i, f.result())

            now = time.monotonic()
            if cancel is not None and cancel.cancelled:
                for f in list(pending):
                    i = futures[f]
                    tokens[i].cancel(cancel.reason or "batch cancelled")
                    if f.cancel():
                        pending.discard(f)
                        _settle(i, _aborted(paths[i], user_id, "cancelled", "cancelled before start", 0.0))

            for f in list(pending):
                i = futures[f]
                with lock:
                    s = started.get(i)
                if s is not None and now - s > limit:
                    tokens[i].cancel("timeout")
                    pending.discard(f)
                    _settle(i, _aborted(paths[i], user_id, "timeout", f"timeout after {limit:g}s", now - s))
    finally:
        # Timed-out workers stop at their next stage boundary; do not block on them
        ex.shutdown(wait=False, cancel_futures=True)

    return BatchSummary(results=tuple(r for r in results if r is not None), elapsed_s=time.monotonic() - t0)
