from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Executor
from typing import Callable, Optional

from verificar.core.engine import CancellationToken, CommandEngine, ValidationEngine
from verificar.core.models import JobState, OrchestratorSnapshot, ValidationResult
from verificar.core.utils import ValidationCancelled, get_default_profile

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[OrchestratorSnapshot], None]


def _clamp(fraction: float) -> float:
    if math.isnan(fraction):
        return 0.0
    return max(0.0, min(1.0, fraction))


class ValidationOrchestrator:
    """Runs at most one validation job at a time against an engine.

    All state lives in a single immutable `OrchestratorSnapshot` that is
    replaced under `lock`. Every job captures its id and cancellation token;
    a write from a job whose id is no longer current, or whose token has been
    cancelled, is dropped.

    Cancel racing completion: whichever transition takes the lock first wins.
    A committed result survives a later cancel; a committed cancel discards
    the late result.
    """

    def __init__(self, engine: ValidationEngine, executor: Optional[Executor] = None):
        self._engine = engine
        # Without an executor every job gets its own daemon thread, so a
        # superseded engine call that ignores its token never delays the next job.
        self._executor = executor
        self._thread: Optional[threading.Thread] = None
        # Hold to make a sequence of calls atomic with respect to job callbacks.
        self.lock = threading.RLock()
        self._changed = threading.Condition(self.lock)
        self._job_id = 0
        self._token: Optional[CancellationToken] = None
        self._snapshot = OrchestratorSnapshot()
        self._listeners: list[SnapshotListener] = []
        self._closed = False

    # Observable state

    @property
    def snapshot(self) -> OrchestratorSnapshot:
        return self._snapshot

    @property
    def busy(self) -> bool:
        return self._snapshot.busy

    @property
    def progress(self) -> float:
        return self._snapshot.progress

    @property
    def result(self) -> Optional[ValidationResult]:
        return self._snapshot.result

    @property
    def error(self) -> Optional[BaseException]:
        return self._snapshot.error

    @property
    def state(self) -> JobState:
        return self._snapshot.state

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call `listener` with every new snapshot. Returns an unsubscribe function.

        Listeners run on whichever thread made the transition, while the
        orchestrator lock is held, so they must not block.
        """
        with self.lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self.lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _publish_locked(self, **changes) -> OrchestratorSnapshot:
        self._snapshot = self._snapshot.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Snapshot listener failed")
        self._changed.notify_all()
        return self._snapshot

    def _commit(self, job_id: int, token: CancellationToken, **changes) -> bool:
        with self.lock:
            if job_id != self._job_id or token.is_cancelled:
                logger.debug("Dropping stale update from job %d: %s", job_id, sorted(changes))
                return False
            self._publish_locked(**changes)
            return True

    # Lifecycle

    def validate(self, document, profile_name: Optional[str] = None) -> int:
        """Start validating `document`, superseding any running job. Returns the new job id."""
        if profile_name is None:
            profile_name = get_default_profile()
        with self.lock:
            if self._closed:
                raise RuntimeError("Orchestrator has been shut down")
            self._cancel_locked(publish=False)
            self._job_id += 1
            job_id = self._job_id
            token = CancellationToken()
            self._token = token
            self._publish_locked(
                job_id=job_id,
                state=JobState.RUNNING,
                busy=True,
                progress=0.0,
                note=None,
                result=None,
                error=None,
            )
        logger.info("Validation job %d started: %s (%s)", job_id, document, profile_name)
        self._start(job_id, str(document), profile_name, token)
        return job_id

    def _start(self, job_id: int, document: str, profile_name: str, token: CancellationToken) -> None:
        if self._executor is not None:
            self._executor.submit(self._run_job, job_id, document, profile_name, token)
            return
        thread = threading.Thread(
            target=self._run_job,
            args=(job_id, document, profile_name, token),
            name=f"verificar-job-{job_id}",
            daemon=True,
        )
        self._thread = thread
        thread.start()

    def _run_job(self, job_id: int, document: str, profile_name: str, token: CancellationToken) -> None:
        def on_progress(fraction: float, note: Optional[str] = None) -> None:
            self._commit(job_id, token, progress=_clamp(fraction), note=note)

        try:
            result = self._engine.run_validation(document, profile_name, on_progress, token)
        except ValidationCancelled:
            logger.info("Validation job %d cancelled", job_id)
            self._commit(job_id, token, state=JobState.CANCELLED, busy=False)
            return
        except Exception as exc:
            logger.warning("Validation job %d failed: %s", job_id, exc)
            self._commit(job_id, token, state=JobState.FAILED, busy=False, error=exc)
            return

        if self._commit(job_id, token, state=JobState.SUCCEEDED, busy=False, progress=1.0, result=result):
            logger.info(
                "Validation job %d finished: %d violations", job_id, len(result.violations)
            )

    def _cancel_locked(self, publish: bool) -> None:
        token, self._token = self._token, None
        if token is None or not self._snapshot.busy:
            return
        token.cancel()
        logger.info("Validation job %d cancelled by caller", self._snapshot.job_id)
        if publish:
            self._publish_locked(state=JobState.CANCELLED, busy=False)

    def cancel_validation(self) -> None:
        """Cancel the running job, if any. Safe to call at any time."""
        with self.lock:
            self._cancel_locked(publish=True)

    def wait(self, timeout: Optional[float] = None) -> OrchestratorSnapshot:
        """Block until no job is running (or `timeout` elapses) and return the snapshot."""
        with self._changed:
            self._changed.wait_for(lambda: not self._snapshot.busy, timeout)
            return self._snapshot

    def shutdown(self, wait: bool = True) -> None:
        with self.lock:
            if self._closed:
                return
            self._cancel_locked(publish=False)
            self._closed = True
            self._publish_locked(state=JobState.IDLE, busy=False, result=None, error=None)
        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()

    def __enter__(self) -> "ValidationOrchestrator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()


def run_validation_sync(
    document,
    profile_name: Optional[str] = None,
    engine: Optional[ValidationEngine] = None,
    on_snapshot: Optional[SnapshotListener] = None,
) -> OrchestratorSnapshot:
    """Validate one document and block until the job settles."""
    with ValidationOrchestrator(engine or CommandEngine()) as orchestrator:
        if on_snapshot is not None:
            orchestrator.subscribe(on_snapshot)
        orchestrator.validate(document, profile_name)
        return orchestrator.wait()
