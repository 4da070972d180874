import queue
import threading
from concurrent.futures import Executor, Future

import pytest

from verificar.core.engine import DemoEngine
from verificar.core.models import JobState, ValidationResult, ValidationSummary
from verificar.core.utils import DocumentUnreadable, EngineUnavailable, ValidationCancelled
from verificar.core.validation import ValidationOrchestrator, run_validation_sync


def make_result(document: str) -> ValidationResult:
    return ValidationResult(
        document=document,
        summary=ValidationSummary.from_counts("PDF/UA-2", passed_count=3, failed_count=1),
    )


class Call:
    def __init__(self, document, profile_name, on_progress, token):
        self.document = document
        self.profile_name = profile_name
        self.on_progress = on_progress
        self.token = token
        self._release = threading.Event()
        self._outcome = None

    def finish(self, outcome):
        self._outcome = outcome
        self._release.set()

    def wait(self):
        assert self._release.wait(5), "engine call was never released"
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._outcome


class GatedEngine:
    """Each run blocks until the test decides how it ends."""

    def __init__(self):
        self.calls = queue.Queue()

    def run_validation(self, document, profile_name, on_progress, token):
        call = Call(document, profile_name, on_progress, token)
        self.calls.put(call)
        return call.wait()

    def next_call(self) -> Call:
        return self.calls.get(timeout=5)


class ThreadExecutor(Executor):
    """One thread per job, kept so tests can join them."""

    def __init__(self):
        self.threads = []

    def submit(self, fn, *args, **kwargs):
        future = Future()

        def run():
            try:
                future.set_result(fn(*args, **kwargs))
            except BaseException as exc:
                future.set_exception(exc)

        thread = threading.Thread(target=run, daemon=True)
        self.threads.append(thread)
        thread.start()
        return future

    def join(self):
        for thread in self.threads:
            thread.join(5)
            assert not thread.is_alive()


@pytest.fixture
def engine():
    return GatedEngine()


@pytest.fixture
def executor():
    return ThreadExecutor()


@pytest.fixture
def orchestrator(engine, executor):
    orch = ValidationOrchestrator(engine, executor=executor)
    yield orch
    orch.shutdown()


def test_initial_state(orchestrator):
    assert orchestrator.busy is False
    assert orchestrator.progress == 0.0
    assert orchestrator.result is None
    assert orchestrator.error is None
    assert orchestrator.state == JobState.IDLE


def test_cancel_without_job_is_noop(orchestrator):
    before = orchestrator.snapshot
    orchestrator.cancel_validation()
    orchestrator.cancel_validation()
    assert orchestrator.busy is False
    assert orchestrator.snapshot is before


def test_validate_does_not_block_and_resets_state(orchestrator, engine):
    job_id = orchestrator.validate("a.pdf", "PDF/UA-1")
    assert job_id == 1
    assert orchestrator.busy is True
    assert orchestrator.progress == 0.0
    assert orchestrator.state == JobState.RUNNING

    call = engine.next_call()
    assert call.document == "a.pdf"
    assert call.profile_name == "PDF/UA-1"
    call.finish(make_result("a.pdf"))
    orchestrator.wait(5)


def test_success_publishes_result(orchestrator, engine):
    orchestrator.validate("a.pdf")
    call = engine.next_call()
    call.on_progress(0.25, "quarter")
    assert orchestrator.progress == 0.25
    assert orchestrator.snapshot.note == "quarter"

    call.finish(make_result("a.pdf"))
    snapshot = orchestrator.wait(5)
    assert snapshot.state == JobState.SUCCEEDED
    assert snapshot.busy is False
    assert snapshot.progress == 1.0
    assert snapshot.result.document == "a.pdf"
    assert snapshot.error is None


def test_progress_is_clamped(orchestrator, engine):
    orchestrator.validate("a.pdf")
    call = engine.next_call()
    call.on_progress(1.7)
    assert orchestrator.progress == 1.0
    call.on_progress(-0.3)
    assert orchestrator.progress == 0.0
    call.finish(make_result("a.pdf"))
    orchestrator.wait(5)


def test_failure_surfaces_error_without_result(orchestrator, engine):
    orchestrator.validate("missing.pdf")
    failure = DocumentUnreadable("Document not readable: missing.pdf")
    engine.next_call().finish(failure)

    snapshot = orchestrator.wait(5)
    assert snapshot.state == JobState.FAILED
    assert snapshot.busy is False
    assert snapshot.error is failure
    assert snapshot.result is None


def test_new_validation_clears_previous_error_and_result(orchestrator, engine):
    orchestrator.validate("a.pdf")
    engine.next_call().finish(make_result("a.pdf"))
    orchestrator.wait(5)
    assert orchestrator.result is not None

    orchestrator.validate("b.pdf")
    assert orchestrator.result is None
    assert orchestrator.error is None
    engine.next_call().finish(EngineUnavailable("engine down"))
    orchestrator.wait(5)
    assert isinstance(orchestrator.error, EngineUnavailable)

    orchestrator.validate("c.pdf")
    assert orchestrator.error is None
    assert orchestrator.busy is True
    engine.next_call().finish(make_result("c.pdf"))
    orchestrator.wait(5)


def test_superseded_job_cannot_touch_state(orchestrator, engine, executor):
    first_id = orchestrator.validate("a.pdf")
    first = engine.next_call()
    first.on_progress(0.5)

    second_id = orchestrator.validate("b.pdf")
    second = engine.next_call()
    assert second_id == first_id + 1
    assert first.token.is_cancelled
    assert not second.token.is_cancelled
    assert orchestrator.progress == 0.0

    first.on_progress(0.9, "stale")
    assert orchestrator.progress == 0.0
    assert orchestrator.snapshot.note is None

    first.finish(make_result("a.pdf"))
    executor.threads[0].join(5)
    assert orchestrator.busy is True
    assert orchestrator.result is None
    assert orchestrator.snapshot.job_id == second_id

    second.on_progress(0.4)
    second.finish(make_result("b.pdf"))
    snapshot = orchestrator.wait(5)
    assert snapshot.state == JobState.SUCCEEDED
    assert snapshot.result.document == "b.pdf"
    assert snapshot.progress == 1.0


def test_superseded_failure_is_dropped(orchestrator, engine, executor):
    orchestrator.validate("a.pdf")
    first = engine.next_call()
    orchestrator.validate("b.pdf")
    second = engine.next_call()

    first.finish(EngineUnavailable("late failure"))
    executor.threads[0].join(5)
    assert orchestrator.error is None

    second.finish(make_result("b.pdf"))
    assert orchestrator.wait(5).error is None


def test_cancel_frees_orchestrator_and_discards_late_result(orchestrator, engine, executor):
    orchestrator.validate("a.pdf")
    call = engine.next_call()

    orchestrator.cancel_validation()
    assert call.token.is_cancelled
    assert orchestrator.busy is False
    assert orchestrator.state == JobState.CANCELLED

    call.finish(make_result("a.pdf"))
    executor.join()
    assert orchestrator.result is None
    assert orchestrator.error is None
    assert orchestrator.state == JobState.CANCELLED


def test_completion_committed_before_cancel_wins(orchestrator, engine):
    orchestrator.validate("a.pdf")
    engine.next_call().finish(make_result("a.pdf"))
    orchestrator.wait(5)

    orchestrator.cancel_validation()
    assert orchestrator.state == JobState.SUCCEEDED
    assert orchestrator.result.document == "a.pdf"


def test_engine_cancellation_is_not_an_error(orchestrator, engine):
    orchestrator.validate("a.pdf")
    engine.next_call().finish(ValidationCancelled("stopped"))

    snapshot = orchestrator.wait(5)
    assert snapshot.state == JobState.CANCELLED
    assert snapshot.error is None
    assert snapshot.result is None


def test_listeners_see_transitions_in_order(orchestrator, engine):
    states = []
    unsubscribe = orchestrator.subscribe(lambda s: states.append((s.state, s.progress)))

    orchestrator.validate("a.pdf")
    call = engine.next_call()
    call.on_progress(0.5)
    call.finish(make_result("a.pdf"))
    orchestrator.wait(5)
    unsubscribe()
    orchestrator.validate("b.pdf")
    engine.next_call().finish(make_result("b.pdf"))
    orchestrator.wait(5)

    assert states == [
        (JobState.RUNNING, 0.0),
        (JobState.RUNNING, 0.5),
        (JobState.SUCCEEDED, 1.0),
    ]


def test_failing_listener_does_not_break_jobs(orchestrator, engine):
    def broken(snapshot):
        raise RuntimeError("listener bug")

    orchestrator.subscribe(broken)
    orchestrator.validate("a.pdf")
    engine.next_call().finish(make_result("a.pdf"))
    assert orchestrator.wait(5).state == JobState.SUCCEEDED


def test_shutdown_discards_result_and_rejects_new_jobs(engine, executor):
    orchestrator = ValidationOrchestrator(engine, executor=executor)
    orchestrator.validate("a.pdf")
    engine.next_call().finish(make_result("a.pdf"))
    orchestrator.wait(5)

    orchestrator.shutdown()
    assert orchestrator.result is None
    assert orchestrator.busy is False
    with pytest.raises(RuntimeError):
        orchestrator.validate("b.pdf")


def test_run_validation_sync_with_demo_engine():
    snapshot = run_validation_sync("demo.pdf", "PDF/UA-2", DemoEngine(step_delay=0))
    assert snapshot.state == JobState.SUCCEEDED
    assert snapshot.result.summary.total_rules == 10
    assert snapshot.result.summary.failed_count == 2
    assert len(snapshot.result.violations) == 3


def test_run_validation_sync_reports_unknown_profile():
    snapshot = run_validation_sync("demo.pdf", "PDF/X-9", DemoEngine(step_delay=0))
    assert snapshot.state == JobState.FAILED
    assert "PDF/X-9" in str(snapshot.error)


def test_explicit_empty_profile_reaches_engine(orchestrator, engine):
    orchestrator.validate("a.pdf", "")
    call = engine.next_call()
    assert call.profile_name == ""
    call.finish(make_result("a.pdf"))
    orchestrator.wait(5)


class StubbornEngine:
    """Ignores cancellation for every document except the fast one."""

    def __init__(self):
        self.started = []
        self.release = threading.Event()

    def run_validation(self, document, profile_name, on_progress, token):
        self.started.append(document)
        if document != "fast.pdf":
            self.release.wait(10)
        return make_result(document)


def test_superseded_jobs_ignoring_cancellation_do_not_block_new_job():
    engine = StubbornEngine()
    orchestrator = ValidationOrchestrator(engine)
    try:
        orchestrator.validate("a.pdf")
        orchestrator.validate("b.pdf")
        orchestrator.validate("fast.pdf")

        snapshot = orchestrator.wait(5)
        assert snapshot.state == JobState.SUCCEEDED
        assert snapshot.result.document == "fast.pdf"
        assert "fast.pdf" in engine.started
    finally:
        engine.release.set()
        orchestrator.shutdown()
