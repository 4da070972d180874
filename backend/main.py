from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from verificar.core import storage
from verificar.core.engine import KNOWN_PROFILES, CommandEngine, DemoEngine, ValidationEngine
from verificar.core.models import JobState, OrchestratorSnapshot
from verificar.core.utils import get_default_profile
from verificar.core.validation import ValidationOrchestrator
from verificar.reporting import REPORT_FORMATS, render_report, suggested_filename

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    "json": "application/json",
    "html": "text/html; charset=utf-8",
    "text": "text/plain; charset=utf-8",
}


class ValidateRequest(BaseModel):
    document: str
    profile: str | None = None
    title: str | None = None
    demo: bool = False


class RunRecorder:
    """Persist each job's terminal snapshot under runs/.

    Snapshot listeners run under the orchestrator lock, so the file writes are
    handed to a single background worker in publication order.
    """

    def __init__(self, jobs: dict):
        self.jobs = jobs
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="verificar-runs")

    def on_snapshot(self, snapshot: OrchestratorSnapshot) -> None:
        job = self.jobs.get(snapshot.job_id)
        if job is None or job.get("stored") or not snapshot.is_terminal or snapshot.busy:
            return
        if snapshot.state not in (JobState.SUCCEEDED, JobState.FAILED):
            return
        job["stored"] = True
        self._executor.submit(self._store, dict(job), snapshot)

    def _store(self, job: dict, snapshot: OrchestratorSnapshot) -> None:
        try:
            if snapshot.state == JobState.SUCCEEDED and snapshot.result is not None:
                storage.store_result(job["run_id"], snapshot.result, job["title"])
            elif snapshot.state == JobState.FAILED and snapshot.error is not None:
                storage.store_failure(job["run_id"], job["document"], job["profile"], snapshot.error)
        except OSError:
            logger.exception("Could not store run %s", job["run_id"])

    def drain(self) -> None:
        """Block until every queued write has finished."""
        self._executor.submit(lambda: None).result()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


def create_app(engine: ValidationEngine | None = None, demo_engine: ValidationEngine | None = None) -> FastAPI:
    orchestrator = ValidationOrchestrator(_EngineSwitch(engine or CommandEngine(), demo_engine or DemoEngine()))
    jobs: dict[int, dict] = {}
    recorder = RunRecorder(jobs)
    orchestrator.subscribe(recorder.on_snapshot)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        orchestrator.shutdown(wait=False)
        recorder.shutdown()

    app = FastAPI(title="Verificar API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"]
    )

    app.state.orchestrator = orchestrator
    app.state.recorder = recorder

    @app.get("/api/health")
    def health():
        return {"status": "ok"}

    @app.get("/api/profiles")
    def list_profiles():
        return {"profiles": list(KNOWN_PROFILES), "default": get_default_profile()}

    @app.post("/api/validate")
    def validate(req: ValidateRequest):
        profile = get_default_profile() if req.profile is None else req.profile
        target = _EngineSwitch.tag(req.document, req.demo)
        run_id = storage.create_validation_id()
        # Registered before the job starts so the listener can see it.
        with orchestrator.lock:
            job_id = orchestrator.validate(target, profile)
            # Only the current job is ever looked up; queued writes carry their own copy.
            jobs.clear()
            jobs[job_id] = {
                "run_id": run_id,
                "document": req.document,
                "profile": profile,
                "title": req.title or req.document,
            }
        return {"job_id": job_id, "run_id": run_id, "status": "started"}

    @app.post("/api/cancel")
    def cancel():
        orchestrator.cancel_validation()
        return orchestrator.snapshot.describe()

    @app.get("/api/status")
    def status():
        snapshot = orchestrator.snapshot
        data = snapshot.describe()
        job = jobs.get(snapshot.job_id)
        if job:
            data["run_id"] = job["run_id"]
        return data

    @app.get("/api/report")
    def current_report(format: str = "json", title: str | None = None):
        if format not in REPORT_FORMATS:
            raise HTTPException(status_code=400, detail=f"Unknown format '{format}'")
        snapshot = orchestrator.snapshot
        if snapshot.result is None:
            raise HTTPException(status_code=409, detail="No validation result available")
        job = jobs.get(snapshot.job_id, {})
        return _report_response(format, snapshot.result, title or job.get("title"))

    @app.get("/api/runs")
    def list_runs():
        return storage.list_validation_runs()

    @app.get("/api/runs/{run_id}")
    def get_run(run_id: str):
        data = storage.load_validation_run(run_id)
        if not data:
            raise HTTPException(status_code=404, detail="Run not found")
        return data

    @app.get("/api/runs/{run_id}/report")
    def get_run_report(run_id: str, format: str = "json", title: str | None = None):
        if format not in REPORT_FORMATS:
            raise HTTPException(status_code=400, detail=f"Unknown format '{format}'")
        result = storage.load_result(run_id)
        if result is None:
            raise HTTPException(status_code=404, detail="Run result not found")
        return _report_response(format, result, title)

    return app


def _report_response(fmt: str, result, title: str | None) -> Response:
    document_title = title or result.document
    body = render_report(fmt, result.summary, result.violations, document_title)
    filename = suggested_filename(document_title, fmt)
    return Response(
        content=body,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


class _EngineSwitch:
    """Routes demo requests to the canned engine and everything else to the real one."""

    DEMO_PREFIX = "demo:"

    def __init__(self, engine: ValidationEngine, demo_engine: ValidationEngine):
        self.engine = engine
        self.demo_engine = demo_engine

    @classmethod
    def tag(cls, document: str, demo: bool) -> str:
        return f"{cls.DEMO_PREFIX}{document}" if demo else document

    def run_validation(self, document, profile_name, on_progress, token):
        if document.startswith(self.DEMO_PREFIX):
            return self.demo_engine.run_validation(document[len(self.DEMO_PREFIX):], profile_name, on_progress, token)
        return self.engine.run_validation(document, profile_name, on_progress, token)


app = create_app()
