from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from verificar.core.models import ValidationResult
from verificar.core.utils import ensure_dir, get_runs_dir, utc_now, write_json

BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_RUNS_DIR = BASE_DIR / "runs"


def runs_dir() -> Path:
    return get_runs_dir(DEFAULT_RUNS_DIR)


def create_validation_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"validate-{ts}-{uuid4().hex[:8]}"


def _run_dir(run_id: str) -> Path:
    run_dir = runs_dir() / run_id
    ensure_dir(run_dir)
    return run_dir


def store_result(run_id: str, result: ValidationResult, title: str | None = None) -> Path:
    run_dir = _run_dir(run_id)
    write_json(run_dir / "result.json", result.model_dump(mode="json"))
    write_json(run_dir / "status.json", {
        "run_id": run_id,
        "document": result.document,
        "title": title or result.document,
        "profile": result.summary.profile_name,
        "status": "success",
        "violations": len(result.violations),
        "finished_at": utc_now(),
    })
    return run_dir


def store_failure(run_id: str, document: str, profile: str, error: BaseException) -> Path:
    run_dir = _run_dir(run_id)
    write_json(run_dir / "status.json", {
        "run_id": run_id,
        "document": document,
        "title": document,
        "profile": profile,
        "status": "failure",
        "error": str(error),
        "error_type": type(error).__name__,
        "finished_at": utc_now(),
    })
    return run_dir


def get_validation_run_dir(run_id: str) -> Path | None:
    run_dir = runs_dir() / run_id
    return run_dir if run_dir.is_dir() else None


def list_validation_runs() -> list[dict]:
    root = runs_dir()
    if not root.exists():
        return []
    items = []
    for d in sorted(root.iterdir(), reverse=True):
        if not d.is_dir() or not d.name.startswith("validate-"):
            continue
        status_path = d / "status.json"
        if status_path.exists():
            items.append(json.loads(status_path.read_text(encoding="utf-8")))
    return items


def load_validation_run(run_id: str) -> dict | None:
    run_dir = get_validation_run_dir(run_id)
    if not run_dir:
        return None
    data = {}
    status_path = run_dir / "status.json"
    if status_path.exists():
        data.update(json.loads(status_path.read_text(encoding="utf-8")))
    result_path = run_dir / "result.json"
    if result_path.exists():
        data["result"] = json.loads(result_path.read_text(encoding="utf-8"))
    return data


def load_result(run_id: str) -> ValidationResult | None:
    run_dir = get_validation_run_dir(run_id)
    if not run_dir:
        return None
    result_path = run_dir / "result.json"
    if not result_path.exists():
        return None
    return ValidationResult.model_validate_json(result_path.read_text(encoding="utf-8"))
