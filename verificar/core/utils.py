from __future__ import annotations

import json
import os
import shlex
from datetime import datetime, timezone
from pathlib import Path

DEFAULT_PROFILE = "PDF/UA-2"


class VerificarError(RuntimeError):
    pass


class EngineUnavailable(VerificarError):
    """The validation engine could not be started."""


class DocumentUnreadable(VerificarError):
    """The input document is missing, invalid or inaccessible."""


class ProfileUnknown(VerificarError):
    """The requested profile is not recognised by the engine."""


class ValidationCancelled(VerificarError):
    """Raised inside a job when its cancellation token fires. Never surfaced as an error."""


class RenderDegraded(VerificarError):
    pass


def utc_now() -> str:
    return iso_timestamp(datetime.now(timezone.utc))


def iso_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def write_json(path: Path, data: dict) -> None:
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def get_engine_command() -> list[str]:
    """Command used to launch the external validator.

    Read from `VERIFICAR_ENGINE_CMD`, split with shell rules. Empty when unset.
    """
    raw = os.environ.get("VERIFICAR_ENGINE_CMD", "").strip()
    return shlex.split(raw) if raw else []


def get_runs_dir(default: Path) -> Path:
    raw = os.environ.get("VERIFICAR_RUNS_DIR", "").strip()
    return Path(os.path.expanduser(raw)) if raw else default


def get_default_profile() -> str:
    return os.environ.get("VERIFICAR_DEFAULT_PROFILE", "").strip() or DEFAULT_PROFILE
