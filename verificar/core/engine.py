from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from verificar.core.mapping import Assertion, AssertionStatus, make_result
from verificar.core.models import ValidationResult
from verificar.core.utils import (
    DEFAULT_PROFILE,
    DocumentUnreadable,
    EngineUnavailable,
    ProfileUnknown,
    ValidationCancelled,
    get_engine_command,
)

logger = logging.getLogger(__name__)

KNOWN_PROFILES = (
    "PDF/UA-1",
    DEFAULT_PROFILE,
    "PDF/A-1a",
    "PDF/A-1b",
    "PDF/A-2a",
    "PDF/A-2b",
    "PDF/A-2u",
    "PDF/A-3a",
    "PDF/A-3b",
    "PDF/A-3u",
    "PDF/A-4",
)

# Exit codes of the external validator process.
EXIT_DOCUMENT_UNREADABLE = 2
EXIT_PROFILE_UNKNOWN = 3

ProgressCallback = Callable[[float, Optional[str]], None]


class CancellationToken:
    """Cooperative cancellation flag shared between the orchestrator and one engine run.

    Engines poll `is_cancelled` (or call `raise_if_cancelled`) at their own
    checkpoints; callbacks registered with `on_cancel` fire once, on the
    thread that requested cancellation.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")
        return True

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register `callback`; returns a function that unregisters it."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def unregister() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return unregister
        callback()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ValidationCancelled("Validation cancelled")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to `timeout` seconds; True if cancellation arrived meanwhile."""
        return self._event.wait(timeout)


class ValidationEngine(Protocol):
    def run_validation(
        self,
        document: str,
        profile_name: str,
        on_progress: ProgressCallback,
        token: CancellationToken,
    ) -> ValidationResult:
        ...


class EngineReport(BaseModel):
    """JSON document printed by the external validator on completion."""

    model_config = ConfigDict(populate_by_name=True)

    profile_name: Optional[str] = Field(default=None, alias="profileName")
    duration: Optional[float] = Field(default=None, ge=0.0)
    assertions: List[Assertion] = []


def _parse_progress(line: str) -> tuple[float, Optional[str]] | None:
    _, _, rest = line.strip().partition(" ")
    value, _, note = rest.partition(" ")
    try:
        fraction = float(value)
    except ValueError:
        logger.debug("Ignoring malformed progress line: %r", line)
        return None
    return fraction, (note.strip() or None)


class CommandEngine:
    """Runs an external validator executable and reads its report from stdout.

    The child is invoked as ``<command> --profile <name> <document>``. Lines of
    the form ``PROGRESS <fraction> [note]`` are relayed as progress; all other
    stdout is parsed as one JSON `EngineReport` once the process exits.
    """

    def __init__(self, command: Optional[List[str]] = None):
        self.command = list(command) if command is not None else get_engine_command()

    def _check_available(self) -> None:
        if not self.command:
            raise EngineUnavailable("No validator configured; set VERIFICAR_ENGINE_CMD")
        if shutil.which(self.command[0]) is None:
            raise EngineUnavailable(f"Validator executable not found: {self.command[0]}")

    def run_validation(
        self,
        document: str,
        profile_name: str,
        on_progress: ProgressCallback,
        token: CancellationToken,
    ) -> ValidationResult:
        path = Path(document)
        if not path.is_file() or not os.access(path, os.R_OK):
            raise DocumentUnreadable(f"Document not readable: {document}")
        self._check_available()
        token.raise_if_cancelled()

        cmd = [*self.command, "--profile", profile_name, str(path)]
        logger.info("Starting validator: %s", " ".join(cmd))
        started = time.monotonic()
        output_lines: list[str] = []

        with tempfile.TemporaryFile(mode="w+", encoding="utf-8", errors="replace") as err:
            try:
                process = subprocess.Popen(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=err,
                    encoding="utf-8",
                    errors="replace",
                    bufsize=1,
                )
            except OSError as exc:
                raise EngineUnavailable(f"Could not start validator: {exc}") from exc

            unregister = token.on_cancel(process.kill)
            try:
                for line in iter(process.stdout.readline, ""):
                    if token.is_cancelled:
                        break
                    if line.startswith("PROGRESS "):
                        parsed = _parse_progress(line)
                        if parsed is not None:
                            on_progress(*parsed)
                    else:
                        output_lines.append(line)
                return_code = process.wait()
            except (OSError, ValueError) as exc:
                raise EngineUnavailable(f"Lost contact with validator: {exc}") from exc
            finally:
                unregister()
                if process.poll() is None:
                    process.kill()
                    process.wait()
                process.stdout.close()
            err.seek(0)
            stderr = err.read().strip()

        if token.is_cancelled:
            raise ValidationCancelled("Validation cancelled")
        if return_code == EXIT_DOCUMENT_UNREADABLE:
            raise DocumentUnreadable(stderr or f"Validator could not read {document}")
        if return_code == EXIT_PROFILE_UNKNOWN:
            raise ProfileUnknown(stderr or f"Unknown validation profile: {profile_name}")
        if return_code != 0:
            raise EngineUnavailable(f"Validator failed ({return_code}): {stderr}")

        try:
            report = EngineReport.model_validate(json.loads("".join(output_lines)))
        except (ValueError, ValidationError) as exc:
            raise EngineUnavailable(f"Validator produced an unreadable report: {exc}") from exc

        duration = report.duration if report.duration is not None else time.monotonic() - started
        return make_result(
            document=path.name,
            profile_name=report.profile_name or profile_name,
            duration=duration,
            assertions=report.assertions,
        )


DEMO_ASSERTIONS = [
    Assertion(id="a1f3c9e0", rule_id="7.1", status=AssertionStatus.PASSED, message="Document is tagged"),
    Assertion(
        id="b27d41aa",
        rule_id="7.1",
        status=AssertionStatus.FAILED,
        message="Missing alt text",
        page_number=3,
        context="Figure",
        content_path="/StructTreeRoot/Document/Figure[0]",
        wcag_criterion="1.1.1",
        wcag_principle="Perceivable",
        wcag_level="A",
        specification="PDF/UA-2 clause 8.2.5.26",
        remediation="Add an /Alt entry to the figure structure element",
    ),
    Assertion(id="c8e0572b", rule_id="7.2", status=AssertionStatus.PASSED, message="Natural language set"),
    Assertion(
        id="d4419b3c",
        rule_id="7.18.1",
        status=AssertionStatus.FAILED,
        message="Form field missing accessible name",
        page_number=1,
        context="Widget",
        wcag_criterion="4.1.2",
        wcag_principle="Robust",
        wcag_level="A",
    ),
    Assertion(
        id="e6a2f7d9",
        rule_id="7.5",
        status=AssertionStatus.UNKNOWN,
        message="Table header scope could not be determined",
        page_number=2,
        context="Table",
    ),
    Assertion(id="f0b9e815", rule_id="7.3", status=AssertionStatus.PASSED, message="Headings are nested"),
    Assertion(id="0a7c3d62", rule_id="7.4", status=AssertionStatus.PASSED, message="Title is displayed"),
    Assertion(id="1b8d4e73", rule_id="7.9", status=AssertionStatus.PASSED, message="Notes are tagged"),
    Assertion(id="2c9e5f84", rule_id="7.10", status=AssertionStatus.PASSED, message="Optional content is labelled"),
    Assertion(id="3daf6095", rule_id="7.11", status=AssertionStatus.PASSED, message="Embedded files are described"),
]


class DemoEngine:
    """Replays a canned assertion list with one progress tick per check."""

    def __init__(self, assertions: Optional[List[Assertion]] = None, step_delay: float = 0.05):
        self.assertions = list(DEMO_ASSERTIONS if assertions is None else assertions)
        self.step_delay = step_delay

    def run_validation(
        self,
        document: str,
        profile_name: str,
        on_progress: ProgressCallback,
        token: CancellationToken,
    ) -> ValidationResult:
        if profile_name not in KNOWN_PROFILES:
            raise ProfileUnknown(f"Unknown validation profile: {profile_name}")
        started = time.monotonic()
        total = len(self.assertions)
        for index, assertion in enumerate(self.assertions, start=1):
            if token.wait(self.step_delay):
                raise ValidationCancelled("Validation cancelled")
            on_progress(index / total, f"Checked rule {assertion.rule_id}")
        token.raise_if_cancelled()
        return make_result(
            document=Path(document).name,
            profile_name=profile_name,
            duration=time.monotonic() - started,
            assertions=self.assertions,
        )
