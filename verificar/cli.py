from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

import typer

from verificar.core import storage
from verificar.core.engine import KNOWN_PROFILES, CommandEngine, DemoEngine, ValidationEngine
from verificar.core.models import JobState, OrchestratorSnapshot, ValidationResult
from verificar.core.utils import get_default_profile
from verificar.core.validation import run_validation_sync
from verificar.core.violations import ViolationList
from verificar.reporting import REPORT_FORMATS, render_report, suggested_filename

app = typer.Typer(help="Verificar CLI")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    """Validate PDF documents and export reports."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _check_format(fmt: str) -> None:
    if fmt not in REPORT_FORMATS:
        typer.echo(f"Unknown format '{fmt}'. Use one of: {', '.join(REPORT_FORMATS)}", err=True)
        raise typer.Exit(code=2)


def _progress_printer() -> Callable[[OrchestratorSnapshot], None]:
    last = {"percent": -1}

    def show(snapshot: OrchestratorSnapshot) -> None:
        if not snapshot.busy:
            return
        percent = int(snapshot.progress * 100)
        if percent != last["percent"]:
            last["percent"] = percent
            note = f" {snapshot.note}" if snapshot.note else ""
            typer.echo(f"[{percent:3d}%]{note}", err=True)

    return show


def _emit(data: bytes, output: Optional[str]) -> None:
    if output:
        Path(output).write_bytes(data)
        typer.echo(f"Report saved to: {output}")
    else:
        typer.echo(data.decode("utf-8"))


def _run(
    engine: ValidationEngine,
    document: str,
    profile: Optional[str],
    save: bool,
) -> tuple[str, ValidationResult]:
    profile = profile or get_default_profile()
    snapshot = run_validation_sync(document, profile, engine, on_snapshot=_progress_printer())
    run_id = storage.create_validation_id()

    if snapshot.error is not None:
        if save:
            storage.store_failure(run_id, document, profile, snapshot.error)
        typer.echo(f"Validation failed: {snapshot.error}", err=True)
        raise typer.Exit(code=1)
    if snapshot.state != JobState.SUCCEEDED or snapshot.result is None:
        typer.echo("Validation cancelled", err=True)
        raise typer.Exit(code=1)

    if save:
        storage.store_result(run_id, snapshot.result)
        typer.echo(f"Run saved: {run_id}", err=True)
    return run_id, snapshot.result


@app.command()
def validate(
    document: str = typer.Argument(..., help="Document to validate"),
    profile: Optional[str] = typer.Option(None, "--profile", help="Validation profile (default PDF/UA-2)"),
    format: str = typer.Option("text", "--format", help="Output format: text, json, or html"),
    output: Optional[str] = typer.Option(None, "--output", help="Output file path"),
    title: Optional[str] = typer.Option(None, "--title", help="Document title shown in the report"),
    save: bool = typer.Option(True, "--save/--no-save", help="Store the run under runs/"),
):
    """Validate a document with the external validator and print a report."""
    _check_format(format)
    _, result = _run(CommandEngine(), document, profile, save)
    _emit(render_report(format, result.summary, result.violations, title or result.document), output)


@app.command()
def demo(
    document: str = typer.Option("demo.pdf", "--document", help="Document name shown in the reports"),
    profile: Optional[str] = typer.Option(None, "--profile", help="Validation profile"),
    output_dir: Optional[str] = typer.Option(None, "--output-dir", help="Write all report formats here"),
    save: bool = typer.Option(False, "--save/--no-save", help="Store the run under runs/"),
):
    """Run the canned demo engine, no external validator needed."""
    _, result = _run(DemoEngine(), document, profile, save)
    typer.echo(ViolationList(result.violations).summary_text())

    if not output_dir:
        _emit(render_report("text", result.summary, result.violations, result.document), None)
        return

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    for fmt in REPORT_FORMATS:
        path = out / suggested_filename(result.document, fmt)
        path.write_bytes(render_report(fmt, result.summary, result.violations, result.document))
        typer.echo(f"{fmt.upper()} report: {path}")


@app.command()
def runs():
    """List stored validation runs."""
    items = storage.list_validation_runs()
    if not items:
        typer.echo("No runs stored.")
        return
    for item in items:
        detail = item.get("error") or f"{item.get('violations', 0)} violations"
        typer.echo(f"{item['run_id']}  {item.get('status', '?'):8}  {item.get('document', '')}  {detail}")


@app.command()
def export(
    run_id: str = typer.Argument(..., help="Stored run id"),
    format: str = typer.Option("text", "--format", help="Output format: text, json, or html"),
    output: Optional[str] = typer.Option(None, "--output", help="Output file path"),
    title: Optional[str] = typer.Option(None, "--title", help="Document title shown in the report"),
):
    """Re-render the report of a stored run."""
    _check_format(format)
    result = storage.load_result(run_id)
    if result is None:
        typer.echo(f"No stored result for run {run_id}", err=True)
        raise typer.Exit(code=1)
    _emit(render_report(format, result.summary, result.violations, title or result.document), output)


@app.command()
def profiles():
    """List the validation profiles the engines understand."""
    default = get_default_profile()
    for name in KNOWN_PROFILES:
        typer.echo(f"{name} (default)" if name == default else name)


if __name__ == "__main__":
    app()
