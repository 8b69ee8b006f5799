"""CLI entry point for yamltest."""

import asyncio
import logging
import os
import sys
from pathlib import Path

import typer

from yamltest.config import RunnerConfig
from yamltest.errors import ConfigurationError
from yamltest.models.test_result import RunResult, TestOutcome
from yamltest.orchestrator import TestOrchestrator
from yamltest.test_loader import parse_test_definitions

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False)


def configure_logging(debug: bool) -> None:
    """Send log records to stderr, at DEBUG level when debugging is on."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


def read_input(file: str) -> str:
    """Read YAML from a file path, or from stdin when the path is ``-``.

    Raises:
        FileNotFoundError: If the file does not exist

    """
    if file == "-":
        return sys.stdin.read()

    path = Path(file).resolve()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_text(encoding="utf-8")


def format_duration(duration_ms: int) -> str:
    """Render milliseconds as ``850ms`` or ``1.25s``."""
    if duration_ms < 1000:
        return f"{duration_ms}ms"
    return f"{duration_ms / 1000:.2f}s"


def format_outcome(outcome: TestOutcome) -> list[str]:
    """Render one outcome as report lines."""
    if outcome.skipped:
        return [f"  {typer.style('○', fg='yellow')} {outcome.name} (skipped)"]

    duration = format_duration(outcome.duration_ms)
    if outcome.passed:
        attempts = f" [{outcome.attempts} attempts]" if outcome.attempts > 1 else ""
        return [
            f"  {typer.style('✓', fg='green')} {outcome.name} {duration}{attempts}"
        ]

    lines = [
        f"  {typer.style('✗', fg='red')} {typer.style(outcome.name, bold=True)} "
        f"{duration}"
    ]
    for line in (outcome.error or "").splitlines():
        lines.append(f"      {typer.style(line, fg='red')}")
    return lines


def format_summary(result: RunResult) -> str:
    """Render the ``passed | failed | skipped | total`` summary line."""
    parts = []
    if result.passed:
        parts.append(typer.style(f"{result.passed} passed", fg="green"))
    if result.failed:
        parts.append(typer.style(f"{result.failed} failed", fg="red"))
    if result.skipped:
        parts.append(typer.style(f"{result.skipped} skipped", fg="yellow"))
    parts.append(f"{result.total} total")
    return "  " + " | ".join(parts)


@app.command()
def main(
    file: str = typer.Option(  # noqa: B008
        ..., "--file", "-f", help="YAML file to run, or - for stdin"
    ),
    json_output: bool = typer.Option(  # noqa: B008
        False, "--json", help="Print the run result as JSON"
    ),
    debug: bool = typer.Option(  # noqa: B008
        False, "--debug", help="Enable verbose debug logging (or DEBUG_MODE=true)"
    ),
) -> None:
    """Run declarative HTTP, command and Kubernetes tests from YAML."""
    configure_logging(debug or os.environ.get("DEBUG_MODE") == "true")

    try:
        content = read_input(file)
    except OSError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if not content.strip():
        typer.echo("Error: Empty input - no YAML content to run.", err=True)
        raise typer.Exit(code=1)

    try:
        definitions = parse_test_definitions(content)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    orchestrator = TestOrchestrator(config=RunnerConfig.from_env())
    result = asyncio.run(orchestrator.run_tests(definitions))

    if json_output:
        typer.echo(result.model_dump_json(by_alias=True, indent=2))
    else:
        typer.echo("")
        for outcome in result.results:
            for line in format_outcome(outcome):
                typer.echo(line)
        typer.echo("")
        typer.echo(format_summary(result))
        typer.echo("")

    if result.failed > 0:
        raise typer.Exit(code=1)


if __name__ == "__main__":  # pragma: no cover
    app()
