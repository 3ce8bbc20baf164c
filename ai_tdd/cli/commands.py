"""Command line interface for the TDD loop."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from ai_tdd.core.errors import TddError
from ai_tdd.core.utils.config import Settings
from ai_tdd.core.utils.constants import HISTORY_FILENAME
from ai_tdd.core.utils.logger import configure_logging, get_logger
from ai_tdd.engine.tdd import CYCLE_ERRORS, EventBus, IterationController
from ai_tdd.providers.llm import ProviderConfig
from ai_tdd.session.context_service import ConversationContext
from ai_tdd.session.models import new_session_id
from ai_tdd.session.requirements import append_requirement
from ai_tdd.testing.frameworks import profile_for
from ai_tdd.testing.history import RunHistoryStore
from ai_tdd.testing.local_tests import verify_implementation_file

from .utils import (
    WATCH_CONTROLS_HELP,
    _build_context,
    get_provider_client,
    get_test_runner,
    render_event,
    start_watch_controls,
)

LOGGER = get_logger(__name__)

_FILE = click.Path(path_type=Path, dir_okay=False)


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to config file.")
@click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Generate an implementation from a test file with an LLM until the tests pass."""
    from ai_tdd.cli import load_settings as _load_settings

    try:
        settings = _load_settings(config_path)
    except ValueError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc
    if verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings.log_level, structured=settings.structured_logging)
    ctx.obj = _build_context(settings)


@cli.command()
@click.argument("test_file", type=_FILE)
@click.argument("implementation_file", type=_FILE)
@click.option("--max-iterations", type=click.IntRange(min=1), help="Generation rounds per trigger.")
@click.option("--feedback", help="Extra instructions appended to the system prompt.")
@click.option("--watch", is_flag=True, help="Keep running and start a cycle whenever the test file is saved.")
@click.option("--model", help="Override the configured model.")
@click.pass_context
def run(
    ctx: click.Context,
    test_file: Path,
    implementation_file: Path,
    max_iterations: Optional[int],
    feedback: Optional[str],
    watch: bool,
    model: Optional[str],
) -> None:
    """Generate IMPLEMENTATION_FILE until TEST_FILE passes."""
    settings: Settings = ctx.obj["settings"]
    provider = get_provider_client(ctx)
    if model:
        provider.configure(ProviderConfig(model=model, temperature=settings.temperature, api_key=settings.api_key or ""))

    events = EventBus()
    events.subscribe(render_event)
    controller = IterationController(
        provider,
        get_test_runner(ctx),
        data_dir=settings.data_path,
        max_iterations=max_iterations or settings.max_iterations,
        retention=settings.retention_window,
        instructions=feedback,
        events=events,
        watch=watch,
        watch_interval=settings.watch_interval,
    )

    passed = False
    try:
        session = controller.start(test_file, implementation_file)
        click.echo(f"Session {session.id}: {session.test_file.name} -> {session.implementation_file.name}")
        try:
            report = controller.run_cycle()
        except CYCLE_ERRORS:
            if not watch:
                raise
            report = None
        passed = report is not None and report.passed
        if watch:
            click.echo(f"Watching {session.test_file} for changes (Ctrl+C to stop)...")
            click.echo(WATCH_CONTROLS_HELP)
            start_watch_controls(controller, click.get_text_stream("stdin"))
            controller.serve()
    except KeyboardInterrupt:
        click.echo("\nInterrupted.")
    except TddError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        try:
            controller.stop()
        except TddError as exc:
            LOGGER.error("Failed to stop session cleanly: %s", exc)

    if not watch and not passed:
        ctx.exit(1)


@cli.command()
@click.option("--limit", type=click.IntRange(min=0), default=10, show_default=True, help="Results to show.")
@click.pass_context
def history(ctx: click.Context, limit: int) -> None:
    """Show the recorded test-run history."""
    settings: Settings = ctx.obj["settings"]
    try:
        record = RunHistoryStore(settings.data_path / HISTORY_FILENAME).load()
    except TddError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"Total runs: {record.run_count}")
    if not record.results or limit == 0:
        return
    shown = record.results[-limit:]
    offset = record.run_count - len(shown)
    for index, result in enumerate(shown, start=offset + 1):
        status = "passed" if result.success else "failed"
        summary = (result.error or result.output or "").strip().splitlines()
        suffix = f" - {summary[0]}" if summary and not result.success else ""
        click.echo(f"  #{index}: {status}{suffix}")


@cli.command()
@click.argument("test_file", type=click.Path(path_type=Path, dir_okay=False, exists=True))
@click.argument("text")
def require(test_file: Path, text: str) -> None:
    """Append a REQUIREMENT marker carrying TEXT to TEST_FILE."""
    try:
        profile = profile_for(test_file)
        line = append_requirement(test_file, text, profile)
    except (TddError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Added to {test_file}: {line}")


@cli.command(name="show-prompt")
@click.argument("test_file", type=click.Path(path_type=Path, dir_okay=False, exists=True))
@click.argument("implementation_file", type=_FILE)
@click.option("--feedback", help="Extra instructions appended to the system prompt.")
@click.pass_context
def show_prompt(ctx: click.Context, test_file: Path, implementation_file: Path, feedback: Optional[str]) -> None:
    """Print the prompt a fresh session would send for TEST_FILE."""
    settings: Settings = ctx.obj["settings"]
    try:
        profile = profile_for(test_file)
        verify_implementation_file(implementation_file)
    except TddError as exc:
        raise click.ClickException(str(exc)) from exc

    context = ConversationContext(
        new_session_id(),
        profile,
        retention=settings.retention_window,
        instructions=feedback,
    )
    context.record_test_file(test_file.read_text(encoding="utf-8"))
    for message in context.build_prompt_view():
        click.echo(click.style(f"--- {message.role} ({message.kind.value}) ---", bold=True))
        click.echo(message.content)


def main() -> None:
    cli(prog_name="ai-tdd")


if __name__ == "__main__":  # pragma: no cover
    main()
