"""Helper utilities shared across CLI commands."""
from __future__ import annotations

import contextvars
import threading
from typing import IO, Any, Dict

import click

from ai_tdd.core.errors import TddError
from ai_tdd.core.utils.config import Settings
from ai_tdd.core.utils.logger import get_logger
from ai_tdd.engine.tdd import EventType, IterationController, StatusEvent
from ai_tdd.providers.llm import ProviderClient, ProviderConfig, RetryConfig
from ai_tdd.testing.local_tests import TestRunner

LOGGER = get_logger(__name__)

_OUTPUT_PREVIEW_CHARS = 2000

WATCH_CONTROLS_HELP = "Type p + Enter to pause, r to resume, q to quit."


def _build_context(settings: Settings) -> Dict[str, Any]:
    return {"settings": settings}


def get_provider_client(ctx: click.Context) -> ProviderClient:
    client = ctx.obj.get("provider_client")
    if client:
        return client
    settings: Settings = ctx.obj["settings"]
    if not settings.api_key:
        raise click.ClickException("No API key configured. Set AI_TDD_API_KEY or update config file.")

    client = ProviderClient(
        ProviderConfig(model=settings.model, temperature=settings.temperature, api_key=settings.api_key),
        timeout=settings.generation_timeout,
        max_tokens=settings.max_tokens,
        openai_base_url=settings.openai_base_url,
        anthropic_base_url=settings.anthropic_base_url,
        retry_config=RetryConfig(max_retries=1),
    )
    ctx.obj["provider_client"] = client
    return client


def get_test_runner(ctx: click.Context) -> TestRunner:
    runner = ctx.obj.get("test_runner")
    if runner:
        return runner
    settings: Settings = ctx.obj["settings"]
    settings.ensure_data_dir()
    runner = TestRunner(
        settings.workspace_root,
        settings.data_path,
        timeout=settings.test_timeout,
        node_path=settings.node_path,
        python_executable=settings.python_executable,
    )
    ctx.obj["test_runner"] = runner
    return runner


def _preview(text: str | None) -> str:
    text = (text or "").strip()
    if len(text) > _OUTPUT_PREVIEW_CHARS:
        return text[:_OUTPUT_PREVIEW_CHARS] + "\n... (truncated)"
    return text


def render_event(event: StatusEvent) -> None:
    """Echo a status event in a human-readable form."""
    payload = event.payload
    kind = event.type
    if kind is EventType.CODE_GENERATION_STARTED:
        click.echo(f"Iteration {payload['iteration']}/{payload['max_iterations']}: generating implementation...")
    elif kind is EventType.CODE_GENERATION_COMPLETED:
        lines = payload["code"].count("\n") + 1 if payload["code"] else 0
        click.echo(f"  wrote {lines} lines")
    elif kind is EventType.CODE_GENERATION_FAILED:
        click.echo(click.style(f"  generation failed: {payload['error']}", fg="red"), err=True)
    elif kind is EventType.TEST_STARTED:
        click.echo("  running tests...")
    elif kind is EventType.TEST_PASSED:
        click.echo(click.style("  tests passed", fg="green"))
    elif kind is EventType.TEST_FAILED:
        click.echo(click.style("  tests failed", fg="yellow"))
        details = _preview(payload.get("output")) or _preview(payload.get("error"))
        if details:
            click.echo(details)
    elif kind is EventType.PAUSE_TOGGLED:
        click.echo("Paused" if payload["paused"] else "Resumed")
    elif kind is EventType.CYCLE_ABORTED:
        click.echo(click.style(f"Cycle aborted: {payload['error']}", fg="red"), err=True)
    elif kind is EventType.SESSION_PASSED:
        click.echo(click.style(f"All tests passed after {payload['rounds']} iteration(s).", fg="green"))
    elif kind is EventType.SESSION_EXHAUSTED:
        click.echo(click.style(f"Tests still failing after {payload['rounds']} iteration(s).", fg="red"))
    elif kind is EventType.SESSION_STOPPED:
        click.echo(f"Session {event.session_id} stopped ({payload['iterations']} iterations in total).")


def _read_watch_controls(controller: IterationController, stream: IO[str]) -> None:
    for line in stream:
        command = line.strip().lower()
        try:
            if command in ("p", "pause"):
                controller.set_paused(True)
            elif command in ("r", "resume"):
                controller.set_paused(False)
            elif command in ("q", "quit"):
                controller.stop()
                return
            elif command:
                click.echo(WATCH_CONTROLS_HELP)
        except TddError as exc:
            LOGGER.error("Watch control %r failed: %s", command, exc)
    LOGGER.debug("Watch controls closed; use Ctrl+C to stop")


def start_watch_controls(controller: IterationController, stream: IO[str]) -> threading.Thread:
    """Read pause/resume/quit commands from ``stream`` on a daemon thread."""
    context = contextvars.copy_context()
    thread = threading.Thread(
        target=context.run,
        args=(_read_watch_controls, controller, stream),
        name="watch-controls",
        daemon=True,
    )
    thread.start()
    return thread


__all__ = ["WATCH_CONTROLS_HELP", "get_provider_client", "get_test_runner", "render_event", "start_watch_controls"]
