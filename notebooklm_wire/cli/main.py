"""CLI entry point.

Provides commands for:
- decode: Decode a captured chat stream body offline
- chat: Ask a notebook a question and stream the answer
- artifacts: List the artifacts of a notebook
- video-url: Resolve (and optionally download) a notebook's video overview
- infographic: Fetch an infographic image URL or file
- quota: Inspect and reset client-side quota usage
"""

import asyncio
import json
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from notebooklm_wire import __version__
from notebooklm_wire.entities.models import EntityKind, EntityState
from notebooklm_wire.exceptions import NotebookLMError
from notebooklm_wire.logging_config import configure_logging
from notebooklm_wire.quota.governor import QuotaGovernor
from notebooklm_wire.settings import get_settings
from notebooklm_wire.wire.chat import ChatEvent, ChatStream

app = typer.Typer(
    name="notebooklm-wire",
    help="NotebookLM batchexecute client: chat streams, artifacts, media and quotas",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

READ_CHUNK_SIZE = 8192
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@app.callback()
def main(
    log_level: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    ] = None,
) -> None:
    """Configure logging before any command runs."""
    level = log_level.upper() if log_level else None
    if level is not None and level not in LOG_LEVELS:
        raise typer.BadParameter(f"must be one of {', '.join(LOG_LEVELS)}", param_hint="--log-level")
    configure_logging(level)


def _fail(error: Exception) -> NoReturn:
    console.print(f"[red]❌ {error}[/red]")
    correlation_id = getattr(error, "correlation_id", None)
    if correlation_id:
        console.print(f"[dim]correlation_id={correlation_id}[/dim]")
    raise typer.Exit(code=1)


# =============================================================================
# decode
# =============================================================================


@app.command()
def decode(
    path: Annotated[Path, typer.Argument(help="Captured response body", exists=True, dir_okay=False)],
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print one JSON object per event"),
    ] = False,
    chunk_size: Annotated[
        int,
        typer.Option("--chunk-size", "-c", help="Bytes fed to the decoder per read", min=1),
    ] = READ_CHUNK_SIZE,
) -> None:
    """Decode a captured GenerateFreeFormStreamed body into chat events."""
    stream = ChatStream()
    events: list[ChatEvent] = []
    with path.open("rb") as fh:
        while chunk := fh.read(chunk_size):
            events.extend(stream.feed(chunk))
    events.extend(stream.finish())

    if as_json:
        for event in events:
            typer.echo(json.dumps(event.to_dict()))
    else:
        table = Table(title=f"Chat events ({len(events)})", show_header=True)
        table.add_column("#", justify="right")
        table.add_column("Bytes", justify="right")
        table.add_column("Reasoning", style="dim")
        table.add_column("Answer")
        table.add_column("Citations")
        for event in events:
            answer = event.answer_text
            if event.is_error:
                answer = f"[red]error {event.error_code}[/red]"
            table.add_row(
                str(event.chunk_number),
                str(event.byte_count),
                " / ".join(event.reasoning_segments)[:40],
                answer[:60],
                ", ".join(str(c) for c in event.citations),
            )
        console.print(table)

    if stream.errors:
        console.print(f"[yellow]{len(stream.errors)} frame(s) could not be decoded[/yellow]")
    if stream.partial_frames:
        console.print(f"[dim]{stream.partial_frames} partial frame(s) skipped[/dim]")


# =============================================================================
# chat
# =============================================================================


@app.command()
def chat(
    notebook_id: Annotated[str, typer.Argument(help="Notebook ID")],
    prompt: Annotated[str, typer.Argument(help="Question to ask")],
    source: Annotated[
        Optional[list[str]],  # noqa: UP007
        typer.Option("--source", "-s", help="Restrict the answer to this source (repeatable)"),
    ] = None,
    conversation_id: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--conversation", help="Continue an existing conversation"),
    ] = None,
) -> None:
    """Ask a notebook a question and stream the answer."""
    asyncio.run(_chat(notebook_id, prompt, tuple(source or ()), conversation_id))


async def _chat(
    notebook_id: str,
    prompt: str,
    source_ids: tuple[str, ...],
    conversation_id: str | None,
) -> None:
    from notebooklm_wire.client import NotebookLMClient

    final: ChatEvent | None = None
    try:
        async with NotebookLMClient() as client:
            with console.status("[bold green]Thinking..."):
                async for event in client.chat.stream(notebook_id, prompt, source_ids, conversation_id):
                    if event.is_error:
                        console.print(f"[red]Chat returned error code {event.error_code}[/red]")
                        raise typer.Exit(code=1)
                    final = event
    except NotebookLMError as e:
        _fail(e)

    if final is None:
        console.print("[yellow]No answer received.[/yellow]")
        return

    if final.reasoning_segments:
        console.print(f"[dim]{' → '.join(final.reasoning_segments)}[/dim]")
    console.print(Panel(final.answer_text or final.raw_text, title="Answer", border_style="green"))
    if final.citations:
        console.print(f"[dim]Citations: {', '.join(str(c) for c in final.citations)}[/dim]")
    if final.conversation_id:
        console.print(f"[dim]conversation_id={final.conversation_id}[/dim]")


# =============================================================================
# artifacts
# =============================================================================


STATE_COLORS = {
    EntityState.READY: "green",
    EntityState.CREATING: "yellow",
    EntityState.FAILED: "red",
    EntityState.UNKNOWN: "dim",
}


@app.command()
def artifacts(
    notebook_id: Annotated[str, typer.Argument(help="Notebook ID")],
    kind: Annotated[
        Optional[EntityKind],  # noqa: UP007
        typer.Option("--kind", "-k", help="Filter by artifact kind"),
    ] = None,
    state: Annotated[
        Optional[EntityState],  # noqa: UP007
        typer.Option("--state", help="Filter by generation state"),
    ] = None,
) -> None:
    """List the artifacts of a notebook."""
    asyncio.run(_list_artifacts(notebook_id, kind, state))


async def _list_artifacts(
    notebook_id: str,
    kind: EntityKind | None,
    state: EntityState | None,
) -> None:
    from notebooklm_wire.client import NotebookLMClient

    try:
        async with NotebookLMClient() as client:
            items = await client.artifacts.list(notebook_id, kind=kind, state=state)
    except NotebookLMError as e:
        _fail(e)

    if not items:
        console.print("[dim]No artifacts found.[/dim]")
        return

    table = Table(title=f"Artifacts ({len(items)})", show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Title", max_width=40)
    table.add_column("Kind")
    table.add_column("State")
    table.add_column("Sources", justify="right")
    for item in items:
        color = STATE_COLORS[item.state]
        table.add_row(
            item.id,
            item.title or "-",
            item.kind.value,
            f"[{color}]{item.state.value}[/{color}]",
            str(len(item.source_ids)),
        )
    console.print(table)


# =============================================================================
# media
# =============================================================================


@app.command(name="video-url")
def video_url(
    notebook_id: Annotated[str, typer.Argument(help="Notebook ID")],
    output: Annotated[
        Optional[Path],  # noqa: UP007
        typer.Option("--output", "-o", help="Download the video to this file"),
    ] = None,
) -> None:
    """Resolve the signed URL of a notebook's video overview."""
    asyncio.run(_video_url(notebook_id, output))


async def _video_url(notebook_id: str, output: Path | None) -> None:
    from notebooklm_wire.client import NotebookLMClient

    try:
        async with NotebookLMClient() as client:
            if output is not None:
                target = await client.artifacts.download_video(notebook_id, output)
                console.print(f"[green]✅ Saved video to {target}[/green]")
                return
            url = await client.artifacts.get_video_url(notebook_id)
    except NotebookLMError as e:
        _fail(e)

    typer.echo(url)


@app.command()
def infographic(
    artifact_id: Annotated[str, typer.Argument(help="Infographic artifact ID")],
    notebook_id: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--notebook", "-n", help="Notebook ID (enables the list fallback)"),
    ] = None,
    output: Annotated[
        Optional[Path],  # noqa: UP007
        typer.Option("--output", "-o", help="Download the image to this file"),
    ] = None,
) -> None:
    """Fetch the image URL of an infographic artifact."""
    asyncio.run(_infographic(artifact_id, notebook_id, output))


async def _infographic(artifact_id: str, notebook_id: str | None, output: Path | None) -> None:
    from notebooklm_wire.client import NotebookLMClient

    try:
        async with NotebookLMClient() as client:
            image = await client.artifacts.fetch_infographic(
                artifact_id, notebook_id, download=output is not None
            )
    except NotebookLMError as e:
        _fail(e)

    typer.echo(image.image_url)
    if image.width and image.height:
        console.print(f"[dim]{image.width}x{image.height}[/dim]")
    if output is not None and image.image_data is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(image.image_data)
        console.print(f"[green]✅ Saved image to {output}[/green]")


# =============================================================================
# quota
# =============================================================================

quota_app = typer.Typer(help="Inspect client-side quota usage")
app.add_typer(quota_app, name="quota")


def _governor() -> QuotaGovernor:
    settings = get_settings()
    return QuotaGovernor(
        enabled=settings.quota_enabled,
        plan=settings.quota_plan,
        state_path=settings.quota_state_path,
    )


@quota_app.command("show")
def quota_show() -> None:
    """Show plan limits and current usage."""
    governor = _governor()
    usage = governor.get_usage()
    limits = governor.limits

    status = "[green]enabled[/green]" if usage.enabled else "[dim]disabled[/dim]"
    console.print(f"Plan: [bold]{usage.plan.value}[/bold] ({status})")

    table = Table(title="Quota", show_header=True)
    table.add_column("Resource", style="cyan")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Remaining", justify="right")
    for resource, limit_field in (
        ("notebooks", "notebooks"),
        ("chats", "chats_per_day"),
        ("audio_overviews", "audio_overviews_per_day"),
        ("video_overviews", "video_overviews_per_day"),
        ("reports", "reports_per_day"),
        ("flashcards", "flashcards_per_day"),
        ("quizzes", "quizzes_per_day"),
        ("deep_research", "deep_research_per_month"),
    ):
        window = usage.windows.get(resource)
        remaining = governor.get_remaining(resource)
        table.add_row(
            resource,
            str(window.count if window else 0),
            str(getattr(limits, limit_field)),
            "-" if remaining is None else str(remaining),
        )
    console.print(table)

    if usage.sources:
        console.print(f"[dim]Sources tracked for {len(usage.sources)} notebook(s)[/dim]")


@quota_app.command("reset")
def quota_reset() -> None:
    """Zero all usage counters."""
    governor = _governor()
    governor.reset_usage()
    console.print("[green]✅ Quota usage reset[/green]")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(
        Panel(
            f"[bold]notebooklm-wire[/bold] v{__version__}",
            title="Version",
            border_style="blue",
        )
    )


# Entry point for: python -m notebooklm_wire.cli.main
if __name__ == "__main__":
    app()
