"""
Command-line interface for batch OCR.
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, MofNCompleteColumn
from rich.panel import Panel
from rich.markup import escape
from rich.text import Text

from batch_ocr import __version__
from batch_ocr.batch.models import ItemStatus
from batch_ocr.batch.sinks import ResultSink

console = Console()


def _build_pool(keys: tuple):
    from batch_ocr.config import get_settings
    from batch_ocr.credentials import CredentialPool

    pool = CredentialPool(list(get_settings().api_keys) + list(keys))
    if pool.is_empty():
        console.print("[red]✗[/red] No API keys configured. Set API_KEYS or pass --key.")
        sys.exit(1)
    return pool


class ProgressSink(ResultSink):
    """Shows batch progress on a rich Progress bar."""

    def __init__(self, progress: Progress, task_id):
        self.progress = progress
        self.task_id = task_id

    def on_batch_started(self, run):
        self.progress.update(self.task_id, total=run.total, description="Processing...")

    def on_item_status_changed(self, run, item, outcome):
        if outcome.status == ItemStatus.IN_PROGRESS:
            self.progress.update(self.task_id, description=f"Processing {item.label}...")
        elif outcome.status == ItemStatus.SUCCEEDED:
            self.progress.advance(self.task_id)
        elif outcome.status == ItemStatus.FAILED:
            self.progress.console.print(f"[red]✗[/red] {item.label} ({escape(item.name)}): {escape(outcome.reason)}")
            self.progress.advance(self.task_id)

    def on_retrying(self, run, item, attempt):
        self.progress.console.print(
            f"[yellow]![/yellow] Rate limited, switching to the next key (attempt {attempt})..."
        )

    def on_batch_complete(self, run):
        self.progress.update(self.task_id, description="Processing complete ✓")


@click.group()
@click.version_option(version=__version__)
def cli():
    """Batch OCR - extract text from images, rotating API keys on rate limits."""
    pass


@cli.command()
@click.argument(
    "images",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False)
)
@click.option(
    "--key", "-k",
    multiple=True,
    help="API key, used after the configured keys (can be specified multiple times)"
)
@click.option(
    "--backend", "-b",
    type=click.Choice(["gemini", "vision"]),
    default=None,
    help="OCR backend (default: OCR_BACKEND setting)"
)
@click.option(
    "--model", "-m",
    default=None,
    help="Gemini model name"
)
@click.option(
    "--output", "-o",
    type=click.Path(),
    help="Output file path (default: stdout)"
)
@click.option(
    "--format", "-f",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format"
)
def process(
    images: tuple,
    key: tuple,
    backend: Optional[str],
    model: Optional[str],
    output: Optional[str],
    format: str
):
    """Extract text from IMAGES, one at a time, in the order given."""
    from batch_ocr.batch import BatchProcessor, CompositeSink, ImageItem, LoggingSink
    from batch_ocr.config import get_settings
    from batch_ocr.errors import OCRError
    from batch_ocr.observability.logging import setup_logging
    from batch_ocr.remote import GeminiClient, create_client

    setup_logging(log_format="console", log_level="WARNING")
    settings = get_settings()

    pool = _build_pool(key)

    paths = [Path(p) for p in images]
    if len(paths) > settings.max_batch_size:
        console.print(
            f"[yellow]![/yellow] At most {settings.max_batch_size} images per batch; "
            f"ignoring the last {len(paths) - settings.max_batch_size}"
        )
        paths = paths[:settings.max_batch_size]

    items = []
    for position, path in enumerate(paths):
        try:
            items.append(ImageItem.from_path(path, position))
        except OCRError as e:
            console.print(f"[red]✗[/red] {path}: {e.message}")
            sys.exit(1)

    backend = backend or settings.ocr_backend
    client = GeminiClient(model=model) if backend == "gemini" else create_client(backend)

    with client, Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console
    ) as progress:
        task = progress.add_task("Starting...", total=len(items))
        processor = BatchProcessor(pool, client)
        run = processor.process(
            items,
            sink=CompositeSink([ProgressSink(progress, task), LoggingSink()])
        )

    if format == "json":
        content = json.dumps(run.to_dict(), indent=2, ensure_ascii=False)
    else:
        content = run.combined_text()

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(content)
        console.print(f"[green]✓[/green] Output saved to {output}")
    elif format == "json":
        click.echo(content)
    else:
        for item in run.items:
            outcome = run.outcome(item)
            style = "green" if outcome.text is not None else "red"
            console.print(Panel(
                Text(outcome.display_text),
                title=f"{item.label} - {item.name}",
                border_style=style,
                expand=False
            ))

    console.print()
    table = Table(title="Batch Results", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Images", str(run.total))
    table.add_row("Succeeded", str(run.succeeded))
    table.add_row("Failed", str(run.failed))
    table.add_row("Active keys", str(len(pool)))
    console.print(table)


@cli.command()
@click.option(
    "--key", "-k",
    multiple=True,
    help="API key, used after the configured keys"
)
def models(key: tuple):
    """List Gemini models that can extract text."""
    from batch_ocr.errors import RemoteOcrError
    from batch_ocr.observability.logging import setup_logging
    from batch_ocr.remote import GeminiClient

    setup_logging(log_format="console", log_level="WARNING")
    pool = _build_pool(key)

    try:
        with GeminiClient() as client:
            available = client.list_models(pool.current())
    except RemoteOcrError as e:
        console.print(f"[red]✗[/red] Failed to list models: {e.message}")
        sys.exit(1)

    table = Table(title="Models")
    table.add_column("Name", style="cyan")
    table.add_column("Display name", style="green")
    for m in available:
        table.add_row(m.name, m.display_name)
    console.print(table)


@cli.command()
@click.option(
    "--host", "-h",
    default="0.0.0.0",
    help="Host to bind to"
)
@click.option(
    "--port", "-p",
    default=8000,
    type=int,
    help="Port to bind to"
)
@click.option(
    "--reload",
    is_flag=True,
    help="Enable auto-reload for development"
)
def serve(host: str, port: int, reload: bool):
    """Start the batch OCR API server."""
    import uvicorn

    console.print(Panel(
        f"Starting Batch OCR API\n"
        f"[cyan]URL:[/cyan] http://{host}:{port}\n"
        f"[cyan]Docs:[/cyan] http://{host}:{port}/docs",
        title="🚀 Server Starting"
    ))

    uvicorn.run(
        "batch_ocr.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    cli()
