"""Command-line entry points for the review sentiment flow."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import Settings, get_settings
from .errors import InferenceError, ReviewSentimentError
from .flow import FlowState, ReviewSentimentFlow
from .presenter import ConsolePresenter, Presenter
from .sources import load_reviews
from .storage import TOKEN_KEY, KeyValueStore, mask_token

app = typer.Typer(
    help="Classify random reviews from a TSV file and log the results."
)
token_app = typer.Typer(help="Manage the optional reporting token.")
app.add_typer(token_app, name="token")

console = Console()


def _configure_logging(log_level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _build_flow(settings: Settings, presenter: Presenter) -> ReviewSentimentFlow:
    return ReviewSentimentFlow.from_settings(settings, presenter=presenter)


async def _run_analyses(flow: ReviewSentimentFlow, count: int) -> tuple[int, int]:
    """Initialize, analyze ``count`` reviews, then wait for pending reports."""
    successes = failures = 0
    try:
        await flow.initialize()
        if flow.state is FlowState.FAILED:
            return 0, count
        for _ in range(count):
            try:
                await flow.trigger_analysis()
            except InferenceError:
                failures += 1
            else:
                successes += 1
    finally:
        await flow.dispose()
    return successes, failures


@app.callback(invoke_without_command=True)
def run(
    ctx: typer.Context,
    count: int = typer.Option(
        1, "--count", "-n", help="Number of random reviews to analyze."
    ),
    reviews: Optional[str] = typer.Option(
        None, "--reviews", "-r", help="Path or URL of the TSV review file."
    ),
    model: Optional[str] = typer.Option(
        None, "--model", "-m", help="Hugging Face model id for text classification."
    ),
    report: bool = typer.Option(
        True, "--report/--no-report", help="Send each result to the reporting endpoint."
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level (defaults to LOG_LEVEL or INFO)."
    ),
):
    """
    Default command: analyze random reviews in the terminal.

    When a subcommand (e.g., serve) is invoked, this callback only sets up logging.
    """
    settings = get_settings()
    _configure_logging(log_level or settings.log_level)
    if ctx.invoked_subcommand:
        return

    if count < 1:
        raise typer.BadParameter("count must be >= 1.")

    updates = {}
    if reviews:
        updates["reviews_source"] = reviews
    if model:
        updates["model_id"] = model
    if not report:
        updates["reporting_url"] = None
    settings = settings.model_copy(update=updates)

    flow = _build_flow(settings, ConsolePresenter(console))
    try:
        successes, failures = asyncio.run(_run_analyses(flow, count))
    except ReviewSentimentError as exc:
        rprint(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    if flow.model_error:
        rprint(f"[red]Sentiment model unavailable: {flow.model_error}[/red]")
        raise typer.Exit(code=1)
    rprint(
        f"[cyan]Analyzed {successes} review(s), {failures} failed.[/cyan]"
    )
    if failures:
        raise typer.Exit(code=1)


@app.command("reviews")
def reviews_command(
    source: Optional[str] = typer.Argument(
        None, help="Path or URL of the TSV review file (defaults to REVIEWS_SOURCE)."
    ),
    show: int = typer.Option(5, "--show", "-s", help="How many reviews to print."),
):
    """Load the review source and summarize what would be analyzed."""
    resolved = source or get_settings().reviews_source
    batch = asyncio.run(load_reviews(resolved))
    if batch.from_fallback:
        rprint(
            f"[yellow]Loaded {len(batch.reviews)} sample reviews ({resolved} unavailable)[/yellow]"
        )
    else:
        rprint(f"[green]Loaded {len(batch.reviews)} reviews from {batch.origin}[/green]")

    if show > 0:
        table = Table("#", "Review")
        for idx, text in enumerate(batch.reviews[:show], start=1):
            table.add_row(str(idx), text)
        console.print(table)


@app.command("serve")
def serve_command(
    host: str = typer.Option("127.0.0.1", "--host", envvar="SENTIMENT_HOST"),
    port: int = typer.Option(8000, "--port", envvar="SENTIMENT_PORT"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
):
    """Serve the analysis page and API with uvicorn."""
    import uvicorn

    rprint(f"[cyan]Serving on http://{host}:{port}[/cyan]")
    uvicorn.run("review_sentiment.server:app", host=host, port=port, reload=reload)


def _store(path: Optional[Path]) -> KeyValueStore:
    return KeyValueStore(path or get_settings().store_path)


@token_app.command("set")
def token_set(
    value: str = typer.Argument(..., help="Token attached to reported log records."),
    store_path: Optional[Path] = typer.Option(None, "--store", help="Override the store file."),
):
    token = value.strip()
    if not token:
        raise typer.BadParameter("token must not be empty.")
    _store(store_path).set(TOKEN_KEY, token)
    rprint("[green]Token stored.[/green]")


@token_app.command("show")
def token_show(
    reveal: bool = typer.Option(False, "--reveal", help="Print the full token."),
    store_path: Optional[Path] = typer.Option(None, "--store", help="Override the store file."),
):
    token = _store(store_path).get(TOKEN_KEY)
    if token is None:
        rprint("[yellow]No token stored.[/yellow]")
        raise typer.Exit(code=1)
    rprint(token if reveal else mask_token(token))


@token_app.command("clear")
def token_clear(
    store_path: Optional[Path] = typer.Option(None, "--store", help="Override the store file."),
):
    removed = _store(store_path).delete(TOKEN_KEY)
    rprint("[green]Token cleared.[/green]" if removed else "[yellow]No token stored.[/yellow]")


def main():
    app()


if __name__ == "__main__":
    main()
