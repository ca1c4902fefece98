"""
Command-line interface for feed-mix.

Provides commands to run the API server and to query the feed engine
directly from a terminal.

Usage:
    feed-mix serve              # Run the API server
    feed-mix mix --limit 20     # Print one page of the mix feed
    feed-mix source hackernews  # Print one source's ranked listing
    feed-mix comments hackernews 8863
    feed-mix status             # Print upstream service status
    feed-mix health             # Check that every source answers
"""

import asyncio
import os
import sys

import click

from src.config.settings import get_settings
from src.feed.errors import FeedError
from src.feed.merge import InterleavePolicy
from src.observability.logging import setup_logging
from src.observability.metrics import get_metrics

STATUS_COLORS = {"operational": "green", "degraded": "yellow", "down": "red"}


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Feed Mix - ranked developer news from several sources."""
    if debug:
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()

    # Initialize tracing if enabled
    settings = get_settings()
    if settings.tracing_enabled:
        from src.observability.tracing import setup_tracing

        setup_tracing(
            service_name=settings.otel_service_name,
            otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        )


def _run(coro) -> None:
    """Run a query coroutine, turning engine errors into a clean exit."""
    try:
        asyncio.run(coro)
    except FeedError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


def _service(mock: bool):
    from src.feed.service import FeedService

    return FeedService.from_settings(use_mock=mock)


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--mock", is_flag=True, help="Serve synthetic data instead of upstream APIs")
@click.option("--metrics/--no-metrics", default=None, help="Enable metrics server")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(
    host: str | None,
    port: int | None,
    reload: bool,
    mock: bool,
    metrics: bool | None,
    metrics_port: int | None,
) -> None:
    """Start the feed API server."""
    import uvicorn

    if mock:
        # The app factory reads settings, so the flag travels via the environment
        os.environ["USE_MOCK_SOURCES"] = "true"
        get_settings.cache_clear()

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    enable_metrics = settings.metrics_enabled if metrics is None else metrics
    if enable_metrics:
        get_metrics().start_server(port=metrics_port)
        click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@main.command()
@click.option("--limit", default=None, type=int, help="Page size")
@click.option("--cursor", default=None, help="Cursor from a previous page")
@click.option(
    "--policy",
    type=click.Choice([p.value for p in InterleavePolicy]),
    default=InterleavePolicy.HIGHLIGHT_BANDED.value,
    help="Interleave policy",
)
@click.option("--mock", is_flag=True, help="Use mock adapters")
@click.option("--json", "as_json", is_flag=True, help="Print the raw JSON response")
def mix(limit: int | None, cursor: str | None, policy: str, mock: bool, as_json: bool) -> None:
    """Print one page of the merged feed."""

    async def run():
        service = _service(mock)
        page = await service.get_feed(
            page_size=limit, cursor=cursor, policy=InterleavePolicy(policy)
        )

        if as_json:
            click.echo(page.model_dump_json(by_alias=True, indent=2))
            return

        for position, entry in enumerate(page.items, start=1):
            if entry.kind == "highlight":
                click.echo(click.style(f"{position:3}. * {entry.title}", fg="cyan"))
                if entry.summary:
                    click.echo(f"       {entry.summary}")
            else:
                click.echo(
                    f"{position:3}. [{entry.source_kind.value}] {entry.title} "
                    f"({entry.points} pts, {entry.comment_count} comments)"
                )

        click.echo("-" * 40)
        for status in page.sources:
            if status.ok:
                click.echo(click.style(f"  ✓ {status.name}: {status.item_count} items", fg="green"))
            else:
                click.echo(click.style(f"  ✗ {status.name}: {status.error}", fg="red"))
        if page.next_cursor:
            click.echo(f"Next cursor: {page.next_cursor}")
        else:
            click.echo("End of feed")

    _run(run())


@main.command()
@click.argument("name")
@click.option("--mock", is_flag=True, help="Use mock adapters")
@click.option("--limit", default=20, help="Items to print")
def source(name: str, mock: bool, limit: int) -> None:
    """Print the ranked listing of one source."""

    async def run():
        items = await _service(mock).get_source(name)
        for position, item in enumerate(items[:limit], start=1):
            click.echo(f"{position:3}. {item.title} ({item.points} pts, by {item.author})")
            if item.external_url:
                click.echo(f"       {item.external_url}")
        click.echo(f"\n{len(items)} items")

    _run(run())


@main.command()
@click.argument("name")
@click.argument("post_ref")
def comments(name: str, post_ref: str) -> None:
    """Print the comment tree of a post (POST_REF: story id or owner/slug)."""

    def show(nodes, depth: int = 0) -> int:
        count = 0
        for node in nodes:
            first_line = node.body.strip().splitlines()[0] if node.body.strip() else ""
            click.echo(f"{'  ' * depth}- {node.author_handle}: {first_line[:100]}")
            count += 1 + show(node.children, depth + 1)
        return count

    async def run():
        tree = await _service(False).get_comments(name, post_ref)
        total = show(tree)
        click.echo(f"\n{total} comments")

    _run(run())


@main.command()
def status() -> None:
    """Print the status of monitored upstream services."""
    from src.monitoring.service import ServiceStatusMonitor

    async def run():
        report = await ServiceStatusMonitor().refresh()

        click.echo("\nService Status:")
        click.echo("-" * 40)
        for service in report.services:
            color = STATUS_COLORS[service.status.value]
            click.echo(click.style(f"  {service.name}: {service.status.value}", fg=color))
        click.echo("-" * 40)
        overall = report.overall.value
        click.echo(click.style(f"Overall: {overall}", fg=STATUS_COLORS[overall]))

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check that every configured source answers."""
    from src.ingestion.hackernews_adapter import HackerNewsAdapter
    from src.ingestion.tabnews_adapter import TabNewsAdapter

    async def check():
        adapters = [TabNewsAdapter(), HackerNewsAdapter()]
        results = await asyncio.gather(*(adapter.health_check() for adapter in adapters))

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)
        for adapter, healthy in zip(adapters, results):
            icon = "✓" if healthy else "✗"
            color = "green" if healthy else "red"
            click.echo(click.style(f"  {icon} {adapter.name}: {healthy}", fg=color))
        click.echo("-" * 40)

        if all(results):
            click.echo(click.style("All sources healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some sources unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
