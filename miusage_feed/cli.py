"""Command-line entry points: refresh trigger and web server.

    miusage-feed refresh
    miusage-feed serve [--host HOST] [--port PORT]

``refresh`` marks the cache for refresh, then fetches immediately so the
operator sees the result. State is shared with the web app through the file
cache store. ``serve`` runs the web app under uvicorn.
"""

import logging

import typer
import uvicorn

from miusage_feed.bootstrap import build_coordinator, configure_logging
from miusage_feed.errors import FetchError
from miusage_feed.presentation import human_time_diff, item_count

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="miusage-feed",
    help="Manage the cached miusage API data.",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main() -> None:
    """Manage the cached miusage API data."""
    configure_logging()


@app.command("refresh")
def refresh() -> None:
    """Force a refresh of the API data, bypassing the 1-hour cache."""
    coordinator = build_coordinator()

    if not coordinator.mark_for_refresh():
        typer.secho("Error: Failed to mark data for refresh. Please try again.", fg="red", err=True)
        raise typer.Exit(1)

    typer.secho(
        "Success: Data marked for refresh. The cache will be bypassed on the next request.",
        fg="green",
    )
    typer.echo("Fetching fresh data from API...")

    try:
        data = coordinator.get_data(force=True)
    except FetchError as e:
        typer.secho(f"Error: Failed to fetch data: {e.message}", fg="red", err=True)
        raise typer.Exit(1) from e

    count = item_count(data)
    noun = "item" if count == 1 else "items"
    typer.secho(f"Success: Successfully fetched {count} {noun} from API.", fg="green")

    info = coordinator.get_cache_info()
    typer.echo(f"Cache will expire in: {human_time_diff(info.expires_in)}")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind."),
    port: int = typer.Option(8000, help="Port to listen on."),
) -> None:
    """Run the web app (data, refresh, admin and widget routes)."""
    logger.info("Serving on %s:%d", host, port)
    uvicorn.run("miusage_feed.app:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
