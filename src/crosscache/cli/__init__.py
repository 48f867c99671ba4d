"""CLI commands for crosscache.

Provides command-line interface using Typer:
- crosscache publish: Broadcast a mutation event to running peers
- crosscache listen: Watch mutations broadcast by peers

Usage:
    crosscache --help
    crosscache publish update rev1 --owner 42
    crosscache listen --duration 30
"""

import typer

from crosscache.cli.listen_cmd import listen
from crosscache.cli.publish_cmd import publish

# Main CLI application
app = typer.Typer(
    name="crosscache",
    help="crosscache: read-through entity cache with cross-process invalidation",
    no_args_is_help=True,
)

app.command("publish", help="Broadcast a mutation event to running peers")(publish)
app.command("listen", help="Watch mutations broadcast by peers")(listen)


@app.callback()
def callback() -> None:
    """crosscache: read-through entity cache with cross-process invalidation."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
