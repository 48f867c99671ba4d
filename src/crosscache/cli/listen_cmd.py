"""CLI command for watching peer mutations.

Usage:
    crosscache listen
    crosscache listen --duration 60 --channel myapp:mutation
"""

from __future__ import annotations

import asyncio

import typer

from crosscache.cache import runtime
from crosscache.cache.events import MutationEvent
from crosscache.config import settings
from crosscache.observability.logging import LogContext, configure_logging


async def _listen(duration: float | None) -> None:
    await runtime.start_cache()

    def echo_mutation(event: MutationEvent) -> None:
        owner = f" owner={event.payload.owner_id}" if event.payload.owner_id else ""
        typer.echo(
            f"{event.origin_id}: {event.type.value} {event.payload.subject_id}{owner}"
        )

    runtime.get_broadcaster().add_handler(echo_mutation)
    try:
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)
    finally:
        await runtime.stop_cache()


def listen(
    duration: float | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Seconds to listen before exiting (default: until interrupted)",
    ),
    redis_url: str = typer.Option(
        settings.redis_url,
        "--redis-url",
        help="Redis server connecting the peers",
    ),
    channel: str = typer.Option(
        settings.channel_name,
        "--channel",
        "-c",
        help="Broadcast channel name",
    ),
    log_level: str = typer.Option(
        settings.log_level,
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, error",
    ),
) -> None:
    """Listen for mutation events over Redis and print each one."""
    configure_logging(
        json_format=settings.log_json, level=log_level, origin_id=settings.instance_id
    )
    runtime.configure(broadcast_backend="redis", redis_url=redis_url, channel_name=channel)

    typer.echo(f"Listening on {channel} as {settings.instance_id} (Ctrl+C to stop)")
    with LogContext(channel=channel):
        try:
            asyncio.run(_listen(duration))
        except KeyboardInterrupt:
            typer.echo("Stopped")
