"""CLI command for broadcasting a mutation event.

Usage:
    crosscache publish create rev9 --owner 42
    crosscache publish delete rev1 --owner 42 --redis-url redis://cache:6379/0
"""

from __future__ import annotations

import asyncio

import typer

from crosscache.cache import runtime
from crosscache.cache.events import MutationType
from crosscache.config import settings
from crosscache.observability.logging import configure_logging


async def _publish(mutation_type: MutationType, subject_id: str, owner_id: str | None) -> bool:
    await runtime.start_cache()
    broadcaster = runtime.get_broadcaster()
    try:
        event = broadcaster.new_event(mutation_type, subject_id, owner_id=owner_id)
        sent = await broadcaster.broadcast_mutation(event)
        # Let the fade removal run before shutting down
        await asyncio.sleep(broadcaster.fade_delay_ms / 1000)
        return sent
    finally:
        await runtime.stop_cache()


def publish(
    mutation_type: MutationType = typer.Argument(..., help="create, update or delete"),
    subject_id: str = typer.Argument(..., help="Identifier of the mutated entity"),
    owner_id: str | None = typer.Option(
        None,
        "--owner",
        "-o",
        help="Owner whose listings should be invalidated",
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
    """Broadcast one mutation event over Redis."""
    configure_logging(
        json_format=settings.log_json, level=log_level, origin_id=settings.instance_id
    )
    runtime.configure(broadcast_backend="redis", redis_url=redis_url, channel_name=channel)

    sent = asyncio.run(_publish(mutation_type, subject_id, owner_id))
    if not sent:
        typer.echo("Broadcast failed, see log for details", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Broadcast {mutation_type.value} for {subject_id} on {channel}")
