"""
Command-line interface for status-pulse.

Provides commands to run the collector and the API, initialize the
database, poll once for debugging, and change runtime configuration.

Usage:
    status-pulse run              # Run every poller
    status-pulse run --with-api   # Pollers plus API, live config changes
    status-pulse serve            # API only
    status-pulse init-db          # Create tables and seed config
    status-pulse health           # Check database connectivity
    status-pulse poll-once incident
    status-pulse config show
    status-pulse subscribers add-guild 1234 --channel 5678
"""

import asyncio
import signal
import sys
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click

from src.alerts.schemas import SubscriberKind
from src.config.settings import get_settings
from src.observability.logging import setup_logging
from src.observability.metrics import get_metrics
from src.runtime_config.errors import ConfigurationError
from src.scheduler.config import PollerName

T = TypeVar("T")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """status-pulse - Upstream status mirror and threshold alerts."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--with-api", is_flag=True, help="Serve the API in the same process")
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def run(with_api: bool, host: str | None, port: int | None, metrics: bool) -> None:
    """Run the collector until interrupted."""
    from src.services.collector_service import CollectorService

    async def run_collector():
        service = CollectorService()

        if metrics:
            get_metrics().start_server()

        try:
            slots = await service.setup()
        except ConfigurationError as e:
            click.echo(click.style(f"Configuration error: {e}", fg="red"), err=True)
            click.echo("Run `status-pulse init-db` to seed default values.", err=True)
            sys.exit(1)

        if not with_api:
            # Handle shutdown signals
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda: asyncio.create_task(service.stop()))
            await service.start()
            return

        import uvicorn

        from src.api.app import create_app
        from src.api.dependencies import set_database, set_live_slots

        settings = get_settings()
        set_database(service.database)
        set_live_slots(slots)
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(close_database=False),
                host=host or settings.api_host,
                port=port or settings.api_port,
                log_level="info",
            )
        )

        # uvicorn owns the signal handlers; the collector follows the server
        collector = asyncio.create_task(service.start())
        try:
            await server.serve()
        finally:
            await service.stop()
            await collector

    asyncio.run(run_collector())


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the API server without the collector.

    Interval changes made here are saved and apply on the collector's next
    start.
    """
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command("init-db")
def init_db() -> None:
    """Create the schema and seed default runtime config."""
    from src.runtime_config.repository import ConfigRepository
    from src.storage.database import Database
    from src.storage.schema import create_tables

    async def run():
        async with Database() as db:
            await create_tables(db)
            seeded = await ConfigRepository(db).seed_defaults()

        click.echo("Database initialized successfully")
        click.echo(f"Seeded {seeded} default config value(s)")

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check database connectivity and runtime config."""
    import structlog

    from src.runtime_config.repository import ConfigRepository
    from src.scheduler.slots import load_interval_slots
    from src.storage.database import Database

    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}
        db = Database()
        try:
            await db.connect()
            results["postgres"] = await db.health_check()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        if results["postgres"]:
            try:
                await load_interval_slots(ConfigRepository(db))
                results["poller_intervals"] = True
            except ConfigurationError as e:
                results["poller_intervals"] = False
                logger.error("Runtime config check failed", error=str(e))
        await db.close()

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
        click.echo("-" * 40)

        if all(results.values()):
            click.echo(click.style("All checks passed!", fg="green"))
            sys.exit(0)
        click.echo(click.style("Some checks failed!", fg="red"))
        sys.exit(1)

    asyncio.run(check())


@main.command("poll-once")
@click.argument("poller", type=click.Choice([p.value for p in PollerName]))
def poll_once(poller: str) -> None:
    """Run a single poll cycle for POLLER and print what changed."""
    from src.collector.http_client import FetchError
    from src.services.collector_service import CollectorService

    async def run():
        service = CollectorService()
        try:
            outcome = await service.run_once(PollerName(poller))
        except FetchError as e:
            click.echo(click.style(f"Fetch failed: {e}", fg="red"), err=True)
            sys.exit(1)
        click.echo(str(outcome))

    asyncio.run(run())


# Runtime configuration commands


def _with_config_service(fn: Callable[..., Awaitable[T]]) -> T:
    """Run ``fn(service)`` against a persist-only RuntimeConfigService."""
    from src.runtime_config.repository import ConfigRepository
    from src.runtime_config.service import RuntimeConfigService
    from src.storage.database import Database

    async def run():
        async with Database() as db:
            return await fn(RuntimeConfigService(ConfigRepository(db)))

    return asyncio.run(run())


def _report(result) -> None:
    if result.ok:
        click.echo(click.style(result.message, fg="green"))
        return
    click.echo(click.style(result.message, fg="red"), err=True)
    sys.exit(2 if result.invalid else 1)


@main.group()
def config() -> None:
    """Show or change runtime configuration."""


@config.command("show")
def config_show() -> None:
    """Show polling intervals and alert settings."""
    snapshot = _with_config_service(lambda s: s.snapshot())

    click.echo("\nPolling intervals:")
    for name, seconds in snapshot.intervals.items():
        value = f"{seconds}s" if seconds is not None else click.style("missing", fg="red")
        click.echo(f"  {name:<12} {value}")

    click.echo("\nAlerts:")
    click.echo(f"  threshold    {snapshot.report_threshold}")
    click.echo(f"  window       {snapshot.report_interval} min")


@config.command("set-interval")
@click.argument("poller", type=click.Choice([p.value for p in PollerName]))
@click.argument("seconds", type=int)
def config_set_interval(poller: str, seconds: int) -> None:
    """Set POLLER's interval to SECONDS (60-3600)."""
    _report(_with_config_service(lambda s: s.set_poller_interval(poller, seconds)))


@config.command("reset")
def config_reset() -> None:
    """Reset every poller to the default interval."""
    _report(_with_config_service(lambda s: s.reset_all_intervals()))


@config.command("set-threshold")
@click.argument("value", type=int)
def config_set_threshold(value: int) -> None:
    """Set the distinct-reporter alert threshold (1-1000)."""
    _report(_with_config_service(lambda s: s.set_alert_threshold(value)))


@config.command("set-window")
@click.argument("minutes", type=int)
def config_set_window(minutes: int) -> None:
    """Set the alert window in minutes (1-1440)."""
    _report(_with_config_service(lambda s: s.set_alert_window(minutes)))


# Subscriber registration commands


def _with_subscribers(fn: Callable[..., Awaitable[T]]) -> T:
    from src.alerts.repository import SubscriberRepository
    from src.storage.database import Database

    async def run():
        async with Database() as db:
            return await fn(SubscriberRepository(db))

    return asyncio.run(run())


@main.group()
def subscribers() -> None:
    """Register or disable alert subscribers."""


@subscribers.command("add-guild")
@click.argument("guild_id")
@click.option("--channel", default=None, help="Channel that receives alerts")
def subscribers_add_guild(guild_id: str, channel: str | None) -> None:
    """Register (or re-enable) a guild."""
    _with_subscribers(lambda r: r.register_guild(guild_id, channel))
    if channel is None:
        click.echo(f"Registered guild {guild_id} (no channel; it will not receive alerts)")
    else:
        click.echo(f"Registered guild {guild_id} -> channel {channel}")


@subscribers.command("add-user")
@click.argument("user_id")
def subscribers_add_user(user_id: str) -> None:
    """Register (or re-enable) a user for direct alerts."""
    _with_subscribers(lambda r: r.register_user(user_id))
    click.echo(f"Registered user {user_id}")


@subscribers.command("disable")
@click.argument("kind", type=click.Choice([k.value for k in SubscriberKind]))
@click.argument("subscriber_id")
def subscribers_disable(kind: str, subscriber_id: str) -> None:
    """Stop alerts and claims for a guild or user."""
    if not _with_subscribers(lambda r: r.disable(SubscriberKind(kind), subscriber_id)):
        click.echo(click.style(f"No {kind} {subscriber_id!r} registered", fg="red"), err=True)
        sys.exit(1)
    click.echo(f"Disabled {kind} {subscriber_id}")


@subscribers.command("count")
def subscribers_count() -> None:
    """Show how many subscribers are enabled."""
    counts = _with_subscribers(lambda r: r.count_enabled())
    for kind, n in counts.items():
        click.echo(f"  {kind:<6} {n}")


if __name__ == "__main__":
    main()
