"""
Coffeetrix command line.

    coffeetrix serve [--test]         run the bot (webhook server + scheduler)
    coffeetrix invite-once            post today's invites once and exit
    coffeetrix set-daily-time 08:30   change the daily invite time (UTC)
    coffeetrix show-settings
    coffeetrix version
"""

import asyncio

import typer
from pydantic import ValidationError

from .config import settings
from .core.logging_config import setup_logging
from .core.runtime import build_context, open_store
from .models import DailyTimeUpdate
from .storage import SQLiteSessionStore, StoreError

app = typer.Typer(help="Random Coffee bot for group chats.", no_args_is_help=True)


@app.command()
def serve(
    test: bool = typer.Option(False, "--test", help="Test mode: immediate invites, 1 minute window, no daily loop"),
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
):
    """Run the webhook server together with the scheduler loops."""
    import uvicorn

    if test:
        settings.test_mode = True

    from .main import app as fastapi_app
    uvicorn.run(fastapi_app, host=host, port=port, log_config=None)


@app.command("invite-once")
def invite_once(
    test: bool = typer.Option(False, "--test", help="Use the test-mode signup window"),
):
    """Post today's invitations to every known chat and exit."""
    if test:
        settings.test_mode = True
    setup_logging(settings)

    async def run():
        ctx = build_context(settings)
        await open_store(ctx, settings)
        try:
            return await ctx.coordinator.send_daily_invites()
        finally:
            await ctx.store.close()

    try:
        summary = asyncio.run(run())
    except (RuntimeError, StoreError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo(f"chats={summary.chats} sent={summary.sent} skipped={summary.skipped}")


@app.command("set-daily-time")
def set_daily_time(daily_time: str = typer.Argument(..., help="HH:MM in UTC")):
    """Change the daily invite time. A running bot picks it up within a minute."""
    try:
        update = DailyTimeUpdate(daily_time=daily_time)
    except ValidationError:
        typer.secho("daily time must be HH:MM (00:00-23:59)", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    async def run():
        store = SQLiteSessionStore(settings.database_path)
        await store.init()
        try:
            await store.ensure_default_settings(settings.default_daily_time)
            await store.set_daily_time(update.daily_time)
        finally:
            await store.close()

    try:
        asyncio.run(run())
    except StoreError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo(f"daily_time={update.daily_time}")


@app.command("show-settings")
def show_settings():
    """Print the stored daily time and the effective configuration."""

    async def run():
        store = SQLiteSessionStore(settings.database_path)
        await store.init()
        try:
            await store.ensure_default_settings(settings.default_daily_time)
            return await store.get_daily_time(), await store.count_chats()
        finally:
            await store.close()

    try:
        daily_time, chats = asyncio.run(run())
    except StoreError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo(f"database={settings.database_path}")
    typer.echo(f"daily_time={daily_time}")
    typer.echo(f"chats={chats}")
    typer.echo(f"signup_window_minutes={settings.signup_window_seconds / 60:g}")
    typer.echo(f"close_interval_seconds={settings.effective_close_interval:g}")
    typer.echo(f"test_mode={settings.test_mode}")


@app.command()
def version():
    """Print the version."""
    typer.echo(f"{settings.app_name} {settings.app_version}")


if __name__ == "__main__":
    app()
