#!/usr/bin/env python3
"""Operator CLI for the car wash booking service."""

import asyncio
import os
import subprocess
import sys
from datetime import date, datetime, timedelta

import click

UV = ["uv", "run"]


def _step(title: str) -> None:
    click.secho(f"\n== {title}", fg="blue", bold=True)


def _done(text: str) -> None:
    click.secho(f"   done: {text}", fg="green")


def _shell(*args: str, handover: bool = False) -> None:
    """Echo and run `args`; `handover` replaces this process with the command."""
    click.secho(f"   $ {' '.join(args)}", dim=True)
    if handover:
        os.execvp(args[0], list(args))
    code = subprocess.call(list(args))
    if code:
        click.secho(f"   failed: {args[0]} returned {code}", fg="red", err=True)
        sys.exit(code)


def _parse_day(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> date | None:
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise click.BadParameter("expected YYYY-MM-DD")


@click.group()
def cli() -> None:
    """Run, migrate and seed the car wash booking service."""


@cli.command()
@click.argument("uvicorn_args", nargs=-1)
def app(uvicorn_args: tuple[str, ...]) -> None:
    """Serve the booking API locally with auto-reload."""
    _step("Booking API on uvicorn")
    _shell(*UV, "uvicorn", "src.app:app", "--reload", *uvicorn_args, handover=True)


@cli.group()
def db() -> None:
    """Manage the bookings database."""


@db.command()
def up() -> None:
    """Bring up the local bookings Postgres container."""
    _step("Bookings database: start")
    _shell("docker", "compose", "up", "-d", "postgres")
    _done("postgres accepting bookings on :5432")


@db.command()
def down() -> None:
    """Stop the local bookings Postgres container."""
    _step("Bookings database: stop")
    _shell("docker", "compose", "down")
    _done("postgres container removed, pgdata volume kept")


@db.command()
def migrate() -> None:
    """Apply pending booking schema migrations."""
    _step("Booking schema: upgrade to head")
    _shell(*UV, "alembic", "upgrade", "head")
    _done("schema is current")


@db.command()
@click.argument("message", default="schema change")
def revision(message: str) -> None:
    """Autogenerate a booking schema migration from the models."""
    _step(f"Booking schema: new revision '{message}'")
    _shell(*UV, "alembic", "revision", "--autogenerate", "-m", message)
    _done("review the new file under alembic/versions before committing")


@cli.group()
def slots() -> None:
    """Publish bookable time slots."""


@slots.command()
@click.argument("start", callback=_parse_day)
@click.argument("end", required=False, callback=_parse_day)
@click.option(
    "--days", default=14, show_default=True, help="Range length when END is omitted."
)
def generate(start: date, end: date | None, days: int) -> None:
    """Create time slots from the weekly availability rules."""
    from src.base.config import SLOT_DURATION_MINUTES
    from src.base.db import async_session
    from src.scheduling.service import materialize_slots

    last = end or start + timedelta(days=days - 1)
    _step(f"Time slots {start} .. {last}")

    async def _generate() -> int:
        async with async_session() as session:
            created = await materialize_slots(
                session, start, last, timedelta(minutes=SLOT_DURATION_MINUTES)
            )
            await session.commit()
            return len(created)

    _done(f"{asyncio.run(_generate())} new slots open for booking")


@cli.command()
@click.argument("pytest_args", nargs=-1)
def test(pytest_args: tuple[str, ...]) -> None:
    """Run the test suite against a throwaway Postgres (needs docker)."""
    _step("Test suite")
    _shell(*UV, "pytest", "tests/", "-v", *pytest_args, handover=True)


@cli.command()
def lint() -> None:
    """Type-check the service with mypy."""
    _step("mypy")
    _shell(*UV, "mypy", "src", "tests", "carwash.py")
    _done("no type errors")


if __name__ == "__main__":
    cli()
