"""
CLI: ``spine-delayed schedule``: add, remove and inspect delayed jobs.
"""

from __future__ import annotations

import typer
from rich.table import Table

from spine_delayed.cli.utils import (
    console,
    err_console,
    format_timestamp,
    get_store,
    parse_args_json,
    resolve_settings,
)
from spine_delayed.core.errors import InvalidTimestampError, ValidationError
from spine_delayed.scheduling import Scheduler

app = typer.Typer(no_args_is_help=True)


def _scheduler(redis_url: str | None, namespace: str | None) -> Scheduler:
    settings = resolve_settings(redis_url=redis_url, namespace=namespace)
    return Scheduler(get_store(settings))


@app.command("add")
def add(
    queue: str = typer.Argument(..., help="Queue the job is forwarded to"),
    job_class: str = typer.Argument(..., help="Job class name"),
    at: int | None = typer.Option(None, "--at", help="UNIX timestamp to run at"),  # noqa: UP007
    delay: int | None = typer.Option(None, "--in", help="Seconds from now to run in"),  # noqa: UP007
    args: str | None = typer.Option(None, "--args", help="Job arguments as a JSON object"),  # noqa: UP007
    redis_url: str | None = typer.Option(None, "--redis-url"),  # noqa: UP007
    namespace: str | None = typer.Option(None, "--namespace"),  # noqa: UP007
) -> None:
    """Schedule a job.

    Example::

        spine-delayed schedule add email SendReminder --in 300 --args '{"user_id": 42}'
    """
    if (at is None) == (delay is None):
        raise typer.BadParameter("give exactly one of --at or --in")

    job_args = parse_args_json(args)
    scheduler = _scheduler(redis_url, namespace)

    try:
        if at is not None:
            scheduler.enqueue_at(at, queue, job_class, job_args)
            when = at
        else:
            when = scheduler.now() + delay
            scheduler.enqueue_at(when, queue, job_class, job_args)
    except (ValidationError, InvalidTimestampError) as exc:
        err_console.print(f"[bold red]Rejected[/bold red]: {exc.message}")
        raise typer.Exit(code=1) from exc

    console.print(f"Scheduled [bold]{job_class}[/bold] in {queue} at {when} ({format_timestamp(when)})")


@app.command("remove")
def remove(
    queue: str = typer.Argument(...),
    job_class: str = typer.Argument(...),
    args: str | None = typer.Option(None, "--args", help="Exact job arguments as a JSON object"),  # noqa: UP007
    at: int | None = typer.Option(None, "--at", help="Only search this timestamp"),  # noqa: UP007
    redis_url: str | None = typer.Option(None, "--redis-url"),  # noqa: UP007
    namespace: str | None = typer.Option(None, "--namespace"),  # noqa: UP007
) -> None:
    """Remove scheduled jobs matching queue, class and arguments exactly."""
    job_args = parse_args_json(args)
    scheduler = _scheduler(redis_url, namespace)

    if at is None:
        removed = scheduler.remove_delayed(queue, job_class, job_args)
    else:
        removed = scheduler.remove_delayed_job_from_timestamp(at, queue, job_class, job_args)

    console.print(f"Removed {removed} job(s)")


@app.command("stats")
def stats(
    at: int | None = typer.Option(None, "--at", help="Also count jobs at this timestamp"),  # noqa: UP007
    redis_url: str | None = typer.Option(None, "--redis-url"),  # noqa: UP007
    namespace: str | None = typer.Option(None, "--namespace"),  # noqa: UP007
) -> None:
    """Show schedule size and the next due timestamp."""
    scheduler = _scheduler(redis_url, namespace)

    console.print(f"Timestamps scheduled: {scheduler.get_delayed_queue_schedule_count()}")

    due = scheduler.next_delayed_timestamp()
    console.print(f"Next due timestamp:   {due if due is not None else '-'}")

    if at is not None:
        console.print(f"Jobs at {at}: {scheduler.get_delayed_timestamp_count(at)}")


@app.command("list")
def list_schedule(
    limit: int = typer.Option(20, "--limit", "-n", help="Timestamps to show"),
    redis_url: str | None = typer.Option(None, "--redis-url"),  # noqa: UP007
    namespace: str | None = typer.Option(None, "--namespace"),  # noqa: UP007
) -> None:
    """List the earliest scheduled timestamps and their job counts."""
    scheduler = _scheduler(redis_url, namespace)
    rows = scheduler.delayed_timestamps(limit)

    if not rows:
        console.print("[yellow]Delayed schedule is empty[/yellow]")
        return

    table = Table(title="Delayed schedule")
    table.add_column("Timestamp", justify="right")
    table.add_column("Due")
    table.add_column("Jobs", justify="right")
    for timestamp, count in rows:
        table.add_row(str(timestamp), format_timestamp(timestamp), str(count))
    console.print(table)
