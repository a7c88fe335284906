"""
CLI: ``spine-delayed worker``: run and inspect scheduler workers.
"""

from __future__ import annotations

import typer
from rich.table import Table

from spine_delayed.cli.utils import console, err_console, get_store, resolve_settings
from spine_delayed.core.errors import StoreUnavailableError
from spine_delayed.core.logging import configure_logging
from spine_delayed.queue import ResqueQueue
from spine_delayed.scheduling import Scheduler
from spine_delayed.worker import SchedulerWorker, WorkerRegistry

app = typer.Typer(no_args_is_help=True)


@app.command("start")
def start(
    interval: float | None = typer.Option(None, "--interval", "-i", help="Seconds between schedule checks"),  # noqa: UP007
    redis_url: str | None = typer.Option(None, "--redis-url", help="Redis URL or host:port"),  # noqa: UP007
    namespace: str | None = typer.Option(None, "--namespace", help="Redis key prefix"),  # noqa: UP007
    worker_id: str | None = typer.Option(None, "--id", help="Custom worker identifier"),  # noqa: UP007
    prune: bool | None = typer.Option(None, "--prune/--no-prune", help="Prune dead workers on startup"),  # noqa: UP007
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),  # noqa: UP007
) -> None:
    """Start a scheduler worker that moves due jobs to their queues.

    Example::

        spine-delayed worker start --interval 5
        spine-delayed worker start --redis-url redis://cache:6379/2 --no-prune
    """
    settings = resolve_settings(
        interval=interval,
        redis_url=redis_url,
        namespace=namespace,
        worker_id=worker_id,
        prune_on_start=prune,
        log_level=log_level,
    )
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")

    store = get_store(settings)
    scheduler = Scheduler(store)
    worker = SchedulerWorker(
        scheduler,
        ResqueQueue(store),
        interval=settings.interval,
        worker_id=settings.worker_id,
        prune_on_start=settings.prune_on_start,
    )

    err_console.print(
        f"[bold green]Starting scheduler worker[/bold green] {worker.worker_id} "
        f"(interval={settings.interval}s, redis={settings.redis_url})"
    )

    try:
        worker.work()
    except StoreUnavailableError as exc:
        err_console.print(f"[red]Store unavailable: {exc.message}[/red]")
        raise typer.Exit(code=1) from exc
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Worker stopped by user[/yellow]")

    err_console.print(f"Worker stopped after dispatching {worker.jobs_dispatched} job(s)")


@app.command("list")
def list_workers(
    redis_url: str | None = typer.Option(None, "--redis-url"),  # noqa: UP007
    namespace: str | None = typer.Option(None, "--namespace"),  # noqa: UP007
) -> None:
    """Show registered scheduler workers and their in-flight jobs."""
    settings = resolve_settings(redis_url=redis_url, namespace=namespace)
    registry = WorkerRegistry(get_store(settings))

    worker_ids = registry.all()
    if not worker_ids:
        console.print("[yellow]No scheduler workers registered[/yellow]")
        return

    table = Table(title="Scheduler workers")
    table.add_column("Worker")
    table.add_column("Started")
    table.add_column("In flight")

    for worker_id in worker_ids:
        started = registry.started_at(worker_id)
        item = registry.in_flight(worker_id)
        table.add_row(
            worker_id,
            started.isoformat() if started else "-",
            f"{item.job} @ {item.timestamp}" if item else "-",
        )
    console.print(table)


@app.command("prune")
def prune_workers(
    redis_url: str | None = typer.Option(None, "--redis-url"),  # noqa: UP007
    namespace: str | None = typer.Option(None, "--namespace"),  # noqa: UP007
) -> None:
    """Unregister dead workers on this host and requeue what they held."""
    settings = resolve_settings(redis_url=redis_url, namespace=namespace)
    store = get_store(settings)
    pruned = WorkerRegistry(store).prune_dead_workers(Scheduler(store))

    if not pruned:
        console.print("No dead workers found")
        return
    for worker_id in pruned:
        console.print(f"  pruned [bold]{worker_id}[/bold]")
