"""
Root Typer application for the spine-delayed CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="spine-delayed",
    help="spine-delayed: future-dated jobs for Resque-style queues.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from spine_delayed import __version__

        typer.echo(f"spine-delayed {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """spine-delayed CLI: run the scheduler worker and manage the delayed schedule."""


# ── Sub-command registration ─────────────────────────────────────────────

from spine_delayed.cli.schedule import app as schedule_app  # noqa: E402
from spine_delayed.cli.worker import app as worker_app  # noqa: E402

app.add_typer(worker_app, name="worker", help="Scheduler worker.")
app.add_typer(schedule_app, name="schedule", help="Delayed schedule management.")


if __name__ == "__main__":
    app()
