"""Developer CLI for the training planner.

Resolves date phrases and renders week grids offline, without the API or the
modification planner.
"""

import json
from datetime import date, datetime
from pathlib import Path

import typer
import uvicorn
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from training_planner.config.settings import settings
from training_planner.dates.resolver import WEEKDAY_SHORT, DateResolver, local_reference_date, to_zone
from training_planner.db.session import init_db
from training_planner.plans.plan import TrainingPlan

console = Console()

app = typer.Typer(
    name="training-planner",
    help="Training planner developer CLI - date resolution and week grids",
    add_completion=False,
)


@app.command()
def resolve(
    phrase: str = typer.Argument(..., help='Date phrase, e.g. "next friday" or "tomorrow"'),
    today: str | None = typer.Option(None, "--today", help="Reference date (YYYY-MM-DD), defaults to today"),
    timezone: str = typer.Option(settings.default_timezone, "--tz", help="User time zone"),
    plan_start: str | None = typer.Option(None, "--plan-start", help="Plan start date, adds plan week numbers"),
) -> None:
    """Resolve a date phrase to its candidate dates."""
    try:
        reference = date.fromisoformat(today) if today else local_reference_date(datetime.now(to_zone(timezone)), timezone)
        start = date.fromisoformat(plan_start) if plan_start else None
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    resolution = DateResolver(plan_start_date=start).resolve(phrase, reference, timezone)
    if not resolution.recognized:
        console.print(f"[yellow]Not a date phrase:[/yellow] {phrase}")
        raise typer.Exit(code=1)

    title = f"{phrase!r} from {reference.isoformat()}"
    if resolution.ambiguous:
        title += " (ambiguous)"
    table = Table(title=title)
    table.add_column("Date")
    table.add_column("Day")
    table.add_column("Label")
    table.add_column("Week")
    for candidate in resolution.candidates:
        table.add_row(
            candidate.iso_date.isoformat(),
            candidate.weekday,
            candidate.human_label,
            str(candidate.week_number) if candidate.week_number is not None else "-",
        )
    console.print(table)


@app.command()
def grid(
    plan_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Plan JSON file"),
) -> None:
    """Render the week grid of a plan stored as JSON.

    The file holds ``plan_id``, ``user_id``, ``start_date`` and a ``days`` list.
    """
    try:
        plan = TrainingPlan.model_validate(json.loads(plan_file.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as e:
        console.print(f"[red]Invalid plan file:[/red] {e}")
        raise typer.Exit(code=1) from e

    for week in plan.weeks:
        table = Table(title=f"Week {week.week_number} ({week.start_date.isoformat()})")
        for name in WEEKDAY_SHORT:
            table.add_column(name)
        table.add_row(*[slot.label for slot in week.slots])
        console.print(table)

    for repair in plan.normalization_report.repairs:
        console.print(f"[yellow]Repaired {repair.date.isoformat()} ({repair.kind}):[/yellow] {repair.detail}")


@app.command("init-db")
def init_database() -> None:
    """Create the database tables."""
    init_db()
    console.print("[green]✓ Database schema ensured[/green]")


@app.command()
def server(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Run the FastAPI server."""
    logger.info(f"Starting FastAPI server on {host}:{port} (reload={reload})")
    uvicorn.run("training_planner.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
