"""
Typer CLI for lexiflow.

Commands:
    lexiflow db init               - Create database tables
    lexiflow sessions reconcile    - Close abandoned open sessions
    lexiflow sessions list USER    - Recent sessions of a user
    lexiflow stats show USER       - Dashboard summary for a user
    lexiflow batch USER            - Preview the next study batch
    lexiflow serve                 - Run the HTTP API

Usage:
    lexiflow --help
    lexiflow sessions reconcile --idle-minutes 90
    lexiflow batch alice --category 3 --max-words 10
"""

from __future__ import annotations

import sys

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from lexiflow.core.errors import LexiflowError

console = Console()

app = typer.Typer(
    help="lexiflow CLI: adaptive vocabulary study engine",
    no_args_is_help=True,
)

db_app = typer.Typer(help="Database management")
sessions_app = typer.Typer(help="Study session maintenance")
stats_app = typer.Typer(help="Learner statistics")

app.add_typer(db_app, name="db")
app.add_typer(sessions_app, name="sessions")
app.add_typer(stats_app, name="stats")


def _get_study_service():
    """Lazy load study service so --help works without a database."""
    from lexiflow.study.study_service import StudyService

    return StudyService()


def _format_progress_bar(percent: float, width: int = 10) -> str:
    filled = int(min(100.0, percent) / 100 * width)
    return "#" * filled + "-" * (width - filled)


# =============================================================================
# Database
# =============================================================================


@db_app.command("init")
def db_init() -> None:
    """
    Create database tables from the SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from lexiflow.db.database import init_db

    init_db()
    rprint("[green]✓[/green] Database initialized!")


# =============================================================================
# Sessions
# =============================================================================


@sessions_app.command("reconcile")
def sessions_reconcile(
    idle_minutes: int | None = typer.Option(
        None, "--idle-minutes", "-i", help="Idle threshold (default: stale_session_minutes)"
    ),
) -> None:
    """Close open sessions nobody ended and fold them into statistics."""
    service = _get_study_service()
    try:
        closed = service.tracker.reconcile_stale_sessions(idle_minutes)
    except LexiflowError as e:
        rprint(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=1)

    if not closed:
        rprint("[dim]No stale sessions.[/dim]")
        return

    table = Table(title=f"Closed {len(closed)} stale session(s)")
    table.add_column("Session", style="cyan")
    table.add_column("User")
    table.add_column("Started")
    table.add_column("Minutes", justify="right")
    table.add_column("Studied", justify="right")
    for session in closed:
        table.add_row(
            session.session_id,
            session.user_id,
            session.started_at.strftime("%Y-%m-%d %H:%M"),
            str(session.duration_minutes),
            str(session.counters.words_studied),
        )
    console.print(table)


@sessions_app.command("list")
def sessions_list(
    user_id: str = typer.Argument(..., help="Learner id"),
    limit: int = typer.Option(10, "--limit", "-l", help="Number of sessions"),
) -> None:
    """Show a learner's most recent sessions."""
    service = _get_study_service()
    sessions = service.tracker.recent_sessions(user_id, limit)
    if not sessions:
        rprint(f"[dim]No sessions for {user_id}.[/dim]")
        return

    table = Table(title=f"Recent sessions: {user_id}")
    table.add_column("Started")
    table.add_column("Mode")
    table.add_column("Category", justify="right")
    table.add_column("Minutes", justify="right")
    table.add_column("Studied", justify="right")
    table.add_column("Learned", justify="right")
    table.add_column("Accuracy", justify="right")
    for session in sessions:
        table.add_row(
            session.started_at.strftime("%Y-%m-%d %H:%M"),
            session.mode.value,
            str(session.category_id or "all"),
            "[yellow]open[/yellow]" if session.is_open else str(session.duration_minutes),
            str(session.counters.words_studied),
            str(session.counters.words_learned),
            f"{session.counters.accuracy:.0f}%",
        )
    console.print(table)


# =============================================================================
# Statistics
# =============================================================================


@stats_app.command("show")
def stats_show(user_id: str = typer.Argument(..., help="Learner id")) -> None:
    """Show a learner's dashboard."""
    service = _get_study_service()
    dashboard = service.get_dashboard(user_id)
    stats = dashboard.statistics

    streak = f"{stats.current_streak_days} days"
    if not dashboard.learning_streak_active and stats.current_streak_days:
        streak += " [dim](broken)[/dim]"

    summary = Table(title=f"Statistics: {user_id}", show_header=False)
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", justify="right")
    summary.add_row("Current streak", streak)
    summary.add_row("Longest streak", f"{stats.longest_streak_days} days")
    summary.add_row("Words learned", str(stats.total_words_learned))
    summary.add_row("Words mastered", str(stats.total_words_mastered))
    summary.add_row("Sessions", str(stats.total_sessions))
    summary.add_row("Study minutes", str(stats.total_study_minutes))
    summary.add_row("Avg session", f"{dashboard.average_session_minutes:.1f} min")
    summary.add_row("Accuracy", f"{stats.overall_accuracy:.1f}%")
    summary.add_row("Due today", str(dashboard.words_due_today))
    summary.add_row(
        "Today (words)",
        f"{stats.words_learned_today}/{dashboard.daily_words_target} "
        f"{_format_progress_bar(dashboard.daily_words_progress)}",
    )
    summary.add_row(
        "Today (minutes)",
        f"{stats.minutes_studied_today}/{dashboard.daily_minutes_target} "
        f"{_format_progress_bar(dashboard.daily_minutes_progress)}",
    )
    console.print(summary)

    if dashboard.categories:
        table = Table(title="Categories")
        table.add_column("Category")
        table.add_column("Learned", justify="right")
        table.add_column("Mastered", justify="right")
        table.add_column("Progress")
        table.add_column("Status")
        for category in dashboard.categories:
            table.add_row(
                category.category_name,
                f"{category.words_learned}/{category.total_words}",
                str(category.words_mastered),
                f"{_format_progress_bar(category.completion_percentage)} {category.completion_percentage:.0f}%",
                category.status.value,
            )
        console.print(table)


# =============================================================================
# Batch preview
# =============================================================================


@app.command("batch")
def batch_preview(
    user_id: str = typer.Argument(..., help="Learner id"),
    category: int | None = typer.Option(None, "--category", "-c", help="Category id"),
    max_words: int | None = typer.Option(None, "--max-words", "-n", help="Batch size"),
    mode: str = typer.Option("study", "--mode", "-m", help="study, review or test"),
) -> None:
    """Preview the words a learner would study next."""
    from lexiflow.core.models import StudyConstraints

    service = _get_study_service()
    try:
        constraints = StudyConstraints.for_mode(
            mode, max_words=max_words or service.settings.default_batch_size
        )
        batch = service.scheduler.select_study_batch(user_id, category, constraints)
    except LexiflowError as e:
        rprint(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=1)

    if batch.is_empty:
        rprint("[green]Nothing to study right now.[/green]")
        return

    table = Table(title=f"Next batch: {batch.due_count} due, {batch.new_count} new")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Word")
    table.add_column("Pinyin")
    table.add_column("Translation")
    table.add_column("Status")
    for index, item in enumerate(batch.items, 1):
        table.add_row(
            str(index),
            item.word.simplified,
            item.word.pinyin,
            item.word.translation,
            "[yellow]review[/yellow]" if item.is_review else item.learning_status.value,
        )
    console.print(table)


# =============================================================================
# Server
# =============================================================================


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind host (default from config)"),
    port: int | None = typer.Option(None, "--port", help="Bind port (default from config)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "lexiflow.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if settings.log_level == "DEBUG" else "WARNING",
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
