"""Planning Buddy CLI - Eisenhower task triage."""

import json
import logging
import sys
from pathlib import Path

import click

from .config import load_config
from .core.errors import (
    AuthError,
    NotFoundError,
    StorageError,
    SyncInProgressError,
    TransportError,
    ValidationError,
)
from .core.tasks import Priority, Quadrant, Task
from .workflows import get_repository, get_ticket_source, run_sync

QUADRANTS = [q.value for q in Quadrant]
PRIORITIES = [p.value for p in Priority]


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _open_repository(config=None):
    config = config or load_config()
    try:
        return get_repository(config)
    except StorageError as e:
        _fail(str(e))


def _format_task(task: Task, base_url: str = "") -> str:
    done = "x" if task.is_completed else " "
    ticket = f"{task.external_ticket_id}: " if task.external_ticket_id else ""
    url = task.ticket_url(base_url)
    link = f" <{url}>" if url else ""
    return f"[{done}] {ticket}{task.title} [{task.source}] ({task.id}){link}"


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2))


@click.group()
@click.version_option(package_name="planbuddy")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool):
    """Planning Buddy - Eisenhower task triage."""
    if debug:
        logging.basicConfig(
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            level=logging.DEBUG,
        )


@main.command()
@click.argument("title")
@click.option("--source", default="manual", help="How the task entered (manual, jira, braindump)")
@click.option("--ticket", default="", help="External ticket id, e.g. BDC-123")
@click.option("--quadrant", type=click.Choice(QUADRANTS), default="uncategorized")
@click.option("--priority", type=click.Choice(PRIORITIES), default="medium")
def add(title: str, source: str, ticket: str, quadrant: str, priority: str):
    """Add a task."""
    repo = _open_repository()
    try:
        task = repo.create(
            title,
            origin=source,
            source=source,
            external_ticket_id=ticket,
            quadrant=quadrant,
            priority=priority,
        )
    except (ValidationError, StorageError) as e:
        _fail(str(e))

    click.echo(f"Added {task.id}: {task.title}")


@main.command("list")
@click.option("--quadrant", type=click.Choice(QUADRANTS), default=None, help="Only this quadrant")
@click.option("--hide-completed", is_flag=True, help="Hide completed tasks")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def list_tasks(quadrant: str | None, hide_completed: bool, as_json: bool):
    """List tasks grouped by quadrant."""
    repo = _open_repository()
    try:
        tasks = repo.list_by_quadrant(quadrant) if quadrant else repo.list_tasks()
    except StorageError as e:
        _fail(str(e))

    if hide_completed:
        tasks = [t for t in tasks if not t.is_completed]

    if as_json:
        _echo_json([t.to_dict() for t in tasks])
        return

    if not tasks:
        click.echo("No tasks.")
        return

    base_url = repo.config.ticket_base_url
    for q in Quadrant:
        in_quadrant = [t for t in tasks if t.quadrant == q]
        if not in_quadrant:
            continue
        click.echo(f"### {q.value.upper()} - {q.label} ({len(in_quadrant)})")
        for priority in Priority:
            for task in (t for t in in_quadrant if t.priority == priority):
                marker = "" if q == Quadrant.UNCATEGORIZED else f"{priority.value:6} "
                click.echo(f"  {marker}{_format_task(task, base_url)}")
        click.echo()

    uncategorized = [t for t in tasks if t.quadrant == Quadrant.UNCATEGORIZED]
    if uncategorized:
        click.echo(f"{len(uncategorized)} task(s) must be categorized before you work on them.")


@main.command()
@click.argument("task_id")
@click.argument("quadrant", type=click.Choice(QUADRANTS))
@click.option("--priority", type=click.Choice(PRIORITIES), default="medium")
def categorize(task_id: str, quadrant: str, priority: str):
    """Move a task into a quadrant."""
    repo = _open_repository()
    try:
        task = repo.categorize(task_id, quadrant, priority)
    except NotFoundError as e:
        click.echo(str(e), err=True)
        return
    except (ValidationError, StorageError) as e:
        _fail(str(e))

    click.echo(f"{task.title} -> {task.quadrant.value.upper()} ({task.priority.value})")


@main.command()
@click.argument("task_id")
@click.option("--title", required=True, help="New title")
def edit(task_id: str, title: str):
    """Rename a task."""
    repo = _open_repository()
    try:
        task = repo.update(task_id, title=title)
    except NotFoundError as e:
        click.echo(str(e), err=True)
        return
    except (ValidationError, StorageError) as e:
        _fail(str(e))

    click.echo(f"Updated {task.id}: {task.title}")


@main.command()
@click.argument("task_id")
def complete(task_id: str):
    """Mark a task completed."""
    repo = _open_repository()
    try:
        task = repo.complete(task_id)
        progress = repo.compute_stats().q2_progress
    except NotFoundError as e:
        click.echo(str(e), err=True)
        return
    except StorageError as e:
        _fail(str(e))

    if task.quadrant == Quadrant.Q2:
        click.echo(f"Great job! You completed a Q2 strategic task: \"{task.title}\"")
        click.echo(f"Q2 completions: {progress.count} - {progress.message}")
    else:
        click.echo(f"Task completed: \"{task.title}\"")


@main.command()
@click.argument("task_id")
@click.option("--reason", default="manual", help="Why the task is archived")
def archive(task_id: str, reason: str):
    """Move a task to the archive."""
    repo = _open_repository()
    try:
        archived = repo.archive(task_id, reason)
    except NotFoundError as e:
        click.echo(str(e), err=True)
        return
    except StorageError as e:
        _fail(str(e))

    click.echo(f"Archived {archived.id} from {archived.original_quadrant.value.upper()}")


@main.command()
@click.argument("task_id")
def delete(task_id: str):
    """Delete a task permanently."""
    repo = _open_repository()
    try:
        removed = repo.delete(task_id)
    except StorageError as e:
        _fail(str(e))

    if removed:
        click.echo(f"Deleted {task_id}")
    else:
        click.echo(f"Task not found: {task_id}", err=True)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def archived(as_json: bool):
    """List archived tasks."""
    repo = _open_repository()
    try:
        records = repo.list_archived()
    except StorageError as e:
        _fail(str(e))

    if as_json:
        _echo_json([t.to_dict() for t in records])
        return

    if not records:
        click.echo("Archive is empty.")
        return

    for task in records:
        when = task.date_archived.strftime("%Y-%m-%d") if task.date_archived else "?"
        click.echo(
            f"{when} {task.original_quadrant.value.upper():13} {task.title} ({task.archive_reason})"
        )


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def stats(as_json: bool):
    """Show quadrant balance and Q2 progress."""
    repo = _open_repository()
    try:
        result = repo.compute_stats()
    except StorageError as e:
        _fail(str(e))

    if as_json:
        _echo_json(result.to_dict())
        return

    click.echo(
        f"{result.active_total} active tasks • {result.completed_today} completed today"
    )
    for q in Quadrant:
        click.echo(f"  {q.value.upper():13} {result.counts[q]:3}  {result.percentages[q]:3}%")
    if result.q1_overloaded:
        click.echo("Warning: most of your work is urgent+important. Make time for Q2.")
    click.echo(f"Archived: {result.archived_total} ({result.archived_this_week} this week)")

    progress = result.q2_progress
    click.echo(f"Q2 completions: {progress.progress_to_next}/{progress.reward_every} - {progress.message}")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def sync(as_json: bool):
    """Import tickets mentioned in recent email."""
    config = load_config()
    repo = _open_repository(config)
    source = get_ticket_source(config)
    try:
        report = run_sync(repo, source)
    except (AuthError, TransportError, SyncInProgressError, StorageError) as e:
        _fail(str(e))

    if as_json:
        _echo_json(
            {
                "since": report.since.isoformat(),
                "added": [t.to_dict() for t in report.result.added],
                "duplicatesResolved": report.result.duplicates_resolved,
                "totalProcessed": report.result.total_processed,
            }
        )
        return

    click.echo(report.summary())
    if report.result.added:
        click.echo("Categorize the new tasks into Q1/Q2/Q3/Q4:")
        for task in report.result.added:
            click.echo(f"  {_format_task(task, config.ticket_base_url)}")


@main.command("gmail-auth")
def gmail_auth():
    """Authenticate with Gmail."""
    config = load_config()
    if not config.gmail_client_secret_file:
        _fail("GMAIL_CLIENT_SECRET_FILE not set in planbuddy.conf")

    source = get_ticket_source(config)
    if source.authenticate():
        click.echo(f"  ✓ Token saved to {config.token_path}")
    else:
        _fail("Gmail authentication failed")


@main.command("gmail-logout")
def gmail_logout():
    """Revoke and delete the cached Gmail token."""
    config = load_config()
    source = get_ticket_source(config)
    if source.logout():
        click.echo(f"  ✓ Signed out, removed {config.token_path}")
    else:
        click.echo("No Gmail token to remove.")


@main.command("export")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path), required=False)
def export_cmd(output: Path | None):
    """Export all data as JSON."""
    repo = _open_repository()
    try:
        snapshot = repo.export_all()
    except StorageError as e:
        _fail(str(e))

    text = json.dumps(snapshot, indent=2)
    if output is None:
        click.echo(text)
        return
    output.write_text(text)
    click.echo(f"Exported to {output}")


@main.command("import")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_cmd(input_file: Path):
    """Import data exported with 'planbuddy export'."""
    repo = _open_repository()
    try:
        snapshot = json.loads(input_file.read_text())
        repo.import_all(snapshot)
    except json.JSONDecodeError as e:
        _fail(f"Not valid JSON: {e}")
    except (ValidationError, StorageError) as e:
        _fail(str(e))

    click.echo(f"Imported {input_file}")


@main.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def reset(yes: bool):
    """Delete all tasks, archive, counters and sync metadata."""
    if not yes and not click.confirm("Delete ALL Planning Buddy data?"):
        return

    repo = _open_repository()
    try:
        repo.reset_all()
    except StorageError as e:
        _fail(str(e))

    click.echo("All data cleared.")


if __name__ == "__main__":
    main()
