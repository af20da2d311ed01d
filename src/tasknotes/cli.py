"""
Click CLI for Task Notes

Starts the API server, imports notes from YAML, lists tasks and runs the
database connection self-test.
"""

import asyncio
import logging
import multiprocessing
import socket
import sys
import webbrowser
from typing import List, Optional

import click
import uvicorn

from .actions import NoteActions
from .config import get_settings
from .database import NoteDatabase
from .formatting import format_task_date
from .importer import import_notes, load_notes_yaml
from .richtext import preview_text

logger = logging.getLogger(__name__)


class PortConflictError(Exception):
    """Raised when no free port can be found for the server."""


def check_port_available(host: str, port: int) -> bool:
    """Return True if the port can be bound on host."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def find_available_ports(start_port: int, count: int = 1, host: str = "127.0.0.1",
                         max_attempts: int = 100) -> List[int]:
    """
    Find ``count`` consecutive free ports starting at start_port.

    Raises:
        PortConflictError: If no run of free ports is found within max_attempts
    """
    for base in range(start_port, start_port + max_attempts):
        ports = list(range(base, base + count))
        if all(check_port_available(host, p) for p in ports):
            return ports
    raise PortConflictError(
        f"No {count} consecutive free ports found from {start_port} "
        f"within {max_attempts} attempts"
    )


def launch_browser_safely(url: str) -> None:
    """Open the browser in a separate process; failures never stop the server."""
    try:
        process = multiprocessing.Process(target=webbrowser.open, args=(url,))
        process.start()
        process.join(timeout=2.0)
        if process.is_alive():
            process.terminate()
            logger.debug("Browser launch process timed out, terminated")
        else:
            logger.info(f"Browser launched for {url}")
    except Exception as e:
        logger.warning(f"Failed to launch browser: {e}")


def print_startup_banner(host: str, port: int, db_path: str) -> None:
    click.echo("=" * 60)
    click.echo("Task Notes")
    click.echo("=" * 60)
    click.echo(f"API:       http://{host}:{port}")
    click.echo(f"Docs:      http://{host}:{port}/docs")
    click.echo(f"Updates:   ws://{host}:{port}/ws/updates")
    click.echo(f"Database:  {db_path}")
    click.echo("=" * 60)


async def start_api_only_mode(host: str, port: int, db_path: str, open_browser: bool) -> None:
    """Run the FastAPI app under uvicorn until interrupted."""
    from .api import app

    config = uvicorn.Config(app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    print_startup_banner(host, port, db_path)
    if open_browser:
        launch_browser_safely(f"http://{host}:{port}/docs")
    await server.serve()


def _open_database(db_path: Optional[str]) -> NoteDatabase:
    path = db_path or str(get_settings().database_path)
    try:
        return NoteDatabase(path)
    except RuntimeError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option("--log-level", default=None, help="Logging level (default from TASKNOTES_LOG_LEVEL)")
def main(log_level: Optional[str]):
    """Task Notes: categorized rich-text notes with soft delete."""
    level = (log_level or get_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO))


@main.command()
@click.option("--host", default=None, help="Interface to bind")
@click.option("--port", type=int, default=None, help="Port for the API server")
@click.option("--db-path", default=None, help="SQLite database file")
@click.option("--notes", "notes_file", default=None, type=click.Path(),
              help="YAML notes file to import before starting")
@click.option("--no-browser", is_flag=True, help="Do not open the API docs in a browser")
def serve(host: Optional[str], port: Optional[int], db_path: Optional[str],
          notes_file: Optional[str], no_browser: bool):
    """Start the REST API and WebSocket change feed."""
    settings = get_settings()
    host = host if host is not None else settings.host
    port = port if port is not None else settings.port
    db_path = db_path or str(settings.database_path)

    if not check_port_available(host, port):
        try:
            new_port = find_available_ports(port + 1, 1, host=host)[0]
        except PortConflictError as e:
            raise click.ClickException(str(e))
        logger.warning(f"Port {port} in use, using {new_port}")
        port = new_port

    db = _open_database(db_path)
    if notes_file:
        try:
            stats = import_notes(db, load_notes_yaml(notes_file))
        except ValueError as e:
            db.close()
            raise click.ClickException(str(e))
        click.echo(f"Imported {stats['tasks_created']} tasks from {notes_file}")

    from .api import init_app_state
    init_app_state(db)

    try:
        asyncio.run(start_api_only_mode(host, port, db_path, not no_browser))
    except KeyboardInterrupt:
        click.echo("Shutting down...")
    finally:
        db.close()


@main.command("import")
@click.argument("notes_file", type=click.Path())
@click.option("--db-path", default=None, help="SQLite database file")
def import_command(notes_file: str, db_path: Optional[str]):
    """Import categories and tasks from a YAML file."""
    with _open_database(db_path) as db:
        try:
            stats = import_notes(db, load_notes_yaml(notes_file))
        except ValueError as e:
            raise click.ClickException(str(e))

    click.echo(
        f"Categories: {stats['categories_created']} created, {stats['categories_existing']} existing"
    )
    click.echo(f"Tasks: {stats['tasks_created']} created, {stats['tasks_updated']} updated")
    for error in stats["errors"]:
        click.echo(f"Warning: {error}", err=True)


@main.command("list")
@click.option("--category", "category_name", default=None,
              help="Category name; omit for uncategorized tasks")
@click.option("--all", "show_all", is_flag=True, help="List tasks of every category")
@click.option("--trash", is_flag=True, help="List deleted tasks")
@click.option("--db-path", default=None, help="SQLite database file")
def list_command(category_name: Optional[str], show_all: bool, trash: bool, db_path: Optional[str]):
    """List tasks, newest first."""
    with _open_database(db_path) as db:
        actions = NoteActions(db)
        if trash:
            tasks = actions.get_deleted_tasks()
        elif show_all:
            tasks = actions.get_tasks()
        elif category_name:
            category = db.find_category_by_name(category_name)
            if category is None:
                raise click.ClickException(f"Unknown category: {category_name}")
            tasks = actions.get_tasks_by_category(category["id"])
        else:
            tasks = actions.get_tasks_by_category(None)

    if not tasks:
        click.echo("No tasks.")
        return
    for task in tasks:
        click.echo(f"{task['id']}  {task['title']}  ({format_task_date(task['created_at'])})")
        excerpt = preview_text(task["content"], limit=80)
        if excerpt:
            click.echo(f"    {excerpt}")


@main.command("check-connection")
@click.option("--db-path", default=None, help="SQLite database file")
def check_connection(db_path: Optional[str]):
    """Verify the database opens and both tables are readable."""
    with _open_database(db_path) as db:
        result = NoteActions(db).check_connection()
    if result["success"]:
        click.echo(f"OK: {result['message']}")
    else:
        click.echo(f"FAILED: {result['error']}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
