"""Entry-point for the LectureHub application."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from datetime import date
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn

from lecturehub.bootstrap import initialize_app
from lecturehub.logging_utils import build_cli_handlers, configure_logging
from lecturehub.services.catalog import CatalogService
from lecturehub.services.demo import seed_demo_data
from lecturehub.services.documents import DocumentSnapshot, create_document_store
from lecturehub.services.export import render_week_schedule_pdf, schedule_pdf_filename, write_export
from lecturehub.services.models import Schedule, parse_date
from lecturehub.ui.console import ConsoleUI
from lecturehub.ui.modern import ModernUI
from lecturehub.web import create_app


LOGGER = logging.getLogger("lecturehub.cli")


cli = typer.Typer(add_completion=False, help="LectureHub management commands")


def _prepare_logging(storage_root: Path) -> None:
    configure_logging(handlers=build_cli_handlers(storage_root))


class UIStyle(str, Enum):
    MODERN = "modern"
    CONSOLE = "console"


style_option = typer.Option(
    UIStyle.MODERN,
    "--style",
    "-s",
    help="Select the overview presentation style.",
    show_default=True,
)


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


@cli.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Launch the web server when no explicit command is provided."""

    if ctx.invoked_subcommand is None:
        ctx.invoke(serve, host=DEFAULT_HOST, port=DEFAULT_PORT, root_path=None, open_browser=True)


def _normalize_root_path(root_path: Optional[str]) -> str:
    if root_path is None:
        return ""
    normalized = root_path.strip().rstrip("/")
    if not normalized:
        return ""
    if not normalized.startswith("/"):
        normalized = f"/{normalized}"
    return normalized


@cli.command()
def serve(
    host: str = typer.Option(DEFAULT_HOST, help="Host interface for the web server"),
    port: int = typer.Option(DEFAULT_PORT, help="Port for the web server"),
    root_path: Optional[str] = typer.Option(
        None,
        help="Prefix the application expects when mounted behind a proxy",
        envvar="LECTUREHUB_ROOT_PATH",
    ),
    open_browser: bool = typer.Option(True, "--open-browser/--no-browser", help="Open the API docs on start"),
) -> None:
    """Run the FastAPI dashboard API."""

    app_config = initialize_app()
    _prepare_logging(app_config.storage_root)

    store = create_document_store(app_config)
    normalized_root = _normalize_root_path(root_path)
    app = create_app(store, config=app_config, root_path=normalized_root)

    server_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_config=None,
        root_path=normalized_root,
    )
    server = uvicorn.Server(server_config)
    app.state.server = server

    browser_host = host
    if not browser_host or browser_host in {"0.0.0.0", "::"}:
        browser_host = "127.0.0.1"
    url = f"http://{browser_host}:{port}{normalized_root}/docs"

    def _open_browser_later() -> None:
        time.sleep(1.0)
        try:
            webbrowser.open(url, new=2, autoraise=True)
        except webbrowser.Error as error:
            LOGGER.warning("Could not open a browser at %s: %s", url, error)

    if open_browser:
        threading.Thread(target=_open_browser_later, daemon=True).start()

    server.run()


@cli.command()
def overview(style: UIStyle = style_option) -> None:
    """Render departments, programs and courses using the chosen UI style."""

    config = initialize_app()
    _prepare_logging(config.storage_root)

    catalog = CatalogService(create_document_store(config))
    if style is UIStyle.MODERN:
        ui = ModernUI(catalog)
    else:
        ui = ConsoleUI(catalog)
    ui.run()


@cli.command("export-schedule")
def export_schedule(
    week_of: Optional[str] = typer.Option(
        None, "--date", "-d", help="Any date (YYYY-MM-DD) inside the week to export; defaults to today"
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        file_okay=False,
        dir_okay=True,
        help="Directory for the PDF; defaults to the configured exports folder",
    ),
    lecturer_id: Optional[str] = typer.Option(None, help="Only include this lecturer's sessions"),
) -> None:
    """Write the weekly schedule PDF for the week containing ``--date``."""

    selected = parse_date(week_of) if week_of else date.today()
    if selected is None:
        raise typer.BadParameter(f"Invalid date '{week_of}'. Use YYYY-MM-DD.", param_hint="--date")

    config = initialize_app()
    _prepare_logging(config.storage_root)

    catalog = CatalogService(create_document_store(config))
    schedules = catalog.list_schedules(lecturer_id=lecturer_id)
    content = render_week_schedule_pdf(schedules, selected, university_name=config.university_name)
    target = write_export(
        output or config.exports_root,
        schedule_pdf_filename(config.university_code, selected),
        content,
    )
    typer.echo(f"Weekly schedule saved to: {target}")


@cli.command("watch-schedules")
def watch_schedules(
    timeout: Optional[float] = typer.Option(
        None, help="Stop after this many seconds; runs until interrupted by default"
    ),
) -> None:
    """Print the schedule list each time it changes."""

    config = initialize_app()
    _prepare_logging(config.storage_root)
    store = create_document_store(config)

    def _print_snapshot(snapshots: List[DocumentSnapshot]) -> None:
        schedules = sorted(
            (Schedule.from_snapshot(snapshot) for snapshot in snapshots),
            key=lambda item: (item.date, item.start_time),
        )
        typer.echo(f"{len(schedules)} schedule(s)")
        for schedule in schedules:
            typer.echo(f"  {schedule.date} {schedule.start_time}-{schedule.end_time}  {schedule.title}")

    unsubscribe = store.watch("schedules", _print_snapshot)
    deadline = time.monotonic() + timeout if timeout is not None else None
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.2)
    except KeyboardInterrupt:
        typer.echo("Stopped watching schedules.")
    finally:
        unsubscribe()


@cli.command()
def seed() -> None:
    """Load a small demo dataset into an empty database."""

    config = initialize_app()
    _prepare_logging(config.storage_root)

    counts = seed_demo_data(CatalogService(create_document_store(config)))
    if not counts:
        typer.echo("Database already contains departments; nothing was added.")
        return
    for collection, count in counts.items():
        typer.echo(f"  {collection}: {count}")
    typer.echo("Demo data loaded.")


if __name__ == "__main__":
    cli()
