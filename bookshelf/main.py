import logging
from typing import NoReturn, Optional

import typer
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from .api import create_app
from .config import ConfigurationError, Settings
from .database import open_pool
from .library import Library, StorageError

APP_NAME = "Bookshelf CLI"

console = Console()

app = typer.Typer(help=APP_NAME)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _fail(message) -> NoReturn:
    console.print(f"[bold red]Error:[/] {escape(str(message))}")
    raise typer.Exit(code=1)


def _load_settings() -> Settings:
    try:
        config = Settings()
    except ConfigurationError as e:
        _fail(e)
    _configure_logging(config.log_level)
    return config


@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host", help="Listen address (default: API_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="Listen port (default: API_PORT)"),
):
    """Start the HTTP API with uvicorn."""
    config = _load_settings()
    # Fail before uvicorn starts when credentials are missing.
    try:
        config.database_url()
    except ConfigurationError as e:
        _fail(e)

    host = host or config.api_host
    port = port or config.api_port
    console.print(f"[green]Starting Bookshelf API on http://{host}:{port}/[/]")
    uvicorn.run(create_app(config), host=host, port=port, log_level=config.log_level.lower())


@app.command("init-db")
def cli_init_db():
    """Create the books table if needed and exit."""
    config = _load_settings()
    try:
        with open_pool(config):
            pass
    except ConfigurationError as e:
        _fail(e)
    except SQLAlchemyError as e:
        _fail(f"Database initialization failed: {e}")
    console.print("Database schema created successfully.")


@app.command("list")
def cli_list():
    """Print every stored book."""
    config = _load_settings()
    try:
        with open_pool(config) as engine:
            books = Library(engine).list_books()
    except ConfigurationError as e:
        _fail(e)
    except (SQLAlchemyError, StorageError) as e:
        _fail(e)

    if not books:
        console.print("No books in library.")
        return

    table = Table(title="Books", header_style="bold cyan")
    table.add_column("ID", style="magenta", justify="right", no_wrap=True)
    table.add_column("Title")
    table.add_column("Author")
    table.add_column("Year", justify="right")
    for book in books:
        table.add_row(str(book.id), book.title, book.author, str(book.year))
    console.print(table)
    console.print(f"[dim]{len(books)} book(s)[/]")
