from contextlib import contextmanager
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from bookshelf import main
from bookshelf.book import BookPayload
from bookshelf.main import app

runner = CliRunner()

DB_ENV = {
    "DB_USER": "library_user",
    "DB_PASSWORD": "secret",
    "DB_NAME": "library_db",
    "DB_HOST": "localhost",
    "DB_PORT": "5432",
}


@pytest.fixture
def db_env(monkeypatch):
    for name, value in DB_ENV.items():
        monkeypatch.setenv(name, value)


@pytest.fixture
def test_pool(monkeypatch, engine):
    """Route the CLI's open_pool to the in-memory test database."""

    @contextmanager
    def fake_open_pool(config):
        yield engine

    monkeypatch.setattr(main, "open_pool", fake_open_pool)
    return engine


def test_list_no_books(test_pool):
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "No books in library." in result.stdout


def test_list_books(test_pool, lib):
    lib.add_book(BookPayload(title="Dune", author="Herbert", year=1965))
    lib.add_book(BookPayload(title="Emma", author="Austen", year=1815))

    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "Dune" in result.stdout
    assert "Austen" in result.stdout
    assert "2 book(s)" in result.stdout


def test_init_db(test_pool):
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0
    assert "Database schema created successfully." in result.stdout


def test_init_db_missing_credentials(monkeypatch):
    monkeypatch.delenv("DB_HOST", raising=False)
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 1
    assert "Database credentials not set" in result.stdout


def test_serve_command(db_env, monkeypatch):
    run_mock = MagicMock()
    monkeypatch.setattr(main.uvicorn, "run", run_mock)

    result = runner.invoke(app, ["serve", "--host", "127.0.0.1", "--port", "9090"])

    assert result.exit_code == 0
    assert "Starting Bookshelf API on http://127.0.0.1:9090/" in result.stdout
    run_mock.assert_called_once()
    kwargs = run_mock.call_args.kwargs
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 9090


def test_serve_defaults_to_port_8080(db_env, monkeypatch):
    monkeypatch.delenv("API_PORT", raising=False)
    run_mock = MagicMock()
    monkeypatch.setattr(main.uvicorn, "run", run_mock)

    result = runner.invoke(app, ["serve"])

    assert result.exit_code == 0
    assert run_mock.call_args.kwargs["port"] == 8080


def test_serve_missing_credentials(db_env, monkeypatch):
    monkeypatch.delenv("DB_PASSWORD")
    run_mock = MagicMock()
    monkeypatch.setattr(main.uvicorn, "run", run_mock)

    result = runner.invoke(app, ["serve"])

    assert result.exit_code == 1
    assert "DB_PASSWORD" in result.stdout
    run_mock.assert_not_called()


def test_serve_non_integer_port(db_env, monkeypatch):
    monkeypatch.setenv("API_PORT", "eighty")
    run_mock = MagicMock()
    monkeypatch.setattr(main.uvicorn, "run", run_mock)

    result = runner.invoke(app, ["serve"])

    assert result.exit_code == 1
    assert "API_PORT must be an integer" in result.stdout
    run_mock.assert_not_called()
