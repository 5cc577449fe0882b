"""Connection pool and schema bootstrap for the ``books`` table.

The pool is a SQLAlchemy ``Engine``. It is built once per process by
``open_pool`` and handed to whoever needs it; nothing here keeps a
module-level connection handle.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Union

from sqlalchemy import Column, Integer, MetaData, Table, Text, create_engine, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.pool import StaticPool

from .config import Settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_OPEN = 10
DEFAULT_MAX_IDLE = 5

metadata = MetaData()

books = Table(
    "books",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", Text, nullable=False),
    Column("author", Text, nullable=False),
    Column("year", Integer, nullable=False),
    sqlite_autoincrement=True,
)


def create_pool(
    url: Union[str, URL],
    max_open: int = DEFAULT_MAX_OPEN,
    max_idle: int = DEFAULT_MAX_IDLE,
    echo: bool = False,
) -> Engine:
    """Create the shared connection pool.

    ``max_idle`` connections are kept open between requests and up to
    ``max_open`` may be checked out at once. Connections are never recycled
    on age.
    """
    if max_idle > max_open:
        raise ValueError("max_idle cannot exceed max_open")

    url = make_url(url)
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        # An in-memory database only exists inside one connection, so every
        # thread has to share it.
        engine = create_engine(
            url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_size=max_idle,
            max_overflow=max_open - max_idle,
            pool_recycle=-1,
        )
    logger.info(
        "Database connection pool created for %s (max_open=%d, max_idle=%d)",
        url.render_as_string(hide_password=True),
        max_open,
        max_idle,
    )
    return engine


def ping(engine: Engine) -> None:
    """Run ``SELECT 1`` through the pool; driver errors propagate."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def bootstrap_schema(engine: Engine) -> None:
    """Create the ``books`` table if it does not exist yet."""
    metadata.create_all(engine, checkfirst=True)
    logger.info("Database schema initialized successfully.")


@contextmanager
def open_pool(config: Optional[Settings] = None) -> Iterator[Engine]:
    """Open the pool described by ``config`` and release it on exit.

    Raises ``ConfigurationError`` for missing credentials and lets driver
    errors from the connectivity check or table creation escape; both are
    fatal at startup. With no ``config`` the settings are read from the
    environment now.
    """
    if config is None:
        config = Settings()
    engine = create_pool(
        config.database_url(),
        max_open=config.pool_max_open,
        max_idle=config.pool_max_idle,
        echo=config.debug,
    )
    try:
        ping(engine)
        logger.info("Successfully connected to the database.")
        bootstrap_schema(engine)
        yield engine
    finally:
        engine.dispose()
        logger.info("Database connection pool closed.")
