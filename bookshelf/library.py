import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .book import Book, BookPayload
from .database import books

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A database failure while serving a single request."""


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Database %s failed: %s", action, e)
        raise StorageError(f"Database {action} failed: {e}") from e


class Library:
    """Manages the book records through a shared connection pool.

    Every operation issues exactly one SQL statement. Writes run inside their
    own ``engine.begin()`` block, so each one commits on its own and nothing
    spans more than one statement.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # ------------------------- Core operations ------------------------- #
    def list_books(self) -> List[Book]:
        with _storage_errors("query"):
            with self.engine.connect() as conn:
                rows = conn.execute(select(books).order_by(books.c.id)).mappings().all()
        return [Book.from_row(row) for row in rows]

    def get_book(self, book_id: int) -> Optional[Book]:
        """Return the book with ``book_id`` or None if there is no such row."""
        with _storage_errors("query"):
            with self.engine.connect() as conn:
                row = conn.execute(select(books).where(books.c.id == book_id)).mappings().first()
        return Book.from_row(row) if row else None

    def add_book(self, payload: BookPayload) -> Book:
        """Insert a new row and return it with the id assigned by the database."""
        with _storage_errors("insert"):
            with self.engine.begin() as conn:
                result = conn.execute(insert(books).values(**payload.to_dict()))
                new_id = result.inserted_primary_key[0]
        if new_id is None:
            raise StorageError("Failed to get last insert ID")
        logger.info("Added book #%s", new_id)
        return Book(id=new_id, **payload.to_dict())

    def update_book(self, book_id: int, payload: BookPayload) -> Optional[Book]:
        """Replace title, author and year of ``book_id``. Returns None if not found."""
        with _storage_errors("update"):
            with self.engine.begin() as conn:
                result = conn.execute(
                    update(books).where(books.c.id == book_id).values(**payload.to_dict())
                )
                matched = result.rowcount
        if matched == 0:
            return None
        logger.info("Updated book #%s", book_id)
        return Book(id=book_id, **payload.to_dict())

    def remove_book(self, book_id: int) -> bool:
        with _storage_errors("delete"):
            with self.engine.begin() as conn:
                result = conn.execute(delete(books).where(books.c.id == book_id))
                deleted = result.rowcount
        if deleted == 0:
            return False
        logger.info("Deleted book #%s", book_id)
        return True
