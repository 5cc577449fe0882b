from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Path, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .book import Book, BookPayload
from .config import Settings
from .database import bootstrap_schema, open_pool, ping
from .library import Library, StorageError

# Plain decimal digits with an optional sign, within the signed 64-bit range.
BOOK_ID_PATTERN = r"^[+-]?[0-9]+$"
BOOK_ID_MIN = -(2**63)
BOOK_ID_MAX = 2**63 - 1

NOT_FOUND = {404: {"description": "Book not found"}}
BAD_REQUEST = {400: {"description": "Invalid book ID or request body"}}

router = APIRouter()


def get_library(request: Request) -> Library:
    """Dependency returning the Library bound to the application's pool."""
    return request.app.state.library


def parse_book_id(book_id: Annotated[str, Path(pattern=BOOK_ID_PATTERN, description="Book ID")]) -> int:
    """Dependency turning the path segment into an id.

    Only an optional sign and decimal digits match, so ``1.0``, ``1_000`` or
    ``" 1"`` are reported as ``Invalid book ID`` rather than coerced.
    """
    value = int(book_id)
    if not BOOK_ID_MIN <= value <= BOOK_ID_MAX:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid book ID")
    return value


# --- Books ---
@router.get("/books", response_model=List[Book], tags=["books"], summary="Get all books")
def list_books(library: Library = Depends(get_library)):
    """Retrieve a list of all books from the database."""
    return library.list_books()


@router.get(
    "/books/{book_id}",
    response_model=Book,
    tags=["books"],
    summary="Get a book by ID",
    responses={**BAD_REQUEST, **NOT_FOUND},
)
def get_book(book_id: int = Depends(parse_book_id), library: Library = Depends(get_library)):
    book = library.get_book(book_id)
    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return book


@router.post(
    "/books",
    response_model=Book,
    status_code=status.HTTP_201_CREATED,
    tags=["books"],
    summary="Create a new book",
    responses=BAD_REQUEST,
)
def create_book(payload: BookPayload, library: Library = Depends(get_library)):
    """Add a new book; the id is assigned by the database."""
    return library.add_book(payload)


@router.put(
    "/books/{book_id}",
    response_model=Book,
    tags=["books"],
    summary="Update an existing book",
    responses={**BAD_REQUEST, **NOT_FOUND},
)
def update_book(
    payload: BookPayload,
    book_id: int = Depends(parse_book_id),
    library: Library = Depends(get_library),
):
    """Replace title, author and year of a book. The id always comes from the path."""
    book = library.update_book(book_id, payload)
    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return book


@router.delete(
    "/books/{book_id}",
    tags=["books"],
    summary="Delete a book",
    responses={**BAD_REQUEST, **NOT_FOUND},
)
def delete_book(book_id: int = Depends(parse_book_id), library: Library = Depends(get_library)) -> dict[str, str]:
    if not library.remove_book(book_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return {"message": "Book deleted successfully"}


# --- Health Check ---
@router.get("/health", include_in_schema=False)
def health(library: Library = Depends(get_library)):
    """Liveness check that also reports whether the pool can reach the database."""
    db_ok = True
    try:
        ping(library.engine)
    except SQLAlchemyError:
        db_ok = False
    return {
        "status": "healthy" if db_ok else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "db": db_ok,
    }


# --- Error mapping ---
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed ids and bodies as 400 instead of FastAPI's default 422."""
    errors = exc.errors()
    if any(err["loc"] and err["loc"][0] == "path" for err in errors):
        detail = "Invalid book ID"
    else:
        reason = errors[0]["msg"].removeprefix("Value error, ") if errors else "malformed body"
        detail = f"Invalid request body: {reason}"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})


def create_app(config: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    """Build the application.

    With no ``engine`` the lifespan opens the pool described by ``config``
    and disposes it on shutdown. A caller-supplied engine is used as is and
    left open; only the table is bootstrapped on it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            bootstrap_schema(engine)
            app.state.library = Library(engine)
            yield
        else:
            with open_pool(config) as pool:
                app.state.library = Library(pool)
                yield

    app = FastAPI(
        title=config.app_name if config else "Bookshelf API",
        version=__version__,
        description="A small server for managing a collection of books.",
        docs_url="/swagger",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StorageError, storage_error_handler)
    app.include_router(router)
    return app


app = create_app()
