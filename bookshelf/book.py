from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Book(BaseModel):
    """Represents a single book record as stored in the ``books`` table."""

    id: int
    title: str
    author: str
    year: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Book":
        return cls(id=row["id"], title=row["title"], author=row["author"], year=row["year"])


class BookPayload(BaseModel):
    """Request body for creating or replacing a book.

    An ``id`` sent by the client is ignored; the store assigns it on create
    and the path supplies it on update.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    title: str = Field(description="Book title")
    author: str = Field(description="Book author")
    year: int = Field(
        strict=True,
        ge=-(2**31),
        le=2**31 - 1,
        description="Publication year, must be non-zero and fit a 32-bit integer",
    )

    @model_validator(mode="after")
    def _require_fields(self) -> "BookPayload":
        # year 0 is treated as missing
        if not self.title or not self.author or self.year == 0:
            raise ValueError("Title, Author, and Year are required")
        return self

    def to_dict(self) -> dict:
        return {"title": self.title, "author": self.author, "year": self.year}
