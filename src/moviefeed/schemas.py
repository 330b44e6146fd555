from __future__ import annotations

from datetime import UTC, datetime, tzinfo

from pydantic import BaseModel, ConfigDict, Field


def now_utc() -> datetime:
    return datetime.now(tz=UTC)


def normalize_datetime(value: datetime, tz: tzinfo = UTC) -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


class DTOBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class Movie(DTOBase):
    id: int
    title: str


class MoviesPage(DTOBase):
    page: int = Field(ge=1)
    results: list[Movie] = Field(default_factory=list)
    total_results: int = Field(ge=0)
    total_pages: int = Field(ge=1)


def empty_movies_page() -> MoviesPage:
    """Page reported when the cache holds nothing usable."""
    return MoviesPage(page=1, results=[], total_results=1, total_pages=1)
