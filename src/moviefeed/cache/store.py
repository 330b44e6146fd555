from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from pydantic import Field

from moviefeed.schemas import DTOBase


class CacheMovie(DTOBase):
    id: int
    title: str


class CacheMoviesPage(DTOBase):
    page: int = Field(ge=1)
    results: list[CacheMovie] = Field(default_factory=list)
    total_results: int = Field(ge=0)
    total_pages: int = Field(ge=1)


@dataclass(frozen=True, slots=True)
class EmptyCache:
    pass


@dataclass(frozen=True, slots=True)
class FoundCache:
    movies_page: CacheMoviesPage
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class RetrievalFailure:
    error: Exception


RetrievedCachedFeedResult = EmptyCache | FoundCache | RetrievalFailure

DeletionCompletion = Callable[[Exception | None], None]
InsertionCompletion = Callable[[Exception | None], None]
RetrievalCompletion = Callable[[RetrievedCachedFeedResult], None]


class FeedStore(Protocol):
    """Holds at most one cached movies page.

    Every completion is called exactly once, possibly from another thread.
    """

    def delete_cached_feed(self, completion: DeletionCompletion) -> None:
        """Remove the cached page; succeeds when nothing is cached."""

    def insert(
        self,
        movies_page: CacheMoviesPage,
        timestamp: datetime,
        completion: InsertionCompletion,
    ) -> None:
        """Replace whatever is cached with ``movies_page``."""

    def retrieve(self, completion: RetrievalCompletion) -> None:
        """Report the cached page, an empty cache, or why it could not be read."""
