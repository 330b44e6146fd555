from __future__ import annotations

import logging
import os
import queue
import tempfile
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, ValidationError

from .store import (
    CacheMovie,
    CacheMoviesPage,
    DeletionCompletion,
    EmptyCache,
    FoundCache,
    InsertionCompletion,
    RetrievalCompletion,
    RetrievalFailure,
    RetrievedCachedFeedResult,
)

logger = logging.getLogger(__name__)

TResult = TypeVar("TResult")


class _StoredBase(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _StoredMovie(_StoredBase):
    id: int
    title: str

    @classmethod
    def from_cache(cls, movie: CacheMovie) -> _StoredMovie:
        return cls(id=movie.id, title=movie.title)

    def to_cache(self) -> CacheMovie:
        return CacheMovie(id=self.id, title=self.title)


class _StoredMoviesPage(_StoredBase):
    page: int
    results: list[_StoredMovie]
    total_results: int = Field(alias="totalResults")
    total_pages: int = Field(alias="totalPages")

    @classmethod
    def from_cache(cls, movies_page: CacheMoviesPage) -> _StoredMoviesPage:
        return cls(
            page=movies_page.page,
            results=[_StoredMovie.from_cache(movie) for movie in movies_page.results],
            totalResults=movies_page.total_results,
            totalPages=movies_page.total_pages,
        )

    def to_cache(self) -> CacheMoviesPage:
        return CacheMoviesPage(
            page=self.page,
            results=[movie.to_cache() for movie in self.results],
            total_results=self.total_results,
            total_pages=self.total_pages,
        )


class _StoredCache(_StoredBase):
    movies_page: _StoredMoviesPage = Field(alias="moviesPage")
    timestamp: AwareDatetime


class FileFeedStore:
    """Single-file JSON feed store.

    Operations run one at a time, in submission order, on a dedicated worker
    thread. Completions are called on that thread.
    """

    def __init__(self, store_path: str | Path) -> None:
        self.store_path = Path(store_path)
        self._queue: queue.Queue[Callable[[], None] | None] = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._worker = threading.Thread(
            target=self._drain,
            name=f"feed-store:{self.store_path.name}",
            daemon=True,
        )
        self._worker.start()

    def __enter__(self) -> FileFeedStore:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def delete_cached_feed(self, completion: DeletionCompletion) -> None:
        self._enqueue("delete", self._delete, completion)

    def insert(
        self,
        movies_page: CacheMoviesPage,
        timestamp: datetime,
        completion: InsertionCompletion,
    ) -> None:
        self._enqueue("insert", lambda: self._insert(movies_page, timestamp), completion)

    def retrieve(self, completion: RetrievalCompletion) -> None:
        self._enqueue("retrieve", self._retrieve, completion)

    def wait_until_idle(self) -> None:
        """Block until every queued operation, including follow-ups queued by
        completions, has finished."""
        if threading.current_thread() is self._worker:
            raise RuntimeError("wait_until_idle() cannot be called from a store completion")
        self._queue.join()

    def close(self) -> None:
        """Reject new callers, run everything already queued (and whatever
        those completions queue in turn), then stop the worker."""
        if threading.current_thread() is self._worker:
            raise RuntimeError("close() cannot be called from a store completion")
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self._queue.join()
        with self._lock:
            self._queue.put(None)
        self._worker.join()

    def _enqueue(
        self,
        operation_name: str,
        operation: Callable[[], TResult],
        completion: Callable[[TResult], None],
    ) -> None:
        def run() -> None:
            result = operation()
            try:
                completion(result)
            except Exception:
                logger.exception(
                    "feed_store completion raised operation=%s path=%s",
                    operation_name,
                    self.store_path,
                )

        with self._lock:
            # Follow-ups queued by completions still run while close() drains.
            if self._closed and threading.current_thread() is not self._worker:
                raise RuntimeError(f"feed store is closed path={self.store_path}")
            self._queue.put(run)

    def _drain(self) -> None:
        while True:
            task = self._queue.get()
            try:
                if task is None:
                    return
                task()
            except Exception:
                logger.exception("feed_store operation crashed path=%s", self.store_path)
            finally:
                self._queue.task_done()

    def _delete(self) -> Exception | None:
        if not self.store_path.exists():
            return None

        try:
            self.store_path.unlink()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("feed_store delete failed path=%s error=%s", self.store_path, exc)
            return exc

        logger.info("feed_store delete path=%s", self.store_path)
        return None

    def _insert(self, movies_page: CacheMoviesPage, timestamp: datetime) -> Exception | None:
        temp_path: Path | None = None
        try:
            stored = _StoredCache(
                moviesPage=_StoredMoviesPage.from_cache(movies_page),
                timestamp=timestamp,
            )
            payload = stored.model_dump_json(by_alias=True)

            fd, raw_temp_path = tempfile.mkstemp(
                prefix=f".{self.store_path.name}.",
                suffix=".tmp",
                dir=self.store_path.parent,
            )
            temp_path = Path(raw_temp_path)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())

            os.replace(temp_path, self.store_path)
            temp_path = None
        except (OSError, ValueError) as exc:
            logger.warning("feed_store insert failed path=%s error=%s", self.store_path, exc)
            return exc
        finally:
            if temp_path is not None:
                self._discard_temp_file(temp_path)

        logger.info(
            "feed_store insert path=%s movies=%s timestamp=%s",
            self.store_path,
            len(movies_page.results),
            timestamp.isoformat(),
        )
        return None

    def _retrieve(self) -> RetrievedCachedFeedResult:
        try:
            raw = self.store_path.read_bytes()
        except FileNotFoundError:
            logger.info("feed_store miss path=%s reason=not_found", self.store_path)
            return EmptyCache()
        except OSError as exc:
            logger.warning("feed_store retrieve failed path=%s error=%s", self.store_path, exc)
            return RetrievalFailure(exc)

        try:
            stored = _StoredCache.model_validate_json(raw)
            movies_page = stored.movies_page.to_cache()
        except ValidationError as exc:
            logger.warning(
                "feed_store retrieve failed path=%s reason=invalid_format errors=%s",
                self.store_path,
                exc.error_count(),
            )
            return RetrievalFailure(exc)

        logger.info("feed_store hit path=%s", self.store_path)
        return FoundCache(movies_page=movies_page, timestamp=stored.timestamp)

    @staticmethod
    def _discard_temp_file(temp_path: Path) -> None:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            logger.exception("feed_store failed to remove temp file path=%s", temp_path)
