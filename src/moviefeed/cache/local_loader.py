from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from moviefeed.loader import CancellationToken, LoadCompletion, LoadFailure, LoadSuccess
from moviefeed.schemas import Movie, MoviesPage, empty_movies_page, now_utc

from .policy import FeedCachePolicy
from .store import (
    CacheMovie,
    CacheMoviesPage,
    FeedStore,
    FoundCache,
    RetrievalFailure,
    RetrievedCachedFeedResult,
)

logger = logging.getLogger(__name__)

SaveCompletion = Callable[[Exception | None], None]


class LocalFeedLoader:
    """Caches one movies page through a ``FeedStore``.

    ``load`` treats an expired page like an empty cache but leaves it in the
    store; only ``validate_cache`` deletes expired or unreadable data.
    """

    def __init__(
        self,
        *,
        store: FeedStore,
        current_date: Callable[[], datetime] = now_utc,
        policy: FeedCachePolicy | None = None,
    ) -> None:
        self.store = store
        self.current_date = current_date
        self.policy = policy or FeedCachePolicy()

    def save(
        self,
        movies_page: MoviesPage,
        completion: SaveCompletion,
        *,
        token: CancellationToken | None = None,
    ) -> CancellationToken:
        token = token or CancellationToken()

        def on_deletion(error: Exception | None) -> None:
            if token.is_cancelled:
                return
            if error is not None:
                logger.warning("local_feed save aborted reason=delete_failed error=%s", error)
                completion(error)
                return
            self._cache(movies_page, completion, token)

        self.store.delete_cached_feed(on_deletion)
        return token

    def load(
        self,
        completion: LoadCompletion,
        *,
        token: CancellationToken | None = None,
    ) -> CancellationToken:
        token = token or CancellationToken()

        def on_retrieval(result: RetrievedCachedFeedResult) -> None:
            if token.is_cancelled:
                return

            if isinstance(result, RetrievalFailure):
                completion(LoadFailure(result.error))
            elif isinstance(result, FoundCache) and self._is_fresh(result):
                completion(LoadSuccess(_to_domain(result.movies_page)))
            else:
                completion(LoadSuccess(empty_movies_page()))

        self.store.retrieve(on_retrieval)
        return token

    def validate_cache(self) -> None:
        def on_retrieval(result: RetrievedCachedFeedResult) -> None:
            if isinstance(result, RetrievalFailure):
                logger.info("local_feed evict reason=unreadable")
                self.store.delete_cached_feed(_ignore_deletion)
            elif isinstance(result, FoundCache) and not self._is_fresh(result):
                logger.info("local_feed evict reason=expired timestamp=%s", result.timestamp)
                self.store.delete_cached_feed(_ignore_deletion)

        self.store.retrieve(on_retrieval)

    def _cache(
        self,
        movies_page: MoviesPage,
        completion: SaveCompletion,
        token: CancellationToken,
    ) -> None:
        def on_insertion(error: Exception | None) -> None:
            if token.is_cancelled:
                return
            completion(error)

        self.store.insert(_to_cache(movies_page), self.current_date(), on_insertion)

    def _is_fresh(self, found: FoundCache) -> bool:
        return self.policy.validate(found.timestamp, against=self.current_date())


def _ignore_deletion(error: Exception | None) -> None:
    if error is not None:
        logger.warning("local_feed evict failed error=%s", error)


def _to_cache(movies_page: MoviesPage) -> CacheMoviesPage:
    return CacheMoviesPage(
        page=movies_page.page,
        results=[CacheMovie(id=movie.id, title=movie.title) for movie in movies_page.results],
        total_results=movies_page.total_results,
        total_pages=movies_page.total_pages,
    )


def _to_domain(movies_page: CacheMoviesPage) -> MoviesPage:
    return MoviesPage(
        page=movies_page.page,
        results=[Movie(id=movie.id, title=movie.title) for movie in movies_page.results],
        total_results=movies_page.total_results,
        total_pages=movies_page.total_pages,
    )
