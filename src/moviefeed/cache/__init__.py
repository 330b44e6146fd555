"""Local movies page cache: store contract, file store, expiry policy, loader."""

from .file_store import FileFeedStore
from .local_loader import LocalFeedLoader
from .policy import DEFAULT_MAX_CACHE_AGE_DAYS, FeedCachePolicy
from .store import (
    CacheMovie,
    CacheMoviesPage,
    EmptyCache,
    FeedStore,
    FoundCache,
    RetrievalFailure,
    RetrievedCachedFeedResult,
)

__all__ = [
    "DEFAULT_MAX_CACHE_AGE_DAYS",
    "CacheMovie",
    "CacheMoviesPage",
    "EmptyCache",
    "FeedCachePolicy",
    "FeedStore",
    "FileFeedStore",
    "FoundCache",
    "LocalFeedLoader",
    "RetrievalFailure",
    "RetrievedCachedFeedResult",
]
