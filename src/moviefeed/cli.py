from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future
from pathlib import Path
from typing import Any, TypeVar

import typer

from moviefeed import AppConfig, load_config
from moviefeed.api import (
    ConnectivityError,
    RemoteMoviesPageLoader,
    RequestsHTTPClient,
)
from moviefeed.cache import (
    EmptyCache,
    FeedCachePolicy,
    FileFeedStore,
    FoundCache,
    LocalFeedLoader,
    RetrievedCachedFeedResult,
)
from moviefeed.loader import LoadFailure, LoadMoviesPageResult, MoviesPageLoader
from moviefeed.schemas import MoviesPage

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

T = TypeVar("T")

WAIT_TIMEOUT_SECONDS = 60.0

app = typer.Typer(help="MovieFeed CLI")


def _config_option() -> Any:
    return typer.Option(
        Path("config/config.example.yaml"),
        "--config",
        help="Config file path.",
        exists=True,
        dir_okay=False,
        readable=True,
    )


@app.command()
def fetch(config_path: Path = _config_option()) -> None:
    """Fetch the movies page and cache it; fall back to the cache when offline."""
    config = load_config(config_path)
    client = RequestsHTTPClient(
        timeout_seconds=config.api.timeout_seconds,
        params=config.api.query_params(),
    )
    remote = RemoteMoviesPageLoader(url=config.api.url, client=client)

    try:
        remote_result = _load(remote)
    finally:
        client.close()

    with _open_store(config) as store:
        local = _build_local_loader(config, store)

        if isinstance(remote_result, LoadFailure):
            if not isinstance(remote_result.error, ConnectivityError):
                typer.echo(f"fetch failed: {remote_result.error}", err=True)
                raise typer.Exit(code=1)

            logging.warning("remote fetch failed, falling back to cache url=%s", config.api.url)
            cached = _unwrap(_load(local))
            typer.echo(f"offline: {_describe(cached)} from cache")
            return

        movies_page = remote_result.movies_page
        save_error = _wait_for(lambda completion: local.save(movies_page, completion))
        if save_error is not None:
            typer.echo(f"cache save failed: {save_error}", err=True)
            raise typer.Exit(code=1)

    typer.echo(f"cached {_describe(movies_page)}")


@app.command()
def show(config_path: Path = _config_option()) -> None:
    """Print the cached movies page."""
    config = load_config(config_path)
    with _open_store(config) as store:
        movies_page = _unwrap(_load(_build_local_loader(config, store)))

    typer.echo(_describe(movies_page))
    for movie in movies_page.results:
        typer.echo(f"{movie.id}\t{movie.title}")


@app.command("validate-cache")
def validate_cache(config_path: Path = _config_option()) -> None:
    """Delete the cached page if it has expired or cannot be read."""
    config = load_config(config_path)
    with _open_store(config) as store:
        _build_local_loader(config, store).validate_cache()
        store.wait_until_idle()
        state = _wait_for(store.retrieve)

    typer.echo(f"cache {_describe_state(state)}")


@app.command("clear-cache")
def clear_cache(config_path: Path = _config_option()) -> None:
    """Delete the cached page."""
    config = load_config(config_path)
    with _open_store(config) as store:
        error = _wait_for(store.delete_cached_feed)

    if error is not None:
        typer.echo(f"cache delete failed: {error}", err=True)
        raise typer.Exit(code=1)
    typer.echo("cache cleared")


def _open_store(config: AppConfig) -> FileFeedStore:
    store_path = Path(config.caching.store_path)
    store_path.parent.mkdir(parents=True, exist_ok=True)
    return FileFeedStore(store_path)


def _build_local_loader(config: AppConfig, store: FileFeedStore) -> LocalFeedLoader:
    policy = FeedCachePolicy(
        max_age_days=config.caching.max_age_days,
        timezone=config.caching.zone,
    )
    return LocalFeedLoader(store=store, policy=policy)


def _wait_for(start: Callable[[Callable[[T], None]], object]) -> T:
    future: Future[T] = Future()
    start(future.set_result)
    return future.result(timeout=WAIT_TIMEOUT_SECONDS)


def _load(loader: MoviesPageLoader) -> LoadMoviesPageResult:
    return _wait_for(loader.load)


def _unwrap(result: LoadMoviesPageResult) -> MoviesPage:
    if isinstance(result, LoadFailure):
        typer.echo(f"cache load failed: {result.error}", err=True)
        raise typer.Exit(code=1)
    return result.movies_page


def _describe(movies_page: MoviesPage) -> str:
    return (
        f"page={movies_page.page} movies={len(movies_page.results)} "
        f"total_results={movies_page.total_results} total_pages={movies_page.total_pages}"
    )


def _describe_state(state: RetrievedCachedFeedResult) -> str:
    if isinstance(state, EmptyCache):
        return "empty"
    if isinstance(state, FoundCache):
        return f"holds {_describe(state.movies_page)} cached_at={state.timestamp.isoformat()}"
    return f"unreadable: {state.error}"
