from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable, Iterator
from concurrent.futures import Future
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

import moviefeed.cache.file_store as file_store_module
from moviefeed.cache import (
    CacheMovie,
    CacheMoviesPage,
    EmptyCache,
    FileFeedStore,
    FoundCache,
    RetrievalFailure,
)

T0 = datetime(2026, 10, 19, 12, 0, 30, 123456, tzinfo=UTC)


def _movies_page(*titles: str, page: int = 1) -> CacheMoviesPage:
    return CacheMoviesPage(
        page=page,
        results=[CacheMovie(id=index, title=title) for index, title in enumerate(titles, start=1)],
        total_results=len(titles),
        total_pages=3,
    )


def _wait(start: Callable[[Callable[[Any], None]], None]) -> Any:
    future: Future[Any] = Future()
    start(future.set_result)
    return future.result(timeout=5)


def _insert(store: FileFeedStore, movies_page: CacheMoviesPage, timestamp: datetime) -> Any:
    return _wait(lambda completion: store.insert(movies_page, timestamp, completion))


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "movies_page.json"


@pytest.fixture
def store(store_path: Path) -> Iterator[FileFeedStore]:
    with FileFeedStore(store_path) as feed_store:
        yield feed_store


def test_retrieve_on_empty_cache_delivers_empty_twice(store) -> None:
    assert _wait(store.retrieve) == EmptyCache()
    assert _wait(store.retrieve) == EmptyCache()


def test_retrieve_after_insert_delivers_found_values_without_side_effects(store) -> None:
    movies_page = _movies_page("Alien", "Heat")

    assert _insert(store, movies_page, T0) is None

    expected = FoundCache(movies_page=movies_page, timestamp=T0)
    assert _wait(store.retrieve) == expected
    assert _wait(store.retrieve) == expected


def test_insert_overrides_previous_value(store) -> None:
    assert _insert(store, _movies_page("Alien"), T0) is None

    latest = _movies_page("Heat", "Ronin", page=2)
    latest_timestamp = T0 + timedelta(hours=1)
    assert _insert(store, latest, latest_timestamp) is None

    assert _wait(store.retrieve) == FoundCache(movies_page=latest, timestamp=latest_timestamp)


def test_insert_writes_stable_on_disk_layout(store, store_path) -> None:
    assert _insert(store, _movies_page("Alien"), T0) is None

    payload = json.loads(store_path.read_text(encoding="utf-8"))
    assert set(payload) == {"moviesPage", "timestamp"}
    assert payload["moviesPage"] == {
        "page": 1,
        "results": [{"id": 1, "title": "Alien"}],
        "totalResults": 1,
        "totalPages": 3,
    }
    assert datetime.fromisoformat(payload["timestamp"]) == T0


def test_insert_leaves_no_temp_files(store, store_path) -> None:
    assert _insert(store, _movies_page("Alien"), T0) is None
    assert _insert(store, _movies_page("Heat"), T0) is None

    assert sorted(path.name for path in store_path.parent.iterdir()) == [store_path.name]


def test_insert_into_missing_directory_delivers_error_without_side_effects(tmp_path) -> None:
    with FileFeedStore(tmp_path / "missing" / "movies_page.json") as store:
        error = _insert(store, _movies_page("Alien"), T0)

        assert isinstance(error, OSError)
        assert _wait(store.retrieve) == EmptyCache()


def test_failed_replace_keeps_previous_value(monkeypatch, store, store_path) -> None:
    previous = _movies_page("Alien")
    assert _insert(store, previous, T0) is None

    def failing_replace(src: Any, dst: Any) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(file_store_module.os, "replace", failing_replace)

    error = _insert(store, _movies_page("Heat"), T0 + timedelta(hours=1))

    assert isinstance(error, OSError)
    assert _wait(store.retrieve) == FoundCache(movies_page=previous, timestamp=T0)
    assert sorted(path.name for path in store_path.parent.iterdir()) == [store_path.name]


def test_insert_with_naive_timestamp_delivers_error(store) -> None:
    error = _insert(store, _movies_page("Alien"), datetime(2026, 10, 19, 12, 0))

    assert isinstance(error, ValueError)
    assert _wait(store.retrieve) == EmptyCache()


def test_retrieve_invalid_data_delivers_failure_twice(store, store_path) -> None:
    store_path.write_text("invalid data", encoding="utf-8")

    first = _wait(store.retrieve)
    second = _wait(store.retrieve)

    assert isinstance(first, RetrievalFailure)
    assert isinstance(first.error, ValidationError)
    assert isinstance(second, RetrievalFailure)
    assert store_path.exists()


def test_retrieve_schema_mismatch_delivers_failure(store, store_path) -> None:
    store_path.write_text(
        json.dumps(
            {
                "moviesPage": {"page": 1, "results": [], "total_results": 0, "total_pages": 1},
                "timestamp": T0.isoformat(),
            }
        ),
        encoding="utf-8",
    )

    assert isinstance(_wait(store.retrieve), RetrievalFailure)


def test_retrieve_out_of_range_page_delivers_failure(store, store_path) -> None:
    store_path.write_text(
        json.dumps(
            {
                "moviesPage": {"page": 0, "results": [], "totalResults": 0, "totalPages": 1},
                "timestamp": T0.isoformat(),
            }
        ),
        encoding="utf-8",
    )

    assert isinstance(_wait(store.retrieve), RetrievalFailure)


def test_delete_on_empty_cache_succeeds_without_side_effects(store) -> None:
    assert _wait(store.delete_cached_feed) is None
    assert _wait(store.retrieve) == EmptyCache()


def test_delete_on_non_empty_cache_empties_it(store, store_path) -> None:
    assert _insert(store, _movies_page("Alien"), T0) is None

    assert _wait(store.delete_cached_feed) is None
    assert _wait(store.retrieve) == EmptyCache()
    assert not store_path.exists()


def test_delete_error_is_delivered_and_state_kept(tmp_path) -> None:
    store_path = tmp_path / "not-a-file"
    store_path.mkdir()
    (store_path / "keep.txt").write_text("x", encoding="utf-8")

    with FileFeedStore(store_path) as store:
        error = _wait(store.delete_cached_feed)

        assert isinstance(error, OSError)
        assert (store_path / "keep.txt").exists()
        assert isinstance(_wait(store.retrieve), RetrievalFailure)


def test_side_effects_run_serially_in_submission_order(store) -> None:
    completed: list[str] = []
    latest = _movies_page("Heat")

    def slow_first_insert(error: Exception | None) -> None:
        time.sleep(0.05)
        completed.append("insert-1")

    store.insert(_movies_page("Alien"), T0, slow_first_insert)
    store.delete_cached_feed(lambda error: completed.append("delete"))
    store.insert(latest, T0, lambda error: completed.append("insert-2"))
    store.wait_until_idle()

    assert completed == ["insert-1", "delete", "insert-2"]
    assert _wait(store.retrieve) == FoundCache(movies_page=latest, timestamp=T0)


def test_operations_from_many_threads_never_overlap(store) -> None:
    active = {"count": 0, "max": 0}
    lock = threading.Lock()

    def track(_: Any) -> None:
        with lock:
            active["count"] += 1
            active["max"] = max(active["max"], active["count"])
        time.sleep(0.001)
        with lock:
            active["count"] -= 1

    def submit() -> None:
        for _ in range(10):
            store.insert(_movies_page("Alien"), T0, track)
            store.retrieve(track)
            store.delete_cached_feed(track)

    threads = [threading.Thread(target=submit) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    store.wait_until_idle()

    assert active["max"] == 1


def test_raising_completion_does_not_stop_the_lane(store) -> None:
    def broken(_: Any) -> None:
        raise RuntimeError("caller bug")

    store.retrieve(broken)

    assert _wait(store.retrieve) == EmptyCache()


def test_wait_until_idle_covers_operations_queued_by_completions(store, store_path) -> None:
    assert _insert(store, _movies_page("Alien"), T0) is None

    store.retrieve(lambda result: store.delete_cached_feed(lambda error: None))
    store.wait_until_idle()

    assert not store_path.exists()


def test_close_runs_follow_ups_queued_by_running_completions(store_path) -> None:
    store = FileFeedStore(store_path)
    assert _insert(store, _movies_page("Alien"), T0) is None
    release = threading.Event()
    follow_up: list[Exception | None] = []

    def evict_after_release(result: Any) -> None:
        release.wait(timeout=5)
        store.delete_cached_feed(follow_up.append)

    store.retrieve(evict_after_release)
    closer = threading.Thread(target=store.close)
    closer.start()

    rejected = False
    for _ in range(500):
        try:
            store.retrieve(lambda result: None)
        except RuntimeError:
            rejected = True
            break
        time.sleep(0.01)
    release.set()
    closer.join(timeout=5)

    assert rejected is True
    assert not closer.is_alive()
    assert follow_up == [None]
    assert not store_path.exists()


def test_closed_store_rejects_new_operations(store_path) -> None:
    store = FileFeedStore(store_path)
    store.close()
    store.close()

    with pytest.raises(RuntimeError, match="closed"):
        store.retrieve(lambda result: None)
