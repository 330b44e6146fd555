from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from moviefeed.schemas import MoviesPage


@dataclass(frozen=True, slots=True)
class LoadSuccess:
    movies_page: MoviesPage


@dataclass(frozen=True, slots=True)
class LoadFailure:
    error: Exception


LoadMoviesPageResult = LoadSuccess | LoadFailure
LoadCompletion = Callable[[LoadMoviesPageResult], None]


class CancellationToken:
    """Caller-owned flag telling a loader its result is no longer wanted.

    Cancelling never interrupts work already handed to a store or HTTP
    client; it only suppresses delivery to the caller's completion.
    """

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()


class MoviesPageLoader(Protocol):
    def load(
        self,
        completion: LoadCompletion,
        *,
        token: CancellationToken | None = None,
    ) -> CancellationToken:
        """Deliver one movies page (or a failure) to the completion."""
