from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, ValidationError

from moviefeed.loader import CancellationToken, LoadCompletion, LoadFailure, LoadSuccess
from moviefeed.schemas import Movie, MoviesPage

from .http_client import HTTPClient, HTTPClientResult, HTTPFailure

logger = logging.getLogger(__name__)

OK_200 = 200


class ConnectivityError(Exception):
    """The movies page could not be fetched at all."""


class InvalidDataError(ValueError):
    """The server answered, but not with a usable movies page."""


class _RemoteMovie(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str


class _RemoteMoviesPage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page: int
    results: list[_RemoteMovie]
    total_results: int
    total_pages: int

    def to_domain(self) -> MoviesPage:
        return MoviesPage(
            page=self.page,
            results=[Movie(id=movie.id, title=movie.title) for movie in self.results],
            total_results=self.total_results,
            total_pages=self.total_pages,
        )


def map_movies_page(body: bytes | str, status_code: int) -> MoviesPage:
    if status_code != OK_200:
        raise InvalidDataError(f"unexpected status code {status_code}")
    try:
        return _RemoteMoviesPage.model_validate_json(body).to_domain()
    except ValidationError as exc:
        raise InvalidDataError("response body is not a movies page") from exc


class RemoteMoviesPageLoader:
    def __init__(self, *, url: str, client: HTTPClient) -> None:
        if not url.strip():
            raise ValueError("url must not be empty")
        self.url = url
        self.client = client

    def load(
        self,
        completion: LoadCompletion,
        *,
        token: CancellationToken | None = None,
    ) -> CancellationToken:
        token = token or CancellationToken()

        def on_response(result: HTTPClientResult) -> None:
            if token.is_cancelled:
                return

            if isinstance(result, HTTPFailure):
                error = ConnectivityError(f"failed to fetch {self.url}")
                error.__cause__ = result.error
                completion(LoadFailure(error))
                return

            try:
                movies_page = map_movies_page(result.body, result.status_code)
            except InvalidDataError as exc:
                logger.warning("remote_feed invalid data url=%s error=%s", self.url, exc)
                completion(LoadFailure(exc))
                return
            completion(LoadSuccess(movies_page))

        self.client.get(self.url, on_response)
        return token
