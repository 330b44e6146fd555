from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Protocol

import requests

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HTTPResponse:
    status_code: int
    body: bytes


@dataclass(frozen=True, slots=True)
class HTTPFailure:
    error: Exception


HTTPClientResult = HTTPResponse | HTTPFailure


class HTTPClient(Protocol):
    def get(self, url: str, completion: Callable[[HTTPClientResult], None]) -> None:
        """Fetch ``url`` and report the response or the transport error."""


class RequestsHTTPClient:
    """``requests`` based client running each GET on a background thread."""

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout_seconds: float = 10.0,
        params: Mapping[str, str] | None = None,
        max_workers: int = 2,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds
        self.params = dict(params or {})
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="moviefeed-http",
        )

        self.session.headers.setdefault(
            "User-Agent",
            "Mozilla/5.0 (compatible; moviefeed/0.1.0)",
        )

    def get(self, url: str, completion: Callable[[HTTPClientResult], None]) -> None:
        self._executor.submit(self._get, url, completion)

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self.session.close()

    def _get(self, url: str, completion: Callable[[HTTPClientResult], None]) -> None:
        try:
            response = self.session.get(url, params=self.params, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            logger.warning("http get failed url=%s error=%s", url, exc)
            result: HTTPClientResult = HTTPFailure(exc)
        except Exception as exc:
            logger.exception("http get crashed url=%s", url)
            result = HTTPFailure(exc)
        else:
            logger.info("http get url=%s status=%s", url, response.status_code)
            result = HTTPResponse(status_code=response.status_code, body=response.content)

        try:
            completion(result)
        except Exception:
            logger.exception("http completion raised url=%s", url)
