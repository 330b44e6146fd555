"""Remote movies page fetching."""

from .http_client import HTTPClient, HTTPFailure, HTTPResponse, RequestsHTTPClient
from .remote_loader import (
    ConnectivityError,
    InvalidDataError,
    RemoteMoviesPageLoader,
    map_movies_page,
)

__all__ = [
    "ConnectivityError",
    "HTTPClient",
    "HTTPFailure",
    "HTTPResponse",
    "InvalidDataError",
    "RemoteMoviesPageLoader",
    "RequestsHTTPClient",
    "map_movies_page",
]
