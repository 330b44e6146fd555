"""Movies feed fetching with a self-expiring local cache."""

from .config import AppConfig, load_config
from .schemas import Movie, MoviesPage, empty_movies_page

__all__ = [
    "AppConfig",
    "Movie",
    "MoviesPage",
    "empty_movies_page",
    "load_config",
]
