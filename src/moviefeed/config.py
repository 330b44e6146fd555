from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from moviefeed.cache.policy import DEFAULT_MAX_CACHE_AGE_DAYS


class CachingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    store_path: str = "data/cache/movies_page.json"
    max_age_days: int = Field(default=DEFAULT_MAX_CACHE_AGE_DAYS, ge=0)
    timezone: str = "UTC"

    @field_validator("store_path")
    @classmethod
    def validate_store_path(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("caching.store_path must not be empty")
        return normalized

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class ApiConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str
    api_key_env: str | None = "TMDB_API_KEY"
    timeout_seconds: float = Field(default=10.0, gt=0.0)

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("api.url must not be empty")
        return normalized

    def query_params(self) -> dict[str, str]:
        if not self.api_key_env:
            return {}
        api_key = os.getenv(self.api_key_env, "").strip()
        if not api_key:
            return {}
        return {"api_key": api_key}


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    caching: CachingConfig = Field(default_factory=CachingConfig)
    api: ApiConfig


YAML_SUFFIXES = {".yaml", ".yml"}


def load_config(path: str | Path) -> AppConfig:
    config_path = Path(path)
    payload = _read_config_payload(config_path)
    try:
        return AppConfig.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def _read_config_payload(config_path: Path) -> dict[str, Any]:
    raw = config_path.read_text(encoding="utf-8")
    if config_path.suffix.lower() in YAML_SUFFIXES:
        import yaml

        try:
            parsed = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ValueError(f"Malformed YAML config {config_path}: {exc}") from exc
    else:
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Malformed JSON config {config_path}: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed
