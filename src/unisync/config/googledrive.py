"""Google Drive configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import CacheConfig, ResilienceConfig, RetryPolicy, ShouldCacheHook

GOOGLEDRIVE_BASE_URL = "https://www.googleapis.com/drive/v3/"
GOOGLEDRIVE_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class GoogleDriveConfig:
    """Holds the Drive access token and HTTP resilience settings."""

    access_token: str
    resilience: ResilienceConfig


def googledrive_resilience(
    *,
    cache_predicate: ShouldCacheHook | None = None,
) -> ResilienceConfig:
    return ResilienceConfig(
        name="googledrive",
        base_url=GOOGLEDRIVE_BASE_URL,
        timeout_seconds=GOOGLEDRIVE_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=3),
        cache=CacheConfig(backend="memory", should_cache=cache_predicate),
    )


def get_googledrive_config(
    *,
    access_token: str | None = None,
    resilience: ResilienceConfig | None = None,
    cache_predicate: ShouldCacheHook | None = None,
) -> GoogleDriveConfig:
    if access_token is None:
        access_token = require_env_vars(("GOOGLEDRIVE_ACCESS_TOKEN",))["GOOGLEDRIVE_ACCESS_TOKEN"]
    return GoogleDriveConfig(
        access_token=access_token,
        resilience=resilience or googledrive_resilience(cache_predicate=cache_predicate),
    )
