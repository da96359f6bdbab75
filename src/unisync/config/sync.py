"""Synchronization defaults for the reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_float, optional_env_int

DEFAULT_MIN_CALL_SPACING_SECONDS = 0.1
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_BACKOFF_SECONDS = 1.0
DEFAULT_TRAVERSAL_CONCURRENCY = 8
DEFAULT_PAGE_SIZE = 100


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Pacing, retry and fan-out knobs shared by every connector."""

    min_call_spacing_seconds: float = DEFAULT_MIN_CALL_SPACING_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    base_backoff_seconds: float = DEFAULT_BASE_BACKOFF_SECONDS
    traversal_concurrency: int = DEFAULT_TRAVERSAL_CONCURRENCY
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.traversal_concurrency < 1:
            raise ValueError("traversal_concurrency must be at least 1")
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        min_call_spacing_seconds=optional_env_float(
            "UNISYNC_MIN_CALL_SPACING", DEFAULT_MIN_CALL_SPACING_SECONDS
        ),
        max_retries=optional_env_int("UNISYNC_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        base_backoff_seconds=optional_env_float(
            "UNISYNC_BASE_BACKOFF", DEFAULT_BASE_BACKOFF_SECONDS
        ),
        traversal_concurrency=optional_env_int(
            "UNISYNC_TRAVERSAL_CONCURRENCY", DEFAULT_TRAVERSAL_CONCURRENCY
        ),
        page_size=optional_env_int("UNISYNC_PAGE_SIZE", DEFAULT_PAGE_SIZE),
    )
