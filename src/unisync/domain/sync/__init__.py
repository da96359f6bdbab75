"""Incremental hierarchical reconciliation engine."""

from __future__ import annotations

from .context import ROOT_MARKER, ResolutionContext, ResolutionWarning, WarningKind
from .deduplication import CrossEntityDeduplicator
from .errors import (
    ConnectorNotFoundError,
    EntityNotFoundError,
    InvalidTransitionError,
    MapperNotFoundError,
    QuotaExceededError,
    RecordMappingError,
    RetryExhaustedError,
    SyncError,
)
from .executor import BackoffPolicy, ConnectionPacer, RateLimitedExecutor, is_quota_error
from .fetching import FetchMode, PaginatedFetcher
from .hierarchy import HierarchyResolver, parents_first
from .ingestion import CanonicalIngestionPipeline, Mapper, MapperRegistry, project_fields
from .orchestrator import ALLOWED_TRANSITIONS, SyncOrchestrator, SyncResult, SyncRun
from .registry import ConnectorRegistry, ProviderConnector, ProviderFactory

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ROOT_MARKER",
    "BackoffPolicy",
    "CanonicalIngestionPipeline",
    "ConnectionPacer",
    "ConnectorNotFoundError",
    "ConnectorRegistry",
    "CrossEntityDeduplicator",
    "EntityNotFoundError",
    "FetchMode",
    "HierarchyResolver",
    "InvalidTransitionError",
    "Mapper",
    "MapperNotFoundError",
    "MapperRegistry",
    "PaginatedFetcher",
    "ProviderConnector",
    "ProviderFactory",
    "QuotaExceededError",
    "RateLimitedExecutor",
    "RecordMappingError",
    "ResolutionContext",
    "ResolutionWarning",
    "RetryExhaustedError",
    "SyncError",
    "SyncOrchestrator",
    "SyncResult",
    "SyncRun",
    "WarningKind",
    "is_quota_error",
    "parents_first",
    "project_fields",
]
