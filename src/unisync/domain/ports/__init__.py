"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import EntityPage, EntityQuery, RemoteProvider
from .persistence import (
    CanonicalEntityRepository,
    CanonicalSubEntityRepository,
    WatermarkRepository,
)
from .unit_of_work import (
    RepositoryCollection,
    SyncRepositories,
    SyncUnitOfWork,
    UnitOfWork,
)

__all__ = [
    "CanonicalEntityRepository",
    "CanonicalSubEntityRepository",
    "EntityPage",
    "EntityQuery",
    "RemoteProvider",
    "RepositoryCollection",
    "SyncRepositories",
    "SyncUnitOfWork",
    "UnitOfWork",
    "WatermarkRepository",
]
