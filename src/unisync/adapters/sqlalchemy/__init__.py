"""SQLAlchemy adapter package for unisync."""

from __future__ import annotations

from .mappings import (
    canonical_entity_sub_entity_table,
    canonical_entity_table,
    canonical_sub_entity_table,
    create_all_tables,
    metadata,
    sync_watermark_table,
)
from .repositories import (
    SqlAlchemyCanonicalEntityRepository,
    SqlAlchemyCanonicalSubEntityRepository,
    SqlAlchemyWatermarkRepository,
)
from .unit_of_work import (
    SqlAlchemySyncUnitOfWork,
    StartupError,
    build_engine,
    enable_sqlite_foreign_keys,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyCanonicalEntityRepository",
    "SqlAlchemyCanonicalSubEntityRepository",
    "SqlAlchemySyncUnitOfWork",
    "SqlAlchemyWatermarkRepository",
    "StartupError",
    "build_engine",
    "canonical_entity_sub_entity_table",
    "canonical_entity_table",
    "canonical_sub_entity_table",
    "create_all_tables",
    "enable_sqlite_foreign_keys",
    "metadata",
    "shutdown",
    "startup",
    "sync_watermark_table",
]
