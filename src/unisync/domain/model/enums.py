"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Provider(StrEnum):
    GOOGLEDRIVE = "googledrive"


class Vertical(StrEnum):
    FILESTORAGE = "filestorage"
    CRM = "crm"
    TICKETING = "ticketing"
    ATS = "ats"
    HRIS = "hris"
    ACCOUNTING = "accounting"


class ObjectType(StrEnum):
    """Canonical object kinds; hierarchical ones carry parent links."""

    FOLDER = "folder"
    FILE = "file"
    PERMISSION = "permission"


class SyncMode(StrEnum):
    FULL = "full"
    INCREMENTAL = "incremental"


class SyncState(StrEnum):
    IDLE = "idle"
    FETCHING = "fetching"
    RESOLVING = "resolving"
    DEDUPLICATING = "deduplicating"
    INGESTING = "ingesting"
    ADVANCING = "advancing"
    FAILED = "failed"
