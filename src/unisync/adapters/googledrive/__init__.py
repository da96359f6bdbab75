"""Public interface for the Google Drive adapter."""

from __future__ import annotations

from .client import (
    GoogleDriveAPIError,
    GoogleDriveProvider,
    build_googledrive_provider,
    format_drive_time,
    should_cache_payload,
)
from .schema import DriveFile, DriveFileInput, DrivePermission
from .translator import parse_remote_entity, unify_folder, unify_permission

__all__ = [
    "DriveFile",
    "DriveFileInput",
    "DrivePermission",
    "GoogleDriveAPIError",
    "GoogleDriveProvider",
    "build_googledrive_provider",
    "format_drive_time",
    "parse_remote_entity",
    "should_cache_payload",
    "unify_folder",
    "unify_permission",
]
