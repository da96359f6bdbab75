"""Translate Google Drive payloads into remote entities and canonical attributes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from unisync.domain.model import RemoteEntity, RemoteSubEntity
from unisync.domain.sync import RecordMappingError

from .schema import DriveFile, DrivePermission

if TYPE_CHECKING:
    from datetime import datetime

    from unisync.domain.model import Payload

    from .schema import DriveFileInput


def _ensure_drive_file(payload: DriveFileInput) -> DriveFile:
    if isinstance(payload, DriveFile):
        return payload
    return DriveFile.model_validate(payload)


def parse_remote_entity(payload: DriveFileInput) -> RemoteEntity:
    """Build a ``RemoteEntity`` from a ``files`` resource.

    Drive still reports a ``parents`` list; only the first entry is used.
    Embedded permissions become sub-entities keyed by permission id.
    """

    drive_file = _ensure_drive_file(payload)
    return RemoteEntity(
        remote_id=drive_file.id,
        name=drive_file.name,
        remote_parent_id=drive_file.parents[0] if drive_file.parents else None,
        modified_at=drive_file.modified_time,
        sub_entities=tuple(
            RemoteSubEntity(
                remote_id=permission.id,
                payload=permission.model_dump(mode="json", by_alias=True, exclude_none=True),
            )
            for permission in drive_file.permissions
        ),
        payload=drive_file.model_dump(mode="json", by_alias=True, exclude_none=True),
        container_id=drive_file.drive_id,
    )


def unify_folder(payload: Payload) -> dict[str, Any]:
    drive_file = DriveFile.model_validate(payload)
    return {
        "name": drive_file.name,
        "size": None,
        "folder_url": drive_file.web_view_link,
        "description": None,
        "drive_id": drive_file.drive_id,
        "trashed": drive_file.trashed,
        "remote_created_at": _isoformat(drive_file.created_time),
        "remote_modified_at": _isoformat(drive_file.modified_time),
    }


def unify_permission(payload: Payload) -> dict[str, Any]:
    permission = DrivePermission.model_validate(payload)
    if permission.type is None or permission.role is None:
        raise RecordMappingError(f"Permission {permission.id} has no type or role")
    return {
        "roles": [permission.role],
        "type": permission.type,
        "email_address": permission.email_address,
        "display_name": permission.display_name,
        "domain": permission.domain,
    }


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
