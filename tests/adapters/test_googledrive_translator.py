from __future__ import annotations

from datetime import UTC, datetime

import pytest

from unisync.adapters.googledrive import (
    DriveFile,
    parse_remote_entity,
    unify_folder,
    unify_permission,
)
from unisync.domain.sync import RecordMappingError


@pytest.fixture
def folder_payload() -> dict[str, object]:
    return {
        "id": "folder-1",
        "name": "Quarterly Reports",
        "mimeType": "application/vnd.google-apps.folder",
        "parents": ["parent-1", "parent-2"],
        "createdTime": "2024-01-02T03:04:05.000Z",
        "modifiedTime": "2024-03-01T12:00:00.000Z",
        "driveId": "drive-1",
        "webViewLink": "https://drive.google.com/drive/folders/folder-1",
        "trashed": False,
        "permissions": [
            {
                "id": "perm-1",
                "type": "user",
                "role": "writer",
                "emailAddress": "ana@example.com",
                "displayName": "Ana",
            },
            {"id": "perm-2", "type": "domain", "role": "reader", "domain": "example.com"},
        ],
        "unknownField": "ignored",
    }


def test_parse_remote_entity_uses_first_parent(folder_payload: dict[str, object]) -> None:
    entity = parse_remote_entity(folder_payload)

    assert entity.remote_id == "folder-1"
    assert entity.name == "Quarterly Reports"
    assert entity.remote_parent_id == "parent-1"
    assert entity.container_id == "drive-1"
    assert entity.modified_at == datetime(2024, 3, 1, 12, tzinfo=UTC)
    assert entity.depth is None


def test_parse_remote_entity_embeds_permissions(folder_payload: dict[str, object]) -> None:
    entity = parse_remote_entity(folder_payload)

    assert [sub.remote_id for sub in entity.sub_entities] == ["perm-1", "perm-2"]
    assert entity.sub_entities[0].payload["emailAddress"] == "ana@example.com"
    assert "domain" not in entity.sub_entities[0].payload
    assert entity.payload["webViewLink"] == folder_payload["webViewLink"]
    assert "unknownField" not in entity.payload


def test_parse_remote_entity_accepts_validated_models(folder_payload: dict[str, object]) -> None:
    drive_file = DriveFile.model_validate(folder_payload)

    assert parse_remote_entity(drive_file).remote_id == "folder-1"


def test_parse_remote_entity_without_parents_is_top_level() -> None:
    entity = parse_remote_entity({"id": "orphan", "name": "Orphan"})

    assert entity.remote_parent_id is None
    assert entity.sub_entities == ()


def test_unify_folder(folder_payload: dict[str, object]) -> None:
    payload = parse_remote_entity(folder_payload).payload

    assert unify_folder(payload) == {
        "name": "Quarterly Reports",
        "size": None,
        "folder_url": "https://drive.google.com/drive/folders/folder-1",
        "description": None,
        "drive_id": "drive-1",
        "trashed": False,
        "remote_created_at": "2024-01-02T03:04:05+00:00",
        "remote_modified_at": "2024-03-01T12:00:00+00:00",
    }


def test_unify_permission(folder_payload: dict[str, object]) -> None:
    [user, domain] = parse_remote_entity(folder_payload).sub_entities

    assert unify_permission(user.payload) == {
        "roles": ["writer"],
        "type": "user",
        "email_address": "ana@example.com",
        "display_name": "Ana",
        "domain": None,
    }
    assert unify_permission(domain.payload)["domain"] == "example.com"


def test_unify_permission_rejects_incomplete_payloads() -> None:
    with pytest.raises(RecordMappingError):
        unify_permission({"id": "perm-x", "type": "user"})
