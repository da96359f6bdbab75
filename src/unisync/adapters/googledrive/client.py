"""HTTP client for the Google Drive v3 API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

import httpx
from pydantic import ValidationError

from unisync.adapters.http_resilience import ResilientClient
from unisync.config import get_googledrive_config
from unisync.domain.ports import EntityPage, RemoteProvider
from unisync.domain.sync import ROOT_MARKER, EntityNotFoundError, QuotaExceededError

from .schema import FOLDER_MIME_TYPE, DriveFileList, ErrorResponse, SharedDriveList
from .translator import parse_remote_entity

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from types import TracebackType

    from unisync.config import GoogleDriveConfig, ResilienceConfig
    from unisync.domain.model import Connection, RemoteEntity
    from unisync.domain.ports import EntityQuery

log = getLogger(__name__)

FILE_FIELDS: Final[str] = (
    "id, name, parents, createdTime, modifiedTime, driveId, webViewLink, permissions, trashed"
)
LIST_FIELDS: Final[str] = f"nextPageToken, files({FILE_FIELDS})"
DRIVE_FIELDS: Final[str] = "nextPageToken, drives(id, name)"
DRIVES_PAGE_SIZE: Final[int] = 100
RATE_LIMIT_REASONS: Final[frozenset[str]] = frozenset(
    {"rateLimitExceeded", "userRateLimitExceeded", "quotaExceeded"}
)


def should_cache_payload(payload: object) -> bool:
    """Cache single-resource lookups only; listings change between pages and runs."""

    return isinstance(payload, dict) and "files" not in payload and "drives" not in payload


def format_drive_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class GoogleDriveAPIError(RuntimeError):
    """Raised when the Drive API returns an application-level error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class GoogleDriveProvider:
    """Folder listings for one Drive connection.

    Use as an async context manager; the HTTP client lives for the duration of
    the ``async with`` block.
    """

    config: GoogleDriveConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)
    _root_id: str | None = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> GoogleDriveProvider:
        self._client = self.client_factory(self.config.resilience)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def list_entities(
        self,
        query: EntityQuery,
        page_token: str | None = None,
    ) -> EntityPage:
        params: dict[str, str | int] = {
            "q": self._build_query(query),
            "fields": LIST_FIELDS,
            "includeItemsFromAllDrives": "true",
            "supportsAllDrives": "true",
            "orderBy": "modifiedTime",
        }
        if query.page_size is not None:
            params["pageSize"] = query.page_size
        if page_token:
            params["pageToken"] = page_token
        if query.parent_id is None:
            params["corpora"] = "allDrives"
        elif query.container_id is not None and query.container_id not in {
            ROOT_MARKER,
            self._root_id,
        }:
            params["driveId"] = query.container_id
            params["corpora"] = "drive"

        payload = await self._get_json("files", params=params)
        listing = DriveFileList.model_validate(payload)
        return EntityPage(
            entities=[parse_remote_entity(drive_file) for drive_file in listing.files],
            next_page_token=listing.next_page_token,
        )

    async def list_containers(self) -> list[str]:
        """Shared drive ids followed by the id of the user's own root folder."""

        containers: list[str] = []
        page_token: str | None = None
        while True:
            params: dict[str, str | int] = {"pageSize": DRIVES_PAGE_SIZE, "fields": DRIVE_FIELDS}
            if page_token:
                params["pageToken"] = page_token
            listing = SharedDriveList.model_validate(await self._get_json("drives", params=params))
            containers.extend(drive.id for drive in listing.drives)
            if not listing.next_page_token:
                break
            page_token = listing.next_page_token

        root = await self._get_json(f"files/{ROOT_MARKER}", params={"fields": "id"})
        self._root_id = str(root["id"])
        containers.append(self._root_id)
        log.debug("Google Drive containers: %s", containers)
        return containers

    async def get_entity(self, remote_id: str) -> RemoteEntity | None:
        payload = await self._get_json(
            f"files/{remote_id}",
            params={"fields": FILE_FIELDS, "supportsAllDrives": "true"},
            remote_id=remote_id,
        )
        return parse_remote_entity(payload)

    def _build_query(self, query: EntityQuery) -> str:
        clauses = [f"mimeType='{FOLDER_MIME_TYPE}'"]
        if query.parent_id is not None:
            clauses.append(f"'{_quote(query.parent_id)}' in parents")
        if query.modified_since is not None:
            clauses.append(f"modifiedTime >= '{format_drive_time(query.modified_since)}'")
        return " and ".join(clauses)

    async def _get_json(
        self,
        path: str,
        *,
        params: dict[str, str | int],
        remote_id: str | None = None,
    ) -> dict[str, Any]:
        if self._client is None:
            raise RuntimeError("GoogleDriveProvider used outside of 'async with'")
        response = await self._client.get(
            path,
            params=httpx.QueryParams(params),
            headers={"Authorization": f"Bearer {self.config.access_token}"},
        )
        if response.is_error:
            _raise_for_error(response, remote_id=remote_id)

        payload = response.json()
        if not isinstance(payload, dict):
            raise GoogleDriveAPIError("Unexpected Google Drive response payload")
        return payload


def _raise_for_error(response: httpx.Response, *, remote_id: str | None) -> None:
    status = response.status_code
    message = response.text
    reasons: set[str] = set()
    try:
        error = ErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        pass
    else:
        message = error.error.message or message
        reasons = error.error.reasons

    if status == httpx.codes.TOO_MANY_REQUESTS or (
        status == httpx.codes.FORBIDDEN and reasons & RATE_LIMIT_REASONS
    ):
        raise QuotaExceededError(f"Google Drive rate limit: {message}", status_code=status)
    if status == httpx.codes.NOT_FOUND and remote_id is not None:
        raise EntityNotFoundError(remote_id)
    log.error(f"Google Drive API error {status}: {message}")
    raise GoogleDriveAPIError(message, status_code=status)


def build_googledrive_provider(connection: Connection) -> GoogleDriveProvider:
    """Provider factory used by the connector table."""

    config = get_googledrive_config(
        access_token=connection.access_token or None,
        cache_predicate=should_cache_payload,
    )
    return GoogleDriveProvider(config=config)


if TYPE_CHECKING:
    _provider_check: RemoteProvider = GoogleDriveProvider(config=get_googledrive_config())
