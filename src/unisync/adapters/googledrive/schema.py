"""Minimal Pydantic models for the Google Drive v3 API."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class DriveBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class DrivePermission(DriveBaseModel):
    id: str
    type: str | None = None
    role: str | None = None
    email_address: str | None = Field(default=None, alias="emailAddress")
    display_name: str | None = Field(default=None, alias="displayName")
    domain: str | None = None


class DriveFile(DriveBaseModel):
    id: str
    name: str = ""
    mime_type: str | None = Field(default=None, alias="mimeType")
    parents: list[str] = Field(default_factory=list[str])
    created_time: datetime | None = Field(default=None, alias="createdTime")
    modified_time: datetime | None = Field(default=None, alias="modifiedTime")
    drive_id: str | None = Field(default=None, alias="driveId")
    web_view_link: str | None = Field(default=None, alias="webViewLink")
    permissions: list[DrivePermission] = Field(default_factory=list["DrivePermission"])
    trashed: bool = False


class DriveFileList(DriveBaseModel):
    files: list[DriveFile] = Field(default_factory=list["DriveFile"])
    next_page_token: str | None = Field(default=None, alias="nextPageToken")


class SharedDrive(DriveBaseModel):
    id: str
    name: str | None = None


class SharedDriveList(DriveBaseModel):
    drives: list[SharedDrive] = Field(default_factory=list["SharedDrive"])
    next_page_token: str | None = Field(default=None, alias="nextPageToken")


class ErrorDetail(DriveBaseModel):
    reason: str | None = None
    message: str | None = None


class ErrorBody(DriveBaseModel):
    code: int
    message: str = ""
    errors: list[ErrorDetail] = Field(default_factory=list["ErrorDetail"])

    @property
    def reasons(self) -> set[str]:
        return {detail.reason for detail in self.errors if detail.reason}


class ErrorResponse(DriveBaseModel):
    error: ErrorBody


DriveFileInput = DriveFile | Mapping[str, object]
