"""Data models for the b2client library."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping
from urllib.parse import unquote, unquote_plus

from b2client.exceptions import ResponseDecodeError

ACTION_START = "start"
ACTION_UPLOAD = "upload"
ACTION_HIDE = "hide"
ACTION_FOLDER = "folder"

INFO_HEADER_PREFIX = "x-bz-info-"


def _from_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


@dataclass(frozen=True)
class LoginInfo:
    """Immutable snapshot of an authorized session."""

    account_id: str
    authorization_token: str = field(repr=False)
    api_url: str
    download_url: str
    recommended_part_size: int = 0
    absolute_minimum_part_size: int = 0
    allowed: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> LoginInfo:
        """Build a snapshot from a b2_authorize_account response."""
        try:
            return cls(
                account_id=data["accountId"],
                authorization_token=data["authorizationToken"],
                api_url=data["apiUrl"].rstrip("/"),
                download_url=data["downloadUrl"].rstrip("/"),
                recommended_part_size=int(data.get("recommendedPartSize") or 0),
                absolute_minimum_part_size=int(data.get("absoluteMinimumPartSize") or 0),
                allowed=dict(data.get("allowed") or {}),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ResponseDecodeError(f"Malformed authorization response: {e}") from e


@dataclass(frozen=True)
class FileInfo:
    """Metadata of a specific file version.

    If ``action`` is "hide", ``id`` refers to a hiding marker rather than
    stored content. Listings with a delimiter also yield "folder" entries.
    """

    id: str
    name: str
    content_sha1: str = ""
    content_length: int = 0
    content_type: str = ""
    custom_metadata: dict[str, Any] = field(default_factory=dict)
    upload_timestamp: datetime | None = None
    action: str = ACTION_UPLOAD

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> FileInfo:
        """Build a FileInfo from a JSON file object."""
        try:
            timestamp = data.get("uploadTimestamp")
            return cls(
                id=data.get("fileId") or "",
                name=data["fileName"],
                content_sha1=data.get("contentSha1") or "",
                content_length=int(data.get("contentLength") or 0),
                content_type=data.get("contentType") or "",
                custom_metadata=dict(data.get("fileInfo") or {}),
                upload_timestamp=_from_millis(int(timestamp)) if timestamp is not None else None,
                action=data.get("action") or ACTION_UPLOAD,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ResponseDecodeError(f"Malformed file object: {e}") from e

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> FileInfo:
        """Build a FileInfo from download response headers.

        Metadata values arrive as strings, since they are carried by HTTP
        headers, and their keys are lower-cased.
        """
        try:
            timestamp = int(headers.get("x-bz-upload-timestamp", ""))
            length = int(headers.get("content-length", ""))
        except ValueError as e:
            raise ResponseDecodeError(f"Malformed download headers: {e}") from e

        metadata = {
            key[len(INFO_HEADER_PREFIX):]: unquote(value)
            for key, value in headers.items()
            if key.lower().startswith(INFO_HEADER_PREFIX)
        }
        return cls(
            id=headers.get("x-bz-file-id", ""),
            name=unquote_plus(headers.get("x-bz-file-name", "")),
            content_sha1=headers.get("x-bz-content-sha1", ""),
            content_length=length,
            content_type=headers.get("content-type", ""),
            custom_metadata=metadata,
            upload_timestamp=_from_millis(timestamp),
            action=ACTION_UPLOAD,
        )


@dataclass(frozen=True)
class ListOptions:
    """Starting cursor and filters for a listing.

    ``from_name`` is included in the results if it exists. ``from_id`` is
    only meaningful for version listings, together with ``from_name``.
    """

    from_name: str = ""
    from_id: str = ""
    prefix: str = ""
    delimiter: str = ""


@dataclass(frozen=True)
class Range:
    """Zero-based, inclusive byte range."""

    begin: int = 0
    end: int = 0


@dataclass(frozen=True)
class DownloadOptions:
    """Selects a file by ID, or by bucket and name, with an optional range."""

    file_id: str = ""
    bucket: str = ""
    file_name: str = ""
    range: Range = field(default_factory=Range)
