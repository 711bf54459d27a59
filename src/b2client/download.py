"""Streaming downloads and their file metadata."""

from __future__ import annotations

import logging
from typing import Any, Iterator

import httpx

from b2client.models import FileInfo

logger = logging.getLogger(__name__)


class Download:
    """An open download: the file's metadata plus its streaming body.

    Must be closed once done reading, or used as a context manager:

        with client.download_file_by_id(file_id) as download:
            data = download.read()

    ``info.custom_metadata`` values are all strings, since they are carried
    by HTTP headers.
    """

    def __init__(self, response: httpx.Response, info: FileInfo) -> None:
        self._response = response
        self.info = info

    @property
    def status_code(self) -> int:
        return self._response.status_code

    def read(self) -> bytes:
        """Read the whole (remaining) body."""
        return self._response.read()

    def iter_bytes(self, chunk_size: int | None = None) -> Iterator[bytes]:
        return self._response.iter_bytes(chunk_size)

    def close(self) -> None:
        self._response.close()

    def __enter__(self) -> Download:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def open_download(response: httpx.Response) -> Download:
    """Wrap a streamed response, closing it if its headers are malformed."""
    try:
        info = FileInfo.from_headers(response.headers)
    except Exception:
        response.close()
        raise
    logger.debug(f"download {info.name} ({info.content_sha1})")
    return Download(response, info)
