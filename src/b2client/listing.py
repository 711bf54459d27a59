"""Cursor-driven iteration over bucket listings."""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Iterator

from b2client._internal.transport import TimeoutTypes
from b2client.exceptions import ResponseDecodeError
from b2client.models import FileInfo, ListOptions

if TYPE_CHECKING:
    from b2client.bucket import Bucket

logger = logging.getLogger(__name__)

DEFAULT_PAGE_COUNT = 100
MAX_PAGE_COUNT = 1000


class ListingState(enum.Enum):
    READY = "ready"
    FETCHING = "fetching"
    DRAINING = "draining"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


class Listing:
    """Result of Bucket.list_files and Bucket.list_file_versions.

    Works like a database cursor: call advance() to move to the next record,
    then read file_info. Once advance() returns False, check error to tell
    the end of the listing apart from a failure:

        listing = bucket.list_files()
        while listing.advance():
            print(listing.file_info.name)
        if listing.error is not None:
            raise listing.error

    Or simply iterate, which raises the error at the end:

        for info in bucket.list_files():
            print(info.name)

    Pagination is transparent, and the next page is only fetched once the
    current one is used up. A Listing is not safe for concurrent use.
    """

    def __init__(
        self,
        bucket: Bucket,
        options: ListOptions | None = None,
        *,
        versions: bool = False,
        page_count: int = DEFAULT_PAGE_COUNT,
        timeout: TimeoutTypes = None,
    ) -> None:
        options = options or ListOptions()
        self._bucket = bucket
        self._versions = versions
        self._prefix = options.prefix
        self._delimiter = options.delimiter
        self._timeout = timeout
        self._next_name: str | None = options.from_name
        self._next_id: str | None = options.from_id if versions else None
        self._page_count = DEFAULT_PAGE_COUNT
        # Current page in reverse order; the current record is the last item.
        self._records: list[FileInfo] = []
        self._state = ListingState.READY
        self._error: Exception | None = None
        self.set_page_count(page_count)

    @property
    def state(self) -> ListingState:
        return self._state

    @property
    def error(self) -> Exception | None:
        """The error that ended the listing, or None."""
        return self._error

    @property
    def file_info(self) -> FileInfo:
        """The record made available by the last successful advance()."""
        return self._records[-1]

    def set_page_count(self, n: int) -> None:
        """Set the number of results fetched per API call.

        Values are clamped to 1..1000. This does not limit the total number
        of results.
        """
        self._page_count = max(1, min(n, MAX_PAGE_COUNT))

    def advance(self) -> bool:
        """Move to the next record, fetching a page if needed.

        Returns False at the end of the listing or after an error.
        """
        if self._state in (ListingState.EXHAUSTED, ListingState.FAILED):
            return False
        if self._records:
            self._records.pop()
        while not self._records:
            if self._next_name is None:
                self._state = ListingState.EXHAUSTED
                return False
            self._state = ListingState.FETCHING
            try:
                self._fetch()
            except Exception as e:
                self._error = e
                self._state = ListingState.FAILED
                logger.debug(f"Listing {self._bucket.name} failed: {e}")
                return False
        self._state = ListingState.DRAINING
        return True

    def _fetch(self) -> None:
        operation = "b2_list_file_versions" if self._versions else "b2_list_file_names"
        payload = {
            "bucketId": self._bucket.id,
            "startFileName": self._next_name,
            "maxFileCount": self._page_count,
        }
        if self._next_id:
            payload["startFileId"] = self._next_id
        if self._prefix:
            payload["prefix"] = self._prefix
        if self._delimiter:
            payload["delimiter"] = self._delimiter

        data = self._bucket.client.do_request(operation, payload, timeout=self._timeout)
        files = data.get("files")
        if not isinstance(files, list):
            raise ResponseDecodeError(f"Malformed {operation} response: missing files")

        records = [FileInfo.from_api(f) for f in files]
        records.reverse()
        logger.debug(
            f"{operation} {self._bucket.name} from {self._next_name!r}: {len(records)} record(s)"
        )
        self._records = records
        self._next_name = data.get("nextFileName")
        self._next_id = data.get("nextFileId")

    def __iter__(self) -> Iterator[FileInfo]:
        while self.advance():
            yield self.file_info
        if self._error is not None:
            raise self._error
