"""Bucket handle: uploads, listings and lookups within one bucket."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, BinaryIO, Mapping
from urllib.parse import quote, quote_plus

from b2client._internal.transport import TimeoutTypes, decode_json
from b2client.checksum import prepare_body
from b2client.exceptions import (
    APIError,
    AuthenticationError,
    NoSuchFileError,
    ValidationError,
)
from b2client.listing import DEFAULT_PAGE_COUNT, Listing
from b2client.models import FileInfo, ListOptions

if TYPE_CHECKING:
    from b2client.client import B2Client

logger = logging.getLogger(__name__)

UPLOAD_ATTEMPTS = 5
AUTO_CONTENT_TYPE = "b2/x-auto"


class Bucket:
    """A B2 bucket, bound to the client that looked it up."""

    def __init__(self, client: B2Client, id: str, name: str, type: str = "allPrivate") -> None:
        self.client = client
        self.id = id
        self.name = name
        self.type = type

    def __repr__(self) -> str:
        return f"Bucket(id={self.id!r}, name={self.name!r}, type={self.type!r})"

    def upload(
        self,
        source: Any,
        name: str,
        content_type: str = "",
        metadata: Mapping[str, str] | None = None,
        *,
        timeout: TimeoutTypes = None,
    ) -> FileInfo:
        """Upload a file. If a file by this name exists, a new version is created.

        ``source`` may be bytes-like or a binary stream. Seekable streams and
        in-memory buffers are not copied; anything else is read into memory
        first, since the SHA1 has to be sent ahead of the body. A bytearray
        source is cleared once the upload is done.

        Concurrent uploads use separate upload URLs, while consecutive ones
        reuse previously obtained URLs. An expired session or upload URL is
        handled by re-authenticating and retrying, up to UPLOAD_ATTEMPTS
        attempts in total. Any other failure is raised immediately.

        Args:
            source: Content to upload
            name: File name in the bucket
            content_type: MIME type; empty lets B2 pick one from the name
            metadata: Custom file info, sent as X-Bz-Info-* headers
            timeout: Optional per-request timeout in seconds

        Returns:
            FileInfo of the new file version

        Raises:
            AuthenticationError: If re-authenticating is refused
            APIError: If the service rejects the upload
        """
        with prepare_body(source) as prepared:
            attempt = 1
            while True:
                prepared.rewind()
                try:
                    return self.upload_with_sha1(
                        prepared.body,
                        name,
                        content_type,
                        prepared.sha1,
                        prepared.length,
                        metadata,
                        timeout=timeout,
                    )
                except AuthenticationError:
                    raise
                except APIError as e:
                    if e.status != 401 or attempt >= UPLOAD_ATTEMPTS:
                        raise
                    logger.debug(f"upload {name}: unauthorized on attempt {attempt}")
                # Forced: concurrent uploads failing together each log in.
                self.client.session.refresh(timeout=timeout)
                attempt += 1

    def upload_with_sha1(
        self,
        body: BinaryIO | bytes,
        name: str,
        content_type: str,
        sha1: str,
        length: int,
        metadata: Mapping[str, str] | None = None,
        *,
        timeout: TimeoutTypes = None,
    ) -> FileInfo:
        """Like upload, with a SHA1 and length already known by the caller.

        Never buffers and never retries. ``sha1`` must be the hex SHA1 of
        exactly ``length`` bytes read from ``body``. If the error status is
        401, call ``client.login_info(refresh=True)`` before retrying.

        This is an advanced interface; most callers should use upload().
        """
        pool = self.client.upload_urls
        lease = pool.lease(self.id, timeout=timeout)

        headers = {
            "Authorization": lease.authorization_token,
            "X-Bz-File-Name": quote_plus(name),
            "Content-Type": content_type or AUTO_CONTENT_TYPE,
            "Content-Length": str(length),
            "X-Bz-Content-Sha1": sha1,
        }
        for key, value in (metadata or {}).items():
            headers[f"X-Bz-Info-{key}"] = quote(str(value), safe="")

        transport = self.client.transport
        request = transport.build_request(
            "POST", lease.upload_url, headers=headers, content=body, timeout=timeout
        )
        try:
            response = transport.send(request)
            info = FileInfo.from_api(decode_json(response))
        except Exception as e:
            logger.debug(f"upload {name}: {e}")
            pool.discard(lease)
            raise
        logger.debug(f"upload {name} ({length} {sha1})")
        pool.release(lease)
        return info

    def list_files(
        self,
        options: ListOptions | None = None,
        *,
        page_count: int = DEFAULT_PAGE_COUNT,
        timeout: TimeoutTypes = None,
    ) -> Listing:
        """List files alphabetically, starting at ``options.from_name``.

        Only the most recent version of each non-hidden file is returned;
        use list_file_versions for all of them.
        """
        options = options or ListOptions()
        if options.from_id:
            raise ValidationError("from_id is only supported by list_file_versions")
        return Listing(self, options, page_count=page_count, timeout=timeout)

    def list_file_versions(
        self,
        options: ListOptions | None = None,
        *,
        page_count: int = DEFAULT_PAGE_COUNT,
        timeout: TimeoutTypes = None,
    ) -> Listing:
        """Like list_files, but returns all file versions.

        Results are sorted by name, then newest upload first. If
        ``options.from_id`` is set, the name-and-id pair is the starting
        point, so ``options.from_name`` is required with it.
        """
        options = options or ListOptions()
        if options.from_id and not options.from_name:
            raise ValidationError("Can't set from_id if from_name is not set")
        return Listing(self, options, versions=True, page_count=page_count, timeout=timeout)

    def get_file_info_by_name(self, name: str, *, timeout: TimeoutTypes = None) -> FileInfo:
        """Return the latest version of the file called ``name``.

        Raises:
            NoSuchFileError: If no such file exists in the bucket
        """
        listing = self.list_files(ListOptions(from_name=name), page_count=1, timeout=timeout)
        if listing.advance() and listing.file_info.name == name:
            return listing.file_info
        if listing.error is not None:
            raise listing.error
        raise NoSuchFileError(f"No file named {name!r} in bucket {self.name}")

    def delete(self, *, timeout: TimeoutTypes = None) -> None:
        """Delete the bucket. It must be empty."""
        self.client.do_request(
            "b2_delete_bucket",
            {"accountId": self.client.login_info().account_id, "bucketId": self.id},
            timeout=timeout,
        )
        logger.info(f"Deleted bucket: {self.name}")
