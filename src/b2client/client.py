"""Main B2Client class for interacting with Backblaze B2."""

from __future__ import annotations

import logging
from typing import Any, Callable
from urllib.parse import quote

import httpx

from b2client._internal.transport import TimeoutTypes, Transport
from b2client.bucket import Bucket
from b2client.download import Download, open_download
from b2client.exceptions import (
    APIError,
    NoSuchBucketError,
    SessionError,
    ValidationError,
)
from b2client.leases import UploadURLPool
from b2client.models import DownloadOptions, FileInfo, LoginInfo
from b2client.session import API_PATH, DEFAULT_API_URL, Session

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


class B2Client:
    """Client for the Backblaze B2 cloud storage API.

    Supports both context manager and manual session patterns. Instances are
    safe to share between threads.

    Example (context manager - recommended):
        with B2Client("account-id", "application-key") as client:
            bucket = client.bucket_by_name("photos")
            bucket.upload(open("cat.jpg", "rb"), "cat.jpg")

    Example (manual session):
        client = B2Client(auto_login=False)
        client.login("account-id", "application-key")
        ...
        client.close()
    """

    def __init__(
        self,
        account_id: str | None = None,
        application_key: str | None = None,
        *,
        http_client: httpx.Client | None = None,
        api_url: str = DEFAULT_API_URL,
        auto_login: bool = True,
        timeout: TimeoutTypes = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            account_id: Account ID or application key ID
            application_key: Application key
            http_client: Optional httpx.Client to send requests with
            api_url: Authorization endpoint base URL
            auto_login: If True and credentials provided, login immediately
            timeout: Default timeout for requests made by an owned client
        """
        self._account_id = account_id
        self._application_key = application_key
        self._api_url = api_url
        self.transport = Transport(http_client, timeout=timeout)
        self._session: Session | None = None
        self.upload_urls = UploadURLPool(self.do_request)

        if auto_login and account_id and application_key:
            self.login(account_id, application_key)

    def __enter__(self) -> B2Client:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit context manager."""
        self.close()

    @property
    def is_authenticated(self) -> bool:
        """Check if the client is authenticated."""
        return self._session is not None and self._session.is_authenticated

    @property
    def session(self) -> Session:
        """The authenticated session."""
        if self._session is None:
            raise SessionError("Not authenticated. Call login() first.")
        return self._session

    def login(
        self,
        account_id: str | None = None,
        application_key: str | None = None,
        *,
        timeout: TimeoutTypes = None,
    ) -> LoginInfo:
        """Authorize the account.

        Args:
            account_id: Account ID (uses constructor value if not provided)
            application_key: Application key (uses constructor value if not provided)

        Returns:
            The new LoginInfo

        Raises:
            ValidationError: If no credentials are available
            AuthenticationError: If the credentials are rejected
        """
        account_id = account_id or self._account_id
        application_key = application_key or self._application_key

        if not account_id or not application_key:
            raise ValidationError("Account ID and application key are required")

        self._account_id = account_id
        self._application_key = application_key

        session = Session(self.transport, account_id, application_key, api_url=self._api_url)
        info = session.refresh(timeout=timeout)
        self._session = session
        self.upload_urls.clear()
        return info

    def login_info(self, refresh: bool = False) -> LoginInfo:
        """Return the current LoginInfo, re-authenticating first if ``refresh``."""
        if refresh:
            return self.session.refresh()
        return self.session.current()

    def do_request(
        self,
        operation: str,
        payload: dict[str, Any],
        *,
        timeout: TimeoutTypes = None,
    ) -> dict[str, Any]:
        """Call a control-plane operation and return its decoded response.

        A 401 triggers one re-authentication and a single retry.
        """
        session = self.session
        info = session.current()
        try:
            return self._post(info, operation, payload, timeout)
        except APIError as e:
            if e.status != 401:
                raise
            logger.debug(f"{operation}: unauthorized, re-authenticating")
        info = session.refresh(info, timeout=timeout)
        return self._post(info, operation, payload, timeout)

    def _post(
        self,
        info: LoginInfo,
        operation: str,
        payload: dict[str, Any],
        timeout: TimeoutTypes,
    ) -> dict[str, Any]:
        url = f"{info.api_url}{API_PATH}{operation}"
        return self.transport.post_json(url, info.authorization_token, payload, timeout=timeout)

    # Buckets

    def buckets(self, name: str = "", *, timeout: TimeoutTypes = None) -> list[Bucket]:
        """List the account's buckets, or only the one called ``name``."""
        payload: dict[str, Any] = {"accountId": self.login_info().account_id}
        if name:
            payload["bucketName"] = name
        data = self.do_request("b2_list_buckets", payload, timeout=timeout)
        return [self._make_bucket(b) for b in data.get("buckets", [])]

    def create_bucket(
        self, name: str, public: bool = False, *, timeout: TimeoutTypes = None
    ) -> Bucket:
        """Create a private (or public) bucket."""
        data = self.do_request(
            "b2_create_bucket",
            {
                "accountId": self.login_info().account_id,
                "bucketName": name,
                "bucketType": "allPublic" if public else "allPrivate",
            },
            timeout=timeout,
        )
        logger.info(f"Created bucket: {name}")
        return self._make_bucket(data)

    def bucket_by_name(
        self, name: str, create: bool = False, *, timeout: TimeoutTypes = None
    ) -> Bucket:
        """Return the bucket called ``name``, creating it if ``create``.

        Raises:
            NoSuchBucketError: If the bucket doesn't exist and create is False
        """
        for bucket in self.buckets(name, timeout=timeout):
            if bucket.name == name:
                return bucket
        if create:
            return self.create_bucket(name, timeout=timeout)
        raise NoSuchBucketError(f"No bucket named {name!r}")

    def _make_bucket(self, data: dict[str, Any]) -> Bucket:
        return Bucket(
            self,
            id=data["bucketId"],
            name=data["bucketName"],
            type=data.get("bucketType", "allPrivate"),
        )

    # Files

    def get_file_info_by_id(self, file_id: str, *, timeout: TimeoutTypes = None) -> FileInfo:
        """Return the FileInfo of any file version or hide marker."""
        data = self.do_request("b2_get_file_info", {"fileId": file_id}, timeout=timeout)
        return FileInfo.from_api(data)

    def delete_file(self, file_id: str, name: str, *, timeout: TimeoutTypes = None) -> None:
        """Delete a file version."""
        self.do_request(
            "b2_delete_file_version", {"fileId": file_id, "fileName": name}, timeout=timeout
        )
        logger.debug(f"Deleted {name} ({file_id})")

    # Downloads

    def download_file(
        self, options: DownloadOptions, *, timeout: TimeoutTypes = None
    ) -> Download:
        """Download by file ID, or by bucket and file name, optionally a range.

        The returned Download must be closed by the caller once done reading.

        Raises:
            ValidationError: If the options are incomplete or the range is invalid
        """
        if options.file_id:
            make_url = _by_id(options.file_id)
        elif options.file_name:
            if not options.bucket:
                raise ValidationError("Empty bucket name, required when using file_name")
            make_url = _by_name(options.bucket, options.file_name)
        else:
            raise ValidationError("Must specify a file name or file ID")

        range_header = ""
        r = options.range
        if r.begin > 0 or r.end > 0:
            if r.end < 1:
                raise ValidationError(f"Invalid range end {r.end}, must be greater than 0")
            range_header = f"bytes={max(r.begin, 0)}-{r.end}"
        return self._get_with_auth(make_url, range_header, timeout)

    def download_file_by_id(self, file_id: str, *, timeout: TimeoutTypes = None) -> Download:
        """Download a file version by ID. The result must be closed."""
        return self._get_with_auth(_by_id(file_id), "", timeout)

    def download_file_by_name(
        self, bucket: str, name: str, *, timeout: TimeoutTypes = None
    ) -> Download:
        """Download the latest version of a file by bucket and name."""
        return self._get_with_auth(_by_name(bucket, name), "", timeout)

    def _get_with_auth(
        self,
        make_url: Callable[[LoginInfo], str],
        range_header: str,
        timeout: TimeoutTypes,
    ) -> Download:
        session = self.session
        info = session.current()
        try:
            return open_download(self._get(info, make_url(info), range_header, timeout))
        except APIError as e:
            if e.status != 401:
                raise
            logger.debug("download: unauthorized, re-authenticating")
        info = session.refresh(info, timeout=timeout)
        return open_download(self._get(info, make_url(info), range_header, timeout))

    def _get(
        self, info: LoginInfo, url: str, range_header: str, timeout: TimeoutTypes
    ) -> httpx.Response:
        headers = {"Authorization": info.authorization_token}
        if range_header:
            headers["Range"] = range_header
        request = self.transport.build_request("GET", url, headers=headers, timeout=timeout)
        return self.transport.send(request, stream=True)

    def close(self) -> None:
        """Close the client and clean up resources."""
        self.upload_urls.clear()
        self._session = None
        self.transport.close()


def _by_id(file_id: str) -> Callable[[LoginInfo], str]:
    return lambda info: (
        f"{info.download_url}{API_PATH}b2_download_file_by_id?fileId={quote(file_id, safe='')}"
    )


def _by_name(bucket: str, name: str) -> Callable[[LoginInfo], str]:
    return lambda info: f"{info.download_url}/file/{quote(bucket, safe='')}/{quote(name)}"
