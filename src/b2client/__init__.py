"""b2client - A Python client for Backblaze B2 cloud storage.

Example usage:
    from b2client import B2Client, ListOptions

    # Using context manager (recommended)
    with B2Client("account-id", "application-key") as client:
        bucket = client.bucket_by_name("backups", create=True)
        with open("notes.txt", "rb") as f:
            info = bucket.upload(f, "notes.txt", "text/plain")

        for entry in bucket.list_files(ListOptions(prefix="notes")):
            print(entry.name, entry.content_length)

        with client.download_file_by_id(info.id) as download:
            data = download.read()

    # Manual session management
    client = B2Client(auto_login=False)
    client.login("account-id", "application-key")
    client.close()
"""

from b2client.bucket import Bucket
from b2client.client import B2Client
from b2client.download import Download
from b2client.exceptions import (
    APIError,
    AuthenticationError,
    B2Error,
    NoSuchBucketError,
    NoSuchFileError,
    ResponseDecodeError,
    SessionError,
    ValidationError,
    unwrap_error,
)
from b2client.leases import UploadLease
from b2client.listing import Listing, ListingState
from b2client.models import DownloadOptions, FileInfo, ListOptions, LoginInfo, Range

__version__ = "0.1.0"

__all__ = [
    # Main client
    "B2Client",
    "Bucket",
    "Download",
    "Listing",
    "ListingState",
    # Models
    "DownloadOptions",
    "FileInfo",
    "ListOptions",
    "LoginInfo",
    "Range",
    "UploadLease",
    # Exceptions
    "B2Error",
    "APIError",
    "AuthenticationError",
    "NoSuchBucketError",
    "NoSuchFileError",
    "ResponseDecodeError",
    "SessionError",
    "ValidationError",
    "unwrap_error",
]
