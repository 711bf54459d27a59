"""Per-bucket cache of pre-authorized upload URLs."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from b2client._internal.transport import TimeoutTypes
from b2client.exceptions import ResponseDecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadLease:
    """An upload endpoint and its token, good for one upload at a time."""

    upload_url: str
    authorization_token: str = field(repr=False)
    bucket_id: str


# Called with (operation, payload, timeout) and returns the decoded response.
RequestFn = Callable[..., dict]


class UploadURLPool:
    """LIFO stacks of upload leases, one per bucket.

    Concurrent uploads each get their own lease; later uploads reuse leases
    returned by earlier successful ones, saving b2_get_upload_url calls.
    There is no expiry: a stale lease shows up as a failed upload, after
    which it is discarded instead of being released.
    """

    def __init__(self, request: RequestFn) -> None:
        self._request = request
        self._leases: dict[str, list[UploadLease]] = {}
        self._lock = threading.Lock()

    def lease(self, bucket_id: str, *, timeout: TimeoutTypes = None) -> UploadLease:
        """Pop the most recently released lease, or request a new one."""
        with self._lock:
            stack = self._leases.get(bucket_id)
            lease = stack.pop() if stack else None
        if lease is not None:
            logger.debug(f"Reusing upload URL for bucket {bucket_id}")
            return lease

        data = self._request("b2_get_upload_url", {"bucketId": bucket_id}, timeout=timeout)
        try:
            return UploadLease(
                upload_url=data["uploadUrl"],
                authorization_token=data["authorizationToken"],
                bucket_id=bucket_id,
            )
        except KeyError as e:
            raise ResponseDecodeError(f"Malformed upload URL response: missing {e}") from e

    def release(self, lease: UploadLease) -> None:
        """Return a lease that just served a successful upload."""
        with self._lock:
            self._leases.setdefault(lease.bucket_id, []).append(lease)

    def discard(self, lease: UploadLease) -> None:
        """Forget a lease whose upload failed.

        The lease was already popped by lease(), so not pushing it back is all
        there is to it; its URL or token may have expired.
        """
        logger.debug(f"Discarding upload URL for bucket {lease.bucket_id}")

    def cached(self, bucket_id: str) -> int:
        """Number of leases waiting for reuse in ``bucket_id``."""
        with self._lock:
            return len(self._leases.get(bucket_id, ()))

    def clear(self) -> None:
        with self._lock:
            self._leases.clear()
