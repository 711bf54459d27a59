"""Authentication state shared by every call of a client."""

from __future__ import annotations

import base64
import logging
import threading

from b2client._internal.transport import TimeoutTypes, Transport, decode_json
from b2client.exceptions import APIError, AuthenticationError, SessionError
from b2client.models import LoginInfo

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.backblazeb2.com"
API_PATH = "/b2api/v1/"


class Session:
    """Holds the current LoginInfo snapshot and re-authenticates on demand.

    Readers get the snapshot through a single reference load and never block.
    A refresh builds a brand-new LoginInfo and installs it in one assignment,
    so a concurrent reader sees either the old or the new snapshot, never a
    mix. Two callers refreshing at the same time may both log in; the last
    one wins, and both end up with a valid session.
    """

    def __init__(
        self,
        transport: Transport,
        account_id: str,
        application_key: str,
        *,
        api_url: str = DEFAULT_API_URL,
    ) -> None:
        self._transport = transport
        self._account_id = account_id
        self._application_key = application_key
        self._api_url = api_url.rstrip("/")
        self._info: LoginInfo | None = None
        self._install_lock = threading.Lock()

    @property
    def is_authenticated(self) -> bool:
        return self._info is not None

    def current(self) -> LoginInfo:
        """Return the current snapshot without touching the network."""
        info = self._info
        if info is None:
            raise SessionError("Not authenticated. Call login() first.")
        return info

    def refresh(
        self,
        stale: LoginInfo | None = None,
        *,
        timeout: TimeoutTypes = None,
    ) -> LoginInfo:
        """Re-authenticate and install a new snapshot.

        If ``stale`` is the snapshot a failed request was made with and it has
        already been replaced by another caller, the current snapshot is
        returned without logging in again.

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        if stale is not None:
            info = self._info
            if info is not None and info is not stale:
                logger.debug("Session already refreshed by another caller")
                return info

        info = self._authorize(timeout)
        with self._install_lock:
            self._info = info
        logger.info(f"Authorized account {info.account_id} against {info.api_url}")
        return info

    def _authorize(self, timeout: TimeoutTypes) -> LoginInfo:
        credentials = f"{self._account_id}:{self._application_key}".encode("utf-8")
        headers = {"Authorization": "Basic " + base64.b64encode(credentials).decode("ascii")}
        request = self._transport.build_request(
            "GET",
            f"{self._api_url}{API_PATH}b2_authorize_account",
            headers=headers,
            timeout=timeout,
        )
        try:
            response = self._transport.send(request)
        except APIError as e:
            if e.status in (401, 403):
                raise AuthenticationError(e.status, e.code, e.message) from e
            raise
        return LoginInfo.from_api(decode_json(response))

    def clear(self) -> None:
        with self._install_lock:
            self._info = None
