"""httpx wrapper that turns B2 error responses into APIError."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from b2client.exceptions import APIError, ResponseDecodeError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "b2client/0.1.0 (python-httpx)"

TimeoutTypes = float | httpx.Timeout | None


def decode_json(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body, raising ResponseDecodeError on garbage."""
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ResponseDecodeError(f"Invalid JSON from {response.url}: {e}") from e
    if not isinstance(data, dict):
        raise ResponseDecodeError(f"Expected a JSON object from {response.url}")
    return data


def error_from_response(response: httpx.Response) -> APIError:
    """Build an APIError from B2's ``{status, code, message}`` error body."""
    code = ""
    message = response.reason_phrase
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        data = None
    if isinstance(data, dict):
        code = str(data.get("code") or "")
        message = str(data.get("message") or message)
    return APIError(response.status_code, code, message)


class Transport:
    """Performs single HTTP requests against the B2 endpoints.

    Owns the underlying httpx.Client unless one was injected.
    """

    def __init__(
        self,
        http_client: httpx.Client | None = None,
        *,
        timeout: TimeoutTypes = 60.0,
    ) -> None:
        self._owns_client = http_client is None
        if http_client is None:
            http_client = httpx.Client(timeout=timeout)
            http_client.headers.update({"User-Agent": DEFAULT_USER_AGENT})
        self._client = http_client

    def build_request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        content: Any = None,
        json_body: Any = None,
        timeout: TimeoutTypes = None,
    ) -> httpx.Request:
        return self._client.build_request(
            method,
            url,
            headers=headers,
            content=content,
            json=json_body,
            timeout=httpx.USE_CLIENT_DEFAULT if timeout is None else timeout,
        )

    def send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response:
        """Send one request and return the response.

        Non-2xx responses are read, closed and raised as APIError. Network
        errors propagate unchanged.
        """
        response = self._client.send(request, stream=stream)
        if response.is_success:
            return response
        try:
            response.read()
            error = error_from_response(response)
        finally:
            response.close()
        logger.debug(f"{request.method} {request.url.path}: {error}")
        raise error

    def post_json(
        self,
        url: str,
        token: str | None,
        payload: dict[str, Any],
        *,
        timeout: TimeoutTypes = None,
    ) -> dict[str, Any]:
        """Make a control-plane call and return the decoded JSON object."""
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = token
        request = self.build_request(
            "POST", url, headers=headers, json_body=payload, timeout=timeout
        )
        response = self.send(request)
        return decode_json(response)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
