"""Shared test helpers for b2client tests."""

from __future__ import annotations

import base64
import hashlib
import io
import json
from collections import Counter
from typing import Any
from urllib.parse import quote, quote_plus, unquote, unquote_plus

import httpx

API_URL = "https://api.fake-b2.test"
DOWNLOAD_URL = "https://f000.fake-b2.test"
UPLOAD_HOST = "https://pod-000.fake-b2.test"


def _error(status: int, code: str, message: str = "") -> httpx.Response:
    return httpx.Response(
        status, json={"status": status, "code": code, "message": message or code}
    )


class NonSeekableReader(io.RawIOBase):
    """Readable stream that refuses to seek, like a pipe or socket."""

    def __init__(self, data: bytes) -> None:
        super().__init__()
        self._inner = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def readinto(self, b: Any) -> int:
        chunk = self._inner.read(len(b))
        b[: len(chunk)] = chunk
        return len(chunk)

    def remaining(self) -> int:
        return len(self._inner.getbuffer()) - self._inner.tell()


class FakeB2Server:
    """In-memory stand-in for the B2 API, served through httpx.MockTransport.

    Keeps buckets and file versions in memory and records every operation
    name in ``calls``. Failures can be queued per operation with fail().
    """

    def __init__(self, account_id: str = "acct-1", application_key: str = "secret") -> None:
        self.account_id = account_id
        self.application_key = application_key
        self.calls: list[str] = []
        self.requests: list[httpx.Request] = []
        self.valid_tokens: set[str] = set()
        self.upload_tokens: dict[str, str] = {}
        self.buckets: dict[str, dict[str, Any]] = {}
        self.files: list[dict[str, Any]] = []
        self.contents: dict[str, bytes] = {}
        self._failures: dict[str, list[httpx.Response]] = {}
        self._exceptions: dict[str, list[Exception]] = {}
        self._counter = 0
        self._clock = 1_700_000_000_000

    # Test controls

    def http_client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handle))

    def count(self, operation: str) -> int:
        return Counter(self.calls)[operation]

    def fail(
        self, operation: str, status: int, code: str = "", message: str = "", times: int = 1
    ) -> None:
        """Answer the next ``times`` calls of ``operation`` with an error."""
        queue = self._failures.setdefault(operation, [])
        queue.extend(_error(status, code or f"error_{status}", message) for _ in range(times))

    def raise_on(self, operation: str, exc: Exception, times: int = 1) -> None:
        """Make the next ``times`` calls of ``operation`` fail in transit."""
        self._exceptions.setdefault(operation, []).extend([exc] * times)

    def expire_tokens(self) -> None:
        self.valid_tokens.clear()
        self.upload_tokens.clear()

    # Dispatch

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith("/file/"):
            operation = "download_file_by_name"
        elif path.startswith("/b2api/v1/b2_upload_file/"):
            operation = "b2_upload_file"
        else:
            operation = path.rsplit("/", 1)[-1]
        self.calls.append(operation)
        self.requests.append(request)

        pending = self._exceptions.get(operation)
        if pending:
            raise pending.pop(0)

        queue = self._failures.get(operation)
        if queue:
            request.read()
            return queue.pop(0)

        if operation == "b2_authorize_account":
            return self._authorize(request)
        if operation == "b2_upload_file":
            return self._upload(request)

        token = request.headers.get("Authorization", "")
        if token not in self.valid_tokens:
            return _error(401, "expired_auth_token", "Authorization token has expired")

        if operation == "download_file_by_name":
            _, _, bucket_name, name = path.split("/", 3)
            return self._download_by_name(request, bucket_name, name)
        if operation == "b2_download_file_by_id":
            return self._download(request, request.url.params.get("fileId", ""))

        payload = json.loads(request.content or b"{}")
        handler = getattr(self, f"_op_{operation}", None)
        if handler is None:
            return _error(400, "bad_request", f"unknown operation {operation}")
        return handler(payload)

    def _next_id(self) -> int:
        self._counter += 1
        return self._counter

    def _authorize(self, request: httpx.Request) -> httpx.Response:
        expected = base64.b64encode(
            f"{self.account_id}:{self.application_key}".encode()
        ).decode()
        if request.headers.get("Authorization") != f"Basic {expected}":
            return _error(401, "unauthorized", "Invalid application key")
        token = f"token-{self._next_id()}"
        self.valid_tokens.add(token)
        return httpx.Response(
            200,
            json={
                "accountId": self.account_id,
                "authorizationToken": token,
                "apiUrl": API_URL,
                "downloadUrl": DOWNLOAD_URL,
                "recommendedPartSize": 100_000_000,
                "absoluteMinimumPartSize": 5_000_000,
                "allowed": {"capabilities": ["listFiles", "writeFiles"]},
            },
        )

    # Buckets

    def _op_b2_list_buckets(self, payload: dict[str, Any]) -> httpx.Response:
        name = payload.get("bucketName")
        buckets = [b for b in self.buckets.values() if not name or b["bucketName"] == name]
        return httpx.Response(200, json={"buckets": buckets})

    def _op_b2_create_bucket(self, payload: dict[str, Any]) -> httpx.Response:
        name = payload["bucketName"]
        if any(b["bucketName"] == name for b in self.buckets.values()):
            return _error(400, "duplicate_bucket_name", "Bucket name is already in use.")
        bucket = {
            "accountId": self.account_id,
            "bucketId": f"bucket-{self._next_id()}",
            "bucketName": name,
            "bucketType": payload.get("bucketType", "allPrivate"),
        }
        self.buckets[bucket["bucketId"]] = bucket
        return httpx.Response(200, json=bucket)

    def _op_b2_delete_bucket(self, payload: dict[str, Any]) -> httpx.Response:
        bucket = self.buckets.pop(payload["bucketId"], None)
        if bucket is None:
            return _error(400, "bad_bucket_id", "Bucket does not exist")
        return httpx.Response(200, json=bucket)

    # Uploads

    def _op_b2_get_upload_url(self, payload: dict[str, Any]) -> httpx.Response:
        bucket_id = payload["bucketId"]
        if bucket_id not in self.buckets:
            return _error(400, "bad_bucket_id", "Bucket does not exist")
        n = self._next_id()
        token = f"upload-token-{n}"
        self.upload_tokens[token] = bucket_id
        return httpx.Response(
            200,
            json={
                "bucketId": bucket_id,
                "uploadUrl": f"{UPLOAD_HOST}/b2api/v1/b2_upload_file/{bucket_id}/{n}",
                "authorizationToken": token,
            },
        )

    def _upload(self, request: httpx.Request) -> httpx.Response:
        body = request.read()
        bucket_id = self.upload_tokens.get(request.headers.get("Authorization", ""))
        if bucket_id is None:
            return _error(401, "expired_auth_token", "Upload token has expired")
        if request.url.path.split("/")[4] != bucket_id:
            return _error(401, "unauthorized", "Upload token is for another bucket")

        name = unquote_plus(request.headers["X-Bz-File-Name"])
        if "\x00" in name:
            return _error(400, "bad_request", "File names must not contain NUL")
        if int(request.headers["Content-Length"]) != len(body):
            return _error(400, "bad_request", "Content-Length mismatch")
        sha1 = hashlib.sha1(body).hexdigest()
        if request.headers["X-Bz-Content-Sha1"] != sha1:
            return _error(400, "bad_request", "Checksum did not match data received")

        self._clock += 1
        file_id = f"4_{bucket_id}_f{self._next_id():06d}"
        info = {
            key[len("x-bz-info-"):]: unquote(value)
            for key, value in request.headers.items()
            if key.startswith("x-bz-info-")
        }
        record = {
            "accountId": self.account_id,
            "action": "upload",
            "bucketId": bucket_id,
            "contentLength": len(body),
            "contentSha1": sha1,
            "contentType": request.headers["Content-Type"],
            "fileId": file_id,
            "fileInfo": info,
            "fileName": name,
            "uploadTimestamp": self._clock,
        }
        self.files.append(record)
        self.contents[file_id] = body
        return httpx.Response(200, json=record)

    # Files

    def _op_b2_get_file_info(self, payload: dict[str, Any]) -> httpx.Response:
        record = self._find(payload["fileId"])
        if record is None:
            return _error(404, "not_found", f"File not present: {payload['fileId']}")
        return httpx.Response(200, json=record)

    def _op_b2_delete_file_version(self, payload: dict[str, Any]) -> httpx.Response:
        record = self._find(payload["fileId"])
        if record is None or record["fileName"] != payload["fileName"]:
            return _error(400, "file_not_present", "File not present")
        self.files.remove(record)
        return httpx.Response(
            200, json={"fileId": record["fileId"], "fileName": record["fileName"]}
        )

    def _find(self, file_id: str) -> dict[str, Any] | None:
        return next((f for f in self.files if f["fileId"] == file_id), None)

    # Listings

    def _versions(self, bucket_id: str) -> list[dict[str, Any]]:
        records = [f for f in self.files if f["bucketId"] == bucket_id]
        records.sort(key=lambda f: -f["uploadTimestamp"])
        records.sort(key=lambda f: f["fileName"])
        return records

    def _op_b2_list_file_names(self, payload: dict[str, Any]) -> httpx.Response:
        latest: list[dict[str, Any]] = []
        seen: set[str] = set()
        for record in self._versions(payload["bucketId"]):
            if record["fileName"] in seen:
                continue
            seen.add(record["fileName"])
            if record["action"] == "upload":
                latest.append(record)
        return self._page(latest, payload, with_ids=False)

    def _op_b2_list_file_versions(self, payload: dict[str, Any]) -> httpx.Response:
        return self._page(self._versions(payload["bucketId"]), payload, with_ids=True)

    def _page(
        self, records: list[dict[str, Any]], payload: dict[str, Any], *, with_ids: bool
    ) -> httpx.Response:
        start_name = payload.get("startFileName") or ""
        start_id = payload.get("startFileId")
        prefix = payload.get("prefix") or ""
        delimiter = payload.get("delimiter") or ""
        count = payload.get("maxFileCount") or 100

        candidates = [r for r in records if r["fileName"] >= start_name]
        if start_id:
            ids = [r["fileId"] for r in candidates]
            if start_id in ids:
                candidates = candidates[ids.index(start_id):]
        candidates = [r for r in candidates if r["fileName"].startswith(prefix)]

        entries: list[dict[str, Any]] = []
        folders: set[str] = set()
        for record in candidates:
            rest = record["fileName"][len(prefix):]
            if delimiter and delimiter in rest:
                folder = prefix + rest[: rest.index(delimiter) + len(delimiter)]
                if folder in folders:
                    continue
                folders.add(folder)
                entries.append(
                    {"action": "folder", "fileId": None, "fileName": folder, "fileInfo": {}}
                )
            else:
                entries.append(record)

        page, rest_entries = entries[:count], entries[count:]
        body: dict[str, Any] = {"files": page, "nextFileName": None}
        if with_ids:
            body["nextFileId"] = None
        if rest_entries:
            body["nextFileName"] = rest_entries[0]["fileName"]
            if with_ids:
                body["nextFileId"] = rest_entries[0]["fileId"]
        return httpx.Response(200, json=body)

    # Downloads

    def _download_by_name(
        self, request: httpx.Request, bucket_name: str, name: str
    ) -> httpx.Response:
        bucket = next(
            (b for b in self.buckets.values() if b["bucketName"] == bucket_name), None
        )
        if bucket is None:
            return _error(404, "not_found", f"Bucket {bucket_name} does not exist")
        versions = [
            f for f in self._versions(bucket["bucketId"]) if f["fileName"] == name
        ]
        if not versions or versions[0]["action"] != "upload":
            return _error(404, "not_found", f"File with such name does not exist: {name}")
        return self._download(request, versions[0]["fileId"])

    def _download(self, request: httpx.Request, file_id: str) -> httpx.Response:
        record = self._find(file_id)
        if record is None:
            return _error(404, "not_found", f"File not present: {file_id}")
        data = self.contents[file_id]
        status = 200
        range_header = request.headers.get("Range")
        if range_header:
            begin, _, end = range_header.removeprefix("bytes=").partition("-")
            data = data[int(begin) : int(end) + 1]
            status = 206

        headers = {
            "Content-Type": record["contentType"],
            "X-Bz-File-Id": record["fileId"],
            "X-Bz-File-Name": quote_plus(record["fileName"]),
            "X-Bz-Content-Sha1": record["contentSha1"],
            "X-Bz-Upload-Timestamp": str(record["uploadTimestamp"]),
        }
        for key, value in record["fileInfo"].items():
            headers[f"X-Bz-Info-{key}"] = quote(str(value), safe="")
        return httpx.Response(status, content=data, headers=headers)
