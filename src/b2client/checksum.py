"""SHA1 computation for upload bodies, avoiding copies where possible.

B2 requires the SHA1 of an upload up front, in a header. How it is obtained
depends on what the caller hands in:

* a seekable stream (open files, ``io.BytesIO``) is read twice: once here to
  hash it, once when it is sent;
* an in-memory buffer (``bytes``, ``bytearray``, ``memoryview``) is hashed in
  place and served through a zero-copy reader. A ``bytearray`` is considered
  handed over and is cleared once the upload is done;
* anything else readable is read into memory once.
"""

from __future__ import annotations

import hashlib
import io
import logging
from typing import Any, BinaryIO, Callable

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

Buffer = bytes | bytearray | memoryview


class _BufferReader(io.RawIOBase):
    """Seekable reader over a memoryview of an existing buffer."""

    def __init__(self, data: Buffer) -> None:
        super().__init__()
        self._base = memoryview(data)
        if self._base.format == "B" and self._base.ndim == 1:
            self._view = self._base
        else:
            self._view = self._base.cast("B")
        self._pos = 0

    @property
    def view(self) -> memoryview:
        return self._view

    def __len__(self) -> int:
        return self._view.nbytes

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def readinto(self, b: Any) -> int:
        n = min(len(b), len(self._view) - self._pos)
        if n <= 0:
            return 0
        b[:n] = self._view[self._pos : self._pos + n]
        self._pos += n
        return n

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = len(self._view) + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if pos < 0:
            raise ValueError(f"Negative seek position {pos}")
        self._pos = pos
        return pos

    def tell(self) -> int:
        return self._pos

    def close(self) -> None:
        if not self.closed:
            self._view.release()
            self._base.release()
        super().close()


class PreparedBody:
    """A hashed upload body that can be rewound for every attempt.

    ``length`` is the exact number of bytes the body yields from its start
    position, and is what gets declared as Content-Length.
    """

    def __init__(
        self,
        body: BinaryIO,
        sha1: str,
        length: int,
        *,
        start: int = 0,
        owned: bool = False,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.body = body
        self.sha1 = sha1
        self.length = length
        self._start = start
        self._owned = owned
        self._on_close = on_close

    def rewind(self) -> None:
        self.body.seek(self._start)

    def close(self) -> None:
        """Release buffers created here and drain a handed-over bytearray.

        Caller-owned streams are left open, positioned wherever the last
        attempt stopped reading.
        """
        if self._owned:
            self.body.close()
        if self._on_close is not None:
            on_close, self._on_close = self._on_close, None
            on_close()

    def __enter__(self) -> PreparedBody:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _is_seekable(source: Any) -> bool:
    seekable = getattr(source, "seekable", None)
    if seekable is None:
        return False
    try:
        return bool(seekable())
    except (OSError, ValueError):
        return False


def _hash_stream(stream: BinaryIO) -> tuple[str, int]:
    digest = hashlib.sha1()
    length = 0
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        if chunk is None:
            raise ValueError("Upload source returned no data (non-blocking stream?)")
        digest.update(chunk)
        length += len(chunk)
    return digest.hexdigest(), length


def _read_all(stream: Any) -> bytes:
    read = getattr(stream, "read", None)
    if read is None:
        raise TypeError(
            f"Upload source must be bytes-like or a binary stream, not {type(stream).__name__}"
        )
    data = read()
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("Upload source must be opened in binary mode")
    return bytes(data)


def prepare_body(source: Any, content_sha1: str | None = None) -> PreparedBody:
    """Hash ``source`` and return a body that can be re-sent from its start.

    When ``content_sha1`` is given the hashing pass is skipped, but the
    length is still measured.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        reader = _BufferReader(source)
        sha1 = content_sha1 or hashlib.sha1(reader.view).hexdigest()
        on_close = source.clear if isinstance(source, bytearray) else None
        return PreparedBody(reader, sha1, len(reader), owned=True, on_close=on_close)

    if _is_seekable(source):
        start = source.tell()
        if content_sha1:
            sha1, length = content_sha1, source.seek(0, io.SEEK_END) - start
        else:
            sha1, length = _hash_stream(source)
        source.seek(start)
        return PreparedBody(source, sha1, length, start=start)

    logger.debug(f"Buffering non-seekable {type(source).__name__} in memory")
    reader = _BufferReader(_read_all(source))
    sha1 = content_sha1 or hashlib.sha1(reader.view).hexdigest()
    return PreparedBody(reader, sha1, len(reader), owned=True)
