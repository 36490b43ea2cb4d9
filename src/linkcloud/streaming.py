"""Bounded-chunk streaming helpers shared by the backends and the gateway.

Blob content never sits in memory as a whole: it moves between a source and
a sink one chunk at a time. Upload sources are wrapped in
LengthCheckedReader so a stream that disagrees with its declared length
fails the upload instead of silently producing a truncated blob.
"""

import io
from typing import BinaryIO, Iterator, Optional

from linkcloud.exceptions import BackendInternalError, InvalidInputError


# Size of each request/response exchanged with a remote backend
DEFAULT_CHUNK_SIZE = 4 * 1024 * 1024

# Size of each read when copying between local streams
COPY_BUFFER_SIZE = 64 * 1024


def iter_chunks(readable: BinaryIO, chunk_size: int = COPY_BUFFER_SIZE) -> Iterator[bytes]:
    """Yield successive chunks of a stream and close it when done.

    The stream is closed on every exit path: exhaustion, an exception while
    reading, or the consumer closing the generator early.
    """
    try:
        while True:
            chunk = readable.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        readable.close()


def copy_stream(source: BinaryIO, sink: BinaryIO, chunk_size: int = COPY_BUFFER_SIZE) -> int:
    """Copy a stream into a sink chunk by chunk.

    Returns:
        Number of bytes copied
    """
    copied = 0
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        sink.write(chunk)
        copied += len(chunk)
    return copied


class LengthCheckedReader(io.RawIOBase):
    """Read-only stream serving exactly ``declared_length`` bytes of its source.

    ``read(n)`` only returns fewer than ``n`` bytes once the declared length
    is reached, because SDK upload paths take a short read as end of stream.

    Raises BackendInternalError when the source runs dry before the declared
    length, or still has data once the declared length has been served.
    """

    def __init__(self, source: BinaryIO, declared_length: int) -> None:
        if declared_length < 0:
            raise InvalidInputError(f"Declared length must be non-negative, got {declared_length}")
        super().__init__()
        self._source = source
        self.declared_length = declared_length
        self._remaining = declared_length
        self._verified = False

    @property
    def bytes_read(self) -> int:
        return self.declared_length - self._remaining

    def readable(self) -> bool:
        return True

    def read(self, size: Optional[int] = -1) -> bytes:
        if size is None or size < 0 or size > self._remaining:
            size = self._remaining

        parts = []
        wanted = size
        while wanted > 0:
            data = self._source.read(wanted)
            if not data:
                raise BackendInternalError(
                    f"Upload stream ended after {self.bytes_read} of "
                    f"{self.declared_length} declared bytes",
                    declared_length=self.declared_length,
                    received=self.bytes_read,
                )
            parts.append(data)
            wanted -= len(data)
            self._remaining -= len(data)

        if self._remaining == 0:
            self._verify_exhausted()
        return b"".join(parts)

    def readall(self) -> bytes:
        return self.read(-1)

    def readinto(self, buffer) -> int:  # type: ignore[override]
        view = memoryview(buffer).cast("B")
        data = self.read(len(view))
        view[: len(data)] = data
        return len(data)

    def _verify_exhausted(self) -> None:
        if self._verified:
            return
        self._verified = True
        if self._source.read(1):
            raise BackendInternalError(
                f"Upload stream is longer than its declared length of {self.declared_length} bytes",
                declared_length=self.declared_length,
            )

    def close(self) -> None:
        if not self.closed:
            try:
                self._source.close()
            finally:
                super().close()


def parse_declared_length(value: Optional[str]) -> int:
    """Parse a declared content length (e.g. a Content-Length header).

    Raises:
        InvalidInputError: If the value is missing, not a decimal integer,
            or negative
    """
    if value is None:
        raise InvalidInputError("Content length is required for uploads")
    stripped = value.strip()
    if not (stripped.isascii() and stripped.isdigit()):
        raise InvalidInputError(f"Invalid content length: {value!r}")
    return int(stripped)
