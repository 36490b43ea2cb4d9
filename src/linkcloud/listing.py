"""Listing document codec.

A container listing is serialized as::

    <blobs count="2"><blob name="a" size="10"/><blob name="b" size="20"/></blobs>

Entries keep the order in which the backend enumerates them. The root count
is only known once enumeration finishes, so entries are first written to a
spooled temporary file (memory up to a threshold, disk beyond it). Nothing
is handed to the caller until the enumeration has completed, which means a
backend failure partway through never yields a partial document.
"""

import logging
import tempfile
import xml.etree.ElementTree as ET
from typing import IO, Iterable, Iterator, List
from xml.sax.saxutils import escape

from linkcloud.exceptions import BackendInternalError, GatewayError
from linkcloud.storage_backend import BlobMetadata
from linkcloud.streaming import COPY_BUFFER_SIZE

logger = logging.getLogger(__name__)

XML_ROOT = "blobs"
XML_ROOT_COUNT = "count"
XML_BLOB = "blob"
XML_BLOB_NAME = "name"
XML_BLOB_SIZE = "size"

# Entries above this many bytes spill from memory to disk
SPOOL_MAX_SIZE = 1024 * 1024

_ATTRIBUTE_ENTITIES = {'"': "&quot;", "\n": "&#10;", "\r": "&#13;", "\t": "&#9;"}


def _attribute(value: str) -> str:
    return '"' + escape(value, _ATTRIBUTE_ENTITIES) + '"'


def _entry(blob: BlobMetadata) -> bytes:
    if blob.size_bytes < 0:
        raise BackendInternalError(f"Backend reported a negative size for blob {blob.name}")
    return (
        f"<{XML_BLOB} {XML_BLOB_NAME}={_attribute(blob.name)} "
        f'{XML_BLOB_SIZE}="{blob.size_bytes:d}"/>'
    ).encode("utf-8")


class ListingDocument:
    """An encoded listing ready to be streamed.

    Use as a context manager, or iterate it: full iteration releases the
    spooled entries. ``close()`` is idempotent.
    """

    media_type = "application/xml"

    def __init__(self, count: int, entries: IO[bytes]) -> None:
        self.count = count
        self._entries = entries

    def __enter__(self) -> "ListingDocument":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __iter__(self) -> Iterator[bytes]:
        return self.iter_bytes()

    def iter_bytes(self, chunk_size: int = COPY_BUFFER_SIZE) -> Iterator[bytes]:
        """Yield the serialized document in bounded chunks."""
        try:
            yield f"<{XML_ROOT} {XML_ROOT_COUNT}=\"{self.count}\">".encode("utf-8")
            self._entries.seek(0)
            while True:
                chunk = self._entries.read(chunk_size)
                if not chunk:
                    break
                yield chunk
            yield f"</{XML_ROOT}>".encode("utf-8")
        finally:
            self.close()

    def to_bytes(self) -> bytes:
        """Return the whole document; meant for tests and small listings."""
        return b"".join(self.iter_bytes())

    def close(self) -> None:
        self._entries.close()


def encode_listing(blobs: Iterable[BlobMetadata], spool_max_size: int = SPOOL_MAX_SIZE) -> ListingDocument:
    """Consume a blob enumeration and encode it as a listing document.

    Args:
        blobs: Lazy, single-pass sequence of blob metadata
        spool_max_size: Bytes of entries kept in memory before spilling to disk

    Returns:
        ListingDocument whose count equals the number of entries written

    Raises:
        GatewayError: Taxonomy errors from the enumeration pass through
        BackendInternalError: Any other failure while enumerating
    """
    entries = tempfile.SpooledTemporaryFile(max_size=spool_max_size)
    count = 0
    try:
        for blob in blobs:
            entries.write(_entry(blob))
            count += 1
    except GatewayError:
        entries.close()
        raise
    except Exception as e:
        entries.close()
        raise BackendInternalError(f"Failed to build listing after {count} entries") from e

    logger.debug("Encoded listing", extra={"blob_count": count})
    return ListingDocument(count, entries)


def parse_listing(document: bytes) -> List[BlobMetadata]:
    """Decode a listing document back into blob metadata.

    Raises:
        ValueError: If the document does not follow the listing schema or its
            count disagrees with the number of entries
    """
    root = ET.fromstring(document)
    if root.tag != XML_ROOT:
        raise ValueError(f"Expected <{XML_ROOT}> root element, got <{root.tag}>")

    blobs = [
        BlobMetadata(name=element.attrib[XML_BLOB_NAME], size_bytes=int(element.attrib[XML_BLOB_SIZE]))
        for element in root.iter(XML_BLOB)
    ]

    declared = int(root.attrib[XML_ROOT_COUNT])
    if declared != len(blobs):
        raise ValueError(f"Listing declares {declared} blobs but contains {len(blobs)}")
    return blobs
