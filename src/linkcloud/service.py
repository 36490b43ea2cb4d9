"""Blob operations addressed by provider name, container, blob and credentials.

BlobService is what the HTTP layer calls. Each method resolves the provider,
opens a fresh backend session with the caller's credentials, resolves the
container and runs one backend operation. Taxonomy errors propagate
unchanged.
"""

import logging
from typing import BinaryIO, Tuple

from linkcloud.credentials import Credentials
from linkcloud.listing import ListingDocument, encode_listing
from linkcloud.logging_config import log_context
from linkcloud.registry import ProviderRegistry
from linkcloud.storage_backend import BlobDownload, BlobMetadata, ContainerHandle, StorageBackend

logger = logging.getLogger(__name__)


class BlobService:
    """Per-request blob and container operations over a provider registry."""

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    def _open_container(
        self, provider: str, container: str, credentials: Credentials, must_exist: bool = True
    ) -> Tuple[StorageBackend, ContainerHandle]:
        backend = self.registry.resolve(provider)
        session = backend.connect(credentials)
        return backend, backend.resolve_container(session, container, must_exist=must_exist)

    def download_blob(self, provider: str, container: str, blob: str, credentials: Credentials) -> BlobDownload:
        """Open a blob for streaming; the caller must iterate or close the result."""
        with log_context(operation="download_blob", provider=provider, container=container, blob=blob):
            backend, handle = self._open_container(provider, container, credentials)
            download = backend.download_blob(handle, blob)
            logger.info("Streaming blob", extra={"size_bytes": download.length})
            return download

    def upload_blob(
        self,
        provider: str,
        container: str,
        blob: str,
        credentials: Credentials,
        stream: BinaryIO,
        declared_length: int,
    ) -> None:
        """Upload exactly declared_length bytes from stream, replacing any existing blob.

        The stream is closed on every path, including failures that happen
        before the backend starts reading it.
        """
        with log_context(operation="upload_blob", provider=provider, container=container, blob=blob):
            try:
                backend, handle = self._open_container(provider, container, credentials)
                backend.upload_blob(handle, blob, stream, declared_length)
            finally:
                stream.close()
            logger.info("Uploaded blob", extra={"size_bytes": declared_length})

    def delete_blob(self, provider: str, container: str, blob: str, credentials: Credentials) -> None:
        with log_context(operation="delete_blob", provider=provider, container=container, blob=blob):
            backend, handle = self._open_container(provider, container, credentials)
            backend.delete_blob(handle, blob)
            logger.info("Deleted blob")

    def blob_metadata(self, provider: str, container: str, blob: str, credentials: Credentials) -> BlobMetadata:
        with log_context(operation="blob_metadata", provider=provider, container=container, blob=blob):
            backend, handle = self._open_container(provider, container, credentials)
            return backend.get_blob_metadata(handle, blob)

    def list_blobs(self, provider: str, container: str, credentials: Credentials) -> ListingDocument:
        """Enumerate a container into a listing document.

        The enumeration completes before this returns, so backend failures
        surface here rather than while the document is being sent.
        """
        with log_context(operation="list_blobs", provider=provider, container=container):
            backend, handle = self._open_container(provider, container, credentials)
            document = encode_listing(backend.list_blobs(handle))
            logger.info("Listed container", extra={"blob_count": document.count})
            return document

    def create_container_if_absent(self, provider: str, container: str, credentials: Credentials) -> None:
        with log_context(operation="create_container", provider=provider, container=container):
            backend = self.registry.resolve(provider)
            session = backend.connect(credentials)
            backend.create_container_if_absent(session, container)
            logger.info("Ensured container exists")

    def container_exists(self, provider: str, container: str, credentials: Credentials) -> bool:
        with log_context(operation="container_exists", provider=provider, container=container):
            backend = self.registry.resolve(provider)
            session = backend.connect(credentials)
            return backend.container_exists(session, container)

    def delete_container(self, provider: str, container: str, credentials: Credentials) -> None:
        with log_context(operation="delete_container", provider=provider, container=container):
            backend, handle = self._open_container(provider, container, credentials)
            backend.delete_container(handle)
            logger.info("Deleted container")
