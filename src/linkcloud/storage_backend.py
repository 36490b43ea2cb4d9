"""Storage backend abstraction for the blob gateway.

Provides pluggable storage backends that connect with pass-through account
credentials and stream blob content to and from cloud providers and the
local filesystem.

Every backend call is a fresh session: nothing is pooled or cached across
requests, and container handles are resolved again for each operation.
"""

import base64
import logging
import os
import re
import shutil
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, ContextManager, Iterator, List, Optional

from linkcloud.credentials import Credentials
from linkcloud.error_mapper import guard_iterator, map_backend_errors
from linkcloud.exceptions import InvalidInputError, NotFoundError
from linkcloud.streaming import (
    COPY_BUFFER_SIZE,
    DEFAULT_CHUNK_SIZE,
    LengthCheckedReader,
    copy_stream,
    iter_chunks,
)

logger = logging.getLogger(__name__)

# Storage account names: 3-24 lowercase letters and digits
ACCOUNT_NAME_PATTERN = re.compile(r"^[a-z0-9]{3,24}$")

# Azure containers: 3-63 chars, lowercase alphanumerics and single hyphens
CONTAINER_NAME_PATTERN = re.compile(r"^(?!.*--)[a-z0-9][a-z0-9-]{1,61}[a-z0-9]$")

# S3 buckets: 3-63 chars, lowercase alphanumerics, dots and hyphens
BUCKET_NAME_PATTERN = re.compile(r"^(?!.*\.\.)[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
IP_ADDRESS_PATTERN = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")

MAX_BLOB_NAME_LENGTH = 1024


@dataclass(frozen=True)
class ContainerRef:
    """A validated container name within one backend account."""

    name: str


@dataclass(frozen=True)
class BlobRef:
    """Address of a single blob; existence is backend state."""

    container: ContainerRef
    name: str

    def __str__(self) -> str:
        return f"{self.container.name}/{self.name}"


@dataclass(frozen=True)
class BlobMetadata:
    """Name and size of a blob, produced while enumerating a container."""

    name: str
    size_bytes: int


@dataclass
class ContainerHandle:
    """A resolved container plus the backend client used to reach it."""

    ref: ContainerRef
    client: Any

    @property
    def name(self) -> str:
        return self.ref.name


class BlobDownload:
    """Streamed blob content handed from a backend to its caller.

    Iterating yields the content in bounded chunks. The underlying stream is
    released when iteration ends, fails, or close() is called, whichever
    comes first. close() may be called from another thread while a chunk is
    being read; it waits for that read to finish.
    """

    def __init__(self, name: str, chunks: Iterator[bytes], length: Optional[int] = None) -> None:
        self.name = name
        self.length = length
        self._chunks = chunks
        self._closed = False
        self._lock = threading.Lock()

    def __iter__(self) -> Iterator[bytes]:
        try:
            while True:
                with self._lock:
                    if self._closed:
                        return
                    chunk = next(self._chunks, None)
                if chunk is None:
                    return
                yield chunk
        finally:
            self.close()

    def __enter__(self) -> "BlobDownload":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def read_all(self) -> bytes:
        """Collect the whole content; meant for tests and small blobs."""
        return b"".join(self)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            close = getattr(self._chunks, "close", None)
            if close is not None:
                close()


def validate_account_name(name: str) -> str:
    """Check a storage account name, raising InvalidInputError if malformed."""
    if not ACCOUNT_NAME_PATTERN.match(name):
        raise InvalidInputError(f"Invalid storage account name: {name!r}")
    return name


def validate_container_name(name: str) -> ContainerRef:
    """Check a container name against the Azure naming rules."""
    if not CONTAINER_NAME_PATTERN.match(name):
        raise InvalidInputError(f"Invalid container name {name}", container=name)
    return ContainerRef(name)


def validate_bucket_name(name: str) -> ContainerRef:
    """Check a container name against the S3 bucket naming rules."""
    if not BUCKET_NAME_PATTERN.match(name) or IP_ADDRESS_PATTERN.match(name):
        raise InvalidInputError(f"Invalid container name {name}", container=name)
    return ContainerRef(name)


def validate_blob_name(name: str) -> str:
    """Check a blob name is 1 to 1024 characters without control characters."""
    if not name or len(name) > MAX_BLOB_NAME_LENGTH or any(ord(ch) < 0x20 for ch in name):
        raise InvalidInputError(f"Invalid blob name {name!r}", blob=name)
    return name


class StorageBackend(ABC):
    """Abstract base class for storage backends.

    Every backend must implement the session, container and blob operations
    below. Operations that take a container handle expect one returned by
    resolve_container() within the same request.

    Failures are reported with the gateway taxonomy: InvalidInputError for
    names or credentials the backend rejects, NotFoundError for missing
    containers or blobs, BackendInternalError for everything else. Backends
    get this for free by wrapping SDK calls in ``self._call()`` and
    overriding status_of().
    """

    provider_type = "abstract"

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
        self.chunk_size = chunk_size

    @abstractmethod
    def connect(self, credentials: Credentials) -> Any:
        """Open a backend session for the given account credentials.

        Raises:
            InvalidInputError: If the account name or secret is malformed
            BackendInternalError: If the session cannot be established
        """

    @abstractmethod
    def resolve_container(self, session: Any, container_name: str, must_exist: bool = True) -> ContainerHandle:
        """Resolve a container name to a handle.

        Raises:
            InvalidInputError: If the name breaks the backend naming rules
            NotFoundError: If must_exist is set and the container is absent
        """

    @abstractmethod
    def download_blob(self, container: ContainerHandle, blob_name: str) -> BlobDownload:
        """Open a blob for streaming download.

        Raises:
            InvalidInputError: If the blob name is invalid
            NotFoundError: If the blob does not exist
        """

    @abstractmethod
    def upload_blob(
        self,
        container: ContainerHandle,
        blob_name: str,
        stream: BinaryIO,
        declared_length: int,
    ) -> None:
        """Stream exactly ``declared_length`` bytes from ``stream`` into a blob.

        Existing blobs are overwritten. The stream is closed once consumed.

        Raises:
            InvalidInputError: If the blob name is invalid
            BackendInternalError: If the transfer fails or the stream length
                disagrees with declared_length
        """

    @abstractmethod
    def delete_blob(self, container: ContainerHandle, blob_name: str) -> None:
        """Delete a blob.

        Raises:
            NotFoundError: If the blob does not exist
        """

    @abstractmethod
    def list_blobs(self, container: ContainerHandle) -> Iterator[BlobMetadata]:
        """Enumerate the blobs of a container lazily, in backend order.

        The sequence is single-pass. A failure partway through raises a
        taxonomy error from the iterator.
        """

    @abstractmethod
    def create_container_if_absent(self, session: Any, container_name: str) -> None:
        """Create a container unless it already exists (idempotent)."""

    @abstractmethod
    def container_exists(self, session: Any, container_name: str) -> bool:
        """Return whether a container exists. Never raises NotFoundError."""

    @abstractmethod
    def delete_container(self, container: ContainerHandle) -> None:
        """Delete a container and everything in it.

        Raises:
            NotFoundError: If the container does not exist
        """

    @abstractmethod
    def get_blob_metadata(self, container: ContainerHandle, blob_name: str) -> BlobMetadata:
        """Return the name and size of a blob.

        Raises:
            NotFoundError: If the blob does not exist
        """

    def status_of(self, exc: BaseException) -> Optional[int]:
        """Extract the backend-native status code from an SDK exception."""
        return None

    def validate_container_name(self, name: str) -> ContainerRef:
        return validate_container_name(name)

    def _call(self, operation: str, subject: str) -> ContextManager[None]:
        return map_backend_errors(operation, subject, self.status_of)

    def _guard(self, iterator: Iterator, operation: str, subject: str) -> Iterator:
        return guard_iterator(iterator, operation, subject, self.status_of)

    def _blob_ref(self, container: ContainerHandle, blob_name: str) -> BlobRef:
        return BlobRef(container.ref, validate_blob_name(blob_name))


class LocalFilesystemBackend(StorageBackend):
    """Storage backend on the local filesystem (including NFS/SMB mounts).

    Layout is ``<root>/<account>/<container>/<blob>``. Blob names may hold
    ``/`` separators, which become subdirectories. The account secret is not
    verified; this backend is meant for development and tests.
    """

    provider_type = "filesystem"

    TEMP_PREFIX = ".upload-"

    def __init__(self, root: Path, chunk_size: int = COPY_BUFFER_SIZE):
        """Initialize local filesystem backend.

        Args:
            root: Base directory holding one subdirectory per account
            chunk_size: Bytes per read when streaming content

        Raises:
            ValueError: If root is not an absolute path
        """
        super().__init__(chunk_size=chunk_size)
        self.root = Path(root)
        if not self.root.is_absolute():
            raise ValueError(f"root must be absolute: {root}")

    def status_of(self, exc: BaseException) -> Optional[int]:
        if isinstance(exc, FileNotFoundError):
            return 404
        if isinstance(exc, (NotADirectoryError, IsADirectoryError, FileExistsError)):
            return 400
        return None

    def connect(self, credentials: Credentials) -> Path:
        account = validate_account_name(credentials.username)
        return self.root / account

    def resolve_container(self, session: Path, container_name: str, must_exist: bool = True) -> ContainerHandle:
        ref = self.validate_container_name(container_name)
        path = session / ref.name
        if must_exist and not path.is_dir():
            raise NotFoundError(f"Container {ref.name} doesn't exist", container=ref.name)
        return ContainerHandle(ref, path)

    def _blob_path(self, container: ContainerHandle, blob: BlobRef) -> Path:
        segments = blob.name.split("/")
        for segment in segments:
            if segment in ("", ".", "..") or segment.startswith(self.TEMP_PREFIX) or "\\" in segment:
                raise InvalidInputError(f"Invalid blob name {blob.name!r}", blob=blob.name)
        return container.client.joinpath(*segments)

    def _existing_blob_path(self, container: ContainerHandle, blob: BlobRef) -> Path:
        path = self._blob_path(container, blob)
        if not path.is_file():
            raise NotFoundError(f"Blob {blob} not found", blob=blob.name)
        return path

    def download_blob(self, container: ContainerHandle, blob_name: str) -> BlobDownload:
        blob = self._blob_ref(container, blob_name)
        path = self._existing_blob_path(container, blob)

        with self._call("download_blob", f"blob {blob}"):
            handle = open(path, "rb")
            length = os.fstat(handle.fileno()).st_size

        chunks = self._guard(iter_chunks(handle, self.chunk_size), "download_blob", f"blob {blob}")
        return BlobDownload(blob.name, chunks, length=length)

    def upload_blob(
        self,
        container: ContainerHandle,
        blob_name: str,
        stream: BinaryIO,
        declared_length: int,
    ) -> None:
        blob = self._blob_ref(container, blob_name)
        path = self._blob_path(container, blob)

        with LengthCheckedReader(stream, declared_length) as reader, self._call("upload_blob", f"blob {blob}"):
            path.parent.mkdir(parents=True, exist_ok=True)

            # Write beside the target and rename, so failures leave the old blob intact
            fd, temp_name = tempfile.mkstemp(prefix=self.TEMP_PREFIX, dir=path.parent)
            try:
                with os.fdopen(fd, "wb") as sink:
                    copy_stream(reader, sink, self.chunk_size)
                os.replace(temp_name, path)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise

        logger.debug("Stored blob", extra={"path": str(path), "size_bytes": declared_length})

    def delete_blob(self, container: ContainerHandle, blob_name: str) -> None:
        blob = self._blob_ref(container, blob_name)
        path = self._existing_blob_path(container, blob)

        with self._call("delete_blob", f"blob {blob}"):
            path.unlink()

            # Prune directories emptied by the delete, stopping at the container
            parent = path.parent
            while parent != container.client and not any(parent.iterdir()):
                parent.rmdir()
                parent = parent.parent

    def _walk(self, directory: Path, prefix: str) -> Iterator[BlobMetadata]:
        with os.scandir(directory) as scanner:
            entries = sorted(scanner, key=lambda entry: entry.name)
        for entry in entries:
            if entry.name.startswith(self.TEMP_PREFIX):
                continue
            if entry.is_dir(follow_symlinks=False):
                yield from self._walk(Path(entry.path), f"{prefix}{entry.name}/")
            elif entry.is_file(follow_symlinks=False):
                yield BlobMetadata(f"{prefix}{entry.name}", entry.stat().st_size)

    def list_blobs(self, container: ContainerHandle) -> Iterator[BlobMetadata]:
        return self._guard(self._walk(container.client, ""), "list_blobs", f"container {container.name}")

    def create_container_if_absent(self, session: Path, container_name: str) -> None:
        ref = self.validate_container_name(container_name)
        with self._call("create_container", f"container {ref.name}"):
            (session / ref.name).mkdir(parents=True, exist_ok=True)

    def container_exists(self, session: Path, container_name: str) -> bool:
        ref = self.validate_container_name(container_name)
        return (session / ref.name).is_dir()

    def delete_container(self, container: ContainerHandle) -> None:
        if not container.client.is_dir():
            raise NotFoundError(f"Container {container.name} not found", container=container.name)
        with self._call("delete_container", f"container {container.name}"):
            shutil.rmtree(container.client)

    def get_blob_metadata(self, container: ContainerHandle, blob_name: str) -> BlobMetadata:
        blob = self._blob_ref(container, blob_name)
        path = self._existing_blob_path(container, blob)
        with self._call("get_blob_metadata", f"blob {blob}"):
            return BlobMetadata(blob.name, path.stat().st_size)


class AzureBlobBackend(StorageBackend):
    """Azure Blob Storage backend.

    The username is the storage account name and the password its access
    key. Uses the azure-storage-blob SDK with transfer sizes pinned to the
    configured chunk size, so uploads go out as block lists and downloads
    arrive as ranged reads instead of single whole-object requests.
    """

    provider_type = "azure"

    DEFAULT_ENDPOINT = "https://{account}.blob.core.windows.net"

    def __init__(self, endpoint: str = DEFAULT_ENDPOINT, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """Initialize Azure Blob Storage backend.

        Args:
            endpoint: Account URL template; ``{account}`` is replaced by the
                storage account name (override for Azurite or sovereign clouds)
            chunk_size: Bytes per block on upload and per ranged read on download
        """
        super().__init__(chunk_size=chunk_size)
        if "{account}" not in endpoint:
            raise ValueError(f"endpoint must contain an {{account}} placeholder: {endpoint}")
        self.endpoint = endpoint

    def status_of(self, exc: BaseException) -> Optional[int]:
        from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

        if isinstance(exc, HttpResponseError):
            if exc.status_code is not None:
                return int(exc.status_code)
            if isinstance(exc, ResourceNotFoundError):
                return 404
        return None

    def connect(self, credentials: Credentials) -> Any:
        from azure.storage.blob import BlobServiceClient

        # The SDK accepts any account name, so check it here
        account = validate_account_name(credentials.username)
        try:
            base64.b64decode(credentials.password, validate=True)
        except ValueError as e:
            raise InvalidInputError("Bad key given") from e

        with self._call("connect", f"storage account {account}"):
            return BlobServiceClient(
                account_url=self.endpoint.format(account=account),
                credential={"account_name": account, "account_key": credentials.password},
                max_single_put_size=self.chunk_size,
                max_block_size=self.chunk_size,
                max_single_get_size=self.chunk_size,
                max_chunk_get_size=self.chunk_size,
                retry_total=0,
            )

    def resolve_container(self, session: Any, container_name: str, must_exist: bool = True) -> ContainerHandle:
        ref = self.validate_container_name(container_name)
        container_client = session.get_container_client(ref.name)

        if must_exist:
            with self._call("resolve_container", f"container {ref.name}"):
                exists = container_client.exists()
            if not exists:
                raise NotFoundError(f"Container {ref.name} doesn't exist", container=ref.name)

        return ContainerHandle(ref, container_client)

    def download_blob(self, container: ContainerHandle, blob_name: str) -> BlobDownload:
        blob = self._blob_ref(container, blob_name)
        blob_client = container.client.get_blob_client(blob.name)

        with self._call("download_blob", f"blob {blob}"):
            downloader = blob_client.download_blob()

        chunks = self._guard(downloader.chunks(), "download_blob", f"blob {blob}")
        return BlobDownload(blob.name, chunks, length=downloader.size)

    def upload_blob(
        self,
        container: ContainerHandle,
        blob_name: str,
        stream: BinaryIO,
        declared_length: int,
    ) -> None:
        blob = self._blob_ref(container, blob_name)
        blob_client = container.client.get_blob_client(blob.name)

        # Blocks are staged as they are read; the blob only appears on commit
        with LengthCheckedReader(stream, declared_length) as reader, self._call("upload_blob", f"blob {blob}"):
            blob_client.upload_blob(reader, length=declared_length, overwrite=True)

    def delete_blob(self, container: ContainerHandle, blob_name: str) -> None:
        blob = self._blob_ref(container, blob_name)
        blob_client = container.client.get_blob_client(blob.name)

        with self._call("delete_blob", f"blob {blob}"):
            blob_client.delete_blob()

    def list_blobs(self, container: ContainerHandle) -> Iterator[BlobMetadata]:
        items = (BlobMetadata(item.name, item.size) for item in container.client.list_blobs())
        return self._guard(items, "list_blobs", f"container {container.name}")

    def create_container_if_absent(self, session: Any, container_name: str) -> None:
        from azure.core.exceptions import ResourceExistsError

        ref = self.validate_container_name(container_name)
        container_client = session.get_container_client(ref.name)

        with self._call("create_container", f"container {ref.name}"):
            try:
                container_client.create_container()
            except ResourceExistsError:
                logger.debug("Container already exists", extra={"container": ref.name})

    def container_exists(self, session: Any, container_name: str) -> bool:
        ref = self.validate_container_name(container_name)
        try:
            with self._call("container_exists", f"container {ref.name}"):
                return bool(session.get_container_client(ref.name).exists())
        except NotFoundError:
            return False

    def delete_container(self, container: ContainerHandle) -> None:
        with self._call("delete_container", f"container {container.name}"):
            container.client.delete_container()

    def get_blob_metadata(self, container: ContainerHandle, blob_name: str) -> BlobMetadata:
        blob = self._blob_ref(container, blob_name)
        blob_client = container.client.get_blob_client(blob.name)

        with self._call("get_blob_metadata", f"blob {blob}"):
            properties = blob_client.get_blob_properties()
        return BlobMetadata(blob.name, properties.size)


class S3Backend(StorageBackend):
    """AWS S3 storage backend.

    The username is the access key id and the password the secret access
    key. Containers are buckets. Uses boto3; uploads stream through the
    transfer manager in parts of at least the configured chunk size.
    """

    provider_type = "s3"

    ACCESS_KEY_PATTERN = re.compile(r"^[A-Z0-9]{16,128}$")

    # Error codes whose HTTP status is not enough to classify them
    NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NoSuchBucket", "NotFound"})
    INVALID_INPUT_CODES = frozenset({"InvalidBucketName", "KeyTooLongError"})

    # S3 rejects multipart parts smaller than 5 MiB
    MIN_PART_SIZE = 5 * 1024 * 1024

    def __init__(
        self,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """Initialize S3 backend.

        Args:
            region: AWS region (e.g., 'us-east-1')
            endpoint_url: Optional custom endpoint
            chunk_size: Bytes per transfer part (raised to the S3 minimum)
        """
        super().__init__(chunk_size=chunk_size)
        self.region = region
        self.endpoint_url = endpoint_url

    def status_of(self, exc: BaseException) -> Optional[int]:
        from botocore.exceptions import ClientError

        if isinstance(exc, ClientError):
            code = exc.response.get("Error", {}).get("Code", "")
            if code in self.NOT_FOUND_CODES:
                return 404
            if code in self.INVALID_INPUT_CODES:
                return 400
            return exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return None

    def validate_container_name(self, name: str) -> ContainerRef:
        return validate_bucket_name(name)

    def _client_config(self) -> Any:
        from botocore.config import Config

        return Config(retries={"total_max_attempts": 1})

    def connect(self, credentials: Credentials) -> Any:
        import boto3

        if not self.ACCESS_KEY_PATTERN.match(credentials.username):
            raise InvalidInputError(f"Invalid access key id: {credentials.username!r}")

        client_kwargs = {
            "region_name": self.region,
            "aws_access_key_id": credentials.username,
            "aws_secret_access_key": credentials.password,
            "config": self._client_config(),
        }
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url

        with self._call("connect", f"access key {credentials.username}"):
            return boto3.client("s3", **client_kwargs)

    def resolve_container(self, session: Any, container_name: str, must_exist: bool = True) -> ContainerHandle:
        ref = self.validate_container_name(container_name)
        if must_exist:
            with self._call("resolve_container", f"container {ref.name}"):
                session.head_bucket(Bucket=ref.name)
        return ContainerHandle(ref, session)

    def download_blob(self, container: ContainerHandle, blob_name: str) -> BlobDownload:
        blob = self._blob_ref(container, blob_name)

        with self._call("download_blob", f"blob {blob}"):
            response = container.client.get_object(Bucket=container.name, Key=blob.name)

        chunks = self._guard(iter_chunks(response["Body"], self.chunk_size), "download_blob", f"blob {blob}")
        return BlobDownload(blob.name, chunks, length=response.get("ContentLength"))

    def upload_blob(
        self,
        container: ContainerHandle,
        blob_name: str,
        stream: BinaryIO,
        declared_length: int,
    ) -> None:
        from boto3.s3.transfer import TransferConfig

        blob = self._blob_ref(container, blob_name)
        part_size = max(self.chunk_size, self.MIN_PART_SIZE)
        transfer_config = TransferConfig(
            multipart_threshold=part_size,
            multipart_chunksize=part_size,
            use_threads=False,
        )

        # Failed multipart uploads are aborted by the transfer manager
        with LengthCheckedReader(stream, declared_length) as reader, self._call("upload_blob", f"blob {blob}"):
            container.client.upload_fileobj(reader, container.name, blob.name, Config=transfer_config)

    def delete_blob(self, container: ContainerHandle, blob_name: str) -> None:
        blob = self._blob_ref(container, blob_name)

        # DeleteObject succeeds for missing keys, so check first
        with self._call("delete_blob", f"blob {blob}"):
            container.client.head_object(Bucket=container.name, Key=blob.name)
            container.client.delete_object(Bucket=container.name, Key=blob.name)

    def _iter_objects(self, container: ContainerHandle) -> Iterator[BlobMetadata]:
        paginator = container.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=container.name):
            for obj in page.get("Contents", []):
                yield BlobMetadata(obj["Key"], obj["Size"])

    def list_blobs(self, container: ContainerHandle) -> Iterator[BlobMetadata]:
        return self._guard(self._iter_objects(container), "list_blobs", f"container {container.name}")

    def create_container_if_absent(self, session: Any, container_name: str) -> None:
        from botocore.exceptions import ClientError

        ref = self.validate_container_name(container_name)
        if self.container_exists(session, ref.name):
            return

        create_kwargs: dict = {"Bucket": ref.name}
        if self.region and self.region != "us-east-1":
            create_kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}

        with self._call("create_container", f"container {ref.name}"):
            try:
                session.create_bucket(**create_kwargs)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") != "BucketAlreadyOwnedByYou":
                    raise
                logger.debug("Bucket already exists", extra={"container": ref.name})

    def container_exists(self, session: Any, container_name: str) -> bool:
        ref = self.validate_container_name(container_name)
        try:
            with self._call("container_exists", f"container {ref.name}"):
                session.head_bucket(Bucket=ref.name)
        except NotFoundError:
            return False
        return True

    def delete_container(self, container: ContainerHandle) -> None:
        # Buckets must be empty before deletion; remove objects page by page
        with self._call("delete_container", f"container {container.name}"):
            paginator = container.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=container.name):
                keys: List[dict] = [{"Key": obj["Key"]} for obj in page.get("Contents", [])]
                if keys:
                    container.client.delete_objects(
                        Bucket=container.name, Delete={"Objects": keys, "Quiet": True}
                    )
            container.client.delete_bucket(Bucket=container.name)

    def get_blob_metadata(self, container: ContainerHandle, blob_name: str) -> BlobMetadata:
        blob = self._blob_ref(container, blob_name)
        with self._call("get_blob_metadata", f"blob {blob}"):
            response = container.client.head_object(Bucket=container.name, Key=blob.name)
        return BlobMetadata(blob.name, response["ContentLength"])


class S3CompatibleBackend(S3Backend):
    """S3-compatible storage backend (MinIO, Ceph, Wasabi, GCS interoperability).

    Uses boto3 with a custom endpoint_url and path-style addressing.
    """

    provider_type = "s3-compatible"

    ACCESS_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._\-]{3,128}$")

    def __init__(
        self,
        endpoint_url: str,
        region: Optional[str] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """Initialize S3-compatible backend.

        Args:
            endpoint_url: S3-compatible endpoint URL (e.g., 'https://minio.example.com:9000')
            region: Region name (optional, defaults to 'us-east-1' for compatibility)
            chunk_size: Bytes per transfer part
        """
        if not endpoint_url:
            raise ValueError("endpoint_url is required for S3-compatible backends")
        super().__init__(region=region or "us-east-1", endpoint_url=endpoint_url, chunk_size=chunk_size)

    def _client_config(self) -> Any:
        from botocore.config import Config

        return Config(retries={"total_max_attempts": 1}, s3={"addressing_style": "path"})
