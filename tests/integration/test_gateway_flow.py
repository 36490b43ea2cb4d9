"""Integration tests for the HTTP gateway over a filesystem provider."""

import json

import anyio
import pytest
from fastapi.testclient import TestClient

from linkcloud.credentials import encode_basic_auth
from linkcloud.gateway import BLOB_SIZE_HEADER, create_app
from linkcloud.listing import parse_listing
from linkcloud.registry import ProviderRegistry
from linkcloud.storage_backend import BlobMetadata, LocalFilesystemBackend

AUTH = {"Authorization": encode_basic_auth("user1", "key1")}


@pytest.fixture
def app(tmp_path):
    registry = ProviderRegistry([("local", LocalFilesystemBackend(root=tmp_path, chunk_size=2))])
    return create_app(registry)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def send_upload(app, path, declared_length, messages):
    """Drive one upload through the ASGI app with a scripted client.

    ``messages`` are handed out in order; once they run out the client
    reports a disconnect. Returns the response status and decoded JSON body.
    """
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("ascii"),
        "root_path": "",
        "query_string": b"",
        "headers": [
            (b"authorization", AUTH["Authorization"].encode("ascii")),
            (b"content-length", str(declared_length).encode("ascii")),
        ],
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }
    pending = list(messages)
    sent = []

    async def receive():
        if pending:
            return pending.pop(0)
        return {"type": "http.disconnect"}

    async def send(message):
        sent.append(message)

    anyio.run(app, scope, receive, send)

    start = next(message for message in sent if message["type"] == "http.response.start")
    body = b"".join(message.get("body", b"") for message in sent if message["type"] == "http.response.body")
    return start["status"], json.loads(body)


@pytest.mark.integration
class TestGatewayFlow:
    """Test end-to-end blob workflows through HTTP."""

    def test_create_upload_download_list(self, client):
        """Test the full round trip for a single blob."""
        # Arrange
        assert client.post("/api/local/pics", headers=AUTH).status_code == 200

        # Act
        upload = client.post("/api/local/pics/a.jpg", headers=AUTH, content=b"\x01\x02\x03")
        download = client.get("/api/local/pics/a.jpg", headers=AUTH)
        listing = client.get("/api/local/pics", headers=AUTH)

        # Assert
        assert upload.status_code == 200
        assert download.status_code == 200
        assert download.content == b"\x01\x02\x03"
        assert download.headers["content-length"] == "3"
        assert download.headers["content-type"] == "application/octet-stream"
        assert listing.status_code == 200
        assert listing.headers["content-type"].startswith("application/xml")
        assert parse_listing(listing.content) == [BlobMetadata("a.jpg", 3)]

    def test_empty_container_listing(self, client):
        """Test a new container lists zero blobs."""
        client.post("/api/local/pics", headers=AUTH)

        response = client.get("/api/local/pics", headers=AUTH)

        assert response.content == b'<blobs count="0"></blobs>'

    def test_nested_blob_names_in_path(self, client):
        """Test blob names containing '/' are routed as one name."""
        client.post("/api/local/pics", headers=AUTH)

        client.post("/api/local/pics/2024/01/a.jpg", headers=AUTH, content=b"abcde")
        response = client.get("/api/local/pics/2024/01/a.jpg", headers=AUTH)

        assert response.content == b"abcde"
        listing = parse_listing(client.get("/api/local/pics", headers=AUTH).content)
        assert listing == [BlobMetadata("2024/01/a.jpg", 5)]

    def test_create_container_is_idempotent(self, client):
        """Test repeated container creation succeeds."""
        assert client.post("/api/local/pics", headers=AUTH).status_code == 200
        assert client.post("/api/local/pics", headers=AUTH).status_code == 200
        assert client.head("/api/local/pics", headers=AUTH).status_code == 200

    def test_head_blob_reports_size(self, client):
        """Test HEAD on a blob returns its size header."""
        client.post("/api/local/pics", headers=AUTH)
        client.post("/api/local/pics/a.jpg", headers=AUTH, content=b"\x01\x02\x03")

        response = client.head("/api/local/pics/a.jpg", headers=AUTH)

        assert response.status_code == 200
        assert response.headers[BLOB_SIZE_HEADER] == "3"

    def test_delete_blob_then_download_is_not_found(self, client):
        """Test deleted blobs return 404."""
        client.post("/api/local/pics", headers=AUTH)
        client.post("/api/local/pics/a.jpg", headers=AUTH, content=b"a")

        assert client.delete("/api/local/pics/a.jpg", headers=AUTH).status_code == 200
        response = client.get("/api/local/pics/a.jpg", headers=AUTH)

        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_delete_container(self, client):
        """Test container deletion and the follow-up existence check."""
        client.post("/api/local/pics", headers=AUTH)
        client.post("/api/local/pics/a.jpg", headers=AUTH, content=b"a")

        assert client.delete("/api/local/pics", headers=AUTH).status_code == 200
        assert client.head("/api/local/pics", headers=AUTH).status_code == 404
        assert client.delete("/api/local/pics", headers=AUTH).status_code == 404

    def test_accounts_are_isolated(self, client):
        """Test a second account does not see the first account's containers."""
        client.post("/api/local/pics", headers=AUTH)
        other = {"Authorization": encode_basic_auth("user2", "key2")}

        assert client.get("/api/local/pics", headers=other).status_code == 404


@pytest.mark.integration
class TestGatewayErrors:
    """Test the mapping of failures to HTTP responses."""

    def test_missing_authorization_is_401_with_challenge(self, client):
        """Test requests without credentials are challenged."""
        response = client.get("/api/local/pics")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == 'Basic realm="linkcloud"'
        assert response.json()["error"] == "MissingAuth"

    def test_missing_authorization_wins_over_unknown_provider(self, client):
        """Test credentials are checked before the provider is resolved."""
        assert client.get("/api/dropbox/pics").status_code == 401

    @pytest.mark.parametrize("header", ["Bearer token", "Basic %%%", "Basic dXNlcjE="])
    def test_malformed_authorization_is_400(self, client, header):
        """Test unusable credential tokens are rejected."""
        response = client.get("/api/local/pics", headers={"Authorization": header})

        assert response.status_code == 400
        assert response.json()["error"] == "MalformedAuth"

    def test_unknown_provider_is_415(self, client):
        """Test unregistered providers are reported as unsupported."""
        response = client.get("/api/dropbox/pics", headers=AUTH)

        assert response.status_code == 415
        assert response.json() == {
            "error": "UnsupportedProvider",
            "detail": "Provider 'dropbox' is not supported",
        }

    def test_invalid_container_name_is_400(self, client):
        """Test naming rule violations are InvalidInput."""
        response = client.post("/api/local/Bad_Name", headers=AUTH)

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    def test_missing_container_is_404(self, client):
        """Test operations on absent containers are NotFound."""
        response = client.post("/api/local/pics/a.jpg", headers=AUTH, content=b"abc")

        assert response.status_code == 404

    def test_upload_without_content_length_is_400(self, client):
        """Test chunked uploads without a declared length are rejected."""
        client.post("/api/local/pics", headers=AUTH)

        response = client.post(
            "/api/local/pics/a.jpg", headers=AUTH, content=iter([b"ab", b"c"])
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    def test_non_ascii_authorization_is_400(self, client):
        """Test a token with non-ASCII characters is malformed, not a server error."""
        response = client.get(
            "/api/local/pics", headers={"Authorization": "Basic déad".encode("latin-1")}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "MalformedAuth"


@pytest.mark.integration
class TestUploadInterruption:
    """Test uploads whose body never reaches the declared length."""

    @pytest.fixture(autouse=True)
    def original_blob(self, client):
        client.post("/api/local/pics", headers=AUTH)
        client.post("/api/local/pics/a.jpg", headers=AUTH, content=b"original")

    def test_client_disconnect_mid_body_is_500(self, app, client):
        """Test a client that disconnects partway fails the upload and keeps the old blob."""
        status, body = send_upload(
            app,
            "/api/local/pics/a.jpg",
            10,
            [{"type": "http.request", "body": b"ab", "more_body": True}, {"type": "http.disconnect"}],
        )

        assert status == 500
        assert body["error"] == "BackendInternal"
        assert client.get("/api/local/pics/a.jpg", headers=AUTH).content == b"original"
        listing = parse_listing(client.get("/api/local/pics", headers=AUTH).content)
        assert listing == [BlobMetadata("a.jpg", 8)]

    def test_body_shorter_than_content_length_is_500(self, app, client):
        """Test a body that ends before the declared length fails the upload."""
        status, body = send_upload(
            app,
            "/api/local/pics/a.jpg",
            10,
            [{"type": "http.request", "body": b"ab", "more_body": False}],
        )

        assert status == 500
        assert body["error"] == "BackendInternal"
        assert client.get("/api/local/pics/a.jpg", headers=AUTH).content == b"original"


@pytest.mark.integration
class TestGatewayMeta:
    """Test the service endpoints outside the blob API."""

    def test_health(self, client):
        """Test the health endpoint."""
        assert client.get("/health").json() == {"status": "healthy"}

    def test_lists_providers(self, client):
        """Test registered providers are listed without authentication."""
        assert client.get("/api/providers").json() == ["local"]
