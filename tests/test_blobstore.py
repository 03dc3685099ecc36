"""Tests for storage backends and the blob server."""

import httpx
import pytest
from fastapi.testclient import TestClient

from blobstore.http_backend import HttpBackend
from blobstore.local_backend import LocalDirectoryBackend
from blobstore.memory_backend import InMemoryBackend
from blobstore.server import create_app
from common.exceptions import BackendError, BlobNotFoundError

KEY = "file_abc_chunk_0.enc"


@pytest.fixture(params=["local", "memory"])
def backend(request, tmp_path):
    if request.param == "local":
        return LocalDirectoryBackend("disk", str(tmp_path / "blobs"))
    return InMemoryBackend("mem")


class TestBackendContract:

    def test_put_get_exists(self, backend):
        assert not backend.exists(KEY)
        backend.put(KEY, b"ciphertext")
        assert backend.exists(KEY)
        assert backend.get(KEY) == b"ciphertext"

    def test_put_is_idempotent(self, backend):
        backend.put(KEY, b"v")
        backend.put(KEY, b"v")
        assert backend.get(KEY) == b"v"
        assert backend.list_keys() == [KEY]

    def test_get_missing(self, backend):
        with pytest.raises(BlobNotFoundError) as exc_info:
            backend.get(KEY)
        assert exc_info.value.key == KEY
        assert exc_info.value.transient is False

    @pytest.mark.parametrize("key", ["", "../escape", "a/b", ".hidden", "x" * 300])
    def test_invalid_keys_rejected(self, backend, key):
        with pytest.raises(BackendError) as exc_info:
            backend.put(key, b"data")
        assert exc_info.value.transient is False

    def test_name_and_repr(self, backend):
        assert backend.name in repr(backend)


class TestLocalDirectoryBackend:

    def test_blob_stored_as_file(self, tmp_path):
        backend = LocalDirectoryBackend("GoogleDrive", str(tmp_path / "gdrive"))
        backend.put(KEY, b"payload")
        assert (tmp_path / "gdrive" / KEY).read_bytes() == b"payload"
        assert list((tmp_path / "gdrive").glob(".upload-*")) == []

    def test_write_failure_is_transient(self, tmp_path):
        backend = LocalDirectoryBackend("GoogleDrive", str(tmp_path / "gdrive"))
        (tmp_path / "gdrive").rmdir()
        with pytest.raises(BackendError) as exc_info:
            backend.put(KEY, b"payload")
        assert exc_info.value.transient is True
        assert exc_info.value.backend_name == "GoogleDrive"


class TestHttpBackend:

    def _backend(self, handler) -> HttpBackend:
        client = httpx.Client(base_url="http://blobstore", transport=httpx.MockTransport(handler))
        return HttpBackend("remote", "http://blobstore", client=client)

    def test_put_sends_bytes(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = request.content
            return httpx.Response(201)

        self._backend(handler).put(KEY, b"data")
        assert seen == {"method": "PUT", "path": f"/blobs/{KEY}", "body": b"data"}

    def test_get(self):
        backend = self._backend(lambda request: httpx.Response(200, content=b"blob"))
        assert backend.get(KEY) == b"blob"

    def test_get_not_found(self):
        backend = self._backend(lambda request: httpx.Response(404, json={"detail": "missing"}))
        with pytest.raises(BlobNotFoundError):
            backend.get(KEY)

    def test_server_error_is_transient(self):
        backend = self._backend(lambda request: httpx.Response(503))
        with pytest.raises(BackendError) as exc_info:
            backend.put(KEY, b"data")
        assert exc_info.value.transient is True

    def test_client_error_is_permanent(self):
        backend = self._backend(lambda request: httpx.Response(400))
        with pytest.raises(BackendError) as exc_info:
            backend.put(KEY, b"data")
        assert exc_info.value.transient is False

    def test_connection_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BackendError) as exc_info:
            self._backend(handler).get(KEY)
        assert exc_info.value.transient is True

    def test_exists(self):
        backend = self._backend(lambda request: httpx.Response(200 if request.method == "HEAD" else 500))
        assert backend.exists(KEY)


class TestBlobServer:

    @pytest.fixture
    def store(self):
        return InMemoryBackend("server")

    @pytest.fixture
    def client(self, store):
        return TestClient(create_app(store))

    def test_root(self, client):
        response = client.get("/")
        assert response.json() == {"status": "running", "backend": "server"}

    def test_put_then_get(self, client, store):
        response = client.put(f"/blobs/{KEY}", content=b"encrypted")
        assert response.status_code == 201
        assert "X-Request-ID" in response.headers
        assert store.get(KEY) == b"encrypted"

        response = client.get(f"/blobs/{KEY}")
        assert response.status_code == 200
        assert response.content == b"encrypted"

    def test_get_missing(self, client):
        response = client.get(f"/blobs/{KEY}")
        assert response.status_code == 404
        assert response.json()["code"] == "BLOB_NOT_FOUND"

    def test_head(self, client, store):
        assert client.head(f"/blobs/{KEY}").status_code == 404
        store.put(KEY, b"x")
        assert client.head(f"/blobs/{KEY}").status_code == 200

    def test_invalid_key(self, client):
        response = client.put("/blobs/..bad", content=b"x")
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"

    def test_http_backend_against_server(self, client, store):
        backend = HttpBackend("remote", "http://testserver", client=client)
        backend.put(KEY, b"round trip")
        assert backend.exists(KEY)
        assert backend.get(KEY) == b"round trip"
        assert not backend.exists("file_other_chunk_0.enc")
        with pytest.raises(BlobNotFoundError):
            backend.get("file_other_chunk_0.enc")
