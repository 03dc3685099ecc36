"""HTTP client backend for a remote blob server."""

from typing import Optional

import httpx

from blobstore.base import StorageBackend, validate_key
from common.constants import HTTP_BACKEND_TIMEOUT_SECONDS
from common.exceptions import BackendError, BlobNotFoundError
from common.logging_config import get_logger

logger = get_logger(__name__)


class HttpBackend(StorageBackend):
    """
    Stores blobs on a blob server through `PUT/GET/HEAD /blobs/{key}`.

    Network failures and 5xx responses raise transient BackendErrors so the
    upload scheduler retries them; other 4xx responses are permanent.
    Retrying is left to the caller.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        timeout: float = HTTP_BACKEND_TIMEOUT_SECONDS,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            name: Backend name recorded in chunk metadata
            base_url: Blob server base URL (e.g., "http://blobstore:8100")
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client (testing)
        """
        super().__init__(name)
        self.base_url = base_url
        self.session = client or httpx.Client(base_url=base_url, timeout=timeout)
        logger.info(f"Initialized HttpBackend [name={name}] [base_url={base_url}]")

    def _request(self, method: str, key: str, **kwargs) -> httpx.Response:
        validate_key(key, self.name)
        endpoint = f"/blobs/{key}"
        try:
            response = self.session.request(method, endpoint, **kwargs)
        except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as e:
            logger.warning(f"Network error: {method} {endpoint} [backend={self.name}] error={type(e).__name__}")
            raise BackendError(f"{method} {endpoint} failed: {e}", backend_name=self.name) from e

        if response.status_code >= 500:
            logger.warning(f"Server error: {method} {endpoint} status={response.status_code} [backend={self.name}]")
            raise BackendError(
                f"{method} {endpoint} returned {response.status_code}", backend_name=self.name
            )
        return response

    def put(self, key: str, data: bytes) -> None:
        response = self._request(
            "PUT", key, content=data, headers={"Content-Type": "application/octet-stream"}
        )
        if response.status_code not in (200, 201, 204):
            raise BackendError(
                f"PUT {key} rejected with {response.status_code}",
                backend_name=self.name,
                transient=False,
            )

    def get(self, key: str) -> bytes:
        response = self._request("GET", key)
        if response.status_code == 404:
            raise BlobNotFoundError(key, backend_name=self.name)
        if response.status_code != 200:
            raise BackendError(
                f"GET {key} rejected with {response.status_code}",
                backend_name=self.name,
                transient=False,
            )
        return response.content

    def exists(self, key: str) -> bool:
        response = self._request("HEAD", key)
        return response.status_code == 200

    def close(self) -> None:
        self.session.close()
