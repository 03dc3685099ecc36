"""Entry point for the blob server.
Serves a local directory (or memory) backend over HTTP.
"""

import os

import uvicorn

from blobstore.local_backend import LocalDirectoryBackend
from blobstore.memory_backend import InMemoryBackend
from blobstore.server import create_app
from common.constants import BLOBSTORE_HOST, BLOBSTORE_PORT
from common.logging_config import setup_logging

logger = setup_logging('blobstore')

BLOBSTORE_NAME = os.getenv("BLOBSTORE_NAME", "blobstore")
BLOBSTORE_STORAGE_PATH = os.getenv("BLOBSTORE_STORAGE_PATH", "./data/blobs")
BLOBSTORE_IN_MEMORY = os.getenv("BLOBSTORE_IN_MEMORY", "0") == "1"


def build_backend():
    if BLOBSTORE_IN_MEMORY:
        return InMemoryBackend(BLOBSTORE_NAME)
    return LocalDirectoryBackend(BLOBSTORE_NAME, BLOBSTORE_STORAGE_PATH)


def main() -> None:
    """Entry point for the blob server."""
    host = os.getenv("BLOBSTORE_HOST", BLOBSTORE_HOST)
    port = int(os.getenv("BLOBSTORE_PORT", str(BLOBSTORE_PORT)))

    backend = build_backend()
    logger.info(f"Starting blob server [backend={backend!r}] on {host}:{port}")
    uvicorn.run(create_app(backend), host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
