"""
Document store

Byte storage for uploaded PDFs addressed by storage key. The local backend
writes under a directory; the HTTP backend talks to an object store exposing
``GET``/``PUT {base_url}/{key}``.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
import logging

import aiofiles
import aiofiles.os
import httpx

from evaluator.core.exceptions import DocumentNotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _check_key(key: str) -> str:
    if not key or key.startswith("/") or ".." in Path(key).parts:
        raise ValidationError(f"Invalid storage key: {key!r}")
    return key


class DocumentStore(ABC):
    @abstractmethod
    async def fetch(self, key: str) -> bytes:
        """Return the stored bytes or raise DocumentNotFoundError"""

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store bytes under ``key``, replacing any previous object"""

    async def close(self) -> None:
        pass


class LocalDocumentStore(DocumentStore):
    def __init__(self, root: str):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / _check_key(key)

    async def fetch(self, key: str) -> bytes:
        path = self._path(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise DocumentNotFoundError(f"Document not found: {key}") from e

    async def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        logger.debug(f"Stored {len(data)} bytes at {path}")


class HTTPDocumentStore(DocumentStore):
    def __init__(self, base_url: str, timeout: float = 30, client: Optional[httpx.AsyncClient] = None):
        if not base_url and client is None:
            raise ValueError("Document store URL not configured")
        self.client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    async def fetch(self, key: str) -> bytes:
        response = await self.client.get(f"/{_check_key(key)}")
        if response.status_code == 404:
            raise DocumentNotFoundError(f"Document not found: {key}")
        response.raise_for_status()
        return response.content

    async def put(self, key: str, data: bytes) -> None:
        response = await self.client.put(
            f"/{_check_key(key)}",
            content=data,
            headers={"Content-Type": "application/pdf"},
        )
        response.raise_for_status()

    async def close(self) -> None:
        await self.client.aclose()


def create_document_store(settings) -> DocumentStore:
    backend = settings.DOCUMENT_STORE_BACKEND
    if backend == "local":
        return LocalDocumentStore(settings.DOCUMENT_STORE_PATH)
    elif backend == "http":
        return HTTPDocumentStore(settings.DOCUMENT_STORE_URL, timeout=settings.DOCUMENT_STORE_TIMEOUT)
    raise ValueError(f"Unsupported document store backend: {backend}")
