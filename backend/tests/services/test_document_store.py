"""
Tests for the local and HTTP document stores.
"""

import httpx
import pytest

from evaluator.core.exceptions import DocumentNotFoundError, ValidationError
from evaluator.services.retry import ErrorClassification, classify_error
from evaluator.services.storage.document_store import (
    HTTPDocumentStore,
    LocalDocumentStore,
    create_document_store,
)
from tests.factories import PDF_BYTES


class TestLocalDocumentStore:
    """Test filesystem-backed storage."""

    @pytest.mark.unit
    async def test_put_then_fetch(self, tmp_path):
        store = LocalDocumentStore(str(tmp_path))

        await store.put("cv/1700000000000-cv.pdf", PDF_BYTES)

        assert (tmp_path / "cv" / "1700000000000-cv.pdf").read_bytes() == PDF_BYTES
        assert await store.fetch("cv/1700000000000-cv.pdf") == PDF_BYTES

    @pytest.mark.unit
    async def test_missing_document_is_permanent(self, tmp_path):
        store = LocalDocumentStore(str(tmp_path))

        with pytest.raises(DocumentNotFoundError) as exc_info:
            await store.fetch("cv/missing.pdf")

        assert classify_error(exc_info.value) == ErrorClassification.PERMANENT

    @pytest.mark.unit
    @pytest.mark.parametrize("key", ["", "/etc/passwd", "../outside.pdf", "cv/../../outside.pdf"])
    async def test_unsafe_keys_rejected(self, tmp_path, key):
        store = LocalDocumentStore(str(tmp_path))

        with pytest.raises(ValidationError):
            await store.fetch(key)


class TestHTTPDocumentStore:
    """Test object-store access over HTTP with a mock transport."""

    def make_store(self, handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://store.test")
        return HTTPDocumentStore("https://store.test", client=client)

    @pytest.mark.unit
    async def test_fetch(self):
        def handler(request):
            assert request.method == "GET"
            assert request.url.path == "/cv/1-cv.pdf"
            return httpx.Response(200, content=PDF_BYTES)

        store = self.make_store(handler)
        assert await store.fetch("cv/1-cv.pdf") == PDF_BYTES
        await store.close()

    @pytest.mark.unit
    async def test_fetch_missing(self):
        store = self.make_store(lambda request: httpx.Response(404))

        with pytest.raises(DocumentNotFoundError):
            await store.fetch("cv/1-cv.pdf")

    @pytest.mark.unit
    async def test_server_error_is_retryable(self):
        store = self.make_store(lambda request: httpx.Response(503))

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await store.fetch("cv/1-cv.pdf")

        assert classify_error(exc_info.value) == ErrorClassification.RETRYABLE

    @pytest.mark.unit
    async def test_put(self):
        received = {}

        def handler(request):
            received["method"] = request.method
            received["body"] = request.content
            received["content_type"] = request.headers["content-type"]
            return httpx.Response(201)

        store = self.make_store(handler)
        await store.put("project_report/1-report.pdf", PDF_BYTES)

        assert received == {"method": "PUT", "body": PDF_BYTES, "content_type": "application/pdf"}


class TestStoreFactory:
    """Test backend selection from settings."""

    @pytest.mark.unit
    def test_backends(self, tmp_path):
        class Settings:
            DOCUMENT_STORE_BACKEND = "local"
            DOCUMENT_STORE_PATH = str(tmp_path)
            DOCUMENT_STORE_URL = "https://store.test"
            DOCUMENT_STORE_TIMEOUT = 5

        assert isinstance(create_document_store(Settings), LocalDocumentStore)

        Settings.DOCUMENT_STORE_BACKEND = "http"
        assert isinstance(create_document_store(Settings), HTTPDocumentStore)

        Settings.DOCUMENT_STORE_BACKEND = "ftp"
        with pytest.raises(ValueError):
            create_document_store(Settings)
