import re
import time
from typing import Tuple
import logging

from evaluator.models.document import Document, DocumentKind
from evaluator.services.evaluation.repository import EvaluationRepository
from evaluator.services.storage.document_store import DocumentStore
from evaluator.services.upload.validation import (
    CV_FIELD,
    PROJECT_REPORT_FIELD,
    IncomingFile,
    validate_submission,
)

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    name = _UNSAFE_CHARS.sub("_", filename.rsplit("/", 1)[-1].rsplit("\\", 1)[-1]).strip("._")
    return name or "document.pdf"


def build_storage_key(field_name: str, filename: str, timestamp_ms: int = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{field_name}/{timestamp_ms}-{safe_filename(filename)}"


class UploadService:
    """Validates a CV + project report pair, stores the bytes and records both documents"""

    def __init__(self, repository: EvaluationRepository, document_store: DocumentStore, max_size_mb: int = 10):
        self.repository = repository
        self.document_store = document_store
        self.max_size_mb = max_size_mb

    async def _store(self, field_name: str, kind: DocumentKind, file: IncomingFile) -> Document:
        key = build_storage_key(field_name, file.filename)
        await self.document_store.put(key, file.data)
        return self.repository.create_document(
            kind=kind,
            original_filename=file.filename,
            storage_key=key,
            size_bytes=file.size,
            content_type=file.content_type,
        )

    async def process_uploaded_files(self, cv: IncomingFile, project_report: IncomingFile) -> Tuple[Document, Document]:
        validate_submission(cv, project_report, self.max_size_mb)

        cv_document = await self._store(CV_FIELD, DocumentKind.CV, cv)
        report_document = await self._store(PROJECT_REPORT_FIELD, DocumentKind.PROJECT_REPORT, project_report)

        logger.info(f"Stored CV {cv_document.id} and project report {report_document.id}")
        return cv_document, report_document
