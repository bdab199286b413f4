from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from sqlalchemy.orm import Session

from evaluator.api.deps import get_document_store
from evaluator.core.config import settings
from evaluator.core.rate_limiting import RATE_LIMITS, limiter
from evaluator.db.session import get_db
from evaluator.schemas.evaluation import UploadResponse
from evaluator.services.evaluation.repository import EvaluationRepository
from evaluator.services.storage.document_store import DocumentStore
from evaluator.services.upload import IncomingFile, UploadService
from evaluator.services.upload.validation import BYTES_PER_MB

router = APIRouter()


async def _incoming(file: Optional[UploadFile], max_size_mb: int) -> Optional[IncomingFile]:
    """Buffer at most one byte past the size limit; validation rejects anything larger"""
    if file is None or not file.filename:
        return None
    data = await file.read(max_size_mb * BYTES_PER_MB + 1)
    declared_size = file.size if file.size is not None else len(data)
    return IncomingFile(
        filename=file.filename,
        content_type=file.content_type,
        data=data,
        declared_size=max(declared_size, len(data)),
    )


@router.post("", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["upload"])
async def upload_documents(
    request: Request,
    cv: Optional[UploadFile] = File(None),
    project_report: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    document_store: DocumentStore = Depends(get_document_store),
):
    """
    Upload a candidate's CV and project report (both PDF)
    """
    service = UploadService(EvaluationRepository(db), document_store, settings.MAX_UPLOAD_SIZE_MB)
    cv_document, report_document = await service.process_uploaded_files(
        await _incoming(cv, settings.MAX_UPLOAD_SIZE_MB),
        await _incoming(project_report, settings.MAX_UPLOAD_SIZE_MB),
    )
    return UploadResponse(cv_id=cv_document.id, project_report_id=report_document.id)
