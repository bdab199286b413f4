import logging
from typing import Callable

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from evaluator.api.deps import get_job_dispatcher
from evaluator.core.exceptions import EvaluatorException, ValidationError
from evaluator.core.rate_limiting import RATE_LIMITS, limiter
from evaluator.db.session import get_db
from evaluator.models.document import DocumentKind
from evaluator.schemas.evaluation import EvaluateRequest, EvaluateResponse
from evaluator.services.evaluation.repository import EvaluationRepository
from evaluator.services.evaluation.worker import EvaluationJob

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_document(repository: EvaluationRepository, document_id: int, kind: DocumentKind, label: str):
    document = repository.find_document(document_id)
    if document is None:
        raise ValidationError(f"{label} with id {document_id} does not exist")
    if document.kind != kind.value:
        raise ValidationError(f"Document {document_id} is not a {label}")
    return document


@router.post("", response_model=EvaluateResponse)
@limiter.limit(RATE_LIMITS["evaluate"])
async def submit_evaluation(
    request: Request,
    payload: EvaluateRequest,
    db: Session = Depends(get_db),
    dispatch: Callable = Depends(get_job_dispatcher),
):
    """
    Queue an evaluation of previously uploaded documents
    """
    repository = EvaluationRepository(db)
    _require_document(repository, payload.cv_id, DocumentKind.CV, "CV")
    _require_document(repository, payload.project_report_id, DocumentKind.PROJECT_REPORT, "Project Report")

    evaluation = repository.create(payload.job_title, payload.cv_id, payload.project_report_id)
    job = EvaluationJob(
        evaluation_id=evaluation.id,
        job_title=evaluation.job_title,
        cv_id=evaluation.cv_id,
        project_report_id=evaluation.project_report_id,
    )

    try:
        dispatch(job)
    except Exception as e:
        logger.error(f"Failed to enqueue evaluation {evaluation.id}: {e}")
        repository.delete(evaluation.id)
        raise EvaluatorException("Evaluation queue unavailable, please retry later", 503) from e

    return EvaluateResponse(id=evaluation.id, status=evaluation.status)
