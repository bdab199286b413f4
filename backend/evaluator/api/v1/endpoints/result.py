from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from evaluator.core.rate_limiting import RATE_LIMITS, limiter
from evaluator.db.session import get_db
from evaluator.models.evaluation import Evaluation, EvaluationStatus
from evaluator.schemas.evaluation import EvaluationResultResponse
from evaluator.services.evaluation.repository import EvaluationRepository

router = APIRouter()


def shape_result(evaluation: Evaluation) -> Dict[str, Any]:
    """Response body for an evaluation, by status"""
    body: Dict[str, Any] = {"id": evaluation.id, "status": evaluation.status}

    if evaluation.status == EvaluationStatus.FAILED.value:
        body["error_message"] = evaluation.error_message
    elif evaluation.status == EvaluationStatus.COMPLETED.value:
        body["result"] = evaluation.result_dict()

    return body


@router.get("/{evaluation_id}", response_model=EvaluationResultResponse, response_model_exclude_none=True)
@limiter.limit(RATE_LIMITS["result"])
async def get_result(
    request: Request,
    evaluation_id: int,
    db: Session = Depends(get_db),
):
    """
    Get the status of an evaluation, with results once completed
    """
    evaluation = EvaluationRepository(db).get(evaluation_id)
    return shape_result(evaluation)
