from pydantic import BaseModel, Field
from typing import Optional


class UploadResponse(BaseModel):
    cv_id: int
    project_report_id: int


class EvaluateRequest(BaseModel):
    job_title: str = Field(..., min_length=1, max_length=255)
    cv_id: int = Field(..., gt=0)
    project_report_id: int = Field(..., gt=0)


class EvaluateResponse(BaseModel):
    id: int
    status: str


class EvaluationResult(BaseModel):
    cv_match_rate: Optional[float] = None
    cv_feedback: Optional[str] = None
    project_score: Optional[float] = None
    project_feedback: Optional[str] = None
    overall_summary: Optional[str] = None


class EvaluationResultResponse(BaseModel):
    """Shape depends on status: queued/processing carry only id and status"""
    id: int
    status: str
    error_message: Optional[str] = None
    result: Optional[EvaluationResult] = None
