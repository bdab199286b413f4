"""
Record store for evaluations and uploaded documents

All writes go through here. Each status change is a single commit; on a
failed commit the session is rolled back and the error propagates.
"""

from typing import Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from evaluator.core.exceptions import EvaluationNotFoundError
from evaluator.models.document import Document, DocumentKind
from evaluator.models.evaluation import Evaluation, EvaluationStatus, utcnow

logger = logging.getLogger(__name__)


class EvaluationRepository:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self, instance=None):
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        if instance is not None:
            self.db.refresh(instance)
        return instance

    # Documents

    def create_document(
        self,
        kind: DocumentKind,
        original_filename: str,
        storage_key: str,
        size_bytes: int,
        content_type: str = "application/pdf",
    ) -> Document:
        document = Document(
            kind=DocumentKind(kind).value,
            original_filename=original_filename,
            storage_key=storage_key,
            content_type=content_type,
            size_bytes=size_bytes,
        )
        self.db.add(document)
        return self._commit(document)

    def find_document(self, document_id: int) -> Optional[Document]:
        return self.db.query(Document).filter(Document.id == document_id).first()

    # Evaluations

    def create(self, job_title: str, cv_id: int, project_report_id: int) -> Evaluation:
        evaluation = Evaluation(
            job_title=job_title,
            cv_id=cv_id,
            project_report_id=project_report_id,
            status=EvaluationStatus.QUEUED.value,
            retry_count=0,
        )
        self.db.add(evaluation)
        self._commit(evaluation)
        logger.info(f"Created evaluation {evaluation.id} for job: {job_title}")
        return evaluation

    def find_by_id(self, evaluation_id: int) -> Optional[Evaluation]:
        return self.db.query(Evaluation).filter(Evaluation.id == evaluation_id).first()

    def get(self, evaluation_id: int) -> Evaluation:
        evaluation = self.find_by_id(evaluation_id)
        if evaluation is None:
            raise EvaluationNotFoundError(f"Evaluation {evaluation_id} not found")
        return evaluation

    def delete(self, evaluation_id: int) -> None:
        """Remove a record that never reached the queue"""
        evaluation = self.get(evaluation_id)
        self.db.delete(evaluation)
        self._commit()
        logger.info(f"Deleted evaluation {evaluation_id}")

    def update_status(self, evaluation_id: int, status: EvaluationStatus) -> Evaluation:
        """Apply one allowed transition and stamp the matching timestamp"""
        evaluation = self.get(evaluation_id)
        status = EvaluationStatus(status)
        evaluation.transition_to(status)

        if status == EvaluationStatus.PROCESSING:
            evaluation.started_at = utcnow()
        elif status.is_terminal:
            evaluation.completed_at = utcnow()

        return self._commit(evaluation)

    def mark_processing(self, evaluation_id: int) -> Evaluation:
        return self.update_status(evaluation_id, EvaluationStatus.PROCESSING)

    def update_result(
        self,
        evaluation_id: int,
        cv_match_rate: float,
        cv_feedback: str,
        project_score: float,
        project_feedback: str,
        overall_summary: str,
    ) -> Evaluation:
        """Write all five result fields and move to completed in one commit"""
        evaluation = self.get(evaluation_id)
        evaluation.transition_to(EvaluationStatus.COMPLETED)

        evaluation.cv_match_rate = cv_match_rate
        evaluation.cv_feedback = cv_feedback
        evaluation.project_score = project_score
        evaluation.project_feedback = project_feedback
        evaluation.overall_summary = overall_summary
        evaluation.error_message = None
        evaluation.completed_at = utcnow()

        return self._commit(evaluation)

    def mark_failed(self, evaluation_id: int, error_message: str) -> Evaluation:
        """Store the failure message, bump retry_count and move to failed"""
        evaluation = self.get(evaluation_id)
        evaluation.transition_to(EvaluationStatus.FAILED)

        evaluation.error_message = error_message
        evaluation.retry_count = (evaluation.retry_count or 0) + 1
        evaluation.completed_at = utcnow()

        return self._commit(evaluation)
