from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from evaluator.core.exceptions import InvalidStatusTransitionError
from evaluator.db.session import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EvaluationStatus(str, Enum):
    """Lifecycle states of an evaluation"""
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[EvaluationStatus] = frozenset(
    {EvaluationStatus.COMPLETED, EvaluationStatus.FAILED}
)

# Monotonic, one-directional: nothing leaves a terminal state
ALLOWED_TRANSITIONS: Dict[EvaluationStatus, FrozenSet[EvaluationStatus]] = {
    EvaluationStatus.QUEUED: frozenset({EvaluationStatus.PROCESSING}),
    EvaluationStatus.PROCESSING: frozenset({EvaluationStatus.COMPLETED, EvaluationStatus.FAILED}),
    EvaluationStatus.COMPLETED: frozenset(),
    EvaluationStatus.FAILED: frozenset(),
}

RESULT_FIELDS = (
    "cv_match_rate",
    "cv_feedback",
    "project_score",
    "project_feedback",
    "overall_summary",
)


class Evaluation(Base):
    __tablename__ = "evaluations"

    id = Column(Integer, primary_key=True, index=True)
    job_title = Column(String(255), nullable=False)
    cv_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    project_report_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    status = Column(String(20), nullable=False, default=EvaluationStatus.QUEUED.value, index=True)

    # Results, written together on completion
    cv_match_rate = Column(Float)
    cv_feedback = Column(Text)
    project_score = Column(Float)
    project_feedback = Column(Text)
    overall_summary = Column(Text)

    # Failure details
    error_message = Column(Text)
    retry_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))

    cv = relationship("Document", foreign_keys=[cv_id])
    project_report = relationship("Document", foreign_keys=[project_report_id])

    @property
    def status_enum(self) -> EvaluationStatus:
        return EvaluationStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum.is_terminal

    def can_transition_to(self, target: EvaluationStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status_enum]

    def transition_to(self, target: EvaluationStatus) -> None:
        """Move to ``target`` or raise if the state machine forbids it"""
        if not self.can_transition_to(target):
            raise InvalidStatusTransitionError(self.status, target.value)
        self.status = target.value

    def result_dict(self) -> Dict[str, object]:
        return {field: getattr(self, field) for field in RESULT_FIELDS}

    def __repr__(self):
        return f"<Evaluation(id={self.id}, job_title='{self.job_title}', status='{self.status}')>"
