from evaluator.db.session import Base
from .document import Document, DocumentKind
from .evaluation import Evaluation, EvaluationStatus, RESULT_FIELDS, TERMINAL_STATUSES

__all__ = [
    "Base",
    "Document",
    "DocumentKind",
    "Evaluation",
    "EvaluationStatus",
    "RESULT_FIELDS",
    "TERMINAL_STATUSES",
]
