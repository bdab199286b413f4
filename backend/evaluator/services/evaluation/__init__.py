from .pipeline import EvaluationOutcome, EvaluationPipeline
from .repository import EvaluationRepository
from .worker import EvaluationJob, EvaluationWorker, build_evaluation_worker
