"""
Evaluation pipeline

Runs the three stages strictly in sequence: CV scoring, project scoring,
then synthesis of both. The first failure aborts the run and nothing
partial is returned.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional
import logging

from evaluator.core.exceptions import DocumentNotFoundError
from evaluator.services.ai.base import BaseInferenceClient
from evaluator.services.ai.reference_store import ReferenceStore, ReferenceType
from evaluator.services.evaluation import stages
from evaluator.services.evaluation.repository import EvaluationRepository
from evaluator.services.retry import CallExecutor
from evaluator.services.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class EvaluationOutcome:
    cv_match_rate: float
    cv_feedback: str
    project_score: float
    project_feedback: str
    overall_summary: str

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EvaluationPipeline:
    def __init__(
        self,
        document_client: BaseInferenceClient,
        synthesis_client: BaseInferenceClient,
        reference_store: ReferenceStore,
        document_store: DocumentStore,
        repository: EvaluationRepository,
        executor: Optional[CallExecutor] = None,
    ):
        self.document_client = document_client
        self.synthesis_client = synthesis_client
        self.reference_store = reference_store
        self.document_store = document_store
        self.repository = repository
        self.executor = executor or CallExecutor()

    async def _load_document(self, document_id: int) -> bytes:
        document = self.repository.find_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return await self.document_store.fetch(document.storage_key)

    async def run(self, job_title: str, cv_id: int, project_report_id: int) -> EvaluationOutcome:
        """
        Evaluate one submission.

        Raises whatever the failing step raised; stage failures arrive as
        ``CallExecutionError`` carrying the original message.
        """
        logger.info(f"Stage 1/3: CV evaluation for job: {job_title}")
        cv_pdf = await self._load_document(cv_id)
        job_description = await self.reference_store.query(ReferenceType.JOB_DESCRIPTION.value, job_title)
        cv_rubric = await self.reference_store.query(ReferenceType.CV_RUBRIC.value)
        cv_result = await stages.evaluate_cv(
            self.document_client, self.executor, cv_pdf, job_title, job_description, cv_rubric
        )

        logger.info("Stage 2/3: project report evaluation")
        project_pdf = await self._load_document(project_report_id)
        case_study_brief = await self.reference_store.query(ReferenceType.CASE_STUDY_BRIEF.value)
        project_rubric = await self.reference_store.query(ReferenceType.PROJECT_RUBRIC.value)
        project_result = await stages.evaluate_project(
            self.document_client, self.executor, project_pdf, case_study_brief, project_rubric
        )

        logger.info("Stage 3/3: final synthesis")
        overall_summary = await stages.synthesize(
            self.synthesis_client, self.executor, job_title, cv_result, project_result
        )

        return EvaluationOutcome(
            cv_match_rate=cv_result.match_rate,
            cv_feedback=cv_result.feedback,
            project_score=project_result.score,
            project_feedback=project_result.feedback,
            overall_summary=overall_summary,
        )

    def log_usage(self) -> None:
        """Log token and latency totals of each inference client"""
        clients = [self.document_client]
        if self.synthesis_client is not self.document_client:
            clients.append(self.synthesis_client)

        for client in clients:
            stats = client.get_usage_stats()
            if stats:
                logger.info(
                    f"Inference usage {stats['provider']}:{stats['model']}: "
                    f"{stats['total_requests']} requests, "
                    f"{stats['total_tokens_input']} input / {stats['total_tokens_output']} output tokens, "
                    f"avg {stats['average_latency_ms']:.0f}ms"
                )

    async def close(self) -> None:
        self.log_usage()

        closers: List = [
            self.document_client.close,
            self.document_store.close,
        ]
        if self.synthesis_client is not self.document_client:
            closers.append(self.synthesis_client.close)
        closers.append(self.reference_store.close)

        for close in closers:
            try:
                await close()
            except Exception as e:
                logger.warning(f"Error while closing pipeline resource: {e}")
