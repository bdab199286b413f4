"""
Evaluation job worker

Drives one evaluation record through its lifecycle:

    queued -> processing -> completed
                         -> failed

Jobs are processed one at a time. A job's terminal state is written before
the next job is taken, and a failing job never stops the loop.
"""

import asyncio
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional
import logging

from diskcache import Cache
from sqlalchemy.orm import Session

from evaluator.core.exceptions import EvaluationNotFoundError
from evaluator.models.evaluation import Evaluation, EvaluationStatus
from evaluator.services.ai.providers import InferenceClientFactory
from evaluator.services.ai.reference_store import ReferenceStore
from evaluator.services.ai.vector_db import InMemoryVectorDB, PineconeVectorDB
from evaluator.services.evaluation.pipeline import EvaluationPipeline
from evaluator.services.evaluation.repository import EvaluationRepository
from evaluator.services.retry import CallExecutor, get_error_message, is_retryable_error
from evaluator.services.storage.document_store import create_document_store

logger = logging.getLogger(__name__)


@dataclass
class EvaluationJob:
    """Queue message for one submission"""
    evaluation_id: int
    job_title: str
    cv_id: int
    project_report_id: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvaluationJob":
        return cls(
            evaluation_id=int(data["evaluation_id"]),
            job_title=str(data["job_title"]),
            cv_id=int(data["cv_id"]),
            project_report_id=int(data["project_report_id"]),
        )


class EvaluationWorker:
    def __init__(self, repository: EvaluationRepository, pipeline: EvaluationPipeline,
                 poll_interval: float = 1.0):
        self.repository = repository
        self.pipeline = pipeline
        self.poll_interval = poll_interval

    async def process(self, job: EvaluationJob) -> Optional[Evaluation]:
        """
        Run one job to a terminal state.

        Returns the updated record, or None when the record was already
        terminal and the job was skipped. Re-raises the pipeline failure
        after the record has been marked failed.
        """
        evaluation = self.repository.find_by_id(job.evaluation_id)
        if evaluation is None:
            logger.error(f"Evaluation {job.evaluation_id} not found, dropping job")
            raise EvaluationNotFoundError(f"Evaluation {job.evaluation_id} not found")

        if evaluation.is_terminal:
            logger.warning(
                f"Evaluation {job.evaluation_id} is already {evaluation.status}, skipping redelivered job"
            )
            return None

        logger.info(f"Processing evaluation {job.evaluation_id} for job: {job.job_title}")

        if evaluation.status_enum == EvaluationStatus.QUEUED:
            self.repository.mark_processing(job.evaluation_id)
        else:
            logger.warning(f"Evaluation {job.evaluation_id} was left in processing, running it again")

        try:
            outcome = await self.pipeline.run(job.job_title, job.cv_id, job.project_report_id)
            evaluation = self.repository.update_result(job.evaluation_id, **outcome.as_dict())
        except Exception as e:
            error_message = get_error_message(e)
            retryable = getattr(e, "retryable", None)
            if retryable is None:
                retryable = is_retryable_error(e)

            evaluation = self.repository.mark_failed(job.evaluation_id, error_message)
            logger.error(
                f"Evaluation {job.evaluation_id} failed (attempt {evaluation.retry_count}): {error_message} "
                f"[retryable: {'yes, retries exhausted at call level' if retryable else 'no (permanent error)'}]"
            )
            raise

        logger.info(f"Evaluation {job.evaluation_id} completed successfully")
        return evaluation

    async def run(self, queue: "asyncio.Queue[EvaluationJob]", stop_event: Optional[asyncio.Event] = None) -> None:
        """Consume ``queue`` one job at a time until ``stop_event`` is set"""
        logger.info("Evaluation worker started")

        while stop_event is None or not stop_event.is_set():
            try:
                job = await asyncio.wait_for(queue.get(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                continue

            try:
                await self.process(job)
            except Exception as e:
                # Already recorded on the evaluation by process()
                logger.debug(f"Job for evaluation {job.evaluation_id} ended with {type(e).__name__}")
            finally:
                queue.task_done()

        logger.info("Evaluation worker stopped")

    async def close(self) -> None:
        await self.pipeline.close()


def build_evaluation_worker(db: Session, settings) -> EvaluationWorker:
    """Wire a worker and its collaborators from settings; caller must ``await worker.close()``"""
    repository = EvaluationRepository(db)

    document_client = InferenceClientFactory.create(
        settings.DEFAULT_MODEL_PROVIDER, settings.DOCUMENT_MODEL, settings
    )
    synthesis_client = InferenceClientFactory.create(
        settings.DEFAULT_MODEL_PROVIDER, settings.SYNTHESIS_MODEL, settings
    )

    if settings.VECTOR_DB_PROVIDER == "pinecone":
        vector_db = PineconeVectorDB(
            api_key=settings.PINECONE_API_KEY,
            index_name=settings.PINECONE_INDEX_NAME,
            namespace=settings.PINECONE_NAMESPACE,
        )
    elif settings.VECTOR_DB_PROVIDER == "memory":
        vector_db = InMemoryVectorDB(namespace=settings.PINECONE_NAMESPACE)
    else:
        raise ValueError(f"Unsupported vector database provider: {settings.VECTOR_DB_PROVIDER}")

    cache = Cache(settings.EMBEDDING_CACHE_DIR) if settings.EMBEDDING_CACHE_DIR else None
    reference_store = ReferenceStore(
        vector_db,
        InferenceClientFactory.create_embedder(settings),
        cache=cache,
        embedding_model=settings.DEFAULT_EMBEDDING_MODEL,
    )

    pipeline = EvaluationPipeline(
        document_client=document_client,
        synthesis_client=synthesis_client,
        reference_store=reference_store,
        document_store=create_document_store(settings),
        repository=repository,
        executor=CallExecutor(),
    )
    return EvaluationWorker(repository, pipeline)
