import asyncio
import logging
from typing import Any, Dict

from evaluator.core.celery_app import celery_app
from evaluator.core.config import settings
from evaluator.db.session import SessionLocal
from evaluator.services.evaluation.worker import EvaluationJob, build_evaluation_worker

logger = logging.getLogger(__name__)


async def _process(job: EvaluationJob, db) -> Dict[str, Any]:
    worker = build_evaluation_worker(db, settings)
    try:
        evaluation = await worker.process(job)
    finally:
        await worker.close()

    if evaluation is None:
        return {"evaluation_id": job.evaluation_id, "status": "skipped"}
    return {"evaluation_id": evaluation.id, "status": evaluation.status}


# Retries happen per remote call inside the worker, never at queue level
@celery_app.task(bind=True, max_retries=0, acks_late=True)
def evaluate_submission(self, evaluation_id: int, job_title: str, cv_id: int, project_report_id: int):
    """
    Background task running one evaluation to a terminal state
    """
    job = EvaluationJob(
        evaluation_id=evaluation_id,
        job_title=job_title,
        cv_id=cv_id,
        project_report_id=project_report_id,
    )
    logger.info(f"Received evaluation task {self.request.id} for evaluation {evaluation_id}")

    db = SessionLocal()
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_process(job, db))
    finally:
        loop.close()
        db.close()


def enqueue_evaluation(job: EvaluationJob):
    """Dispatch a job to the evaluation queue"""
    return evaluate_submission.apply_async(kwargs=job.to_dict(), queue=settings.EVALUATION_QUEUE)
