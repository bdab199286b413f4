from typing import AsyncGenerator, Callable

from evaluator.core.config import settings
from evaluator.services.storage.document_store import DocumentStore, create_document_store
from evaluator.tasks.evaluation_tasks import enqueue_evaluation


async def get_document_store() -> AsyncGenerator[DocumentStore, None]:
    store = create_document_store(settings)
    try:
        yield store
    finally:
        await store.close()


def get_job_dispatcher() -> Callable:
    """Callable taking an ``EvaluationJob`` and putting it on the evaluation queue"""
    return enqueue_evaluation
