"""
Tests for the Celery evaluation task and queue wiring.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, Mock, patch

from evaluator.core.celery_app import celery_app
from evaluator.core.config import settings
from evaluator.services.ai.base import ProviderError
from evaluator.services.evaluation.worker import EvaluationJob
from evaluator.tasks.evaluation_tasks import enqueue_evaluation, evaluate_submission

JOB = EvaluationJob(evaluation_id=7, job_title="Backend Engineer", cv_id=1, project_report_id=2)


@pytest.fixture
def task_worker():
    worker = Mock()
    worker.process = AsyncMock()
    worker.close = AsyncMock()
    return worker


@pytest.fixture
def task_session():
    with patch("evaluator.tasks.evaluation_tasks.SessionLocal") as session_local:
        session_local.return_value = MagicMock()
        yield session_local.return_value


class TestEvaluateSubmissionTask:
    """Test the background evaluation task."""

    @pytest.mark.celery
    def test_completed_job(self, task_worker, task_session):
        task_worker.process.return_value = Mock(id=7, status="completed")

        with patch("evaluator.tasks.evaluation_tasks.build_evaluation_worker", return_value=task_worker) as build:
            result = evaluate_submission.apply(kwargs=JOB.to_dict())

        assert result.successful()
        assert result.result == {"evaluation_id": 7, "status": "completed"}
        build.assert_called_once_with(task_session, settings)
        task_worker.process.assert_awaited_once_with(JOB)
        task_worker.close.assert_awaited_once()
        task_session.close.assert_called_once()

    @pytest.mark.celery
    def test_skipped_job(self, task_worker, task_session):
        task_worker.process.return_value = None

        with patch("evaluator.tasks.evaluation_tasks.build_evaluation_worker", return_value=task_worker):
            result = evaluate_submission.apply(kwargs=JOB.to_dict())

        assert result.result == {"evaluation_id": 7, "status": "skipped"}

    @pytest.mark.celery
    def test_failed_job_still_cleans_up(self, task_worker, task_session):
        task_worker.process.side_effect = ProviderError("OpenAI API error: invalid key", "openai", "gpt-4o", status_code=401)

        with patch("evaluator.tasks.evaluation_tasks.build_evaluation_worker", return_value=task_worker):
            result = evaluate_submission.apply(kwargs=JOB.to_dict())

        assert result.failed()
        assert isinstance(result.result, ProviderError)
        task_worker.close.assert_awaited_once()
        task_session.close.assert_called_once()


class TestQueueConfiguration:
    """Test queue-level delivery settings."""

    @pytest.mark.celery
    def test_enqueue_uses_evaluation_queue(self):
        with patch.object(evaluate_submission, "apply_async") as apply_async:
            enqueue_evaluation(JOB)

        apply_async.assert_called_once_with(kwargs=JOB.to_dict(), queue=settings.EVALUATION_QUEUE)

    @pytest.mark.celery
    def test_single_job_at_a_time(self):
        assert celery_app.conf.worker_concurrency == 1
        assert celery_app.conf.worker_prefetch_multiplier == 1

    @pytest.mark.celery
    def test_no_queue_level_retries(self):
        assert evaluate_submission.max_retries == 0
        assert evaluate_submission.acks_late is True

    @pytest.mark.celery
    def test_job_round_trip_through_message(self):
        assert EvaluationJob.from_dict(JOB.to_dict()) == JOB
