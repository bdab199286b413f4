"""
Stage functions of the evaluation pipeline

Each stage is exactly one remote inference call run through the call
executor under the stage's retry policy. The structured output is validated
inside the retried operation, so a schema mismatch surfaces as a permanent
``MalformedOutputError`` rather than a retried failure.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar
import logging

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from evaluator.schemas.stage import (
    CVEvaluationOutput,
    ProjectEvaluationOutput,
    SynthesisOutput,
    structured_output_schema,
)
from evaluator.services.ai.base import BaseInferenceClient, MalformedOutputError
from evaluator.services.ai.prompts import PromptType, get_prompt_template
from evaluator.services.evaluation.scoring import cv_match_rate, project_score
from evaluator.services.retry import CallExecutor, RetryPolicy, StageType, policy_for_stage

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


@dataclass
class CVStageResult:
    output: CVEvaluationOutput
    match_rate: float

    @property
    def feedback(self) -> str:
        return self.output.feedback

    def summary_payload(self) -> Dict[str, Any]:
        return {"cv_match_rate": self.match_rate, **self.output.model_dump()}


@dataclass
class ProjectStageResult:
    output: ProjectEvaluationOutput
    score: float

    @property
    def feedback(self) -> str:
        return self.output.feedback

    def summary_payload(self) -> Dict[str, Any]:
        return {"project_score": self.score, **self.output.model_dump()}


def validate_output(model: Type[M], payload: Dict[str, Any], stage: StageType) -> M:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise MalformedOutputError(f"Malformed {stage.value} output: {errors}") from e


async def _run_stage(
    stage: StageType,
    client: BaseInferenceClient,
    executor: CallExecutor,
    model: Type[M],
    prompt_type: PromptType,
    variables: Dict[str, Any],
    document: Optional[bytes] = None,
    document_name: str = "document.pdf",
    policy: Optional[RetryPolicy] = None,
) -> M:
    template = get_prompt_template(prompt_type)
    prompt = template.format(**variables)
    schema = structured_output_schema(model)

    async def call() -> M:
        payload = await client.generate_structured(
            prompt=prompt,
            schema=schema,
            schema_name=stage.value,
            document=document,
            document_name=document_name,
            system_prompt=template.system_prompt,
        )
        return validate_output(model, payload, stage)

    return await executor.execute(call, policy or policy_for_stage(stage), operation_name=stage.value)


async def evaluate_cv(
    client: BaseInferenceClient,
    executor: CallExecutor,
    cv_pdf: bytes,
    job_title: str,
    job_description: str,
    cv_rubric: str,
) -> CVStageResult:
    """Score a CV against the job description; match rate in [0.2, 1.0]"""
    output = await _run_stage(
        StageType.CV_EVALUATION,
        client,
        executor,
        CVEvaluationOutput,
        PromptType.CV_EVALUATION,
        {"job_title": job_title, "job_description": job_description, "cv_rubric": cv_rubric},
        document=cv_pdf,
        document_name="cv.pdf",
    )
    result = CVStageResult(output=output, match_rate=cv_match_rate(output))
    logger.info(f"CV evaluation done: match rate {result.match_rate}")
    return result


async def evaluate_project(
    client: BaseInferenceClient,
    executor: CallExecutor,
    project_pdf: bytes,
    case_study_brief: str,
    project_rubric: str,
) -> ProjectStageResult:
    """Score a project report against the case study brief; score in [1, 5]"""
    output = await _run_stage(
        StageType.PROJECT_EVALUATION,
        client,
        executor,
        ProjectEvaluationOutput,
        PromptType.PROJECT_EVALUATION,
        {"case_study_brief": case_study_brief, "project_rubric": project_rubric},
        document=project_pdf,
        document_name="project_report.pdf",
    )
    result = ProjectStageResult(output=output, score=project_score(output))
    logger.info(f"Project evaluation done: score {result.score}")
    return result


async def synthesize(
    client: BaseInferenceClient,
    executor: CallExecutor,
    job_title: str,
    cv_result: CVStageResult,
    project_result: ProjectStageResult,
) -> str:
    """Text-only summary built from the full outputs of both scoring stages"""
    output = await _run_stage(
        StageType.FINAL_SYNTHESIS,
        client,
        executor,
        SynthesisOutput,
        PromptType.FINAL_SYNTHESIS,
        {
            "job_title": job_title,
            "cv_evaluation": json.dumps(cv_result.summary_payload(), indent=2),
            "project_evaluation": json.dumps(project_result.summary_payload(), indent=2),
        },
    )
    return output.overall_summary
