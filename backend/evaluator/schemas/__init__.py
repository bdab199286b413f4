from .evaluation import (
    EvaluateRequest,
    EvaluateResponse,
    EvaluationResult,
    EvaluationResultResponse,
    UploadResponse,
)
from .stage import (
    CVEvaluationOutput,
    ProjectEvaluationOutput,
    SubScore,
    SynthesisOutput,
    structured_output_schema,
)
