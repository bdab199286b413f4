"""
Structured outputs of the remote inference stages

These models are both the JSON schema sent to the model and the validator
applied to what comes back.
"""

import copy
from typing import Any, Dict, Type

from pydantic import BaseModel, ConfigDict, Field


class SubScore(BaseModel):
    model_config = ConfigDict(extra="forbid")

    score: int = Field(..., ge=1, le=5)
    reasoning: str = Field(..., min_length=1)


class CVEvaluationOutput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    technical_skills: SubScore
    experience_level: SubScore
    relevant_achievements: SubScore
    cultural_fit: SubScore
    feedback: str = Field(..., min_length=1)


class ProjectEvaluationOutput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    correctness: SubScore
    code_quality: SubScore
    resilience: SubScore
    documentation: SubScore
    creativity: SubScore
    feedback: str = Field(..., min_length=1)


class SynthesisOutput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    overall_summary: str = Field(..., min_length=1)


def _inline_refs(node: Any, defs: Dict[str, Any]) -> Any:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/$defs/"):
            return _inline_refs(copy.deepcopy(defs[ref.split("/")[-1]]), defs)
        return {key: _inline_refs(value, defs) for key, value in node.items() if key != "$defs"}
    if isinstance(node, list):
        return [_inline_refs(item, defs) for item in node]
    return node


def structured_output_schema(model: Type[BaseModel]) -> Dict[str, Any]:
    """JSON schema of ``model`` with nested definitions inlined"""
    schema = model.model_json_schema()
    return _inline_refs(schema, schema.get("$defs", {}))
