"""
Weighted scoring of stage sub-scores

Sub-scores are integers 1-5. The CV match rate scales the weighted average
into [0.2, 1.0]; the project score stays on the 1-5 scale.
"""

from typing import Dict

from evaluator.schemas.stage import CVEvaluationOutput, ProjectEvaluationOutput

CV_WEIGHTS: Dict[str, float] = {
    "technical_skills": 0.40,
    "experience_level": 0.25,
    "relevant_achievements": 0.20,
    "cultural_fit": 0.15,
}

PROJECT_WEIGHTS: Dict[str, float] = {
    "correctness": 0.30,
    "code_quality": 0.25,
    "resilience": 0.20,
    "documentation": 0.15,
    "creativity": 0.10,
}

CV_MATCH_RATE_FACTOR = 0.2


def weighted_average(scores: Dict[str, int], weights: Dict[str, float]) -> float:
    total_weight = sum(weights.values())
    return sum(scores[name] * weight for name, weight in weights.items()) / total_weight


def cv_match_rate(output: CVEvaluationOutput) -> float:
    scores = {name: getattr(output, name).score for name in CV_WEIGHTS}
    rate = weighted_average(scores, CV_WEIGHTS) * CV_MATCH_RATE_FACTOR
    return round(min(max(rate, 0.0), 1.0), 2)


def project_score(output: ProjectEvaluationOutput) -> float:
    scores = {name: getattr(output, name).score for name in PROJECT_WEIGHTS}
    return round(min(max(weighted_average(scores, PROJECT_WEIGHTS), 1.0), 5.0), 2)
