"""
Prompt templates for the three evaluation stages

Each template names the variables it expects; the documents themselves
(CV, project report) travel as attached PDFs, not inside the prompt.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List


class PromptType(str, Enum):
    """Types of prompts"""
    CV_EVALUATION = "cv_evaluation"
    PROJECT_EVALUATION = "project_evaluation"
    FINAL_SYNTHESIS = "final_synthesis"


@dataclass
class PromptTemplate:
    """Prompt template with metadata and versioning"""
    name: str
    template: str
    version: str
    description: str
    variables: List[str] = field(default_factory=list)
    system_prompt: str = ""

    def format(self, **kwargs) -> str:
        """Format template with provided variables"""
        missing_vars = [var for var in self.variables if var not in kwargs]
        if missing_vars:
            raise ValueError(f"Missing required variable(s) for {self.name}: {', '.join(missing_vars)}")
        return self.template.format(**kwargs)


_EVALUATOR_SYSTEM_PROMPT = (
    "You are an experienced technical recruiter and engineering reviewer. "
    "Score strictly against the provided rubric, citing concrete evidence from the attached document. "
    "Every score is an integer from 1 (poor) to 5 (excellent)."
)

CV_EVALUATION_PROMPT = PromptTemplate(
    name=PromptType.CV_EVALUATION.value,
    version="1.0",
    description="Score the attached CV against a job description",
    variables=["job_title", "job_description", "cv_rubric"],
    system_prompt=_EVALUATOR_SYSTEM_PROMPT,
    template="""Evaluate the attached candidate CV for the role of "{job_title}".

JOB DESCRIPTION:
{job_description}

SCORING RUBRIC:
{cv_rubric}

Score each parameter from 1 to 5 and explain the score in one or two sentences:
- technical_skills: backend, databases, APIs, cloud and AI/LLM exposure matching the role
- experience_level: years of experience and complexity of past projects
- relevant_achievements: impact and scale of past work
- cultural_fit: communication, learning mindset, teamwork and ownership

Then write "feedback": 3-5 sentences on strengths and gaps for this role.""",
)

PROJECT_EVALUATION_PROMPT = PromptTemplate(
    name=PromptType.PROJECT_EVALUATION.value,
    version="1.0",
    description="Score the attached project report against the case study brief",
    variables=["case_study_brief", "project_rubric"],
    system_prompt=_EVALUATOR_SYSTEM_PROMPT,
    template="""Evaluate the attached project report submitted for the case study below.

CASE STUDY BRIEF:
{case_study_brief}

SCORING RUBRIC:
{project_rubric}

Score each parameter from 1 to 5 and explain the score in one or two sentences:
- correctness: meets the brief (prompt design, chaining, retrieval, error handling)
- code_quality: clean, modular, testable code
- resilience: handles long jobs, retries and API failures
- documentation: README clarity, setup instructions, trade-off explanations
- creativity: useful extras beyond the requirements

Then write "feedback": 3-5 sentences on what was done well and what to improve.""",
)

FINAL_SYNTHESIS_PROMPT = PromptTemplate(
    name=PromptType.FINAL_SYNTHESIS.value,
    version="1.0",
    description="Summarise both stage results into an overall assessment",
    variables=["job_title", "cv_evaluation", "project_evaluation"],
    system_prompt="You are a hiring manager writing a concise, balanced candidate summary.",
    template="""Write the overall assessment of a candidate for the role of "{job_title}".

CV EVALUATION (scores 1-5, match rate 0-1):
{cv_evaluation}

PROJECT EVALUATION (scores 1-5):
{project_evaluation}

Return "overall_summary": 3-5 sentences covering the candidate's strengths, gaps and a clear recommendation.""",
)

STAGE_PROMPTS: Dict[PromptType, PromptTemplate] = {
    PromptType.CV_EVALUATION: CV_EVALUATION_PROMPT,
    PromptType.PROJECT_EVALUATION: PROJECT_EVALUATION_PROMPT,
    PromptType.FINAL_SYNTHESIS: FINAL_SYNTHESIS_PROMPT,
}


def get_prompt_template(prompt_type: PromptType) -> PromptTemplate:
    return STAGE_PROMPTS[PromptType(prompt_type)]
