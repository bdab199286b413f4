import factory
from faker import Faker
from datetime import datetime, timezone

from evaluator.models.document import Document, DocumentKind
from evaluator.models.evaluation import Evaluation, EvaluationStatus

fake = Faker()

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


class DocumentFactory(factory.Factory):
    """Factory for creating Document instances."""

    class Meta:
        model = Document

    kind = DocumentKind.CV.value
    original_filename = factory.LazyAttribute(lambda obj: f"{fake.slug()}.pdf")
    storage_key = factory.LazyAttribute(lambda obj: f"{obj.kind}/{fake.unique.random_int(min=1, max=10**9)}-{obj.original_filename}")
    content_type = "application/pdf"
    size_bytes = factory.LazyFunction(lambda: fake.random_int(min=1000, max=500000))
    created_at = factory.LazyFunction(lambda: datetime.now(timezone.utc))


class EvaluationFactory(factory.Factory):
    """Factory for creating Evaluation instances."""

    class Meta:
        model = Evaluation

    job_title = factory.LazyAttribute(lambda obj: fake.job())
    cv_id = 1
    project_report_id = 2
    status = EvaluationStatus.QUEUED.value
    retry_count = 0
    created_at = factory.LazyFunction(lambda: datetime.now(timezone.utc))


def sub_score(score: int = 4) -> dict:
    return {"score": score, "reasoning": fake.sentence()}


def cv_payload(scores=(4, 4, 4, 4)) -> dict:
    """Structured output of the CV stage as returned by the model."""
    names = ("technical_skills", "experience_level", "relevant_achievements", "cultural_fit")
    payload = {name: sub_score(score) for name, score in zip(names, scores)}
    payload["feedback"] = "Strong backend experience with some gaps in cloud tooling."
    return payload


def project_payload(scores=(4, 4, 4, 4, 4)) -> dict:
    """Structured output of the project stage as returned by the model."""
    names = ("correctness", "code_quality", "resilience", "documentation", "creativity")
    payload = {name: sub_score(score) for name, score in zip(names, scores)}
    payload["feedback"] = "Solid implementation with good retry handling."
    return payload


def synthesis_payload() -> dict:
    return {"overall_summary": "A capable candidate who should move to the technical interview."}


class FakeEmbedder:
    """Deterministic embeddings: a bag of letters over a-z."""

    def __init__(self):
        self.calls = []

    async def embed(self, texts):
        self.calls.append(list(texts))
        vectors = []
        for text in texts:
            vector = [0.0] * 26
            for char in text.lower():
                if "a" <= char <= "z":
                    vector[ord(char) - ord("a")] += 1.0
            vectors.append(vector)
        return vectors

    async def close(self):
        pass


REFERENCE_TEXTS = {
    "job_description": "Backend Engineer: build APIs, databases and LLM pipelines.",
    "case_study_brief": "Build a service that evaluates CVs with an LLM pipeline and retries.",
    "cv_rubric": "Technical skills 40%, experience 25%, achievements 20%, cultural fit 15%.",
    "project_rubric": "Correctness 30%, code quality 25%, resilience 20%, documentation 15%, creativity 10%.",
}
