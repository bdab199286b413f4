"""
Reference material retrieval

Looks up the single best reference text (job description, case study brief,
rubric) for a pipeline stage by semantic search over a vector database.
"""

import hashlib
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

from diskcache import Cache

from evaluator.services.ai.vector_db import BaseVectorDB, VectorDocument

logger = logging.getLogger(__name__)


class ReferenceType(str, Enum):
    JOB_DESCRIPTION = "job_description"
    CASE_STUDY_BRIEF = "case_study_brief"
    CV_RUBRIC = "cv_rubric"
    PROJECT_RUBRIC = "project_rubric"


class ReferenceNotFoundError(Exception):
    """No reference document matched the query"""

    def __init__(self, document_type: str, filter_label: Optional[str] = None):
        self.document_type = document_type
        self.filter_label = filter_label
        message = f"Reference document not found: {document_type}"
        if filter_label:
            message += f" (label '{filter_label}')"
        super().__init__(message)


class ReferenceStore:
    """Read side of the reference retrieval store, plus seeding of new references"""

    def __init__(self, vector_db: BaseVectorDB, embedder, cache: Optional[Cache] = None,
                 embedding_model: str = "default"):
        self.vector_db = vector_db
        self.embedder = embedder
        self.cache = cache
        self.embedding_model = embedding_model

    def _cache_key(self, text: str) -> str:
        return "embedding:" + hashlib.sha256(f"{self.embedding_model}:{text}".encode("utf-8")).hexdigest()

    async def _embed(self, text: str) -> List[float]:
        if self.cache is not None:
            cached = self.cache.get(self._cache_key(text))
            if cached is not None:
                return cached

        embedding = (await self.embedder.embed([text]))[0]

        if self.cache is not None:
            self.cache.set(self._cache_key(text), embedding)
        return embedding

    @staticmethod
    def _filters(document_type: str, label: Optional[str]) -> Dict[str, Any]:
        filters: Dict[str, Any] = {"document_type": {"$eq": document_type}}
        if label:
            filters["label"] = {"$eq": label}
        return filters

    async def query(self, document_type: str, filter_label: Optional[str] = None) -> str:
        """
        Return the content of the best match for ``document_type``.

        A query filtered by ``filter_label`` that finds nothing is repeated
        once without the label filter before giving up.

        Raises:
            ReferenceNotFoundError: nothing of this type is stored
        """
        document_type = ReferenceType(document_type).value
        query_text = f"{document_type.replace('_', ' ')}: {filter_label}" if filter_label else document_type
        embedding = await self._embed(query_text)

        results = await self.vector_db.search(embedding, top_k=1, filters=self._filters(document_type, filter_label))

        if not results and filter_label:
            logger.info(
                f"No {document_type} reference labelled '{filter_label}', retrying without label filter"
            )
            results = await self.vector_db.search(embedding, top_k=1, filters=self._filters(document_type, None))

        if not results:
            raise ReferenceNotFoundError(document_type, filter_label)

        best = results[0]
        logger.debug(f"Using {document_type} reference {best.id} (score {best.score:.3f})")
        return best.content

    async def add_document(self, document_type: str, content: str, label: Optional[str] = None) -> str:
        """Embed and store a reference text, returning its id"""
        document_type = ReferenceType(document_type).value
        if not content or not content.strip():
            raise ValueError("Reference content cannot be empty")

        metadata: Dict[str, Any] = {"document_type": document_type}
        if label:
            metadata["label"] = label

        doc_id = f"{document_type}-{uuid.uuid4().hex}"
        embedding = await self._embed(content)
        await self.vector_db.upsert([VectorDocument(id=doc_id, content=content, embedding=embedding, metadata=metadata)])

        logger.info(f"Stored {document_type} reference {doc_id}")
        return doc_id

    async def close(self) -> None:
        close = getattr(self.embedder, "close", None)
        if close is not None:
            await close()
        if self.cache is not None:
            self.cache.close()
