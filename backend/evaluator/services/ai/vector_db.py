"""
Vector Database Services

Backends holding the embedded reference material (job descriptions, case
study briefs, scoring rubrics). Pinecone in production, an in-process
numpy index for local runs and tests.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

import numpy as np
from pinecone import Pinecone

logger = logging.getLogger(__name__)


@dataclass
class VectorDocument:
    """Document for vector storage"""
    id: str
    content: str
    embedding: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchResult:
    """Vector search result"""
    id: str
    content: str
    score: float
    metadata: Dict[str, Any]


class VectorDBError(Exception):
    """Vector database operation error"""
    pass


def _matches(metadata: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    """Equality filter over metadata, accepting plain values or {"$eq": value}"""
    if not filters:
        return True
    for key, expected in filters.items():
        if isinstance(expected, dict) and "$eq" in expected:
            expected = expected["$eq"]
        if metadata.get(key) != expected:
            return False
    return True


class BaseVectorDB(ABC):
    """Abstract base class for vector databases"""

    def __init__(self, index_name: str, namespace: str = "default"):
        self.index_name = index_name
        self.namespace = namespace

    @abstractmethod
    async def upsert(self, documents: List[VectorDocument]) -> bool:
        """Insert or update documents"""
        pass

    @abstractmethod
    async def search(
        self,
        query_embedding: List[float],
        top_k: int = 1,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[SearchResult]:
        """Search for similar vectors, best match first"""
        pass

    @abstractmethod
    async def delete(self, document_ids: List[str]) -> bool:
        """Delete documents by IDs"""
        pass


class PineconeVectorDB(BaseVectorDB):
    """Pinecone vector database implementation

    The SDK client is synchronous, so each call runs in a worker thread.
    """

    def __init__(self, api_key: str, index_name: str, namespace: str = "references", index=None):
        super().__init__(index_name, namespace)

        if index is None:
            if not api_key:
                raise VectorDBError("Pinecone API key not configured")
            try:
                index = Pinecone(api_key=api_key).Index(index_name)
            except Exception as e:
                logger.error(f"Failed to connect to Pinecone index {index_name}: {e}")
                raise VectorDBError(f"Pinecone initialization failed: {e}") from e

        self.index = index
        logger.info(f"Connected to Pinecone index: {index_name}")

    async def upsert(self, documents: List[VectorDocument]) -> bool:
        """Insert or update documents in Pinecone"""
        try:
            vectors = [
                {
                    "id": doc.id,
                    "values": doc.embedding,
                    "metadata": {**doc.metadata, "content": doc.content},
                }
                for doc in documents
            ]
            await asyncio.to_thread(self.index.upsert, vectors=vectors, namespace=self.namespace)

            logger.info(f"Upserted {len(documents)} documents to Pinecone")
            return True

        except Exception as e:
            logger.error(f"Failed to upsert documents to Pinecone: {e}")
            raise VectorDBError(f"Pinecone upsert failed: {e}") from e

    async def search(
        self,
        query_embedding: List[float],
        top_k: int = 1,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[SearchResult]:
        """Search for similar vectors in Pinecone"""
        try:
            response = await asyncio.to_thread(
                self.index.query,
                vector=query_embedding,
                top_k=top_k,
                namespace=self.namespace,
                filter=filters,
                include_metadata=True
            )
        except Exception as e:
            logger.error(f"Failed to search Pinecone: {e}")
            raise VectorDBError(f"Pinecone search failed: {e}") from e

        results = []
        for match in response.matches:
            metadata = dict(match.metadata or {})
            results.append(SearchResult(
                id=match.id,
                content=metadata.get("content", ""),
                score=match.score,
                metadata=metadata,
            ))
        return results

    async def delete(self, document_ids: List[str]) -> bool:
        """Delete documents from Pinecone"""
        try:
            await asyncio.to_thread(self.index.delete, ids=document_ids, namespace=self.namespace)
            logger.info(f"Deleted {len(document_ids)} documents from Pinecone")
            return True

        except Exception as e:
            logger.error(f"Failed to delete documents from Pinecone: {e}")
            raise VectorDBError(f"Pinecone delete failed: {e}") from e


class InMemoryVectorDB(BaseVectorDB):
    """Cosine similarity over an in-process matrix"""

    def __init__(self, index_name: str = "memory", namespace: str = "default"):
        super().__init__(index_name, namespace)
        self._documents: Dict[str, VectorDocument] = {}

    async def upsert(self, documents: List[VectorDocument]) -> bool:
        for doc in documents:
            self._documents[doc.id] = doc
        return True

    async def search(
        self,
        query_embedding: List[float],
        top_k: int = 1,
        filters: Optional[Dict[str, Any]] = None
    ) -> List[SearchResult]:
        candidates = [doc for doc in self._documents.values() if _matches(doc.metadata, filters)]
        if not candidates:
            return []

        matrix = np.array([doc.embedding for doc in candidates], dtype=float)
        query = np.array(query_embedding, dtype=float)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        norms[norms == 0] = 1.0
        scores = matrix @ query / norms

        order = np.argsort(-scores)[:top_k]
        return [
            SearchResult(
                id=candidates[i].id,
                content=candidates[i].content,
                score=float(scores[i]),
                metadata=dict(candidates[i].metadata),
            )
            for i in order
        ]

    async def delete(self, document_ids: List[str]) -> bool:
        for doc_id in document_ids:
            self._documents.pop(doc_id, None)
        return True