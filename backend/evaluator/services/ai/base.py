"""
Base Inference Client Classes

Provides the abstract client used by the evaluation stages to call a remote
model with structured (JSON schema) output, plus usage tracking and the
error types that preserve status codes for retry classification.
"""

import base64
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import logging

import tiktoken

logger = logging.getLogger(__name__)


class AIProvider(str, Enum):
    """Supported AI providers"""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


@dataclass
class AIUsageMetrics:
    """Tracks usage of one inference call"""
    provider: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    latency_ms: int = 0
    timestamp: float = field(default_factory=time.time)


@dataclass
class StructuredResponse:
    """Parsed structured output of one inference call"""
    payload: Dict[str, Any]
    usage: AIUsageMetrics
    metadata: Dict[str, Any] = field(default_factory=dict)


class AIServiceError(Exception):
    """Base exception for inference errors

    ``status_code`` and ``code`` mirror the underlying provider failure so the
    retry classifier sees the same signals as on the raw SDK exception.
    """
    def __init__(
        self,
        message: str,
        provider: str = "",
        model: str = "",
        original_error: Exception = None,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        self.message = message
        self.provider = provider
        self.model = model
        self.original_error = original_error
        self.status_code = status_code
        self.code = code
        super().__init__(self.message)


class RateLimitError(AIServiceError):
    """Rate limit exceeded error"""
    pass


class ProviderError(AIServiceError):
    """Provider-specific error"""
    pass


class TokenLimitError(AIServiceError):
    """Prompt larger than the configured limit"""
    pass


class MalformedOutputError(AIServiceError):
    """Model output missing, unparsable or not matching the requested schema"""
    pass


class TokenCounter:
    """Utility class for counting prompt tokens"""

    def __init__(self):
        self._encoders = {}

    def count_tokens(self, text: str, encoding_name: str = "cl100k_base") -> int:
        """Count tokens for given text"""
        try:
            if encoding_name not in self._encoders:
                self._encoders[encoding_name] = tiktoken.get_encoding(encoding_name)

            return len(self._encoders[encoding_name].encode(text))

        except Exception as e:
            logger.warning(f"Failed to count tokens with {encoding_name}: {e}")
            # Rough estimation (4 chars per token)
            return len(text) // 4


def encode_document(document: bytes) -> str:
    return base64.b64encode(document).decode("ascii")


def parse_json_payload(content: Optional[str], provider: str, model: str) -> Dict[str, Any]:
    """Parse a JSON object returned as text by the model"""
    if not content or not content.strip():
        raise MalformedOutputError("Malformed structured output: empty response", provider, model)

    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedOutputError(f"Malformed structured output: {e}", provider, model, e) from e

    if not isinstance(payload, dict):
        raise MalformedOutputError(
            f"Malformed structured output: expected an object, got {type(payload).__name__}",
            provider,
            model,
        )
    return payload


class BaseInferenceClient(ABC):
    """Abstract base class for remote inference clients"""

    def __init__(self, provider: AIProvider, model: str, max_prompt_tokens: int = 100_000):
        self.provider = provider
        self.model = model
        self.max_prompt_tokens = max_prompt_tokens
        self.token_counter = TokenCounter()
        self.usage_metrics: List[AIUsageMetrics] = []

    @abstractmethod
    async def _make_request(
        self,
        prompt: str,
        schema: Dict[str, Any],
        schema_name: str,
        document: Optional[bytes] = None,
        document_name: str = "document.pdf",
        system_prompt: str = "",
    ) -> StructuredResponse:
        """Make the actual API request to the provider"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying HTTP client"""
        pass

    def validate_prompt(self, prompt: str) -> None:
        if not prompt or not prompt.strip():
            raise AIServiceError("Invalid request: prompt cannot be empty", self.provider, self.model)

        token_count = self.token_counter.count_tokens(prompt)
        if token_count > self.max_prompt_tokens:
            raise TokenLimitError(
                f"Invalid request: prompt token count ({token_count}) exceeds maximum ({self.max_prompt_tokens})",
                provider=self.provider,
                model=self.model,
            )

    async def generate_structured(
        self,
        prompt: str,
        schema: Dict[str, Any],
        schema_name: str,
        document: Optional[bytes] = None,
        document_name: str = "document.pdf",
        system_prompt: str = "",
    ) -> Dict[str, Any]:
        """
        Call the model once and return its structured output as a dict.

        No retries happen here; callers wrap this in the call executor.
        """
        self.validate_prompt(prompt)

        if document is not None:
            logger.debug(f"Calling {self.provider.value}:{self.model} with document ({len(document)} bytes)")
        else:
            logger.debug(f"Calling {self.provider.value}:{self.model} (text only)")

        start_time = time.time()
        response = await self._make_request(
            prompt=prompt,
            schema=schema,
            schema_name=schema_name,
            document=document,
            document_name=document_name,
            system_prompt=system_prompt,
        )
        response.usage.latency_ms = int((time.time() - start_time) * 1000)
        self.usage_metrics.append(response.usage)

        logger.debug(
            f"{self.provider.value}:{self.model} {schema_name} call succeeded "
            f"in {response.usage.latency_ms}ms"
        )
        return response.payload

    def get_usage_stats(self) -> Dict[str, Any]:
        """Get usage statistics"""
        if not self.usage_metrics:
            return {}

        total_requests = len(self.usage_metrics)
        return {
            "provider": self.provider.value,
            "model": self.model,
            "total_requests": total_requests,
            "total_tokens_input": sum(m.tokens_input for m in self.usage_metrics),
            "total_tokens_output": sum(m.tokens_output for m in self.usage_metrics),
            "average_latency_ms": sum(m.latency_ms for m in self.usage_metrics) / total_requests,
        }
