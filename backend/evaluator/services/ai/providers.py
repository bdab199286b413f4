"""
AI Provider Implementations

Concrete inference clients for OpenAI and Anthropic. Both send an optional
PDF alongside the prompt and force a structured (JSON schema) response.
Provider failures are re-raised as ``AIServiceError`` subclasses that keep
the HTTP status code and network error code of the SDK exception.
"""

from typing import Any, Dict, List, Optional

import openai
import anthropic
from openai import AsyncOpenAI
from anthropic import AsyncAnthropic

from evaluator.services.ai.base import (
    BaseInferenceClient,
    AIProvider,
    StructuredResponse,
    AIUsageMetrics,
    AIServiceError,
    RateLimitError,
    ProviderError,
    MalformedOutputError,
    encode_document,
    parse_json_payload,
)
from evaluator.services.retry.classifier import get_error_message

import logging

logger = logging.getLogger(__name__)


def _translate_openai_error(e: Exception, model: str) -> AIServiceError:
    if isinstance(e, openai.RateLimitError):
        return RateLimitError(
            f"OpenAI rate limit exceeded: {get_error_message(e)}", "openai", model, e, status_code=e.status_code
        )
    if isinstance(e, openai.APIStatusError):
        return ProviderError(
            f"OpenAI API error: {get_error_message(e)}", "openai", model, e, status_code=e.status_code
        )
    if isinstance(e, openai.APITimeoutError):
        return ProviderError(f"OpenAI request timeout: {e}", "openai", model, e, code="ETIMEDOUT")
    if isinstance(e, openai.APIConnectionError):
        return ProviderError(f"OpenAI network error: {e}", "openai", model, e, code="ECONNRESET")
    return AIServiceError(f"Unexpected OpenAI error: {e}", "openai", model, e)


def _translate_anthropic_error(e: Exception, model: str) -> AIServiceError:
    if isinstance(e, anthropic.RateLimitError):
        return RateLimitError(
            f"Anthropic rate limit exceeded: {get_error_message(e)}", "anthropic", model, e, status_code=e.status_code
        )
    if isinstance(e, anthropic.APIStatusError):
        return ProviderError(
            f"Anthropic API error: {get_error_message(e)}", "anthropic", model, e, status_code=e.status_code
        )
    if isinstance(e, anthropic.APITimeoutError):
        return ProviderError(f"Anthropic request timeout: {e}", "anthropic", model, e, code="ETIMEDOUT")
    if isinstance(e, anthropic.APIConnectionError):
        return ProviderError(f"Anthropic network error: {e}", "anthropic", model, e, code="ECONNRESET")
    return AIServiceError(f"Unexpected Anthropic error: {e}", "anthropic", model, e)


class OpenAIInferenceClient(BaseInferenceClient):
    """OpenAI chat completions with JSON schema response format"""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 120,
        temperature: float = 0.2,
        max_output_tokens: int = 2000,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(AIProvider.OPENAI, model)

        if client is None and not api_key:
            raise AIServiceError("OpenAI API key not configured", "openai", model)

        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def _build_messages(
        self,
        prompt: str,
        document: Optional[bytes],
        document_name: str,
        system_prompt: str,
    ) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = []
        if document is not None:
            content.append({
                "type": "file",
                "file": {
                    "filename": document_name,
                    "file_data": f"data:application/pdf;base64,{encode_document(document)}",
                },
            })
        content.append({"type": "text", "text": prompt})

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": content})
        return messages

    async def _make_request(
        self,
        prompt: str,
        schema: Dict[str, Any],
        schema_name: str,
        document: Optional[bytes] = None,
        document_name: str = "document.pdf",
        system_prompt: str = "",
    ) -> StructuredResponse:
        """Make request to OpenAI API"""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._build_messages(prompt, document, document_name, system_prompt),
                max_tokens=self.max_output_tokens,
                temperature=self.temperature,
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": schema_name, "schema": schema},
                },
            )
        except Exception as e:
            raise _translate_openai_error(e, self.model) from e

        if not response.choices:
            raise MalformedOutputError("Malformed structured output: no choices returned", "openai", self.model)

        choice = response.choices[0]
        payload = parse_json_payload(choice.message.content, "openai", self.model)

        usage = response.usage
        usage_metrics = AIUsageMetrics(
            provider=self.provider.value,
            model=self.model,
            tokens_input=usage.prompt_tokens if usage else 0,
            tokens_output=usage.completion_tokens if usage else 0,
        )

        return StructuredResponse(
            payload=payload,
            usage=usage_metrics,
            metadata={"finish_reason": choice.finish_reason, "model": response.model},
        )

    async def close(self) -> None:
        await self.client.close()


class AnthropicInferenceClient(BaseInferenceClient):
    """Anthropic messages API with a forced tool call carrying the schema"""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 120,
        temperature: float = 0.2,
        max_output_tokens: int = 2000,
        client: Optional[AsyncAnthropic] = None,
    ):
        super().__init__(AIProvider.ANTHROPIC, model)

        if client is None and not api_key:
            raise AIServiceError("Anthropic API key not configured", "anthropic", model)

        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.client = client or AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)

    async def _make_request(
        self,
        prompt: str,
        schema: Dict[str, Any],
        schema_name: str,
        document: Optional[bytes] = None,
        document_name: str = "document.pdf",
        system_prompt: str = "",
    ) -> StructuredResponse:
        """Make request to Anthropic API"""
        content: List[Dict[str, Any]] = []
        if document is not None:
            content.append({
                "type": "document",
                "source": {
                    "type": "base64",
                    "media_type": "application/pdf",
                    "data": encode_document(document),
                },
            })
        content.append({"type": "text", "text": prompt})

        request: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_output_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": content}],
            "tools": [{
                "name": schema_name,
                "description": f"Record the {schema_name.replace('_', ' ')} result",
                "input_schema": schema,
            }],
            "tool_choice": {"type": "tool", "name": schema_name},
        }
        if system_prompt:
            request["system"] = system_prompt

        try:
            response = await self.client.messages.create(**request)
        except Exception as e:
            raise _translate_anthropic_error(e, self.model) from e

        payload = None
        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and block.name == schema_name:
                payload = block.input
                break

        if not isinstance(payload, dict):
            raise MalformedOutputError(
                f"Malformed structured output: no {schema_name} tool call in response", "anthropic", self.model
            )

        usage_metrics = AIUsageMetrics(
            provider=self.provider.value,
            model=self.model,
            tokens_input=response.usage.input_tokens,
            tokens_output=response.usage.output_tokens,
        )

        return StructuredResponse(
            payload=dict(payload),
            usage=usage_metrics,
            metadata={"stop_reason": response.stop_reason, "model": response.model},
        )

    async def close(self) -> None:
        await self.client.close()


class OpenAIEmbedder:
    """Text embeddings for reference retrieval"""

    def __init__(self, api_key: str, model: str = "text-embedding-3-small", timeout: float = 30,
                 client: Optional[AsyncOpenAI] = None):
        if client is None and not api_key:
            raise AIServiceError("OpenAI API key not configured", "openai", model)
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def embed(self, texts: List[str]) -> List[List[float]]:
        try:
            response = await self.client.embeddings.create(model=self.model, input=texts)
        except Exception as e:
            logger.error(f"Failed to generate embeddings: {e}")
            raise _translate_openai_error(e, self.model) from e

        return [item.embedding for item in response.data]

    async def close(self) -> None:
        await self.client.close()


class InferenceClientFactory:
    """Factory for creating inference clients from settings"""

    @staticmethod
    def create(provider: str, model: str, settings) -> BaseInferenceClient:
        if provider == AIProvider.OPENAI.value:
            return OpenAIInferenceClient(
                api_key=settings.OPENAI_API_KEY,
                model=model,
                timeout=settings.AI_REQUEST_TIMEOUT,
                temperature=settings.AI_TEMPERATURE,
                max_output_tokens=settings.AI_MAX_OUTPUT_TOKENS,
            )
        elif provider == AIProvider.ANTHROPIC.value:
            return AnthropicInferenceClient(
                api_key=settings.ANTHROPIC_API_KEY,
                model=model,
                timeout=settings.AI_REQUEST_TIMEOUT,
                temperature=settings.AI_TEMPERATURE,
                max_output_tokens=settings.AI_MAX_OUTPUT_TOKENS,
            )
        else:
            raise AIServiceError(f"Unsupported provider: {provider}")

    @staticmethod
    def create_embedder(settings) -> OpenAIEmbedder:
        return OpenAIEmbedder(
            api_key=settings.OPENAI_API_KEY,
            model=settings.DEFAULT_EMBEDDING_MODEL,
            timeout=settings.AI_REQUEST_TIMEOUT,
        )
