"""
Chat Model Client

Wraps the Anthropic async API. The booking flow needs one round-trip per
message: prompt in, text out. Retries are left to the SDK's own
`max_retries`; a failure surfaces as LLMClientError and the human
re-sending the message is the retry.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from anthropic import AsyncAnthropic, APIError

from turnero.config import settings
from turnero.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class LLMClientError(ExternalServiceError):
    """Raised when the chat model call fails."""
    pass


@dataclass
class LLMResponse:
    """Response from the chat model."""
    content: str
    model: str
    input_tokens: int
    output_tokens: int
    stop_reason: str
    latency_ms: float


class LLMClient:
    """Async chat model client."""

    _instance: Optional["LLMClient"] = None

    def __init__(self, api_key: Optional[str] = None):
        """Initialize client.

        Args:
            api_key: Anthropic API key (defaults to settings)
        """
        self.api_key = api_key or settings.anthropic_api_key
        if not self.api_key:
            raise ValueError("Anthropic API key is required")

        self._client = AsyncAnthropic(
            api_key=self.api_key,
            max_retries=settings.llm_max_retries,
            timeout=settings.llm_timeout,
        )
        self._default_model = settings.llm_model

        logger.info(f"LLMClient initialized with model={self._default_model}")

    @classmethod
    def get_instance(cls) -> "LLMClient":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)."""
        cls._instance = None

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.3,
    ) -> LLMResponse:
        """
        Generate a reply.

        Args:
            prompt: Full user-side prompt (history plus new message)
            system_prompt: Fixed instruction
            model: Model to use (defaults to settings.llm_model)
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature

        Returns:
            LLMResponse with generated content

        Raises:
            LLMClientError: If the API call fails
        """
        model = model or self._default_model
        start_time = time.time()

        kwargs = {
            "model": model,
            "max_tokens": max_tokens or settings.llm_max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = await self._client.messages.create(**kwargs)
        except APIError as e:
            logger.error(f"Chat model API error: {e}")
            raise LLMClientError(f"Chat model call failed: {e}") from e

        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )

        return LLMResponse(
            content=text,
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
            latency_ms=(time.time() - start_time) * 1000,
        )

    async def close(self) -> None:
        """Close the client."""
        await self._client.close()


def get_llm_client() -> LLMClient:
    """Get chat model client singleton instance."""
    return LLMClient.get_instance()
