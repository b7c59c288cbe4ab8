"""
LLM client for conversational reply generation.

Provides an async interface for chat-completion calls with:
- Structured logging of requests/responses
- Timeout handling with a single retry
- Usage tracking (tokens)

Supported providers (OpenAI chat-completions wire format):
- openai: gpt-4o-mini (default)
- deepseek: deepseek-chat
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import structlog

from journal.core.config import settings
from journal.core.exceptions import (
    ConfigurationError,
    LLMAPIError,
    LLMConnectionError,
    LLMInvalidResponseError,
    LLMRateLimitError,
    LLMTimeoutError,
)

log = structlog.get_logger(__name__)


# =============================================================================
# Default configuration
# =============================================================================

# Override the provider via LLM_GENERATION_PROVIDER if needed.

GENERATION_DEFAULTS = dict(
    provider="openai",
    model="gpt-4o-mini",
    temperature=0.7,
    max_tokens=150,  # Replies are 2-3 short sentences
    timeout=20.0,
)

PROVIDER_MODELS: Dict[str, str] = {
    "openai": "gpt-4o-mini",
    "deepseek": "deepseek-chat",
}


# =============================================================================
# Response and Base Classes
# =============================================================================


@dataclass
class LLMResponse:
    """Standardized LLM response."""

    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0
    raw_response: Optional[Dict[str, Any]] = None


class LLMClient(ABC):
    """Abstract base for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Dict[str, str]]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            prompt: Latest user message
            system: Optional system prompt
            history: Earlier turns as {"role", "content"} dicts, oldest first
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum tokens in response
            timeout: Optional timeout override in seconds

        Returns:
            LLMResponse with content and metadata
        """
        pass


# =============================================================================
# OpenAI-Compatible Client
# =============================================================================


class OpenAICompatibleClient(LLMClient):
    """
    Client for APIs that follow the OpenAI chat-completions format.

    - OpenAI: https://api.openai.com/v1
    - DeepSeek: https://api.deepseek.com
    """

    max_retries = 1  # 2 total attempts
    base_delay = 1.0  # seconds

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        base_url: str,
        provider_name: str,
        api_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize client.

        Args:
            model: Model ID
            temperature: Sampling temperature
            max_tokens: Maximum tokens in response
            timeout: Request timeout in seconds
            base_url: Base URL for the API
            provider_name: Name of the provider for logging
            api_key: API key for the provider
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self.provider_name = provider_name
        self.api_key = api_key
        self.transport = transport

        log.info(
            "llm_client_initialized",
            provider=self.provider_name,
            model=self.model,
            timeout=self.timeout,
        )

    def _build_messages(
        self,
        prompt: str,
        system: Optional[str],
        history: Optional[List[Dict[str, str]]],
    ) -> List[Dict[str, str]]:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        for turn in history or []:
            messages.append({"role": turn["role"], "content": turn["content"]})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        history: Optional[List[Dict[str, str]]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> LLMResponse:
        """
        Call the chat-completions endpoint with retry on timeout/rate-limit.

        Raises:
            LLMTimeoutError: After all retries exhausted on timeout
            LLMRateLimitError: After all retries exhausted on rate limit (429)
            LLMInvalidResponseError: Response had no message content
            LLMAPIError: On other HTTP status errors (no retry)
            LLMConnectionError: Provider unreachable (no retry)
        """
        if max_tokens is None:
            max_tokens = self.max_tokens
        if temperature is None:
            temperature = self.temperature
        if timeout is None:
            timeout = self.timeout

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": self._build_messages(prompt, system, history),
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        for attempt in range(self.max_retries + 1):
            start = time.perf_counter()

            log.debug(
                "llm_call_start",
                provider=self.provider_name,
                model=self.model,
                prompt_length=len(prompt),
                history_turns=len(history or []),
                temperature=temperature,
                attempt=attempt + 1,
            )

            try:
                async with httpx.AsyncClient(
                    timeout=timeout, transport=self.transport
                ) as client:
                    response = await client.post(
                        f"{self.base_url}/chat/completions",
                        headers=headers,
                        json=payload,
                    )
                    response.raise_for_status()
                    data = response.json()

            except httpx.TimeoutException as e:
                log.warning(
                    "llm_timeout",
                    provider=self.provider_name,
                    attempt=attempt + 1,
                    timeout_seconds=timeout,
                )
                if attempt < self.max_retries:
                    await self._backoff(attempt, "timeout")
                    continue
                raise LLMTimeoutError(
                    f"LLM call timed out after {self.max_retries + 1} attempts "
                    f"(timeout={timeout}s)"
                ) from e

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code != 429:
                    log.error(
                        "llm_http_error",
                        provider=self.provider_name,
                        status_code=status_code,
                    )
                    raise LLMAPIError(
                        f"{self.provider_name} returned HTTP {status_code}",
                        status_code=status_code,
                    ) from e
                log.warning("llm_rate_limit", provider=self.provider_name, attempt=attempt + 1)
                if attempt < self.max_retries:
                    await self._backoff(attempt, "rate_limit")
                    continue
                raise LLMRateLimitError(
                    f"Rate limit exceeded after {self.max_retries + 1} attempts"
                ) from e

            except httpx.RequestError as e:
                log.error(
                    "llm_connection_error",
                    provider=self.provider_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise LLMConnectionError(
                    f"Could not reach {self.provider_name}: {e}"
                ) from e

            except ValueError as e:
                raise LLMInvalidResponseError(
                    f"{self.provider_name} returned a non-JSON body"
                ) from e

            latency_ms = (time.perf_counter() - start) * 1000

            choices = data.get("choices") or []
            content = (choices[0].get("message") or {}).get("content") if choices else None
            if not content:
                raise LLMInvalidResponseError(
                    f"{self.provider_name} returned no message content"
                )

            usage = {
                "input_tokens": data.get("usage", {}).get("prompt_tokens", 0),
                "output_tokens": data.get("usage", {}).get("completion_tokens", 0),
            }

            log.info(
                "llm_call_complete",
                provider=self.provider_name,
                model=self.model,
                latency_ms=round(latency_ms, 2),
                input_tokens=usage["input_tokens"],
                output_tokens=usage["output_tokens"],
                attempt=attempt + 1,
            )

            return LLMResponse(
                content=content.strip(),
                model=data.get("model", self.model),
                usage=usage,
                latency_ms=latency_ms,
                raw_response=data,
            )

        # Unreachable: loop either returns LLMResponse or raises an exception
        assert False, "unreachable"

    async def _backoff(self, attempt: int, reason: str) -> None:
        delay = self.base_delay * (2**attempt)
        log.info(
            "llm_retry",
            reason=reason,
            delay_seconds=delay,
            next_attempt=attempt + 2,
        )
        await asyncio.sleep(delay)


# =============================================================================
# Provider Clients
# =============================================================================


class OpenAIClient(OpenAICompatibleClient):
    """OpenAI chat-completions client."""

    def __init__(self, api_key: Optional[str] = None, **kwargs: Any):
        api_key = api_key or settings.openai_api_key
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured. Set it in .env.")
        super().__init__(
            base_url="https://api.openai.com/v1",
            provider_name="openai",
            api_key=api_key,
            **kwargs,
        )


class DeepSeekClient(OpenAICompatibleClient):
    """
    DeepSeek API client.

    API Docs: https://platform.deepseek.com/api-docs/
    """

    def __init__(self, api_key: Optional[str] = None, **kwargs: Any):
        api_key = api_key or settings.deepseek_api_key
        if not api_key:
            raise ConfigurationError("DEEPSEEK_API_KEY not configured. Set it in .env.")
        super().__init__(
            base_url="https://api.deepseek.com",
            provider_name="deepseek",
            api_key=api_key,
            **kwargs,
        )


PROVIDER_CLIENTS = {
    "openai": OpenAIClient,
    "deepseek": DeepSeekClient,
}


# =============================================================================
# Client Factory
# =============================================================================


def get_generation_llm_client() -> LLMClient:
    """
    Factory for the reply-generation LLM client.

    Uses GENERATION_DEFAULTS with an optional LLM_GENERATION_PROVIDER override.

    Raises:
        ConfigurationError: If the provider is unknown or its API key is missing
    """
    provider = settings.llm_generation_provider or GENERATION_DEFAULTS["provider"]
    client_cls = PROVIDER_CLIENTS.get(provider)
    if client_cls is None:
        raise ConfigurationError(
            f"Unknown LLM provider '{provider}'. "
            f"Supported providers: {', '.join(PROVIDER_CLIENTS)}"
        )

    return client_cls(
        model=PROVIDER_MODELS[provider],
        temperature=GENERATION_DEFAULTS["temperature"],
        max_tokens=GENERATION_DEFAULTS["max_tokens"],
        timeout=GENERATION_DEFAULTS["timeout"],
    )
