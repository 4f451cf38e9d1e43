"""
LLM client abstraction for multiple LLM providers.

Provides an async interface for completion calls with:
- Structured logging of requests/responses (lengths only, never content)
- Timeout handling and typed errors
- Usage tracking (tokens)
- Two-client architecture (safety, generation)

Supported providers:
- anthropic: Claude models (Messages API)
- deepseek: DeepSeek models (OpenAI-compatible chat completions)
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

import httpx
import structlog

from mediator.core.config import settings
from mediator.core.exceptions import LLMRateLimitError, LLMTimeoutError

log = structlog.get_logger(__name__)


LLMClientType = Literal["safety", "generation"]

ChatTurn = Dict[str, str]  # {"role": "user" | "assistant", "content": str}


# =============================================================================
# Default configurations for each client type
# =============================================================================

SAFETY_DEFAULTS = dict(
    provider="anthropic",
    model="claude-3-5-haiku-20241022",
    temperature=0.0,  # Classification must be repeatable
    max_tokens=256,
    timeout=15.0,
    max_retries=0,
)

GENERATION_DEFAULTS = dict(
    provider="anthropic",
    model="claude-sonnet-4-20250514",
    temperature=0.7,
    max_tokens=1024,
    timeout=60.0,
    max_retries=0,  # Generation failures surface to the caller, never retried here
)

DEFAULTS_MAP: Dict[LLMClientType, Dict[str, Any]] = {
    "safety": SAFETY_DEFAULTS,
    "generation": GENERATION_DEFAULTS,
}

PROVIDER_MODELS: Dict[str, Dict[LLMClientType, str]] = {
    "anthropic": {
        "safety": SAFETY_DEFAULTS["model"],
        "generation": GENERATION_DEFAULTS["model"],
    },
    "deepseek": {"safety": "deepseek-chat", "generation": "deepseek-chat"},
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

    provider_name: str = "unknown"

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        client_type: LLMClientType,
        max_retries: int = 0,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.client_type = client_type
        self.max_retries = max_retries

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        history: Optional[List[ChatTurn]] = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            prompt: Latest user turn
            system: Optional system instruction
            temperature: Sampling temperature (0.0-1.0)
            max_tokens: Maximum tokens in response
            timeout: Optional timeout override in seconds
            history: Prior turns, oldest first, sent before `prompt`

        Returns:
            LLMResponse with content and metadata
        """

    @staticmethod
    def _build_turns(prompt: str, history: Optional[List[ChatTurn]]) -> List[ChatTurn]:
        turns = [dict(t) for t in (history or [])]
        turns.append({"role": "user", "content": prompt})
        return turns

    async def _post_json(
        self,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        timeout: float,
    ) -> tuple[Dict[str, Any], float, int]:
        """POST with optional retry on timeout/429.

        Returns:
            (response json, latency_ms, attempt number)

        Raises:
            LLMTimeoutError: After all attempts timed out
            LLMRateLimitError: After all attempts were rate limited
            httpx.HTTPError: On other transport or HTTP errors (no retry)
        """
        base_delay = 1.0

        for attempt in range(self.max_retries + 1):
            start = time.perf_counter()
            log.debug(
                "llm_call_start",
                provider=self.provider_name,
                client_type=self.client_type,
                model=self.model,
                turns=len(payload.get("messages", [])),
                attempt=attempt + 1,
            )
            try:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.post(url, headers=headers, json=payload)
                    response.raise_for_status()
                    data = response.json()
                return data, (time.perf_counter() - start) * 1000, attempt + 1

            except httpx.TimeoutException as e:
                log.warning(
                    "llm_timeout",
                    provider=self.provider_name,
                    client_type=self.client_type,
                    attempt=attempt + 1,
                    timeout_seconds=timeout,
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(base_delay * (2**attempt))
                    continue
                raise LLMTimeoutError(
                    f"LLM call timed out after {attempt + 1} attempt(s) "
                    f"(timeout={timeout}s)"
                ) from e

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code == 429:
                    log.warning(
                        "llm_rate_limit",
                        provider=self.provider_name,
                        client_type=self.client_type,
                        attempt=attempt + 1,
                    )
                    if attempt < self.max_retries:
                        await asyncio.sleep(base_delay * (2**attempt))
                        continue
                    raise LLMRateLimitError(
                        f"Rate limit exceeded after {attempt + 1} attempt(s)"
                    ) from e
                log.error(
                    "llm_http_error",
                    provider=self.provider_name,
                    client_type=self.client_type,
                    status_code=status_code,
                )
                raise

        raise AssertionError("unreachable")


# =============================================================================
# Anthropic Client
# =============================================================================


class AnthropicClient(LLMClient):
    """Anthropic Claude API client (Messages API over httpx)."""

    provider_name = "anthropic"

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        client_type: LLMClientType,
        api_key: Optional[str] = None,
        max_retries: int = 0,
    ):
        """
        Raises:
            ValueError: If API key is not configured
        """
        super().__init__(model, temperature, max_tokens, timeout, client_type, max_retries)
        self.api_key = api_key or settings.anthropic_api_key
        self.base_url = "https://api.anthropic.com/v1"

        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY not configured. Set it in .env.")

        log.info(
            "anthropic_client_initialized",
            client_type=self.client_type,
            model=self.model,
            timeout=self.timeout,
        )

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        history: Optional[List[ChatTurn]] = None,
    ) -> LLMResponse:
        headers = {
            "x-api-key": self.api_key,
            "content-type": "application/json",
            "anthropic-version": "2023-06-01",
        }
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
            "messages": self._build_turns(prompt, history),
            "temperature": temperature if temperature is not None else self.temperature,
        }
        if system:
            payload["system"] = system

        data, latency_ms, attempt = await self._post_json(
            f"{self.base_url}/messages",
            headers,
            payload,
            timeout if timeout is not None else self.timeout,
        )

        content = ""
        if data.get("content"):
            content = data["content"][0].get("text", "")

        usage = {
            "input_tokens": data.get("usage", {}).get("input_tokens", 0),
            "output_tokens": data.get("usage", {}).get("output_tokens", 0),
        }

        log.info(
            "llm_call_complete",
            provider=self.provider_name,
            client_type=self.client_type,
            model=self.model,
            latency_ms=round(latency_ms, 2),
            input_tokens=usage["input_tokens"],
            output_tokens=usage["output_tokens"],
            attempt=attempt,
        )

        return LLMResponse(
            content=content,
            model=data.get("model", self.model),
            usage=usage,
            latency_ms=latency_ms,
            raw_response=data,
        )


# =============================================================================
# OpenAI-Compatible Client
# =============================================================================


class OpenAICompatibleClient(LLMClient):
    """
    Base class for providers following the OpenAI chat completions format.
    """

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        client_type: LLMClientType,
        base_url: str,
        provider_name: str,
        api_key: str,
        max_retries: int = 0,
    ):
        super().__init__(model, temperature, max_tokens, timeout, client_type, max_retries)
        self.base_url = base_url
        self.provider_name = provider_name
        self.api_key = api_key

        log.info(
            "openai_compatible_client_initialized",
            provider=self.provider_name,
            client_type=self.client_type,
            model=self.model,
            timeout=self.timeout,
        )

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        history: Optional[List[ChatTurn]] = None,
    ) -> LLMResponse:
        messages: List[ChatTurn] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend(self._build_turns(prompt, history))

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature if temperature is not None else self.temperature,
            "max_tokens": max_tokens if max_tokens is not None else self.max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        data, latency_ms, attempt = await self._post_json(
            f"{self.base_url}/chat/completions",
            headers,
            payload,
            timeout if timeout is not None else self.timeout,
        )

        content = ""
        if data.get("choices"):
            content = data["choices"][0].get("message", {}).get("content", "") or ""

        usage = {
            "input_tokens": data.get("usage", {}).get("prompt_tokens", 0),
            "output_tokens": data.get("usage", {}).get("completion_tokens", 0),
        }

        log.info(
            "llm_call_complete",
            provider=self.provider_name,
            client_type=self.client_type,
            model=self.model,
            latency_ms=round(latency_ms, 2),
            input_tokens=usage["input_tokens"],
            output_tokens=usage["output_tokens"],
            attempt=attempt,
        )

        return LLMResponse(
            content=content,
            model=data.get("model", self.model),
            usage=usage,
            latency_ms=latency_ms,
            raw_response=data,
        )


class DeepSeekClient(OpenAICompatibleClient):
    """
    DeepSeek API client.

    API Docs: https://platform.deepseek.com/api-docs/
    """

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        client_type: LLMClientType,
        api_key: Optional[str] = None,
        max_retries: int = 0,
    ):
        api_key = api_key or settings.deepseek_api_key
        if not api_key:
            raise ValueError("DEEPSEEK_API_KEY not configured. Set it in .env.")

        super().__init__(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            client_type=client_type,
            base_url="https://api.deepseek.com",
            provider_name="deepseek",
            api_key=api_key,
            max_retries=max_retries,
        )


# =============================================================================
# Client Factory Functions
# =============================================================================


def resolve_provider(client_type: LLMClientType) -> str:
    """Provider for a client type: env override, else the hardcoded default."""
    override = getattr(settings, f"llm_{client_type}_provider", None)
    return override or DEFAULTS_MAP[client_type]["provider"]


def get_llm_client(client_type: LLMClientType) -> LLMClient:
    """
    Factory for LLM client based on client type.

    Raises:
        ValueError: If unknown provider configured or API key missing
    """
    defaults = DEFAULTS_MAP[client_type]
    provider = resolve_provider(client_type)

    if provider not in PROVIDER_MODELS:
        raise ValueError(
            f"Unknown LLM provider '{provider}' for {client_type}. "
            f"Supported providers: {', '.join(PROVIDER_MODELS)}"
        )

    kwargs = dict(
        model=PROVIDER_MODELS[provider][client_type],
        temperature=defaults["temperature"],
        max_tokens=defaults["max_tokens"],
        timeout=defaults["timeout"],
        client_type=client_type,
        max_retries=defaults["max_retries"],
    )

    if provider == "anthropic":
        return AnthropicClient(**kwargs)
    return DeepSeekClient(**kwargs)


def get_safety_llm_client() -> LLMClient:
    """LLM client for utterance safety classification."""
    return get_llm_client("safety")


def get_generation_llm_client() -> LLMClient:
    """LLM client for mediator replies and welcome messages."""
    return get_llm_client("generation")
