"""
Completion client for the AI stages.

- No vendor SDKs: httpx against an OpenAI-compatible /chat/completions API
- Provider and model travel with every call in a ModelContext, never as
  global state
- Every failure (missing key, open circuit, timeout, HTTP error, non-success
  status, malformed body) surfaces as CompletionTransportFailure
"""
import time
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field

from taskrank.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from taskrank.core.config import AISettings, get_settings
from taskrank.core.errors import CompletionTransportFailure
from taskrank.core.logging import get_logger
from taskrank.core.metrics import record_llm_error, record_llm_request, record_llm_tokens

logger = get_logger(__name__)

JSON_OBJECT = {"type": "json_object"}


class ModelContext(BaseModel):
    """Per-call model selection and determinism settings."""
    model_config = ConfigDict(frozen=True)

    provider: str = "openai"
    model: str
    temperature: float = Field(0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(1024, ge=1)

    @classmethod
    def from_settings(cls, ai: AISettings, max_tokens: Optional[int] = None) -> "ModelContext":
        return cls(
            provider=ai.provider,
            model=ai.model,
            temperature=ai.temperature,
            max_tokens=max_tokens or ai.max_tokens,
        )


class CompletionClient(Protocol):
    async def complete(
        self,
        system_instruction: str,
        user_content: str,
        response_shape_hint: Optional[Dict[str, Any]],
        context: ModelContext,
        agent: str = "completion",
    ) -> str:
        ...


class HttpCompletionClient:
    """Async HTTP client for an OpenAI-compatible chat completion API."""

    def __init__(
        self,
        api_base: str,
        api_key: Optional[str],
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name="completion",
            failure_threshold=0.5,
            time_window_seconds=60,
            open_duration_seconds=30,
        )

    async def _post(self, path: str, json_payload: Dict[str, Any]) -> httpx.Response:
        """Single POST; non-success statuses raise so the circuit breaker counts them."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = await client.post(f"{self.api_base}{path}", headers=headers, json=json_payload)
        response.raise_for_status()
        return response

    async def complete(
        self,
        system_instruction: str,
        user_content: str,
        response_shape_hint: Optional[Dict[str, Any]],
        context: ModelContext,
        agent: str = "completion",
    ) -> str:
        """
        Run one chat completion and return the assistant message text.

        Args:
            system_instruction: System prompt
            user_content: User message
            response_shape_hint: OpenAI `response_format`, e.g. {"type": "json_object"}
            context: Provider, model, temperature and max tokens for this call
            agent: Logical caller name for metrics and logs

        Raises:
            CompletionTransportFailure: on any transport or body problem.
        """
        if not self.api_key:
            record_llm_error(agent, "missing_api_key")
            raise CompletionTransportFailure("Completion API key not configured", reason="missing_api_key")

        payload: Dict[str, Any] = {
            "model": context.model,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_content},
            ],
            "temperature": context.temperature,
            "max_tokens": context.max_tokens,
        }
        if response_shape_hint:
            payload["response_format"] = response_shape_hint

        start = time.time()
        try:
            response = await self.circuit_breaker.call_async(self._post, "/chat/completions", json_payload=payload)
        except CircuitBreakerOpenError as exc:
            record_llm_error(agent, "circuit_open")
            logger.warning("llm_circuit_open", agent=agent)
            raise CompletionTransportFailure(str(exc), reason="circuit_open") from exc
        except httpx.TimeoutException as exc:
            record_llm_error(agent, "timeout")
            logger.warning("llm_timeout", agent=agent, error=str(exc), error_type=type(exc).__name__)
            raise CompletionTransportFailure(f"Completion request timed out: {exc}", reason="timeout") from exc
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            record_llm_error(agent, f"status_{status_code}")
            logger.warning("llm_http_status_error", agent=agent, status_code=status_code)
            raise CompletionTransportFailure(
                f"Completion service returned HTTP {status_code}",
                reason="http_status",
                status_code=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            record_llm_error(agent, "http_error")
            logger.warning("llm_http_error", agent=agent, error=str(exc), error_type=type(exc).__name__)
            raise CompletionTransportFailure(f"Completion request failed: {exc}", reason="http_error") from exc
        finally:
            record_llm_request(agent, context.model, time.time() - start)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            record_llm_error(agent, "malformed_body")
            logger.warning("llm_malformed_body", agent=agent, error=str(exc), error_type=type(exc).__name__)
            raise CompletionTransportFailure("Completion response body is malformed", reason="malformed_body") from exc
        if not isinstance(content, str):
            record_llm_error(agent, "malformed_body")
            raise CompletionTransportFailure("Completion response has no text content", reason="malformed_body")

        # Token usage is best-effort; assumes an OpenAI-style usage field.
        usage = data.get("usage") or {}
        record_llm_tokens(
            agent=agent,
            model=context.model,
            input_tokens=int(usage.get("prompt_tokens") or 0),
            output_tokens=int(usage.get("completion_tokens") or 0),
        )
        return content


_completion_client: Optional[HttpCompletionClient] = None


def get_completion_client(ai: Optional[AISettings] = None) -> HttpCompletionClient:
    """Global completion client built from the AI settings."""
    global _completion_client
    if _completion_client is None:
        ai = ai or get_settings().ai
        _completion_client = HttpCompletionClient(
            api_base=ai.api_base,
            api_key=ai.api_key,
            timeout_seconds=ai.timeout_seconds,
        )
    return _completion_client


def reset_completion_client() -> None:
    global _completion_client
    _completion_client = None


def current_completion_client() -> Optional[HttpCompletionClient]:
    """The global completion client if one was built, without building it."""
    return _completion_client
