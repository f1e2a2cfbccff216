from __future__ import annotations

import asyncio
import threading
from typing import Dict, Optional, Tuple

import anthropic
import httpx
from anthropic import Anthropic, AsyncAnthropic

from lettersmith.core.errors import (
    ConfigurationError,
    LetterError,
    ProviderError,
    RateLimitError,
    TransportError,
    excerpt,
)
from lettersmith.core.models import GenerationRequest, Letter
from lettersmith.core.prompt import PromptBuilder

from .base import REQUEST_TIMEOUT_SECONDS, GenerationFlow, PreparedCall, call_with_deadline, check_cancelled

PROVIDER_NAME = "anthropic"
DEFAULT_MODEL = "claude-3-sonnet-20240229"
KEY_PREFIX = "sk-ant-"
MIN_KEY_LENGTH = 20

MODEL_TOKEN_CAPS: Dict[str, int] = {
    "claude-3-opus": 4_096,
    "claude-3-sonnet": 4_096,
    "claude-3-haiku": 4_096,
    "claude-3-5-sonnet": 8_192,
    "claude-3-5-haiku": 8_192,
}
DEFAULT_TOKEN_CAP = 4_096

MODEL_COST_ESTIMATES: Dict[str, float] = {
    "claude-3-opus-20240229": 0.08,
    "claude-3-sonnet-20240229": 0.04,
    "claude-3-haiku-20240307": 0.02,
}
DEFAULT_COST_ESTIMATE = 0.04


def _translate_error(exc: anthropic.APIError) -> LetterError:
    if isinstance(exc, anthropic.RateLimitError):
        body = exc.response.text
        return RateLimitError(
            f"Anthropic rate limit exceeded (429). Error details: {excerpt(body)}. Try again in a few minutes",
            status_code=exc.status_code,
            body=body,
        )
    if isinstance(exc, anthropic.APIStatusError):
        body = exc.response.text
        return ProviderError(
            f"Anthropic API returned status {exc.status_code}: {excerpt(body)}",
            status_code=exc.status_code,
            body=body,
        )
    if isinstance(exc, anthropic.APITimeoutError):
        return TransportError(f"Anthropic request timed out after {REQUEST_TIMEOUT_SECONDS:.0f}s", timeout=True)
    if isinstance(exc, anthropic.APIConnectionError):
        return TransportError(f"failed to reach Anthropic: {exc}")
    return ProviderError(f"Anthropic returned a malformed response: {exc}")


class AnthropicClient:
    """Letter generation through the Anthropic messages API."""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        *,
        prompt_builder: Optional[PromptBuilder] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        async_http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        if not api_key:
            raise ConfigurationError("Anthropic API key is required")
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout
        self.flow = GenerationFlow(
            PROVIDER_NAME,
            self.model,
            prompt_builder or PromptBuilder.from_path(),
            MODEL_TOKEN_CAPS,
            DEFAULT_TOKEN_CAP,
        )
        self._client = Anthropic(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0, http_client=http_client
        )
        self._async_client = AsyncAnthropic(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0, http_client=async_http_client
        )

    def _request_args(self, prepared: PreparedCall) -> Dict[str, object]:
        return {
            "model": self.model,
            "max_tokens": prepared.budget.max_tokens,
            "system": prepared.system_prompt,
            "messages": [{"role": "user", "content": prepared.prompt}],
        }

    @staticmethod
    def _extract(resp) -> Tuple[Optional[str], Optional[int]]:
        blocks = getattr(resp, "content", None) or []
        if not blocks:
            raise ProviderError(
                "no content returned from Anthropic",
                status_code=200,
                body=excerpt(resp.model_dump_json() if hasattr(resp, "model_dump_json") else str(resp)),
            )
        text = None
        for block in blocks:
            if getattr(block, "type", None) == "text":
                text = getattr(block, "text", None)
                break
        usage = getattr(resp, "usage", None)
        total = None
        if usage is not None:
            total = (getattr(usage, "input_tokens", 0) or 0) + (getattr(usage, "output_tokens", 0) or 0)
        return text, total

    def generate_letter(self, request: GenerationRequest, cancel: Optional[threading.Event] = None) -> Letter:
        prepared = self.flow.prepare(request)
        check_cancelled(cancel, PROVIDER_NAME, "before request")
        args = self._request_args(prepared)
        try:
            resp = call_with_deadline(
                lambda: self._client.messages.create(**args),
                PROVIDER_NAME,
                cancel=cancel,
                deadline=self.timeout,
            )
        except anthropic.APIError as exc:
            raise _translate_error(exc) from exc
        check_cancelled(cancel, PROVIDER_NAME, "while request was in flight")
        text, tokens = self._extract(resp)
        return self.flow.finish(request, prepared, text, tokens, envelope=resp.model_dump_json())

    async def agenerate_letter(self, request: GenerationRequest) -> Letter:
        prepared = self.flow.prepare(request)
        try:
            resp = await asyncio.wait_for(
                self._async_client.messages.create(**self._request_args(prepared)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise TransportError(f"anthropic request exceeded the {self.timeout:g}s deadline", timeout=True) from exc
        except anthropic.APIError as exc:
            raise _translate_error(exc) from exc
        text, tokens = self._extract(resp)
        return self.flow.finish(request, prepared, text, tokens, envelope=resp.model_dump_json())

    def validate_api_key(self) -> None:
        if len(self.api_key) < MIN_KEY_LENGTH or not self.api_key.startswith(KEY_PREFIX):
            raise ConfigurationError("invalid Anthropic API key format")

    def render_prompt(self, request: GenerationRequest) -> str:
        return self.flow.prompt_builder.build(request)

    def get_provider_name(self) -> str:
        return PROVIDER_NAME

    def estimate_cost(self, request: GenerationRequest) -> float:
        return MODEL_COST_ESTIMATES.get(self.model, DEFAULT_COST_ESTIMATE)
