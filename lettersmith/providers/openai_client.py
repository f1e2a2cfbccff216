from __future__ import annotations

import asyncio
import threading
from typing import Dict, List, Optional, Tuple

import httpx
import openai
from openai import AsyncOpenAI, OpenAI

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

PROVIDER_NAME = "openai"
DEFAULT_MODEL = "gpt-4"
TEMPERATURE = 0.7
KEY_PREFIX = "sk-"
MIN_KEY_LENGTH = 20

MODEL_TOKEN_CAPS: Dict[str, int] = {
    "gpt-4": 16_000,
    "gpt-4-turbo": 16_000,
    "gpt-4-turbo-preview": 16_000,
    "gpt-3.5-turbo": 8_000,
}
DEFAULT_TOKEN_CAP = 8_000

MODEL_COST_ESTIMATES: Dict[str, float] = {
    "gpt-4": 0.05,
    "gpt-3.5-turbo": 0.01,
}
DEFAULT_COST_ESTIMATE = 0.03


def _translate_error(exc: openai.APIError) -> LetterError:
    if isinstance(exc, openai.RateLimitError):
        body = exc.response.text
        return RateLimitError(
            f"OpenAI rate limit exceeded (429). Error details: {excerpt(body)}. "
            "Try again in a few minutes or check your quota at https://platform.openai.com/usage",
            status_code=exc.status_code,
            body=body,
        )
    if isinstance(exc, openai.APIStatusError):
        body = exc.response.text
        return ProviderError(
            f"OpenAI API returned status {exc.status_code}: {excerpt(body)}",
            status_code=exc.status_code,
            body=body,
        )
    if isinstance(exc, openai.APITimeoutError):
        return TransportError(f"OpenAI request timed out after {REQUEST_TIMEOUT_SECONDS:.0f}s", timeout=True)
    if isinstance(exc, openai.APIConnectionError):
        return TransportError(f"failed to reach OpenAI: {exc}")
    return ProviderError(f"OpenAI returned a malformed response: {exc}")


class OpenAIClient:
    """Letter generation through the OpenAI chat completions API."""

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
            raise ConfigurationError("OpenAI API key is required")
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
        # retries belong to the caller
        self._client = OpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0, http_client=http_client
        )
        self._async_client = AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0, http_client=async_http_client
        )

    def _request_args(self, prepared: PreparedCall) -> Dict[str, object]:
        messages: List[Dict[str, str]] = [
            {"role": "system", "content": prepared.system_prompt},
            {"role": "user", "content": prepared.prompt},
        ]
        return {
            "model": self.model,
            "messages": messages,
            "max_tokens": prepared.budget.max_tokens,
            "temperature": TEMPERATURE,
        }

    @staticmethod
    def _extract(resp) -> Tuple[Optional[str], Optional[int]]:
        choices = getattr(resp, "choices", None) or []
        if not choices:
            raise ProviderError(
                "no choices returned from OpenAI",
                status_code=200,
                body=excerpt(resp.model_dump_json() if hasattr(resp, "model_dump_json") else str(resp)),
            )
        message = getattr(choices[0], "message", None)
        text = getattr(message, "content", None)
        usage = getattr(resp, "usage", None)
        total = getattr(usage, "total_tokens", None) if usage else None
        return text, total

    def generate_letter(self, request: GenerationRequest, cancel: Optional[threading.Event] = None) -> Letter:
        prepared = self.flow.prepare(request)
        check_cancelled(cancel, PROVIDER_NAME, "before request")
        args = self._request_args(prepared)
        try:
            resp = call_with_deadline(
                lambda: self._client.chat.completions.create(**args),
                PROVIDER_NAME,
                cancel=cancel,
                deadline=self.timeout,
            )
        except openai.APIError as exc:
            raise _translate_error(exc) from exc
        check_cancelled(cancel, PROVIDER_NAME, "while request was in flight")
        text, tokens = self._extract(resp)
        return self.flow.finish(request, prepared, text, tokens, envelope=resp.model_dump_json())

    async def agenerate_letter(self, request: GenerationRequest) -> Letter:
        prepared = self.flow.prepare(request)
        try:
            resp = await asyncio.wait_for(
                self._async_client.chat.completions.create(**self._request_args(prepared)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise TransportError(f"openai request exceeded the {self.timeout:g}s deadline", timeout=True) from exc
        except openai.APIError as exc:
            raise _translate_error(exc) from exc
        text, tokens = self._extract(resp)
        return self.flow.finish(request, prepared, text, tokens, envelope=resp.model_dump_json())

    def validate_api_key(self) -> None:
        if len(self.api_key) < MIN_KEY_LENGTH or not self.api_key.startswith(KEY_PREFIX):
            raise ConfigurationError("invalid OpenAI API key format")

    def render_prompt(self, request: GenerationRequest) -> str:
        return self.flow.prompt_builder.build(request)

    def get_provider_name(self) -> str:
        return PROVIDER_NAME

    def estimate_cost(self, request: GenerationRequest) -> float:
        return MODEL_COST_ESTIMATES.get(self.model, DEFAULT_COST_ESTIMATE)
