from __future__ import annotations

import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Protocol, TypeVar

from lettersmith.core.assembly import assemble_letter
from lettersmith.core.errors import GenerationCancelled, ProviderError, TransportError, excerpt
from lettersmith.core.models import GenerationRequest, Letter
from lettersmith.core.parsing import parse_selection
from lettersmith.core.prompt import PromptBuilder
from lettersmith.core.tokens import OutputBudget, estimate_usage, plan_output_budget

REQUEST_TIMEOUT_SECONDS = 60.0
CANCEL_POLL_SECONDS = 0.05

T = TypeVar("T")


class LetterClient(Protocol):
    def generate_letter(self, request: GenerationRequest, cancel: Optional[threading.Event] = None) -> Letter:
        ...

    async def agenerate_letter(self, request: GenerationRequest) -> Letter:
        ...

    def validate_api_key(self) -> None:
        ...

    def render_prompt(self, request: GenerationRequest) -> str:
        ...

    def get_provider_name(self) -> str:
        ...

    def estimate_cost(self, request: GenerationRequest) -> float:
        ...


@dataclass(frozen=True)
class PreparedCall:
    prompt: str
    system_prompt: str
    budget: OutputBudget


def check_cancelled(cancel: Optional[threading.Event], provider: str, stage: str) -> None:
    if cancel is not None and cancel.is_set():
        raise GenerationCancelled(f"{provider}: letter generation cancelled {stage}")


def call_with_deadline(
    call: Callable[[], T],
    provider: str,
    *,
    cancel: Optional[threading.Event] = None,
    deadline: float = REQUEST_TIMEOUT_SECONDS,
) -> T:
    """Run a blocking SDK call on a worker thread and wait for it.

    Returns as soon as the call finishes, the cancel event is set, or the
    overall deadline passes. httpx only bounds each phase of a request, so
    the deadline is what caps the whole round trip. An abandoned worker is
    left to finish on its own; the SDK timeout still bounds it.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"lettersmith-{provider}")
    future = executor.submit(call)
    executor.shutdown(wait=False)
    started = time.monotonic()
    while True:
        try:
            return future.result(timeout=CANCEL_POLL_SECONDS)
        except FutureTimeout:
            pass
        check_cancelled(cancel, provider, "while request was in flight")
        if time.monotonic() - started >= deadline:
            print(f"[{provider}] request abandoned after {deadline:g}s", file=sys.stderr)
            raise TransportError(f"{provider} request exceeded the {deadline:g}s deadline", timeout=True)


class GenerationFlow:
    """Vendor-neutral half of a letter generation call.

    Adapters own the wire call; this object renders the prompt, sizes the
    completion, and turns the raw completion into a validated ``Letter``.
    """

    def __init__(
        self,
        provider: str,
        model: str,
        prompt_builder: PromptBuilder,
        model_caps: Mapping[str, int],
        default_cap: int,
    ) -> None:
        self.provider = provider
        self.model = model
        self.prompt_builder = prompt_builder
        self.model_caps = dict(model_caps)
        self.default_cap = default_cap

    def prepare(self, request: GenerationRequest) -> PreparedCall:
        prompt = self.prompt_builder.build(request)
        system_prompt = self.prompt_builder.system_message(request)
        budget = plan_output_budget(request.max_length, self.model, self.model_caps, self.default_cap)
        print(
            f"[{self.provider}] request: max_length={request.max_length}, base_tokens={budget.base_tokens}, "
            f"buffer={budget.buffer_tokens}, final_tokens={budget.max_tokens}, model={self.model}"
        )
        return PreparedCall(prompt=prompt, system_prompt=system_prompt, budget=budget)

    def finish(
        self,
        request: GenerationRequest,
        prepared: PreparedCall,
        text: Optional[str],
        tokens_used: Optional[int],
        envelope: str = "",
    ) -> Letter:
        if not text or not text.strip():
            raise ProviderError(
                f"{self.provider}: response contained no generated text",
                status_code=200,
                body=excerpt(envelope),
            )
        selection = parse_selection(text, request.available_representatives)
        if tokens_used is None:
            tokens_used = estimate_usage(prepared.prompt, text, self.model, prepared.system_prompt)
            print(f"[tokens] {self.provider}: usage not reported; estimated {tokens_used} tokens")
        else:
            print(f"[tokens] {self.provider}: {tokens_used} tokens (budget {prepared.budget.max_tokens})")
        letter = assemble_letter(
            selection,
            request,
            provider=self.provider,
            model=self.model,
            tokens_used=tokens_used,
        )
        print(
            f"[letter] {self.provider}: selected representative {selection.representative_id} "
            f"({selection.representative.name}); {letter.metadata.actual_word_count} words "
            f"(requested {request.max_length})"
        )
        if letter.metadata.actual_word_count < request.max_length // 2:
            print(
                f"[letter] {self.provider}: letter is much shorter than requested "
                f"({letter.metadata.actual_word_count}/{request.max_length} words)",
                file=sys.stderr,
            )
        return letter
