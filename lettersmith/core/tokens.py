from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

import tiktoken

TOKENS_PER_WORD = 1.5
BASE_BUFFER_TOKENS = 500
LONG_LETTER_BUFFER_TOKENS = 1000
LONG_LETTER_WORDS = 500
MIN_OUTPUT_TOKENS = 200


@dataclass(frozen=True)
class OutputBudget:
    base_tokens: int
    buffer_tokens: int
    cap: int
    max_tokens: int


@lru_cache(maxsize=32)
def _encoding_for_model(model: str):
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        # non-OpenAI models have no registered encoding
        return tiktoken.get_encoding("cl100k_base")


def estimate_tokens(text: str, model: str) -> int:
    if not text:
        return 0
    return len(_encoding_for_model(model).encode(text))


def estimate_usage(prompt: str, completion: str, model: str, system_prompt: Optional[str] = None) -> int:
    return estimate_tokens(system_prompt or "", model) + estimate_tokens(prompt, model) + estimate_tokens(completion, model)


def model_cap(model: str, model_caps: Mapping[str, int], default_cap: int) -> int:
    if model in model_caps:
        return model_caps[model]
    # dated snapshots inherit the cap of their family prefix
    best = ""
    for name in model_caps:
        if model.startswith(name) and len(name) > len(best):
            best = name
    return model_caps[best] if best else default_cap


def plan_output_budget(max_length: int, model: str, model_caps: Mapping[str, int], default_cap: int) -> OutputBudget:
    """Size the completion ceiling for a letter of ``max_length`` words.

    Roughly 1.5 tokens per word plus a buffer for the selection marker and
    salutation; longer letters get a bigger buffer since models truncate them
    more often. The result is clamped to ``[MIN_OUTPUT_TOKENS, cap]``.
    """
    base_tokens = math.ceil(max(max_length, 0) * TOKENS_PER_WORD)
    buffer_tokens = LONG_LETTER_BUFFER_TOKENS if max_length > LONG_LETTER_WORDS else BASE_BUFFER_TOKENS
    cap = max(model_cap(model, model_caps, default_cap), MIN_OUTPUT_TOKENS)
    max_tokens = min(max(base_tokens + buffer_tokens, MIN_OUTPUT_TOKENS), cap)
    return OutputBudget(base_tokens=base_tokens, buffer_tokens=buffer_tokens, cap=cap, max_tokens=max_tokens)


def compute_output_budget(max_length: int, model: str, model_caps: Mapping[str, int], default_cap: int) -> int:
    return plan_output_budget(max_length, model, model_caps, default_cap).max_tokens
