from __future__ import annotations

from typing import Callable, Dict, Optional

from lettersmith.core.config import Settings
from lettersmith.core.errors import ConfigurationError

from .anthropic_client import AnthropicClient
from .base import LetterClient
from .openai_client import OpenAIClient

PROVIDERS: Dict[str, Callable[..., LetterClient]] = {
    "openai": OpenAIClient,
    "anthropic": AnthropicClient,
}


def create_client(provider: str, api_key: str, model: Optional[str] = None, **kwargs) -> LetterClient:
    factory = PROVIDERS.get((provider or "").strip().lower())
    if factory is None:
        raise ConfigurationError(f"unsupported AI provider: {provider}")
    return factory(api_key, model or None, **kwargs)


def client_from_settings(
    settings: Settings, provider: Optional[str] = None, model: Optional[str] = None, **kwargs
) -> LetterClient:
    name = (provider or settings.provider).strip().lower()
    if name not in PROVIDERS:
        raise ConfigurationError(f"unsupported AI provider: {name}")
    api_key = settings.api_key_for(name)
    if not api_key:
        raise ConfigurationError(f"{name} API key not configured")
    return create_client(name, api_key, model or settings.model_for(name), **kwargs)
