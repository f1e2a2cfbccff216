from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import Tone

DEFAULT_PROVIDER = "openai"
DEFAULT_MAX_LENGTH = 500
DEFAULT_REPRESENTATIVES_FILE = "representatives.json"
DEFAULT_OUTPUT_DIR = "letters"


@dataclass(frozen=True)
class Settings:
    provider: str = DEFAULT_PROVIDER
    openai_api_key: str = ""
    openai_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = ""
    user_name: str = ""
    user_zip_code: str = ""
    tone: Tone = Tone.PROFESSIONAL
    max_length: int = DEFAULT_MAX_LENGTH
    representatives_file: Path = Path(DEFAULT_REPRESENTATIVES_FILE)
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)

    def api_key_for(self, provider: str) -> str:
        if provider == "openai":
            return self.openai_api_key
        if provider == "anthropic":
            return self.anthropic_api_key
        raise ConfigurationError(f"unsupported AI provider: {provider}")

    def model_for(self, provider: str) -> str:
        if provider == "openai":
            return self.openai_model
        if provider == "anthropic":
            return self.anthropic_model
        raise ConfigurationError(f"unsupported AI provider: {provider}")


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _max_length_from_env(raw: str) -> int:
    if not raw:
        return DEFAULT_MAX_LENGTH
    try:
        value = int(raw)
    except ValueError:
        print(f"[config] LETTER_MAX_LENGTH={raw!r} is not an integer; using {DEFAULT_MAX_LENGTH}", file=sys.stderr)
        return DEFAULT_MAX_LENGTH
    return value if value > 0 else DEFAULT_MAX_LENGTH


def _tone_from_env(raw: str) -> Tone:
    if not raw:
        return Tone.PROFESSIONAL
    try:
        return Tone.parse(raw)
    except ValueError as exc:
        raise ConfigurationError(f"LETTER_TONE: {exc}") from exc


def load_settings(env_file: Optional[Union[str, Path]] = None) -> Settings:
    """Read settings from the environment, after merging a ``.env`` file if present."""
    load_dotenv(dotenv_path=env_file)
    return Settings(
        provider=_env("AI_PROVIDER", DEFAULT_PROVIDER).lower(),
        openai_api_key=_env("OPENAI_API_KEY"),
        openai_model=_env("OPENAI_MODEL"),
        anthropic_api_key=_env("ANTHROPIC_API_KEY"),
        anthropic_model=_env("ANTHROPIC_MODEL"),
        user_name=_env("USER_NAME"),
        user_zip_code=_env("USER_ZIP_CODE"),
        tone=_tone_from_env(_env("LETTER_TONE")),
        max_length=_max_length_from_env(_env("LETTER_MAX_LENGTH")),
        representatives_file=Path(_env("REPRESENTATIVES_FILE", DEFAULT_REPRESENTATIVES_FILE)),
        output_dir=Path(_env("LETTER_OUTPUT_DIR", DEFAULT_OUTPUT_DIR)),
    )
