from __future__ import annotations

import json
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from lettersmith.core.config import DEFAULT_MAX_LENGTH, DEFAULT_OUTPUT_DIR, DEFAULT_REPRESENTATIVES_FILE
from lettersmith.core.directory import CandidateDirectory, JsonCandidateDirectory
from lettersmith.core.errors import ConfigurationError
from lettersmith.core.models import GenerationRequest, Letter, RepresentativeOption, Tone
from lettersmith.providers.base import LetterClient
from lettersmith.providers.registry import create_client


@dataclass
class LetterPipelineConfig:
    main_issue: str
    specific_concern: str
    requested_action: str
    user_name: str
    user_zip_code: str
    provider: str = "openai"
    api_key: str = ""
    model: Optional[str] = None
    tone: Tone = Tone.PROFESSIONAL
    max_length: int = DEFAULT_MAX_LENGTH
    state_fallback: Optional[str] = None
    representatives_file: Path = Path(DEFAULT_REPRESENTATIVES_FILE)
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    dry_run: bool = False


class LetterPipeline:
    """Look up candidates, generate one letter, and write it to disk."""

    def __init__(
        self,
        config: LetterPipelineConfig,
        client: Optional[LetterClient] = None,
        directory: Optional[CandidateDirectory] = None,
    ) -> None:
        self.config = config
        self.client = client or create_client(config.provider, config.api_key, config.model)
        self.directory = directory or JsonCandidateDirectory(config.representatives_file)

    # ------------------------------------------------------------------
    # Main entry
    # ------------------------------------------------------------------
    def run(self) -> Optional[Letter]:
        candidates = self.load_candidates()
        request = self.build_request(candidates)
        self.client.validate_api_key()
        provider = self.client.get_provider_name()
        print(
            f"[letter] {provider}: {len(candidates)} candidate representatives for ZIP {self.config.user_zip_code}; "
            f"est cost ${self.client.estimate_cost(request):.2f}"
        )
        if self.config.dry_run:
            print(self.client.render_prompt(request))
            print("[letter] dry run; no request sent.")
            return None
        letter = self.client.generate_letter(request)
        json_path, md_path = self.write_outputs(letter)
        print(f"[letter] wrote {json_path} and {md_path}")
        return letter

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def load_candidates(self) -> List[RepresentativeOption]:
        candidates = self.directory.get_candidates(self.config.user_zip_code)
        if not candidates and self.config.state_fallback:
            print(f"[letter] no representatives for ZIP {self.config.user_zip_code}; trying {self.config.state_fallback}")
            candidates = self.directory.get_candidates(self.config.state_fallback)
        if not candidates:
            raise ConfigurationError(
                f"no representatives found for ZIP {self.config.user_zip_code}; "
                "add them to the representatives file first"
            )
        return candidates

    def build_request(self, candidates: List[RepresentativeOption]) -> GenerationRequest:
        if not self.config.user_name or not self.config.user_zip_code:
            raise ConfigurationError("user name and ZIP code must be configured")
        try:
            return GenerationRequest(
                main_issue=self.config.main_issue,
                specific_concern=self.config.specific_concern,
                requested_action=self.config.requested_action,
                user_name=self.config.user_name,
                user_zip_code=self.config.user_zip_code,
                available_representatives=tuple(candidates),
                tone=self.config.tone,
                max_length=self.config.max_length,
            )
        except ValueError as exc:
            raise ConfigurationError(f"invalid letter request: {exc}") from exc

    def write_outputs(self, letter: Letter) -> tuple[Path, Path]:
        out_dir = self.config.output_dir
        out_dir.mkdir(parents=True, exist_ok=True)
        stamp = letter.created_at.strftime("%Y%m%d-%H%M%S")
        slug = f"{stamp}-{self._slugify(letter.selected_representative.name)}"
        json_path = out_dir / f"{slug}.json"
        md_path = out_dir / f"{slug}.md"
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(letter.to_dict(), f, indent=2, ensure_ascii=False)
        md_path.write_text(self._format_markdown(letter), encoding="utf-8")
        return json_path, md_path

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _slugify(name: str) -> str:
        slug = re.sub(r"[^a-zA-Z0-9]+", "-", name.strip()).strip("-").lower()
        return slug or "letter"

    @staticmethod
    def _format_markdown(letter: Letter) -> str:
        rep = letter.selected_representative
        meta = letter.metadata
        lines = [
            f"# {letter.subject}",
            "",
            f"**To:** {rep.title} {rep.name} ({rep.state})".replace("  ", " "),
            "",
            letter.content,
            "",
            "---",
            f"Provider: {meta.provider} ({meta.model}) | Tokens: {meta.tokens_used} | "
            f"Words: {meta.actual_word_count}/{meta.max_length} | Tone: {meta.tone}",
            f"Generated: {meta.generated_at.isoformat()}",
        ]
        return "\n".join(lines) + "\n"


def report_failure(exc: Exception) -> None:
    retry_hint = " (retryable)" if getattr(exc, "retryable", False) else ""
    print(f"[letter] {type(exc).__name__}{retry_hint}: {exc}", file=sys.stderr)
