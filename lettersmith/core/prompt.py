from __future__ import annotations

import string
from pathlib import Path
from typing import List, Optional, Union

from .errors import TemplateError
from .models import GenerationRequest, RepresentativeOption

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent.parent / "templates" / "advocacy_prompt.txt"

REQUIRED_PLACEHOLDERS = frozenset(
    {
        "representatives",
        "main_issue",
        "specific_concern",
        "requested_action",
        "user_name",
        "user_zip_code",
        "tone",
        "max_length",
    }
)

SYSTEM_TEMPLATE = (
    "You are an expert advocacy letter writer. When asked to write a {max_length}-word letter, "
    "you MUST write close to that length. Longer letters require comprehensive, detailed content "
    "with multiple well-developed sections. Do not write short letters when long ones are requested."
)

NOT_SPECIFIED = "Not specified"


def _placeholders(template: str) -> set:
    try:
        fields = [name for _, name, _, _ in string.Formatter().parse(template) if name is not None]
    except ValueError as exc:
        raise TemplateError(f"prompt template is malformed: {exc}") from exc
    # build() only passes keywords, so "{}" could never be filled
    if "" in fields:
        raise TemplateError("prompt template uses an unnamed {} placeholder")
    return set(fields)


def load_prompt_template(path: Optional[Union[str, Path]] = None) -> str:
    """Read the advocacy prompt template and check its placeholders.

    Meant to run once while a client is constructed; a broken template is a
    startup problem, not a per-request one.
    """
    template_path = Path(path) if path else DEFAULT_TEMPLATE_PATH
    try:
        with open(template_path, "r", encoding="utf-8") as f:
            template = f.read()
    except OSError as exc:
        raise TemplateError(f"failed to read prompt template {template_path}: {exc}") from exc
    if not template.strip():
        raise TemplateError(f"prompt template {template_path} is empty")
    found = _placeholders(template)
    missing = sorted(REQUIRED_PLACEHOLDERS - found)
    if missing:
        raise TemplateError(f"prompt template {template_path} is missing placeholders {missing}")
    unknown = sorted(found - REQUIRED_PLACEHOLDERS)
    if unknown:
        raise TemplateError(f"prompt template {template_path} uses unknown placeholders {unknown}")
    return template


def format_representative(rep: RepresentativeOption) -> str:
    return "\n".join(
        [
            f"- ID: {rep.id}",
            f"  Name: {rep.name}",
            f"  Title: {rep.title or NOT_SPECIFIED}",
            f"  State: {rep.state or NOT_SPECIFIED}",
            f"  Party: {rep.party or NOT_SPECIFIED}",
            f"  District: {rep.district or NOT_SPECIFIED}",
        ]
    )


class PromptBuilder:
    def __init__(self, template: str) -> None:
        self.template = template

    @classmethod
    def from_path(cls, path: Optional[Union[str, Path]] = None) -> "PromptBuilder":
        return cls(load_prompt_template(path))

    def build(self, request: GenerationRequest) -> str:
        blocks: List[str] = [format_representative(rep) for rep in request.available_representatives]
        return self.template.format(
            representatives="\n".join(blocks),
            main_issue=request.main_issue,
            specific_concern=request.specific_concern,
            requested_action=request.requested_action,
            user_name=request.user_name,
            user_zip_code=request.user_zip_code,
            tone=request.tone.value,
            max_length=request.max_length,
        )

    def system_message(self, request: GenerationRequest) -> str:
        return SYSTEM_TEMPLATE.format(max_length=request.max_length)
