from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from .models import GenerationRequest, Letter, Metadata, RepresentativeOption, utcnow
from .parsing import ParsedSelection


def count_words(text: str) -> int:
    return len(text.split())


def build_subject(main_issue: str, representative: RepresentativeOption) -> str:
    return f"Advocacy Letter: {main_issue} - {representative.state} Constituent"


def assemble_letter(
    selection: ParsedSelection,
    request: GenerationRequest,
    *,
    provider: str,
    model: str,
    tokens_used: int,
    generated_at: Optional[datetime] = None,
) -> Letter:
    stamp = generated_at or utcnow()
    selected = replace(selection.representative)
    metadata = Metadata(
        provider=provider,
        model=model,
        tokens_used=tokens_used,
        actual_word_count=count_words(selection.content),
        generated_at=stamp,
        tone=request.tone.value,
        theme=request.main_issue,
        max_length=request.max_length,
        selected_representative_id=selection.representative_id,
    )
    return Letter(
        subject=build_subject(request.main_issue, selected),
        content=selection.content,
        metadata=metadata,
        selected_representative=selected,
        created_at=stamp,
    )
