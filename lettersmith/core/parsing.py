from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .errors import ParseError, ValidationError, excerpt
from .models import RepresentativeOption

MARKER = "SELECTED_REPRESENTATIVE_ID"
LOG_EXCERPT_CHARS = 200

_MARKER_VALUE_RE = re.compile(r"REPRESENTATIVE[\s_*`]*ID\s*:(.*)$", re.IGNORECASE)
_INT_RE = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class ParsedSelection:
    representative_id: int
    content: str
    representative: RepresentativeOption


def _is_marker_line(line: str) -> bool:
    upper = line.upper()
    return "SELECTED" in upper and "REPRESENTATIVE" in upper and "ID:" in upper


def parse_marker_line(line: str) -> Optional[int]:
    """Return the id declared on a marker line, or None when the line is not one.

    Accepts ``SELECTED_REPRESENTATIVE_ID: 5`` as well as spaced or emphasized
    variants such as ``**Selected Representative ID:** 5``.
    """
    trimmed = line.strip()
    if not _is_marker_line(trimmed):
        return None
    match = _MARKER_VALUE_RE.search(trimmed)
    if not match:
        return None
    value = match.group(1).strip().strip("*_`").strip()
    if not _INT_RE.match(value):
        return None
    return int(value)


def find_candidate(candidates: Sequence[RepresentativeOption], rep_id: int) -> Optional[RepresentativeOption]:
    for rep in candidates:
        if rep.id == rep_id:
            return rep
    return None


def find_marker(lines: Sequence[str]) -> Tuple[int, int]:
    """Scan for the first parsable marker line; returns (line index, id)."""
    for idx, line in enumerate(lines):
        rep_id = parse_marker_line(line)
        if rep_id is not None:
            return idx, rep_id
    return -1, -1


def parse_selection(raw_text: str, candidates: Sequence[RepresentativeOption]) -> ParsedSelection:
    text = raw_text or ""
    lines = text.splitlines()

    marker_idx, rep_id = find_marker(lines)
    if marker_idx < 0:
        print(
            f"[parse] no {MARKER} marker in response. First {LOG_EXCERPT_CHARS} chars: {text[:LOG_EXCERPT_CHARS]!r}",
            file=sys.stderr,
        )
        raise ParseError(
            f"could not find {MARKER} in generated text. Response: {excerpt(text)}",
            excerpt=excerpt(text),
        )

    selected = find_candidate(candidates, rep_id)
    if selected is None:
        known = ", ".join(str(rep.id) for rep in candidates)
        raise ValidationError(
            f"selected representative ID {rep_id} not found in available representatives ({known})",
            reason=ValidationError.UNKNOWN_ID,
            representative_id=rep_id,
        )

    body_lines: List[str] = []
    for line in lines[marker_idx + 1 :]:
        repeated_id = parse_marker_line(line)
        if repeated_id is not None:
            if repeated_id != rep_id:
                raise ValidationError(
                    f"response declares conflicting representative IDs {rep_id} and {repeated_id}",
                    reason=ValidationError.CONFLICTING_MARKERS,
                    representative_id=rep_id,
                )
            print(f"[parse] dropping repeated marker line: {line.strip()!r}", file=sys.stderr)
            continue
        body_lines.append(line)
    content = "\n".join(body_lines).strip()

    if not content:
        raise ValidationError(
            f"no letter content found after {MARKER} line",
            reason=ValidationError.EMPTY_BODY,
            representative_id=rep_id,
        )

    # TODO: last-name / title forms ("Senator Doe") still fail this check; widen only with an explicit opt-in.
    if selected.name not in content:
        raise ValidationError(
            f"letter content does not mention selected representative {selected.name} (ID: {rep_id}); "
            f"the model may have written to a different representative than it selected. "
            f"Content: {excerpt(content)}",
            reason=ValidationError.NAME_MISMATCH,
            representative_id=rep_id,
        )

    return ParsedSelection(representative_id=rep_id, content=content, representative=selected)
