from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Tone(str, Enum):
    PROFESSIONAL = "professional"
    PASSIONATE = "passionate"
    CONVERSATIONAL = "conversational"

    @classmethod
    def parse(cls, value: "Tone | str") -> "Tone":
        if isinstance(value, Tone):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise ValueError(f"unknown tone {value!r}; expected one of: {allowed}") from None


@dataclass(frozen=True)
class RepresentativeOption:
    id: int
    name: str
    title: str
    state: str
    party: Optional[str] = None
    district: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "id": self.id,
            "name": self.name,
            "title": self.title,
            "state": self.state,
        }
        if self.party is not None:
            payload["party"] = self.party
        if self.district is not None:
            payload["district"] = self.district
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RepresentativeOption":
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            title=str(data.get("title") or ""),
            state=str(data.get("state") or ""),
            party=data.get("party") or None,
            district=data.get("district") or None,
        )


@dataclass(frozen=True)
class GenerationRequest:
    main_issue: str
    specific_concern: str
    requested_action: str
    user_name: str
    user_zip_code: str
    available_representatives: Tuple[RepresentativeOption, ...]
    tone: Tone = Tone.PROFESSIONAL
    max_length: int = 500

    def __post_init__(self) -> None:
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "available_representatives", tuple(self.available_representatives))
        object.__setattr__(self, "tone", Tone.parse(self.tone))
        for name in ("main_issue", "specific_concern", "requested_action"):
            if not str(getattr(self, name) or "").strip():
                raise ValueError(f"{name} must not be blank")
        if isinstance(self.max_length, bool) or not isinstance(self.max_length, int) or self.max_length <= 0:
            raise ValueError(f"max_length must be a positive integer, got {self.max_length!r}")
        if not self.available_representatives:
            raise ValueError("at least one candidate representative is required")
        seen = set()
        for rep in self.available_representatives:
            if rep.id in seen:
                raise ValueError(f"duplicate representative id {rep.id} in candidate list")
            seen.add(rep.id)

    def to_dict(self) -> Dict[str, object]:
        return {
            "main_issue": self.main_issue,
            "specific_concern": self.specific_concern,
            "requested_action": self.requested_action,
            "user_name": self.user_name,
            "user_zip_code": self.user_zip_code,
            "available_representatives": [rep.to_dict() for rep in self.available_representatives],
            "tone": self.tone.value,
            "max_length": self.max_length,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerationRequest":
        reps: Iterable[Dict[str, Any]] = data.get("available_representatives") or []
        return cls(
            main_issue=data.get("main_issue", ""),
            specific_concern=data.get("specific_concern", ""),
            requested_action=data.get("requested_action", ""),
            user_name=data.get("user_name", ""),
            user_zip_code=data.get("user_zip_code", ""),
            available_representatives=tuple(RepresentativeOption.from_dict(r) for r in reps),
            tone=data.get("tone") or Tone.PROFESSIONAL,
            max_length=int(data.get("max_length") or 500),
        )


@dataclass(frozen=True)
class Metadata:
    provider: str
    model: str
    tokens_used: int
    actual_word_count: int
    generated_at: datetime
    tone: str
    theme: str
    max_length: int
    selected_representative_id: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "provider": self.provider,
            "model": self.model,
            "tokens_used": self.tokens_used,
            "actual_word_count": self.actual_word_count,
            "generated_at": self.generated_at.isoformat(),
            "tone": self.tone,
            "theme": self.theme,
            "max_length": self.max_length,
            "selected_representative_id": self.selected_representative_id,
        }


@dataclass(frozen=True)
class Letter:
    subject: str
    content: str
    metadata: Metadata
    selected_representative: RepresentativeOption
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, object]:
        return {
            "subject": self.subject,
            "content": self.content,
            "metadata": self.metadata.to_dict(),
            "created_at": self.created_at.isoformat(),
            "selected_representative": self.selected_representative.to_dict(),
        }
