"""Candidate representative lookup.

The production directory lives in a database kept in sync with a civic-data
API; generation only needs the read side, so it is consumed through the
``CandidateDirectory`` protocol. ``JsonCandidateDirectory`` backs it with a
file such as::

    {
      "94110": [{"id": 1, "name": "Jane Doe", "title": "Senator", "state": "CA"}],
      "CA": [...],
      "*": [...]
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Protocol, Union

from .errors import ConfigurationError
from .models import RepresentativeOption

WILDCARD_KEY = "*"


class CandidateDirectory(Protocol):
    def get_candidates(self, jurisdiction_key: str) -> List[RepresentativeOption]:
        ...


class JsonCandidateDirectory:
    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._entries = self._load(self.path)

    @staticmethod
    def _load(path: Path) -> Dict[str, List[RepresentativeOption]]:
        if not path.exists():
            raise ConfigurationError(f"representatives file does not exist: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"representatives file {path} is unreadable: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"representatives file {path} must map jurisdiction keys to lists")
        entries: Dict[str, List[RepresentativeOption]] = {}
        for key, reps in raw.items():
            if not isinstance(reps, list):
                raise ConfigurationError(f"representatives file {path}: entry {key!r} is not a list")
            try:
                entries[str(key).strip().upper()] = [RepresentativeOption.from_dict(rep) for rep in reps]
            except (KeyError, TypeError, ValueError) as exc:
                raise ConfigurationError(f"representatives file {path}: bad entry under {key!r}: {exc}") from exc
        return entries

    def get_candidates(self, jurisdiction_key: str) -> List[RepresentativeOption]:
        key = (jurisdiction_key or "").strip().upper()
        if key in self._entries:
            return list(self._entries[key])
        return list(self._entries.get(WILDCARD_KEY, []))
