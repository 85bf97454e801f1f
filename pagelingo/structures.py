"""Core data structures for the page translation engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .errors import ErrorRecord


Notifier = Callable[[str], None]


@dataclass(frozen=True)
class Language:
    """A language offered by the translation relay."""

    code: str
    name: str

    def to_dict(self) -> dict:
        return {"code": self.code, "name": self.name}


@dataclass(frozen=True)
class DetectionResult:
    """Language detected for a piece of text."""

    language: str
    confidence: float


class EnginePhase(Enum):
    """States of the page translation state machine."""

    SOURCE = "source"
    TRANSLATING = "translating"
    TRANSLATED = "translated"


@dataclass
class EngineState:
    """Mutable state owned by a single engine instance."""

    source_language: str
    current_language: str
    displayed_language: str
    phase: EnginePhase = EnginePhase.SOURCE
    is_translating: bool = False
    observer: Optional[object] = None
    errors: List[ErrorRecord] = field(default_factory=list)

    @classmethod
    def initial(cls, source_language: str) -> "EngineState":
        return cls(
            source_language=source_language,
            current_language=source_language,
            displayed_language=source_language,
        )


@dataclass
class TranslationOutcome:
    """Report returned after one translation pass over the page."""

    target_language: str
    source_language: str
    total_nodes: int
    from_cache: bool
    elapsed_seconds: float
