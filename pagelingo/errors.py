"""Error definitions for the page translation engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises handled errors reported by the engine."""

    LANGUAGES = auto()
    TRANSLATION = auto()
    OTHER = auto()


class PageLingoError(Exception):
    """Base exception for all custom errors."""


class LanguagesUnavailable(PageLingoError):
    """Raised when the supported language list cannot be retrieved."""


class TranslationFailed(PageLingoError):
    """Raised when a batch could not be translated."""


class TranslationProviderConfigurationError(PageLingoError):
    """Raised when the translation provider is misconfigured."""


class TranslationProviderError(PageLingoError):
    """Raised when the translation provider fails permanently."""


class OverwriteRefusedError(PageLingoError):
    """Raised when attempting to overwrite an output without consent."""


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None
