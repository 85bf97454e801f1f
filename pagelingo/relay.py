"""Translation collaborators consumed by the engine.

:class:`TranslationRelay` runs in process on top of a
:class:`~pagelingo.providers.TranslationProvider`. :class:`RelayClient` talks
to a remote relay over HTTP using the same wire format served by
:mod:`pagelingo.server`.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

import httpx

from .errors import (
    LanguagesUnavailable,
    TranslationFailed,
    TranslationProviderError,
)
from .providers import TranslationProvider
from .structures import DetectionResult, Language

logger = logging.getLogger(__name__)

DEFAULT_RELAY_TIMEOUT_SECONDS = 30.0

SUPPORTED_LANGUAGES: tuple[Language, ...] = (
    Language("en", "English"),
    Language("ja", "日本語"),
    Language("ko", "한국어"),
    Language("zh", "中文"),
    Language("es", "Español"),
    Language("fr", "Français"),
    Language("de", "Deutsch"),
    Language("it", "Italiano"),
    Language("pt", "Português"),
    Language("ru", "Русский"),
)


class TranslationCollaborator(ABC):
    """Remote translation service as seen by the engine."""

    @abstractmethod
    async def list_supported_languages(self) -> List[Language]:
        """Return the languages users may pick; raise ``LanguagesUnavailable``."""

    @abstractmethod
    async def translate_batch(
        self,
        texts: Sequence[str],
        target_language: str,
        source_language: Optional[str] = None,
    ) -> List[str]:
        """Translate ``texts`` in order; raise ``TranslationFailed``."""

    async def aclose(self) -> None:
        return None


def is_blank(text: object) -> bool:
    return not isinstance(text, str) or not text.strip()


class TranslationRelay(TranslationCollaborator):
    """In-process relay that filters, forwards and realigns text batches."""

    def __init__(
        self,
        provider: TranslationProvider,
        *,
        languages: Sequence[Language] = SUPPORTED_LANGUAGES,
        model: str | None = None,
    ) -> None:
        self.provider = provider
        self.languages = list(languages)
        self.model = model

    @property
    def language_codes(self) -> set[str]:
        return {language.code for language in self.languages}

    async def list_supported_languages(self) -> List[Language]:
        return list(self.languages)

    async def translate_batch(
        self,
        texts: Sequence[str],
        target_language: str,
        source_language: Optional[str] = None,
    ) -> List[str]:
        if not texts:
            raise TranslationFailed("No texts were provided for translation.")
        if any(not isinstance(text, str) for text in texts):
            raise TranslationFailed("Every text to translate must be a string.")
        if not target_language:
            raise TranslationFailed("No target language was provided.")
        if target_language not in self.language_codes:
            raise TranslationFailed(f"Unsupported target language '{target_language}'.")

        positions = [index for index, text in enumerate(texts) if not is_blank(text)]
        if not positions:
            # Whitespace-only batch: nothing to send.
            return ["" for _ in texts]

        try:
            translated = await asyncio.to_thread(
                self.provider.translate,
                [texts[index] for index in positions],
                source_language=source_language,
                target_language=target_language,
                model=self.model,
            )
        except TranslationProviderError as exc:
            logger.error("Translation provider failed: %s", exc)
            raise TranslationFailed(str(exc)) from exc

        if len(translated) != len(positions):
            raise TranslationFailed(
                f"Translation provider returned {len(translated)} results "
                f"for {len(positions)} texts."
            )

        results = list(texts)
        for index, value in zip(positions, translated):
            results[index] = value
        return results

    async def detect_language(self, text: str) -> DetectionResult:
        if is_blank(text):
            raise TranslationFailed("No text was provided for language detection.")
        try:
            return await asyncio.to_thread(self.provider.detect_language, text)
        except TranslationProviderError as exc:
            logger.error("Language detection failed: %s", exc)
            raise TranslationFailed(str(exc)) from exc


class RelayClient(TranslationCollaborator):
    """HTTP client for a relay served under ``api_base``."""

    def __init__(
        self,
        api_base: str,
        *,
        timeout: float = DEFAULT_RELAY_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def list_supported_languages(self) -> List[Language]:
        try:
            data = await self._request("GET", "/translate/languages")
        except (httpx.HTTPError, ValueError) as exc:
            raise LanguagesUnavailable(f"Failed to load languages: {exc}") from exc

        if not data.get("success"):
            raise LanguagesUnavailable(data.get("message") or "Failed to load languages")
        raw_languages = data.get("languages")
        if not isinstance(raw_languages, list):
            raise LanguagesUnavailable("Relay response did not include a language list.")
        try:
            return [Language(code=str(item["code"]), name=str(item["name"])) for item in raw_languages]
        except (KeyError, TypeError) as exc:
            raise LanguagesUnavailable(f"Malformed language entry: {exc}") from exc

    async def translate_batch(
        self,
        texts: Sequence[str],
        target_language: str,
        source_language: Optional[str] = None,
    ) -> List[str]:
        body = {
            "texts": list(texts),
            "targetLanguage": target_language,
            "sourceLanguage": source_language,
        }
        try:
            data = await self._request("POST", "/translate/text", json=body)
        except (httpx.HTTPError, ValueError) as exc:
            raise TranslationFailed(f"Translation request failed: {exc}") from exc

        if not data.get("success"):
            raise TranslationFailed(data.get("message") or "Translation failed")
        translations = data.get("translations")
        if not isinstance(translations, list) or len(translations) != len(texts):
            raise TranslationFailed(
                "Relay returned a translation list that does not match the request."
            )
        return [str(item) for item in translations]

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        """Send a request and return the JSON body.

        Error responses from the relay still carry a JSON body with
        ``success: false``; those are returned so the caller can surface the
        relay's message. Anything else raises.
        """

        response = await self._client.request(method, f"{self.api_base}{path}", **kwargs)
        try:
            data = response.json()
        except ValueError:
            response.raise_for_status()
            raise
        if not isinstance(data, dict):
            raise ValueError("Relay response is not a JSON object.")
        if response.is_error and "success" not in data:
            response.raise_for_status()
        return data
