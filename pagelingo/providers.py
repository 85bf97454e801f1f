"""Translation provider backends used by the relay."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Sequence

from .errors import (
    TranslationProviderConfigurationError,
    TranslationProviderError,
)
from .structures import DetectionResult

if TYPE_CHECKING:  # pragma: no cover
    from .configuration import PageLingoConfig

logger = logging.getLogger(__name__)


class TranslationProvider(ABC):
    """Abstract adapter for translation providers."""

    name = "provider"

    @abstractmethod
    def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> List[str]:
        """Translate ``texts`` and return the results in the same order."""

    def detect_language(self, text: str) -> DetectionResult:
        raise TranslationProviderError(
            f"Language detection is not supported by the '{self.name}' provider."
        )


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> List[str]:
        return list(texts)

    def detect_language(self, text: str) -> DetectionResult:
        return DetectionResult(language="und", confidence=0.0)


class OpenAITranslationProvider(TranslationProvider):
    """Translation provider that uses OpenAI chat models."""

    name = "openai"
    DEFAULT_MODEL = "gpt-5-mini"

    SYSTEM_PROMPT = (
        "You are a professional website translator. Return only JSON. "
        "Translate the provided text segments of a web page into the requested "
        "language. Each segment is one visible text fragment of the page; keep "
        "numbers, placeholders, URLs and punctuation, and never merge or split "
        "segments. Respond strictly with an object shaped as "
        '{"translations": [{"id": "...", "translated": "..."}]}. '
        "Do not add commentary. Do not wrap the JSON in markdown code fences."
    )
    DETECT_PROMPT = (
        "Identify the language of the provided text. Return only JSON shaped as "
        '{"language": "<ISO-639-1 code>", "confidence": <number between 0 and 1>}. '
        "Do not wrap the JSON in markdown code fences."
    )

    def __init__(
        self,
        settings: "PageLingoConfig",
        *,
        azure: bool = False,
        debug: bool = False,
    ) -> None:
        self.settings = settings
        self.azure = azure
        self.debug = debug
        self._client, self._default_model = self._build_client()

    def _build_client(self) -> tuple[Any, str]:
        if self.azure:
            return self._build_azure_client()
        return self._build_openai_client()

    def _build_openai_client(self) -> tuple[Any, str]:
        api_key = self.settings.OPENAI_API_KEY
        if not api_key:
            raise TranslationProviderConfigurationError(
                "OpenAI configuration missing. Set OPENAI_API_KEY or choose a "
                "different provider."
            )
        try:
            from openai import OpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc

        return OpenAI(api_key=api_key), self.settings.OPENAI_MODEL or self.DEFAULT_MODEL

    def _build_azure_client(self) -> tuple[Any, str]:
        settings = self.settings
        missing = [
            name
            for name, value in {
                "AZURE_OPENAI_API_KEY": settings.AZURE_OPENAI_API_KEY,
                "AZURE_OPENAI_ENDPOINT": settings.AZURE_OPENAI_ENDPOINT,
                "AZURE_OPENAI_API_VERSION": settings.AZURE_OPENAI_API_VERSION,
                "AZURE_OPENAI_DEPLOYMENT_NAME": settings.AZURE_OPENAI_DEPLOYMENT_NAME,
            }.items()
            if not value
        ]
        if missing:
            raise TranslationProviderConfigurationError(
                "Azure OpenAI configuration incomplete. Please set: "
                + ", ".join(missing)
                + "."
            )

        try:
            from openai import AzureOpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc

        client = AzureOpenAI(
            api_key=settings.AZURE_OPENAI_API_KEY,
            api_version=settings.AZURE_OPENAI_API_VERSION,
            azure_endpoint=settings.AZURE_OPENAI_ENDPOINT,
        )
        return client, settings.AZURE_OPENAI_DEPLOYMENT_NAME  # type: ignore[return-value]

    def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str | None,
        target_language: str,
        model: str | None = None,
    ) -> List[str]:
        if not texts:
            return []

        segment_ids = [str(index) for index in range(len(texts))]
        user_prompt = {
            "target_language": target_language,
            "source_language": source_language,
            "segments": [
                {"id": segment_id, "text": text}
                for segment_id, text in zip(segment_ids, texts)
            ],
        }
        self._log_debug("provider.request.payload", user_prompt)

        payload = self._invoke_model(
            system_prompt=self.SYSTEM_PROMPT,
            user_payload=user_prompt,
            model=model or self._default_model,
        )
        items = self._normalise_translations(payload)
        self._log_debug("provider.response.items", items)

        mapping: Dict[str, str] = {}
        for item in items:
            if not isinstance(item, dict):
                raise TranslationProviderError(
                    "Translation provider response malformed: expected objects."
                )
            segment_id = item.get("id")
            translated = item.get("translated")
            if not isinstance(segment_id, (str, int)) or not isinstance(translated, str):
                raise TranslationProviderError(
                    "Translation provider response malformed: missing fields."
                )
            mapping[str(segment_id)] = translated

        missing = [segment_id for segment_id in segment_ids if segment_id not in mapping]
        if missing:
            raise TranslationProviderError(
                "Translation provider response missing segments: " + ", ".join(missing)
            )
        return [mapping[segment_id] for segment_id in segment_ids]

    def detect_language(self, text: str) -> DetectionResult:
        payload = self._invoke_model(
            system_prompt=self.DETECT_PROMPT,
            user_payload={"text": text},
            model=self._default_model,
        )
        if isinstance(payload, str):
            payload = self._parse_json(payload)
        if not isinstance(payload, dict) or not isinstance(payload.get("language"), str):
            raise TranslationProviderError(
                "Language detection response malformed: missing language."
            )
        try:
            confidence = float(payload.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0
        return DetectionResult(language=payload["language"], confidence=confidence)

    def _invoke_model(
        self,
        *,
        system_prompt: str,
        user_payload: dict,
        model: str,
    ) -> Any:
        """Call the OpenAI Responses API and return the raw JSON text."""

        try:
            response = self._client.responses.create(
                model=model,
                input=[
                    {
                        "role": "system",
                        "content": [
                            {"type": "input_text", "text": system_prompt},
                        ],
                    },
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "input_text",
                                "text": json.dumps(user_payload, ensure_ascii=False),
                            }
                        ],
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc

        output_text = getattr(response, "output_text", None)
        if not output_text:
            raise TranslationProviderError(
                "Translation provider response empty or unrecognised."
            )
        self._log_debug("provider.response.raw", output_text)
        return self._strip_code_fence(str(output_text))

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not self.debug:
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(payload, ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        logger.debug("%s:\n%s", label, message)

    def _strip_code_fence(self, text: str) -> str:
        """Remove leading/trailing markdown code fences if present."""

        stripped = text.strip()
        if not stripped.startswith("```"):
            return stripped

        first_newline = stripped.find("\n")
        if first_newline == -1:
            return stripped
        body = stripped[first_newline + 1 :]
        closing_index = body.rfind("```")
        if closing_index != -1:
            body = body[:closing_index]
        return body.strip()

    def _parse_json(self, text: str) -> Any:
        try:
            return json.loads(self._strip_code_fence(text))
        except json.JSONDecodeError as exc:
            raise TranslationProviderError(
                f"Translation provider returned invalid JSON: {exc}"
            ) from exc

    def _normalise_translations(self, payload: Any) -> list[Any]:
        """Normalise raw payloads into a list of translation dictionaries."""

        if isinstance(payload, str):
            payload = self._parse_json(payload)

        if isinstance(payload, dict):
            translations = payload.get("translations")
            if isinstance(translations, list):
                return translations

        if isinstance(payload, list):
            return payload

        raise TranslationProviderError(
            "Translation provider response malformed: could not find translations list."
        )


class LegacyOpenAITranslationProvider(OpenAITranslationProvider):
    """Translation provider that uses the Chat Completions API for compatibility."""

    name = "legacy_openai"

    def _invoke_model(
        self,
        *,
        system_prompt: str,
        user_payload: dict,
        model: str,
    ) -> Any:
        try:
            response = self._client.chat.completions.create(
                model=model,
                temperature=0,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {
                        "role": "user",
                        "content": json.dumps(user_payload, ensure_ascii=False),
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc

        content: str | None = None
        for choice in getattr(response, "choices", None) or []:
            message = getattr(choice, "message", None)
            message_content = getattr(message, "content", None)
            if message_content:
                content = str(message_content)
                break

        if content is None:
            raise TranslationProviderError(
                "Translation provider response empty or unrecognised."
            )
        self._log_debug("provider.response.raw", content)
        return self._strip_code_fence(content)


def build_provider(
    name: str | None,
    settings: "PageLingoConfig",
    *,
    debug: bool = False,
) -> TranslationProvider:
    """Factory to create providers by name."""

    normalized = (name or settings.TRANSLATION_PROVIDER).strip().lower().replace("-", "_")
    if normalized in {"openai", "gpt", "default"}:
        return OpenAITranslationProvider(settings, debug=debug)
    if normalized in {"azure_openai", "azure"}:
        return OpenAITranslationProvider(settings, azure=True, debug=debug)
    if normalized in {"legacy_openai", "legacy", "openai_legacy"}:
        return LegacyOpenAITranslationProvider(settings, debug=debug)
    if normalized in {"echo", "noop", "mock"}:
        return EchoTranslationProvider()
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )
