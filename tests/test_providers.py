import json

import pytest

from pagelingo.configuration import PageLingoConfig
from pagelingo.errors import TranslationProviderConfigurationError, TranslationProviderError
from pagelingo.providers import (
    EchoTranslationProvider,
    LegacyOpenAITranslationProvider,
    OpenAITranslationProvider,
    build_provider,
)


def openai_provider(monkeypatch, reply):
    provider = OpenAITranslationProvider(PageLingoConfig(OPENAI_API_KEY="sk-test"))
    sent = []

    def fake_invoke(*, system_prompt, user_payload, model):
        sent.append((user_payload, model))
        return provider._strip_code_fence(reply)

    monkeypatch.setattr(provider, "_invoke_model", fake_invoke)
    return provider, sent


def test_openai_results_are_ordered_by_segment_id(monkeypatch):
    reply = json.dumps(
        {"translations": [{"id": "1", "translated": "World"}, {"id": "0", "translated": "Hello"}]}
    )
    provider, sent = openai_provider(monkeypatch, f"```json\n{reply}\n```")

    result = provider.translate(["こんにちは", "世界"], source_language="ja", target_language="en")

    assert result == ["Hello", "World"]
    payload, model = sent[0]
    assert payload["segments"] == [{"id": "0", "text": "こんにちは"}, {"id": "1", "text": "世界"}]
    assert model == OpenAITranslationProvider.DEFAULT_MODEL


def test_openai_missing_segments_and_bad_json_raise(monkeypatch):
    provider, _ = openai_provider(
        monkeypatch, json.dumps([{"id": "0", "translated": "Hello"}])
    )
    with pytest.raises(TranslationProviderError, match="missing segments"):
        provider.translate(["a", "b"], source_language=None, target_language="en")

    provider, _ = openai_provider(monkeypatch, "not json")
    with pytest.raises(TranslationProviderError, match="invalid JSON"):
        provider.translate(["a"], source_language=None, target_language="en")


def test_openai_detection(monkeypatch):
    provider, _ = openai_provider(monkeypatch, '{"language": "ja", "confidence": 0.98}')

    detection = provider.detect_language("こんにちは")

    assert detection.language == "ja"
    assert detection.confidence == pytest.approx(0.98)


def test_empty_batch_skips_the_model(monkeypatch):
    provider, sent = openai_provider(monkeypatch, "[]")

    assert provider.translate([], source_language=None, target_language="en") == []
    assert sent == []


def test_build_provider_by_name():
    settings = PageLingoConfig(TRANSLATION_PROVIDER="echo", OPENAI_API_KEY="sk-test")

    assert isinstance(build_provider(None, settings), EchoTranslationProvider)
    assert isinstance(build_provider("legacy", settings), LegacyOpenAITranslationProvider)
    assert isinstance(build_provider("OpenAI", settings), OpenAITranslationProvider)
    with pytest.raises(TranslationProviderConfigurationError):
        build_provider("smoke-signals", settings)
    with pytest.raises(TranslationProviderConfigurationError):
        build_provider("openai", PageLingoConfig())
