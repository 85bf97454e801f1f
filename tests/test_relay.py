import asyncio
import json

import httpx
import pytest

from pagelingo.errors import LanguagesUnavailable, TranslationFailed, TranslationProviderError
from pagelingo.providers import EchoTranslationProvider, TranslationProvider
from pagelingo.relay import RelayClient, TranslationRelay


class UpperProvider(TranslationProvider):
    name = "upper"

    def __init__(self, fail=False):
        self.fail = fail
        self.requests = []

    def translate(self, texts, *, source_language, target_language, model=None):
        self.requests.append((list(texts), source_language, target_language))
        if self.fail:
            raise TranslationProviderError("quota exceeded")
        return [f"{target_language}:{text.upper()}" for text in texts]


def test_relay_preserves_order_and_passes_blank_entries_through():
    provider = UpperProvider()
    relay = TranslationRelay(provider)

    result = asyncio.run(relay.translate_batch(["a", "", "  ", "b"], "en", "ja"))

    assert result == ["en:A", "", "  ", "en:B"]
    assert provider.requests == [(["a", "b"], "ja", "en")]


def test_relay_short_circuits_whitespace_only_batches():
    provider = UpperProvider()
    relay = TranslationRelay(provider)

    result = asyncio.run(relay.translate_batch([" ", "\n", ""], "en"))

    assert result == ["", "", ""]
    assert provider.requests == []


@pytest.mark.parametrize(
    "texts, target",
    [
        ([], "en"),
        (["a"], ""),
        (["a"], "xx"),
        (["a", 3], "en"),
    ],
)
def test_relay_rejects_invalid_requests(texts, target):
    relay = TranslationRelay(UpperProvider())

    with pytest.raises(TranslationFailed):
        asyncio.run(relay.translate_batch(texts, target))


def test_provider_errors_become_translation_failed():
    relay = TranslationRelay(UpperProvider(fail=True))

    with pytest.raises(TranslationFailed, match="quota exceeded"):
        asyncio.run(relay.translate_batch(["a"], "en"))


def test_relay_lists_supported_languages_and_detects():
    relay = TranslationRelay(EchoTranslationProvider())

    languages = asyncio.run(relay.list_supported_languages())
    detection = asyncio.run(relay.detect_language("bonjour"))

    assert [language.code for language in languages][:3] == ["en", "ja", "ko"]
    assert len(languages) == 10
    assert detection.language == "und"
    with pytest.raises(TranslationFailed):
        asyncio.run(TranslationRelay(UpperProvider()).detect_language("hello"))


def relay_client(handler):
    transport = httpx.MockTransport(handler)
    return RelayClient("http://relay.test/api/", client=httpx.AsyncClient(transport=transport))


def test_client_speaks_the_relay_wire_format():
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, request.content))
        if request.url.path.endswith("/languages"):
            return httpx.Response(
                200,
                json={"success": True, "languages": [{"code": "en", "name": "English"}]},
            )
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={"success": True, "translations": [t.upper() for t in body["texts"]]},
        )

    async def scenario():
        async with relay_client(handler) as client:
            languages = await client.list_supported_languages()
            translations = await client.translate_batch(["a", "b"], "en", "ja")
        return languages, translations

    languages, translations = asyncio.run(scenario())

    assert [language.code for language in languages] == ["en"]
    assert translations == ["A", "B"]
    assert seen[0][:2] == ("GET", "/api/translate/languages")
    assert seen[1][:2] == ("POST", "/api/translate/text")
    assert json.loads(seen[1][2]) == {
        "texts": ["a", "b"],
        "targetLanguage": "en",
        "sourceLanguage": "ja",
    }


def test_client_maps_relay_failures():
    def handler(request):
        if request.url.path.endswith("/languages"):
            return httpx.Response(503, text="unavailable")
        return httpx.Response(
            500,
            json={"success": False, "error": "Translation failed", "message": "try later"},
        )

    async def scenario():
        client = relay_client(handler)
        with pytest.raises(LanguagesUnavailable):
            await client.list_supported_languages()
        with pytest.raises(TranslationFailed, match="try later"):
            await client.translate_batch(["a"], "en")

    asyncio.run(scenario())


def test_client_rejects_misaligned_translations_and_network_errors():
    def short_handler(request):
        return httpx.Response(200, json={"success": True, "translations": ["only one"]})

    def broken_handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        with pytest.raises(TranslationFailed):
            await relay_client(short_handler).translate_batch(["a", "b"], "en")
        with pytest.raises(TranslationFailed):
            await relay_client(broken_handler).translate_batch(["a"], "en")
        with pytest.raises(LanguagesUnavailable):
            await relay_client(broken_handler).list_supported_languages()

    asyncio.run(scenario())
