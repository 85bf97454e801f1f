import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from pagelingo.document import PageDocument
from pagelingo.errors import LanguagesUnavailable, TranslationFailed
from pagelingo.relay import TranslationCollaborator
from pagelingo.structures import Language

SAMPLE_PAGE = (
    "<html><head><title>Demo</title><style>p { color: red; }</style></head>"
    "<body><p>こんにちは</p><p>世界</p><div id=\"feed\"></div>"
    "<script>var x = 1;</script></body></html>"
)

KNOWN_TRANSLATIONS: Dict[Tuple[str, str], str] = {
    ("こんにちは", "en"): "Hello",
    ("世界", "en"): "World",
    ("こんにちは", "fr"): "Bonjour",
    ("世界", "fr"): "Monde",
}


class FakeCollaborator(TranslationCollaborator):
    """Records calls and translates from a fixed table."""

    def __init__(self) -> None:
        self.calls: List[Tuple[List[str], str, Optional[str]]] = []
        self.language_calls = 0
        self.fail_translation = False
        self.fail_languages = False
        self.gate: Optional[asyncio.Event] = None
        self.closed = False
        self.overrides: Dict[Tuple[str, str], str] = {}

    async def list_supported_languages(self) -> List[Language]:
        self.language_calls += 1
        if self.fail_languages:
            raise LanguagesUnavailable("relay offline")
        return [Language("ja", "日本語"), Language("en", "English"), Language("fr", "Français")]

    async def translate_batch(
        self,
        texts: Sequence[str],
        target_language: str,
        source_language: Optional[str] = None,
    ) -> List[str]:
        self.calls.append((list(texts), target_language, source_language))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_translation:
            raise TranslationFailed("service unavailable")
        table = {**KNOWN_TRANSLATIONS, **self.overrides}
        return [
            table.get((text, target_language), f"{target_language}:{text}")
            for text in texts
        ]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def collaborator() -> FakeCollaborator:
    return FakeCollaborator()


@pytest.fixture
def document() -> PageDocument:
    return PageDocument.from_html(SAMPLE_PAGE)


def visible_texts(document: PageDocument) -> List[str]:
    from pagelingo.extractor import TextExtractor

    return [node.text for node in TextExtractor(document).extract_translatable_nodes()]
