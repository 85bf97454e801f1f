"""Page translation engine: extraction, caching, restoration and re-translation."""

from __future__ import annotations

import logging
import time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .cache import TranslationCache
from .document import PageDocument, TextNode
from .errors import (
    ErrorCategory,
    ErrorRecord,
    LanguagesUnavailable,
    PageLingoError,
    TranslationFailed,
)
from .extractor import WIDGET_CONTAINER_ID, TextExtractor
from .relay import DEFAULT_RELAY_TIMEOUT_SECONDS, RelayClient, TranslationCollaborator
from .snapshot import OriginalStateStore
from .structures import EnginePhase, EngineState, Language, Notifier, TranslationOutcome
from .watcher import DEFAULT_DEBOUNCE_SECONDS, MutationWatcher
from .widget import TranslationWidget, WidgetLabels

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_LANGUAGE = "ja"


def _log_alert(message: str) -> None:
    logger.warning("Alert: %s", message)


def _split_whitespace(text: str) -> Tuple[str, str, str]:
    """Return (leading whitespace, stripped text, trailing whitespace)."""

    stripped = text.strip()
    if not stripped:
        return text, "", ""
    start = text.index(stripped)
    return text[:start], stripped, text[start + len(stripped) :]


class PageTranslationEngine:
    """Translates the visible text of a :class:`PageDocument` on demand.

    Only one translation pass runs at a time; triggers that arrive while a
    pass is in flight are dropped. Failures are recorded in
    ``state.errors``, logged and reported through ``notifier`` instead of
    being raised to the host.
    """

    def __init__(
        self,
        document: PageDocument,
        client: TranslationCollaborator | None = None,
        *,
        widget_id: str,
        api_base: str | None = None,
        source_language: str = DEFAULT_SOURCE_LANGUAGE,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        cache: TranslationCache | None = None,
        notifier: Notifier | None = None,
        timeout: float = DEFAULT_RELAY_TIMEOUT_SECONDS,
        extra_excluded_tags: Iterable[str] = (),
        container_id: str = WIDGET_CONTAINER_ID,
        labels: WidgetLabels | None = None,
        inject_ui: bool = True,
    ) -> None:
        if client is None and not api_base:
            raise ValueError("Either a translation client or an api_base is required.")
        self.document = document
        # A client built from api_base belongs to the engine and is closed by aclose().
        self._owns_client = client is None
        self.client: TranslationCollaborator = client or RelayClient(api_base, timeout=timeout)
        self.widget_id = widget_id
        self.api_base = api_base
        self.notifier = notifier or _log_alert
        self.inject_ui = inject_ui

        self.state = EngineState.initial(source_language)
        self.cache = cache if cache is not None else TranslationCache()
        self.extractor = TextExtractor(
            document,
            extra_excluded_tags=extra_excluded_tags,
            excluded_ids=(container_id,),
        )
        self.store = OriginalStateStore(document)
        self.widget = TranslationWidget(
            document,
            widget_id=widget_id,
            container_id=container_id,
            labels=labels,
        )
        self.watcher = MutationWatcher(
            document,
            self._retranslate,
            is_active=self._watch_active,
            ignore=self.widget.contains,
            debounce_seconds=debounce_seconds,
        )
        self.languages: List[Language] = []

        # token -> (source text, text written by the last translation pass)
        self._applied: Dict[int, Tuple[str, str]] = {}
        self._started = False
        self._destroyed = False

    # --- Lifecycle ---------------------------------------------------------

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def errors(self) -> List[ErrorRecord]:
        return self.state.errors

    async def start(self) -> None:
        """Inject the UI, capture the original text, load languages and arm the watcher."""

        if self._started or self._destroyed:
            return
        self._started = True
        if self.inject_ui:
            self.widget.inject()
        self.store.snapshot(self.extractor.extract_translatable_nodes())
        await self.reload_languages()
        if self._destroyed:
            return
        self.state.observer = self.watcher.arm()
        logger.info(
            "Page translation widget %s initialised (%d text nodes).",
            self.widget_id,
            len(self.store),
        )

    def destroy(self) -> None:
        """Detach the watcher and remove the injected UI; safe to call twice."""

        if self._destroyed:
            return
        self._destroyed = True
        self.watcher.disconnect()
        self.state.observer = None
        self.widget.remove()
        logger.info("Page translation widget %s destroyed.", self.widget_id)

    async def aclose(self) -> None:
        """Destroy the engine and close the relay client it created."""

        self.destroy()
        if self._owns_client:
            self._owns_client = False
            await self.client.aclose()

    def toggle_menu(self) -> bool:
        """Open or close the language dropdown; returns the new open state."""

        if self._destroyed:
            return False
        return self.widget.toggle_dropdown()

    async def reload_languages(self) -> List[Language]:
        """Fetch the language list; on failure show the inline retry affordance."""

        try:
            languages = await self.client.list_supported_languages()
        except LanguagesUnavailable as exc:
            self._record(ErrorCategory.LANGUAGES, "Failed to load supported languages.", exc)
            if not self._destroyed:
                self.widget.render_languages_error()
            return []
        if self._destroyed:
            return languages
        self.languages = languages
        self.widget.render_languages(languages, self.state.current_language)
        return languages

    # --- Language selection -------------------------------------------------

    async def select_language(self, code: str) -> Optional[TranslationOutcome]:
        """Switch the page to ``code``; the source language restores the original text."""

        if self._destroyed:
            return None
        if self.state.is_translating:
            logger.info("Translation in progress; ignoring selection of '%s'.", code)
            return None
        if code == self.state.displayed_language:
            # Also cancels a pending retry of a failed selection.
            self.state.current_language = code
            return None

        self.widget.set_active(code)
        self.widget.close_dropdown()

        outcome: Optional[TranslationOutcome] = None
        if code == self.state.source_language:
            self.restore_original()
        else:
            outcome = await self.translate_page(code)
        self.state.current_language = code
        return outcome

    def restore_original(self) -> int:
        """Put back the snapshot text; no collaborator call is made."""

        if self.state.is_translating:
            logger.info("Translation in progress; restore skipped.")
            return 0
        restored = self.store.restore()
        for token in self.store.tokens():
            self._applied.pop(token, None)
        source = self.state.source_language
        self.state.phase = EnginePhase.SOURCE
        self.state.displayed_language = source
        self.state.current_language = source
        if not self._destroyed:
            self.widget.set_active(source)
        return restored

    async def translate_page(self, target_language: str) -> Optional[TranslationOutcome]:
        """Translate every translatable node into ``target_language``.

        Returns ``None`` when the pass was dropped or failed.
        """

        if self._destroyed:
            return None
        if self.state.is_translating:
            logger.info("Translation already in flight; dropping request for '%s'.", target_language)
            return None

        self.state.is_translating = True
        previous_phase = self.state.phase
        self.state.phase = EnginePhase.TRANSLATING
        self.widget.show_loading()
        started = time.monotonic()
        succeeded = False
        try:
            nodes = self.extractor.extract_translatable_nodes()
            sources = [self._source_text(node) for node in nodes]
            texts = [_split_whitespace(source)[1] for source in sources]

            from_cache = False
            if texts:
                translations = self.cache.get(target_language, texts)
                from_cache = translations is not None
                if translations is None:
                    received = await self.client.translate_batch(
                        texts, target_language, self.state.source_language
                    )
                    if len(received) != len(texts):
                        raise TranslationFailed(
                            f"Expected {len(texts)} translations, received {len(received)}."
                        )
                    translations = self.cache.put(target_language, texts, received)
                if self._destroyed:
                    return None
                self._apply(nodes, sources, translations)

            succeeded = True
            self.state.phase = EnginePhase.TRANSLATED
            self.state.displayed_language = target_language
            outcome = TranslationOutcome(
                target_language=target_language,
                source_language=self.state.source_language,
                total_nodes=len(nodes),
                from_cache=from_cache,
                elapsed_seconds=time.monotonic() - started,
            )
            logger.info(
                "Translated %d nodes into '%s'%s.",
                outcome.total_nodes,
                target_language,
                " from cache" if from_cache else "",
            )
            return outcome
        except TranslationFailed as exc:
            self._fail(ErrorCategory.TRANSLATION, exc)
            return None
        except PageLingoError as exc:
            self._fail(ErrorCategory.OTHER, exc)
            return None
        except Exception as exc:  # pragma: no cover - keep host page alive
            logger.exception("Unexpected error during page translation.")
            self._fail(ErrorCategory.OTHER, exc)
            return None
        finally:
            self.state.is_translating = False
            if not succeeded and self.state.phase is EnginePhase.TRANSLATING:
                self.state.phase = previous_phase
            if not self._destroyed:
                self.widget.hide_loading()

    # --- Internal helpers -------------------------------------------------

    def _watch_active(self) -> bool:
        return not self._destroyed and self.state.current_language != self.state.source_language

    async def _retranslate(self) -> Optional[TranslationOutcome]:
        if not self._watch_active():
            return None
        return await self.translate_page(self.state.current_language)

    def _source_text(self, node: TextNode) -> str:
        """Text to send for ``node``: its source text, not a previous translation."""

        applied = self._applied.get(node.token)
        if applied is not None and node.text == applied[1]:
            return applied[0]
        return node.text

    def _apply(
        self,
        nodes: Sequence[TextNode],
        sources: Sequence[str],
        translations: Sequence[str],
    ) -> None:
        for node, source, translated in zip(nodes, sources, translations):
            leading, _, trailing = _split_whitespace(source)
            written = f"{leading}{translated}{trailing}"
            if self.document.replace_text(node, written):
                self._applied[node.token] = (source, written)

    def _fail(self, category: ErrorCategory, exc: Exception) -> None:
        self._record(category, "Translation failed.", exc)
        if not self._destroyed:
            self.notifier(self.widget.labels.translation_error)

    def _record(self, category: ErrorCategory, message: str, exc: Exception) -> None:
        logger.error("%s %s", message, exc)
        self.state.errors.append(ErrorRecord(category=category, message=message, details=str(exc)))


def create_engine(
    document: PageDocument,
    client: TranslationCollaborator | None = None,
    *,
    widget_id: str,
    api_base: str | None = None,
    source_language: str = DEFAULT_SOURCE_LANGUAGE,
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    cache: TranslationCache | None = None,
    notifier: Notifier | None = None,
    **options,
) -> PageTranslationEngine:
    """Create an independent engine owned by the caller."""

    return PageTranslationEngine(
        document,
        client,
        widget_id=widget_id,
        api_base=api_base,
        source_language=source_language,
        debounce_seconds=debounce_seconds,
        cache=cache,
        notifier=notifier,
        **options,
    )
