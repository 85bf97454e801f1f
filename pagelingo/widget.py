"""The language selector injected into the host page."""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Optional, Sequence

from bs4 import Tag
from bs4.element import PageElement

from .document import PageDocument
from .extractor import WIDGET_CONTAINER_ID, WIDGET_MARKER_ATTRIBUTE
from .structures import Language


@dataclass(frozen=True)
class WidgetLabels:
    """User-visible strings of the widget."""

    button: str = "翻訳"
    button_loading: str = "翻訳中..."
    header: str = "言語を選択"
    loading: str = "読み込み中..."
    languages_error: str = "言語の読み込みに失敗しました"
    retry: str = "再試行"
    translation_error: str = "翻訳に失敗しました。しばらく待ってから再試行してください。"


class TranslationWidget:
    """Builds and updates the widget markup inside a :class:`PageDocument`."""

    def __init__(
        self,
        document: PageDocument,
        *,
        widget_id: str,
        container_id: str = WIDGET_CONTAINER_ID,
        labels: WidgetLabels | None = None,
    ) -> None:
        self.document = document
        self.widget_id = widget_id
        self.container_id = container_id
        self.labels = labels or WidgetLabels()
        self.container: Optional[Tag] = None
        self.dropdown_open = False
        self.retry_available = False

    @property
    def injected(self) -> bool:
        return self.container is not None

    def inject(self) -> Tag:
        if self.container is not None:
            return self.container
        labels = self.labels
        markup = (
            f'<div id="{html.escape(self.container_id)}" '
            f'{WIDGET_MARKER_ATTRIBUTE}="{html.escape(self.widget_id)}">'
            '<div class="widget-translate-selector">'
            f'<button id="{self._id("btn")}" class="translate-btn">'
            '<span class="translate-icon">🌐</span>'
            f'<span class="translate-text">{html.escape(labels.button)}</span>'
            "</button>"
            f'<div id="{self._id("dropdown")}" class="translate-dropdown">'
            f'<div class="dropdown-header">{html.escape(labels.header)}</div>'
            f'<div class="language-list" id="{self._id("language-list")}">'
            f'<div class="loading">{html.escape(labels.loading)}</div>'
            "</div></div></div></div>"
        )
        added = self.document.append_html(self.document.body, markup)
        self.container = added[0]  # type: ignore[assignment]
        return self.container

    def remove(self) -> None:
        if self.container is not None:
            self.document.remove(self.container)
            self.container = None
        self.dropdown_open = False

    def contains(self, node: PageElement) -> bool:
        if self.container is None:
            return False
        return PageDocument.is_within(node, self.container)

    # --- Language list -----------------------------------------------------

    def render_languages(self, languages: Sequence[Language], active: str) -> None:
        list_container = self._find("language-list")
        if list_container is None:
            return
        items = "".join(
            f'<div class="language-item{" active" if language.code == active else ""}" '
            f'data-code="{html.escape(language.code)}">{html.escape(language.name)}</div>'
            for language in languages
        )
        self.document.replace_children(list_container, items)
        self.retry_available = False

    def render_languages_error(self) -> None:
        list_container = self._find("language-list")
        if list_container is None:
            return
        labels = self.labels
        self.document.replace_children(
            list_container,
            '<div class="error-message">'
            f"{html.escape(labels.languages_error)}"
            f'<button class="retry-btn">{html.escape(labels.retry)}</button>'
            "</div>",
        )
        self.retry_available = True

    def language_codes(self) -> list[str]:
        list_container = self._find("language-list")
        if list_container is None:
            return []
        return [item["data-code"] for item in list_container.select(".language-item")]

    def set_active(self, code: str) -> None:
        list_container = self._find("language-list")
        if list_container is None:
            return
        for item in list_container.select(".language-item"):
            classes = [name for name in item.get("class", []) if name != "active"]
            if item.get("data-code") == code:
                classes.append("active")
            item["class"] = classes

    def active_language(self) -> Optional[str]:
        list_container = self._find("language-list")
        if list_container is None:
            return None
        item = list_container.select_one(".language-item.active")
        return item.get("data-code") if item is not None else None

    # --- Dropdown and loading state -----------------------------------------

    def toggle_dropdown(self) -> bool:
        self._set_dropdown(not self.dropdown_open)
        return self.dropdown_open

    def close_dropdown(self) -> None:
        self._set_dropdown(False)

    def show_loading(self) -> None:
        self._set_loading(True, self.labels.button_loading)

    def hide_loading(self) -> None:
        self._set_loading(False, self.labels.button)

    def button_text(self) -> Optional[str]:
        button = self._find("btn")
        if button is None:
            return None
        label = button.select_one(".translate-text")
        return label.get_text() if label is not None else None

    # --- Internal helpers -------------------------------------------------

    def _id(self, suffix: str) -> str:
        return html.escape(f"{self.container_id}-{suffix}")

    def _find(self, suffix: str) -> Optional[Tag]:
        if self.container is None:
            return None
        return self.container.find(id=f"{self.container_id}-{suffix}")

    def _set_dropdown(self, open_: bool) -> None:
        self.dropdown_open = open_
        dropdown = self._find("dropdown")
        if dropdown is None:
            return
        classes = [name for name in dropdown.get("class", []) if name != "show"]
        if open_:
            classes.append("show")
        dropdown["class"] = classes

    def _set_loading(self, loading: bool, label_text: str) -> None:
        button = self._find("btn")
        if button is None:
            return
        classes = [name for name in button.get("class", []) if name != "loading"]
        if loading:
            classes.append("loading")
        button["class"] = classes
        label = button.select_one(".translate-text")
        if label is not None:
            self.document.replace_children(label, html.escape(label_text))
