"""Collects the translatable text nodes of a page."""

from __future__ import annotations

from typing import FrozenSet, Iterable, List, Optional, Tuple

from bs4.element import PageElement

from .document import PageDocument, TextNode

EXCLUDED_TAGS: FrozenSet[str] = frozenset(
    {"script", "style", "code", "pre", "textarea", "input"}
)
WIDGET_CONTAINER_ID = "widget-translate-container"
WIDGET_MARKER_ATTRIBUTE = "data-pagelingo-widget"


class TextExtractor:
    """Walks a :class:`PageDocument` and yields visible text in document order.

    A text node is skipped when it sits below one of the excluded tags, inside
    a translation widget (any element carrying the widget marker attribute or
    one of ``excluded_ids``), or when it only contains whitespace.
    """

    def __init__(
        self,
        document: PageDocument,
        *,
        extra_excluded_tags: Iterable[str] = (),
        excluded_ids: Iterable[str] = (WIDGET_CONTAINER_ID,),
    ) -> None:
        self.document = document
        self.excluded_tags = EXCLUDED_TAGS | {tag.lower() for tag in extra_excluded_tags}
        self.excluded_ids = frozenset(excluded_ids)

    def extract_translatable_nodes(self, root: Optional[PageElement] = None) -> List[TextNode]:
        nodes: List[TextNode] = []
        start = root if root is not None else self.document.body
        stack: List[Tuple[PageElement, bool]] = [(start, self._is_excluded_element(start))]
        while stack:
            node, excluded = stack.pop()
            if self.document.is_text(node):
                if excluded or not str(node).strip():
                    continue
                nodes.append(self.document.text_node(node, len(nodes)))  # type: ignore[arg-type]
                continue
            if not self.document.is_element(node):
                continue
            children = self.document.children(node)
            for child in reversed(children):
                child_excluded = excluded or (
                    self.document.is_element(child) and self._is_excluded_element(child)
                )
                stack.append((child, child_excluded))
        return nodes

    def is_excluded(self, node: PageElement) -> bool:
        """Return True when ``node`` or any ancestor is excluded from extraction."""

        current: Optional[PageElement] = node
        while current is not None:
            if self.document.is_element(current) and self._is_excluded_element(current):
                return True
            current = current.parent
        return False

    def _is_excluded_element(self, element: PageElement) -> bool:
        if not self.document.is_element(element):
            return False
        if self.document.tag_name(element) in self.excluded_tags:
            return True
        if element.get("id") in self.excluded_ids:  # type: ignore[union-attr]
            return True
        return element.has_attr(WIDGET_MARKER_ATTRIBUTE)  # type: ignore[union-attr]
