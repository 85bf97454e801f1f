"""Document model used by the engine in place of a browser DOM.

The page is held as a BeautifulSoup tree. Host code changes the tree through
:class:`PageDocument`, which reports every structural change to subscribed
:class:`DocumentObserver` instances, mirroring a browser ``MutationObserver``.
"""

from __future__ import annotations

import itertools
import pathlib
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PageElement, PreformattedString

from .errors import PageLingoError

CHILD_LIST = "childList"
CHARACTER_DATA = "characterData"


@dataclass
class MutationRecord:
    """Describes one change applied to the document tree."""

    type: str
    target: PageElement
    added_nodes: Tuple[PageElement, ...] = field(default_factory=tuple)
    removed_nodes: Tuple[PageElement, ...] = field(default_factory=tuple)


MutationCallback = Callable[[Sequence[MutationRecord]], None]


class TextNode:
    """Handle to a visible text position inside a :class:`PageDocument`.

    ``token`` identifies the text position for the lifetime of the document,
    even after its content has been replaced. ``position`` is the traversal
    index assigned by the extraction that produced the handle.
    """

    __slots__ = ("token", "position", "_string")

    def __init__(self, token: int, position: int, string: NavigableString) -> None:
        self.token = token
        self.position = position
        self._string = string

    @property
    def text(self) -> str:
        return str(self._string)

    @property
    def parent_tag(self) -> Optional[str]:
        parent = self._string.parent
        return parent.name if parent is not None else None

    @property
    def attached(self) -> bool:
        """True while the text is still connected to its document tree."""

        root: Optional[PageElement] = self._string
        while root is not None and root.parent is not None:
            root = root.parent
        return isinstance(root, BeautifulSoup)

    def __repr__(self) -> str:
        return f"TextNode(token={self.token}, position={self.position}, text={self.text!r})"


class PageDocument:
    """A mutable HTML document with mutation notifications."""

    def __init__(self, soup: BeautifulSoup) -> None:
        self.soup = soup
        self._observers: List["DocumentObserver"] = []
        # id(string) -> (string, token); the string is kept to guard against id reuse.
        self._tokens: Dict[int, Tuple[NavigableString, int]] = {}
        # token -> string currently holding that text position
        self._strings: Dict[int, NavigableString] = {}
        self._token_counter = itertools.count(1)

    @classmethod
    def from_html(cls, markup: str, parser: str = "html.parser") -> "PageDocument":
        return cls(BeautifulSoup(markup, parser))

    @classmethod
    def from_path(cls, path: pathlib.Path) -> "PageDocument":
        try:
            markup = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PageLingoError(f"Could not read HTML document {path}: {exc}") from exc
        return cls.from_html(markup)

    # --- Tree access -----------------------------------------------------

    @property
    def body(self) -> Tag:
        """Return the ``<body>`` element, or the whole tree for fragments."""

        return self.soup.body or self.soup

    def get_element_by_id(self, element_id: str) -> Optional[Tag]:
        return self.soup.find(id=element_id)

    def serialize(self) -> str:
        return str(self.soup)

    def save(self, destination: pathlib.Path) -> None:
        destination.write_text(self.serialize(), encoding="utf-8")

    # --- Traversal primitives ---------------------------------------------

    @staticmethod
    def is_element(node: PageElement) -> bool:
        return isinstance(node, Tag)

    @staticmethod
    def is_text(node: PageElement) -> bool:
        """True for character data; comments, doctypes and CDATA excluded."""

        return isinstance(node, NavigableString) and not isinstance(
            node, PreformattedString
        )

    @staticmethod
    def children(node: PageElement) -> List[PageElement]:
        if isinstance(node, Tag):
            return list(node.contents)
        return []

    @staticmethod
    def tag_name(node: PageElement) -> str:
        return (getattr(node, "name", None) or "").lower()

    @staticmethod
    def is_within(node: PageElement, ancestor: PageElement) -> bool:
        """Identity-based containment check (``Tag`` equality is structural)."""

        if node is ancestor:
            return True
        return any(parent is ancestor for parent in node.parents)

    def text_node(self, string: NavigableString, position: int) -> TextNode:
        return TextNode(self._token_for(string), position, string)

    def _token_for(self, string: NavigableString) -> int:
        entry = self._tokens.get(id(string))
        if entry is not None and entry[0] is string:
            return entry[1]
        token = next(self._token_counter)
        self._tokens[id(string)] = (string, token)
        self._strings[token] = string
        return token

    def node_for_token(self, token: int, position: int = -1) -> Optional[TextNode]:
        """Return a handle to the text currently held under ``token``.

        ``None`` once the text has been removed from the document.
        """

        string = self._strings.get(token)
        if string is None:
            return None
        return TextNode(token, position, string)

    def _forget(self, node: PageElement) -> None:
        """Drop token bookkeeping for ``node`` and everything below it."""

        strings = [node] if isinstance(node, NavigableString) else []
        if isinstance(node, Tag):
            strings.extend(d for d in node.descendants if isinstance(d, NavigableString))
        for string in strings:
            entry = self._tokens.get(id(string))
            if entry is None or entry[0] is not string:
                continue
            del self._tokens[id(string)]
            if self._strings.get(entry[1]) is string:
                del self._strings[entry[1]]

    # --- Mutation ----------------------------------------------------------

    def replace_text(self, node: TextNode, text: str) -> bool:
        """Replace the content of ``node`` keeping its identity token.

        Returns ``False`` when the node has been detached from the tree.
        """

        old = node._string
        parent = old.parent
        if parent is None or not node.attached:
            return False
        if str(old) == text:
            return True
        new = NavigableString(text)
        old.replace_with(new)
        self._tokens.pop(id(old), None)
        self._tokens[id(new)] = (new, node.token)
        self._strings[node.token] = new
        node._string = new
        self._notify(MutationRecord(type=CHARACTER_DATA, target=parent))
        return True

    def append_html(self, parent: Tag, markup: str) -> List[PageElement]:
        """Parse ``markup`` and append the resulting nodes to ``parent``."""

        return self.insert_html(parent, len(parent.contents), markup)

    def insert_html(self, parent: Tag, index: int, markup: str) -> List[PageElement]:
        fragment = BeautifulSoup(markup, "html.parser")
        added = [child.extract() for child in list(fragment.contents)]
        for offset, child in enumerate(added):
            parent.insert(index + offset, child)
        if added:
            self._notify(
                MutationRecord(type=CHILD_LIST, target=parent, added_nodes=tuple(added))
            )
        return added

    def append_text(self, parent: Tag, text: str) -> NavigableString:
        string = NavigableString(text)
        parent.append(string)
        self._notify(
            MutationRecord(type=CHILD_LIST, target=parent, added_nodes=(string,))
        )
        return string

    def replace_children(self, parent: Tag, markup: str) -> List[PageElement]:
        """Swap the children of ``parent`` for freshly parsed ``markup``."""

        removed = tuple(child.extract() for child in list(parent.contents))
        fragment = BeautifulSoup(markup, "html.parser")
        added = [child.extract() for child in list(fragment.contents)]
        for child in added:
            parent.append(child)
        self._notify(
            MutationRecord(
                type=CHILD_LIST,
                target=parent,
                added_nodes=tuple(added),
                removed_nodes=removed,
            )
        )
        return added

    def remove(self, node: PageElement) -> None:
        parent = node.parent
        if parent is None:
            return
        node.extract()
        self._notify(MutationRecord(type=CHILD_LIST, target=parent, removed_nodes=(node,)))

    # --- Observation -------------------------------------------------------

    def _subscribe(self, observer: "DocumentObserver") -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def _unsubscribe(self, observer: "DocumentObserver") -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, record: MutationRecord) -> None:
        for removed in record.removed_nodes:
            self._forget(removed)
        for observer in list(self._observers):
            observer._deliver(record)


class DocumentObserver:
    """Receives mutation records for a subtree of a :class:`PageDocument`."""

    def __init__(self, callback: MutationCallback) -> None:
        self._callback = callback
        self._document: Optional[PageDocument] = None
        self._target: Optional[PageElement] = None
        self._subtree = True

    @property
    def connected(self) -> bool:
        return self._document is not None

    def observe(
        self,
        document: PageDocument,
        target: Optional[PageElement] = None,
        *,
        subtree: bool = True,
    ) -> None:
        if self._document is not None and self._document is not document:
            self._document._unsubscribe(self)
        self._document = document
        self._target = target if target is not None else document.body
        self._subtree = subtree
        document._subscribe(self)

    def disconnect(self) -> None:
        if self._document is not None:
            self._document._unsubscribe(self)
        self._document = None
        self._target = None

    def _deliver(self, record: MutationRecord) -> None:
        if self._target is None:
            return
        if record.target is not self._target:
            if not self._subtree or not PageDocument.is_within(record.target, self._target):
                return
        self._callback([record])
