"""Original text snapshot used to restore the source language."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from .document import PageDocument, TextNode

logger = logging.getLogger(__name__)


class OriginalStateStore:
    """Keeps the source text of every node seen at snapshot time.

    Entries are keyed by the node identity token, so inserting or removing
    content before a node does not make it pick up another node's text.
    """

    def __init__(self, document: PageDocument) -> None:
        self.document = document
        self._originals: Dict[int, str] = {}
        self._positions: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._originals)

    def __contains__(self, node: object) -> bool:
        return isinstance(node, TextNode) and node.token in self._originals

    def snapshot(self, nodes: Sequence[TextNode]) -> int:
        """Capture the current text of ``nodes``; the first capture wins."""

        captured = 0
        for node in nodes:
            if node.token in self._originals:
                continue
            self._originals[node.token] = node.text
            self._positions[node.token] = node.position
            captured += 1
        logger.debug("Captured original text for %d nodes.", captured)
        return captured

    def original_text(self, node: TextNode) -> Optional[str]:
        return self._originals.get(node.token)

    def snapshot_positions(self) -> Dict[int, str]:
        """Original texts keyed by their traversal index at capture time."""

        return {
            self._positions[token]: text for token, text in self._originals.items()
        }

    def tokens(self) -> List[int]:
        return list(self._originals)

    def restore(self, nodes: Optional[Sequence[TextNode]] = None) -> int:
        """Write original text back into the known nodes.

        Without ``nodes`` every captured position still in the document is
        restored, including positions whose current text is blank. Nodes
        inserted after the snapshot have no recorded original and are left
        as they are.
        """

        if nodes is None:
            nodes = self._captured_nodes()
        restored = 0
        for node in nodes:
            original = self._originals.get(node.token)
            if original is None:
                continue
            if self.document.replace_text(node, original):
                restored += 1
        logger.debug("Restored original text for %d of %d nodes.", restored, len(nodes))
        return restored

    def reset(self) -> None:
        self._originals.clear()
        self._positions.clear()

    def _captured_nodes(self) -> List[TextNode]:
        nodes = []
        for token in self._originals:
            node = self.document.node_for_token(token, self._positions[token])
            if node is not None and node.attached:
                nodes.append(node)
        return nodes
