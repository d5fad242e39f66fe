"""
DOM - Document Object Model for streamrender

An arena of Nodes keyed by id. Nodes never hold references to other Node
objects: a node knows its parent by id and its children as an ordered list
of ids, and every lookup goes through the store.

Key invariants:
- A node's parent_id is ROOT or a live node id.
- A node is listed in its parent's children iff its parent_id names that parent.
- Ids are unique among live nodes; reusing one retires the old subtree first.
- The tree is acyclic.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from .config import Config, get_config
from .errors import InstructionError, NodeNotFoundError
from .validation import ROOT, IdGenerator, is_root_reference, normalize_label

logger = logging.getLogger(__name__)

# Keys lifted out of attribute maps instead of being stored as attributes
TEXT_KEY = "textContent"
_DROPPED_KEYS = ("children",)


@dataclass
class Node:
    """A node in the document tree."""
    id: str
    label: str
    parent_id: str = ROOT
    attributes: dict[str, Any] = field(default_factory=dict)
    text: str = ""
    children: list[str] = field(default_factory=list)

    @property
    def is_top_level(self) -> bool:
        return self.parent_id == ROOT


class NodeStore:
    """
    Authoritative tree state for one rendering session.

    All operations are synchronous. Lookups of ids that must exist raise
    NodeNotFoundError; everything else degrades to a safe default.
    """

    def __init__(self, config: Config | None = None):
        cfg = config or get_config()
        self.default_label = cfg.store.default_label
        self._ids = IdGenerator(cfg.store.id_prefix)
        self._nodes: dict[str, Node] = {}
        self._roots: list[str] = []

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def require(self, node_id: str) -> Node:
        """Get a live node or raise NodeNotFoundError."""
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    @property
    def roots(self) -> list[str]:
        """Top-level node ids in insertion order."""
        return list(self._roots)

    def children_of(self, parent_id: str) -> list[str]:
        """Child ids of a node, or the top-level ids for ROOT."""
        if parent_id == ROOT:
            return list(self._roots)
        return list(self.require(parent_id).children)

    def ancestors(self, node_id: str) -> Iterator[str]:
        """Yield parent ids from the immediate parent up to (excluding) ROOT."""
        current = self.require(node_id).parent_id
        while current != ROOT:
            yield current
            current = self._nodes[current].parent_id

    def depth_first(self, start: str = ROOT) -> Iterator[Node]:
        """Traverse depth-first in document order, yielding parents before children."""
        stack = list(reversed(self.children_of(start)))
        while stack:
            node = self._nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def create_node(
        self,
        parent_id: str | None,
        label: str,
        attributes: Mapping[str, Any] | None = None,
    ) -> str:
        """
        Create a node and append it under its parent. Returns the node id.

        An explicit attributes["id"] that is already live retires the old
        node (and its subtree) before the new one is installed. Unknown or
        missing parents fall back to ROOT.
        """
        attrs = dict(attributes or {})
        requested_id = attrs.pop("id", None)
        text = attrs.pop(TEXT_KEY, None)
        for key in _DROPPED_KEYS:
            attrs.pop(key, None)

        if requested_id is not None and str(requested_id).strip() and str(requested_id) != ROOT:
            node_id = str(requested_id)
            if node_id in self._nodes:
                logger.debug("Id %r reused, retiring previous node", node_id)
                self.remove_node(node_id)
        else:
            node_id = self._ids.next_id(self._nodes)

        # Resolved after any retirement: the old subtree may have held the parent
        parent = self._resolve_parent(parent_id)
        node = Node(
            id=node_id,
            label=normalize_label(label, self.default_label),
            parent_id=parent,
            attributes=attrs,
            text="" if text is None else str(text),
        )
        self._nodes[node_id] = node
        self._sibling_list(parent).append(node_id)
        return node_id

    def update_node(self, node_id: str, attributes: Mapping[str, Any]) -> str:
        """
        Shallow-merge attributes into a node. Returns the node's final id.

        A different attributes["id"] renames the node in place.
        """
        node = self.require(node_id)
        attrs = dict(attributes)
        new_id = attrs.pop("id", None)
        text = attrs.pop(TEXT_KEY, None)
        for key in _DROPPED_KEYS:
            attrs.pop(key, None)

        if new_id is not None and str(new_id).strip() and str(new_id) != node_id:
            self._rename(node, str(new_id))

        node.attributes.update(attrs)
        if text is not None:
            self.set_text(node.id, text)
        return node.id

    def set_text(self, node_id: str, text: Any) -> str:
        """Replace a node's text; element children are removed."""
        node = self.require(node_id)
        for child_id in list(node.children):
            self.remove_node(child_id)
        node.text = "" if text is None else str(text)
        return node_id

    def append_text(self, node_id: str, text: Any) -> str:
        """Append to a node's text, leaving children alone."""
        node = self.require(node_id)
        node.text += "" if text is None else str(text)
        return node_id

    def remove_node(self, node_id: str) -> None:
        """Remove a node and its subtree, children first. Absent ids are a no-op."""
        node = self._nodes.get(node_id)
        if node is None:
            return

        # Reversed pre-order visits every child before its parent
        subtree = []
        stack = [node_id]
        while stack:
            current = stack.pop()
            subtree.append(current)
            stack.extend(self._nodes[current].children)

        siblings = self._sibling_list(node.parent_id)
        if node_id in siblings:
            siblings.remove(node_id)
        for current in reversed(subtree):
            self._nodes.pop(current).children.clear()

    def clear(self) -> None:
        """Remove every node."""
        self._nodes.clear()
        self._roots.clear()

    def inspect(self) -> dict[str, dict[str, Any]]:
        """Read-only snapshot: id -> {label, parentId, children}."""
        return {
            node_id: {
                "label": node.label,
                "parentId": node.parent_id,
                "children": list(node.children),
            }
            for node_id, node in self._nodes.items()
        }

    def _resolve_parent(self, parent_id: Any) -> str:
        if is_root_reference(parent_id):
            return ROOT
        parent_id = str(parent_id)
        if parent_id not in self._nodes:
            logger.warning('Parent "%s" not found, using root instead', parent_id)
            return ROOT
        return parent_id

    def _sibling_list(self, parent_id: str) -> list[str]:
        if parent_id == ROOT:
            return self._roots
        return self._nodes[parent_id].children

    def _rename(self, node: Node, new_id: str) -> None:
        old_id = node.id
        if new_id == ROOT:
            raise InstructionError(f'Cannot rename "{old_id}" to the reserved id "{ROOT}"')
        if new_id in self._nodes:
            if new_id in set(self.ancestors(old_id)):
                raise InstructionError(
                    f'Cannot rename "{old_id}" to "{new_id}": id belongs to an ancestor'
                )
            logger.debug("Rename of %r onto live id %r retires the occupant", old_id, new_id)
            self.remove_node(new_id)

        siblings = self._sibling_list(node.parent_id)
        siblings[siblings.index(old_id)] = new_id
        for child_id in node.children:
            self._nodes[child_id].parent_id = new_id

        del self._nodes[old_id]
        node.id = new_id
        self._nodes[new_id] = node
