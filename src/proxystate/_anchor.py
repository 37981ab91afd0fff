"""Metadata anchor: the side table behind every wrapped node.

Wrappers carry only an id. Owners, handler lists and the raw value a node
was built from live here, keyed by that id, so nothing reactive ever shows
up when a node is iterated, serialized or copied.

Entries are released by a weakref.finalize hook once the wrapper itself is
collected.
"""

from __future__ import annotations

import itertools
import logging
import weakref

logger = logging.getLogger("proxystate.anchor")


class NodeMeta:
    __slots__ = ("parents", "handlers", "original", "proxifiable")

    def __init__(self, original: object, proxifiable: tuple[type, ...]) -> None:
        self.parents: dict[int, weakref.ref] = {}  # parent id -> ref
        self.handlers: dict[object, list] = {}  # key -> handlers, in subscribe order
        self.original = original
        self.proxifiable = proxifiable


meta: dict[int, NodeMeta] = {}

_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)


def register(node, original: object, proxifiable: tuple[type, ...]) -> NodeMeta:
    """Create the side-table entry for a freshly built wrapper."""
    node_id = node._node_id
    entry = NodeMeta(original, proxifiable)
    meta[node_id] = entry
    weakref.finalize(node, release, node_id)
    return entry


def release(node_id: int) -> None:
    meta.pop(node_id, None)


def lookup(node_id: int) -> NodeMeta:
    entry = meta.get(node_id)
    if entry is None:
        logger.error("BUG: metadata for live node %d is missing; recreating it empty", node_id)
        entry = meta[node_id] = NodeMeta(None, ())
    return entry


def add_parent(node, parent) -> None:
    lookup(node._node_id).parents[parent._node_id] = weakref.ref(parent)


def remove_parent(node, parent) -> None:
    lookup(node._node_id).parents.pop(parent._node_id, None)


def parents_of(node) -> list:
    """Live owners of node. Dead references are dropped on the way."""
    parents = lookup(node._node_id).parents
    alive = []
    for parent_id, ref in list(parents.items()):
        parent = ref()
        if parent is None:
            del parents[parent_id]
        else:
            alive.append(parent)
    return alive
