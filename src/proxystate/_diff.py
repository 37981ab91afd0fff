"""Change diffing, ancestor propagation and resubscription.

Called by the write path in proxy.py. mark_changes() compares the value
about to be replaced with its replacement, recursing through wrapped
children, and marks every handler whose view of the graph changes.
mark_ancestors() then bubbles the change to every owner up to the root.

The caches make both walks safe on cyclic graphs. They only hold ids and
are cleared by the write path once a write finishes marking.
"""

from __future__ import annotations

from proxystate import _anchor, _tracking
from proxystate._node import Node

_SCALARS = (str, int, float, complex, bool, bytes, type(None))

# (old node id, new value id) -> diff result; False while in progress.
_changes: dict[tuple[int, int], bool] = {}

# Old nodes already diffed or swept during this write.
_visited: set[int] = set()

# Nodes whose owners were already marked during this write.
_ancestors: set[int] = set()


def clear_caches() -> None:
    _changes.clear()
    _visited.clear()
    _ancestors.clear()


def _same(old, new) -> bool:
    if old is new:
        return True
    if type(old) is type(new) and type(old) in _SCALARS:
        return old == new
    return False


def _sweep(node: Node) -> None:
    """Mark every handler in node's descendant closure, node included."""
    _tracking.mark_all(node)
    for key in node._keys():
        child = node._peek(key)
        if isinstance(child, Node) and child._node_id not in _visited:
            _visited.add(child._node_id)
            _sweep(child)


def mark_changes(node: Node, key, new_value) -> bool:
    """Mark handlers affected by replacing node[key] with new_value.

    new_value must already be wrapped if it is proxifiable. Returns True if
    anything observable under (node, key) changes.
    """
    old_value = node._peek(key)

    if not isinstance(old_value, Node):
        if _same(old_value, new_value):
            return False
        _tracking.mark(node, key)
        return True

    if old_value is new_value:
        return False

    pair = (old_value._node_id, id(new_value))
    if pair in _changes:
        return _changes[pair]

    if not isinstance(new_value, Node) or old_value._is_array != new_value._is_array:
        # Replaced by something of another shape: the whole subtree is gone.
        _changes[pair] = True
        if old_value._node_id not in _visited:
            _visited.add(old_value._node_id)
            _sweep(old_value)
        _tracking.mark(node, key)
        return True

    _changes[pair] = False
    _visited.add(old_value._node_id)
    changed = False

    if old_value._is_array:
        old_len = len(old_value._node_target)
        new_len = len(new_value._node_target)
        for index in range(old_len):
            changed = mark_changes(old_value, index, new_value._peek(index)) or changed
        for index in range(old_len, new_len):
            _tracking.mark(old_value, index)
            changed = True
        if old_len != new_len:
            _tracking.mark(old_value, "length")
    else:
        old_keys = old_value._keys()
        for child_key in old_keys:
            changed = mark_changes(old_value, child_key, new_value._peek(child_key)) or changed
        seen = set(old_keys)
        for child_key in new_value._keys():
            if child_key not in seen and new_value._peek(child_key) is not None:
                _tracking.mark(old_value, child_key)
                changed = True

    _changes[pair] = changed
    if changed:
        _tracking.mark(node, key)
    return changed


def mark_ancestors(node: Node) -> None:
    """Mark, in every owner of node, the keys under which node is held."""
    if node._node_id in _ancestors:
        return
    _ancestors.add(node._node_id)

    for parent in _anchor.parents_of(node):
        for key in parent._keys():
            if parent._peek(key) is node:
                _tracking.mark(parent, key)
        mark_ancestors(parent)


def resubscribe(node: Node, seen: set[int] | None = None) -> None:
    """Reattach every handler left on a replaced subtree, deepest first."""
    if seen is None:
        seen = set()
    seen.add(node._node_id)

    for key in node._keys():
        child = node._peek(key)
        if isinstance(child, Node) and child._node_id not in seen:
            resubscribe(child, seen)

    handlers = _anchor.lookup(node._node_id).handlers
    for key in list(handlers):
        for handler in list(handlers.get(key, ())):
            handler.update()
