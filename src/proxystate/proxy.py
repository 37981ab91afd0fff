"""Wrapped state: dicts, lists and objects that report reads and writes.

wrap_root() turns a plain structure into a graph of wrappers. Reading
through a wrapper reports the (node, key) pair to the capture window.
Writing goes through _write()/_splice(): the change is diffed against the
old value, the affected handlers are marked and run, and handlers left on
replaced subtrees are moved onto the new ones.

All metadata lives in _anchor; wrappers are thin handles holding an id
and the wrapped container.
"""

from __future__ import annotations

import copy
import inspect
import types
from collections.abc import Iterable, MutableMapping, MutableSequence
from typing import Any, Iterator

from proxystate import _anchor, _diff, _tracking
from proxystate._node import NODE_SLOTS, Node, is_proxifiable
from proxystate.errors import NotProxifiableError


class ProxyDict(Node, MutableMapping):
    """A wrapped dict. Keys are readable as items or as attributes.

    Attribute reads of missing keys return None; item reads raise KeyError.
    Mapping methods (keys, items, get, update, ...) shadow keys of the same
    name for attribute access; use item access for those.
    """

    __slots__ = ()

    def _keys(self) -> list:
        return list(self._node_target)

    def _peek(self, key):
        return self._node_target.get(key)

    def _put(self, key, value) -> None:
        self._node_target[key] = value

    def _drop(self, key) -> None:
        del self._node_target[key]

    def __getitem__(self, key):
        _tracking.touch(self, key)
        return self._node_target[key]

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)
        _tracking.touch(self, name)
        return self._node_target.get(name)

    def __setitem__(self, key, value) -> None:
        _write(self, key, value)

    def __setattr__(self, name: str, value) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
            return
        _write(self, name, value)

    def __delitem__(self, key) -> None:
        if key not in self._node_target:
            raise KeyError(key)
        _write(self, key, None, remove=True)

    def __delattr__(self, name: str) -> None:
        if name.startswith("_") or name not in self._node_target:
            raise AttributeError(name)
        _write(self, name, None, remove=True)

    def __iter__(self) -> Iterator:
        return iter(list(self._node_target))

    def __len__(self) -> int:
        return len(self._node_target)

    def __contains__(self, key) -> bool:
        return key in self._node_target

    def __repr__(self) -> str:
        return f"ProxyDict({self._node_target!r})"


class ProxyList(Node, MutableSequence):
    """A wrapped list with a synthetic "length" key.

    len(), iteration and the length property report "length". Structural
    changes rewrite the whole list in one write, so "length" observers hear
    about each operation once.
    """

    __slots__ = ()

    _is_array = True

    def _keys(self) -> list:
        return list(range(len(self._node_target)))

    def _peek(self, key):
        items = self._node_target
        if key == "length":
            return len(items)
        if isinstance(key, int) and 0 <= key < len(items):
            return items[key]
        return None

    def _put(self, key, value) -> None:
        self._node_target[key] = value

    def _drop(self, key) -> None:
        # Lists never remove single keys; structural changes use _splice.
        self._node_target[key] = None

    def _index(self, index: int) -> int:
        size = len(self._node_target)
        position = index + size if index < 0 else index
        if not 0 <= position < size:
            raise IndexError("list index out of range")
        return position

    # --- Read operations (track) ---

    def __getitem__(self, index):
        if isinstance(index, slice):
            _tracking.touch(self, "length")
            return self._node_target[index]
        position = index + len(self._node_target) if index < 0 else index
        if position < 0:
            _tracking.touch(self, "length")
            raise IndexError("list index out of range")
        # Out-of-range reads still listen on the index they asked for.
        _tracking.touch(self, position)
        return self._node_target[position]

    def __len__(self) -> int:
        _tracking.touch(self, "length")
        return len(self._node_target)

    def __iter__(self) -> Iterator:
        _tracking.touch(self, "length")
        return iter(list(self._node_target))

    @property
    def length(self) -> int:
        _tracking.touch(self, "length")
        return len(self._node_target)

    @length.setter
    def length(self, value: int) -> None:
        items = list(self._node_target)
        if value < len(items):
            del items[value:]
        else:
            items.extend([None] * (value - len(items)))
        _splice(self, items)

    # --- Write operations (notify) ---

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            items = list(self._node_target)
            items[index] = value
            _splice(self, items)
            return
        _write(self, self._index(index), value)

    def __delitem__(self, index) -> None:
        items = list(self._node_target)
        del items[index]
        _splice(self, items)

    def insert(self, index: int, value) -> None:
        items = list(self._node_target)
        items.insert(index, value)
        _splice(self, items)

    def append(self, value) -> None:
        _splice(self, self._node_target + [value])

    def extend(self, values: Iterable) -> None:
        _splice(self, self._node_target + list(values))

    def pop(self, index: int = -1):
        items = list(self._node_target)
        value = items.pop(index)
        _splice(self, items)
        return value

    def remove(self, value) -> None:
        items = list(self._node_target)
        items.remove(value)
        _splice(self, items)

    def clear(self) -> None:
        _splice(self, [])

    def reverse(self) -> None:
        _splice(self, self._node_target[::-1])

    def sort(self, *, key=None, reverse: bool = False) -> None:
        _splice(self, sorted(self._node_target, key=key, reverse=reverse))

    def __eq__(self, other) -> bool:
        if isinstance(other, (list, ProxyList)):
            return list(self) == list(other)
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return f"ProxyList({self._node_target!r})"


class ProxyObject(Node):
    """A wrapped instance of a registered class.

    Instance attributes are reactive keys, and so are class-level defaults
    that are not callable. Plain methods defined on the class are bound to
    the wrapper, so assignments they make to self are diffed and notified;
    zero-argument super() does not work inside them. Class attributes,
    static and class methods and data descriptors (properties) are reached
    on the wrapped instance directly: writing a property calls its setter
    without any diffing or notification, so side effects inside a custom
    setter stay invisible.
    """

    __slots__ = ()

    def _keys(self) -> list:
        return list(vars(self._node_target))

    def _peek(self, key):
        return vars(self._node_target).get(key)

    def _put(self, key, value) -> None:
        vars(self._node_target)[key] = value

    def _drop(self, key) -> None:
        del vars(self._node_target)[key]

    def _is_accessor(self, name: str) -> bool:
        attr = inspect.getattr_static(type(self._node_target), name, None)
        return hasattr(type(attr), "__set__") or hasattr(type(attr), "__delete__")

    def __getattr__(self, name: str):
        if name in NODE_SLOTS:
            raise AttributeError(name)
        target = self._node_target
        fields = vars(target)
        if name in fields:
            _tracking.touch(self, name)
            return fields[name]

        attr = inspect.getattr_static(type(target), name, None)
        if inspect.isfunction(attr):
            return types.MethodType(attr, self)

        try:
            value = getattr(target, name)
        except AttributeError:
            _tracking.touch(self, name)
            raise
        if not callable(value):
            # Class default or property value; an instance write may shadow it.
            _tracking.touch(self, name)
        return value

    def __setattr__(self, name: str, value) -> None:
        if name in NODE_SLOTS:
            object.__setattr__(self, name, value)
        elif self._is_accessor(name):
            setattr(self._node_target, name, value)
        else:
            _write(self, name, value)

    def __delattr__(self, name: str) -> None:
        if self._is_accessor(name):
            delattr(self._node_target, name)
        elif name in vars(self._node_target):
            _write(self, name, None, remove=True)
        else:
            raise AttributeError(name)

    def __repr__(self) -> str:
        return f"ProxyObject({self._node_target!r})"


# ─── Wrapping ────────────────────────────────────────────────────────────────


def wrap(value: Any, parent: Node | None = None, proxifiable: Iterable[type] = ()) -> Node:
    """Wrap value, or register a new owner if it is wrapped already.

    Plain input is copied, never mutated: wrapping the same raw dict twice
    yields two independent nodes.
    """
    return _wrap(value, parent, tuple(proxifiable), {})


def _wrap(value, parent: Node | None, classes: tuple[type, ...], memo: dict[int, Node]) -> Node:
    if isinstance(value, Node):
        if parent is not None:
            _anchor.add_parent(value, parent)
        return value

    node = memo.get(id(value))
    if node is not None:
        # Reference cycle inside the raw input.
        if parent is not None:
            _anchor.add_parent(node, parent)
        return node

    if type(value) is list:
        node = ProxyList(list(value))
    elif type(value) is dict:
        node = ProxyDict(dict(value))
    else:
        node = ProxyObject(copy.copy(value))
    _anchor.register(node, value, classes)
    memo[id(value)] = node
    if parent is not None:
        _anchor.add_parent(node, parent)

    for key in node._keys():
        child = node._peek(key)
        if is_proxifiable(child, classes):
            node._put(key, _wrap(child, node, classes, memo))
    return node


def wrap_root(raw: Any, proxifiable: Iterable[type] = ()) -> Node:
    """Entry point: wrap a top-level store object.

    proxifiable lists classes whose instances are wrapped as well, anywhere
    in the graph, now and on later writes.

    Usage:
        store = wrap_root({"selected": None, "frames": []})
        subscribe(lambda: store.frames.length, on_frames_changed)
        store.frames.append({"x": 0, "y": 0})
    """
    classes = tuple(proxifiable)
    if not is_proxifiable(raw, classes):
        raise NotProxifiableError(f"cannot wrap {type(raw).__name__!r} value")
    return _wrap(raw, None, classes, {})


# ─── Write path ──────────────────────────────────────────────────────────────


def _unlink(node: Node, value) -> None:
    """Drop node from value's owners unless node still holds value elsewhere."""
    if not isinstance(value, Node):
        return
    for key in node._keys():
        if node._peek(key) is value:
            return
    _anchor.remove_parent(value, node)


def _write(node: Node, key, value, *, remove: bool = False) -> None:
    """Assign (or remove) node[key], notify, then migrate stale handlers."""
    classes = _anchor.lookup(node._node_id).proxifiable
    old_value = node._peek(key)
    if is_proxifiable(value, classes):
        value = _wrap(value, node, classes, {})

    try:
        changed = _diff.mark_changes(node, key, value)
        if remove:
            node._drop(key)
        else:
            node._put(key, value)
        _unlink(node, old_value)
        if changed:
            _diff.mark_ancestors(node)
    except BaseException:
        _tracking.discard_pending()
        raise
    finally:
        _diff.clear_caches()

    _tracking.dispatch()

    # Handlers that fired have already moved; the rest move now.
    if isinstance(old_value, Node) and old_value is not value:
        _diff.resubscribe(old_value)


def _splice(node: ProxyList, items: list) -> None:
    """Replace the whole content of a list node in one write."""
    classes = _anchor.lookup(node._node_id).proxifiable
    memo: dict[int, Node] = {}
    items = [_wrap(v, node, classes, memo) if is_proxifiable(v, classes) else v for v in items]
    old_items = list(node._node_target)

    try:
        changed = False
        for index in range(max(len(old_items), len(items))):
            new_value = items[index] if index < len(items) else None
            changed = _diff.mark_changes(node, index, new_value) or changed
        if len(old_items) != len(items):
            _tracking.mark(node, "length")
            changed = True
        node._node_target[:] = items
        for old_value in old_items:
            _unlink(node, old_value)
        if changed:
            _diff.mark_ancestors(node)
    except BaseException:
        _tracking.discard_pending()
        raise
    finally:
        _diff.clear_caches()

    _tracking.dispatch()

    # Every index now holding another object moves its handlers, even when
    # the old node survives elsewhere in the list.
    moved: set[int] = set()
    for index, old_value in enumerate(old_items):
        if not isinstance(old_value, Node) or id(old_value) in moved:
            continue
        if index < len(items) and items[index] is old_value:
            continue
        moved.add(id(old_value))
        _diff.resubscribe(old_value)
