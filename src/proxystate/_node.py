"""Base wrapper type and the proxifiability test."""

from __future__ import annotations

from proxystate import _anchor

NODE_SLOTS = ("_node_id", "_node_target")


class Proxifiable:
    """Opt-in base class: instances of subclasses are wrapped like dicts.

    Their instance attributes become reactive keys. Properties and other
    data descriptors defined on the class are left alone.
    """


class Node:
    """A wrapped dict, list or object. All state lives in _anchor."""

    __slots__ = NODE_SLOTS + ("__weakref__",)

    _is_array = False

    def __init__(self, target) -> None:
        object.__setattr__(self, "_node_id", _anchor.new_id())
        object.__setattr__(self, "_node_target", target)

    # --- Untracked access, used by the engine ---

    def _keys(self) -> list:
        raise NotImplementedError

    def _peek(self, key):
        """Current value under key, or None when absent. Never tracked."""
        raise NotImplementedError

    def _put(self, key, value) -> None:
        raise NotImplementedError

    def _drop(self, key) -> None:
        raise NotImplementedError

    def __copy__(self):
        from proxystate.snapshot import unwrap

        return unwrap(self)

    def __deepcopy__(self, memo):
        from proxystate.snapshot import unwrap

        return unwrap(self)


def is_proxifiable(value, classes: tuple[type, ...] = ()) -> bool:
    if isinstance(value, Node):
        return True
    cls = type(value)
    return cls is dict or cls is list or cls in classes or isinstance(value, Proxifiable)
