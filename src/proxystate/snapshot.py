"""unwrap(): plain deep copies of wrapped state.

Use it wherever state leaves the reactive world: JSON export, equality
checks on previous values, handing data to a renderer.
"""

from __future__ import annotations

import copy
import logging
from typing import TypeVar

from proxystate import _anchor
from proxystate._node import Node

logger = logging.getLogger("proxystate.snapshot")

T = TypeVar("T")


def unwrap(value: T) -> T:
    """Return a plain deep copy of value. Non-wrapped input comes back as is.

    Shared references and cycles in the wrapped graph are kept in the copy.

    Usage:
        store = wrap_root({"frames": [{"x": 1}]})
        json.dumps(unwrap(store))  # '{"frames": [{"x": 1}]}'
    """
    if not isinstance(value, Node):
        return value
    return _unwrap(value, {})


def _unwrap(node: Node, memo: dict[int, object]):
    if node._node_id in memo:
        return memo[node._node_id]
    if node._node_id not in _anchor.meta:
        logger.error("BUG: %r reached unwrap without metadata", node)

    target = node._node_target
    if node._is_array:
        clone: object = []
        memo[node._node_id] = clone
        clone.extend(_copy_value(v, memo) for v in target)
    elif type(target) is dict:
        clone = {}
        memo[node._node_id] = clone
        for key, v in target.items():
            clone[key] = _copy_value(v, memo)
    else:
        clone = copy.copy(target)
        memo[node._node_id] = clone
        fields = vars(clone)
        for key, v in vars(target).items():
            fields[key] = _copy_value(v, memo)
    return clone


def _copy_value(value, memo: dict[int, object]):
    if isinstance(value, Node):
        return _unwrap(value, memo)
    return value
