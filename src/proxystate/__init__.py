"""proxystate: fine-grained reactive state for plain Python object graphs."""

from importlib.metadata import version as _version

__version__ = _version("proxystate")

from proxystate._node import Node, Proxifiable
from proxystate._tracking import get_pending_count
from proxystate.proxy import ProxyDict, ProxyList, ProxyObject, wrap, wrap_root
from proxystate.subscription import Subscription, subscribe, subscribe_multiple
from proxystate.snapshot import unwrap
from proxystate.binding import Binding, bind
from proxystate.store import Store
from proxystate.errors import (
    InfiniteLoopError,
    NotProxifiableError,
    NotWrappedError,
    ProxyStateError,
)
# textual NOT auto-imported: opt-in only

__all__ = [
    "Node",
    "Proxifiable",
    "ProxyDict",
    "ProxyList",
    "ProxyObject",
    "wrap",
    "wrap_root",
    "Subscription",
    "subscribe",
    "subscribe_multiple",
    "unwrap",
    "Binding",
    "bind",
    "Store",
    "get_pending_count",
    "ProxyStateError",
    "InfiniteLoopError",
    "NotWrappedError",
    "NotProxifiableError",
]
