"""proxystate error hierarchy.

All proxystate-specific errors inherit from ProxyStateError for easy catching.
"""


class ProxyStateError(Exception):
    """Base error for all proxystate operations."""


class InfiniteLoopError(ProxyStateError):
    """A subscriber was triggered again while it was still running.

    Raised out of the write that closed the loop. The pending notification
    round is discarded before it propagates.
    """


class NotWrappedError(ProxyStateError):
    """A selector finished without reading anything through a wrapper."""


class NotProxifiableError(ProxyStateError, TypeError):
    """The value cannot be wrapped (not a dict, list or registered class)."""
