"""Relay error types.

Learn: Only infrastructure failures get an exception type here. Bad
messages are dropped by the parser and slow WebSocket clients are handled
by the hub, so neither ever surfaces as an error to the caller.
"""


class RelayError(Exception):
    """Base class for fatal relay errors."""


class BusConnectionError(RelayError):
    """Connecting or subscribing to the Redis bus failed, or the subscription broke."""


class CounterStoreError(RelayError):
    """Incrementing a usage counter in Redis failed."""


class WebServerError(RelayError):
    """The web server stopped during startup (e.g. the bind address is taken)."""
