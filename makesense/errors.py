"""
Exception hierarchy for the MakeSense client.

Only conditions the caller is expected to act on are modelled here.
Unparseable notification text is not an error: the decoder turns it into a
status message instead.
"""

from __future__ import annotations


class MakeSenseError(Exception):
    """Base class for all client errors."""


class TransportError(MakeSenseError):
    """
    Discovery, connect, channel resolution, subscribe or write failure.

    Always recoverable: the link is left DISCONNECTED and the caller may retry
    ``connect()``.
    """


class LinkStateError(MakeSenseError):
    """An operation was requested in a connection state that does not allow it."""


class InvalidCommandState(LinkStateError):
    """A device command was sent while the link is not CONNECTED."""


class ConnectAborted(LinkStateError):
    """A pending connect attempt was superseded by ``disconnect()``."""


class ConfigError(MakeSenseError, ValueError):
    """A configuration value was rejected."""
