"""
Exceptions raised by the stateless ledger simulation.
"""


class StatelessError(Exception):
    """Base class for simulation errors."""


class ChannelError(StatelessError):
    """Base class for broadcast channel failures."""


class ChannelClosed(ChannelError):
    """The channel was closed and this stream has been drained."""


class ChannelFull(ChannelError):
    """At least one stream of the channel is at capacity."""


class ChannelEmpty(ChannelError):
    """No message arrived before the timeout."""


class BridgeStateError(StatelessError, ArithmeticError):
    """
    The bridge state disagrees with a block or a request.

    Signals a desynchronisation between the bridge and the chain. The
    offending operation is aborted and the committed state is left as it was.
    """


class ConflictingTransactionError(StatelessError, ValueError):
    """A transaction touches an output already touched earlier in its block."""
