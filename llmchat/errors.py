"""Error taxonomy shared by the relay, the store and the auth layer.

The store catches ProviderUnavailable, Unauthenticated and NotFound and
returns empty sentinels. The relay lets UpstreamStreamError reach its
consumer.
"""


class ChatError(Exception):
    """Base class for application errors."""

    pass


class ProviderUnavailable(ChatError):
    """Raised when a backend or auth service call fails at the transport level."""

    pass


class Unauthenticated(ChatError):
    """Raised when an operation needs an identity and none is present."""

    pass


class NotFound(ChatError):
    """Raised when a conversation or message does not exist for the current identity."""

    pass


class UpstreamStreamError(ChatError):
    """Raised when the generation provider fails while streaming."""

    pass
