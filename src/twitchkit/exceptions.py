"""Exception classes for twitchkit.

Provides structured error handling for the failure modes a chat session
can run into. Sessions deliver these to the registered error and
disconnect handlers instead of raising them.
"""


class TwitchKitError(Exception):
    """Base exception for all twitchkit errors."""

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize TwitchKitError with message and optional details.

        Args:
            message: Error message.
            details: Optional additional error details.
        """
        self.message = message
        self.details = details
        super().__init__(self.message)


class ConfigurationError(TwitchKitError):
    """Raised when a session is missing credentials or has a bad endpoint URL."""

    pass


class ConnectionError(TwitchKitError):
    """Raised when the websocket connection fails or is lost."""

    pass


class NotConnectedError(TwitchKitError):
    """Raised when sending chat while the session is not connected."""

    pass


class MessageError(TwitchKitError):
    """Raised when the transport rejects an outbound line."""

    pass
