"""twitchkit: Python WebSocket client library for Twitch chat.

Connects to Twitch chat over a WebSocket, performs the login handshake,
keeps the connection alive and turns raw IRC lines into structured,
immutable message objects.

Features:
- Synchronous and asynchronous session support
- Type-safe message model with Pydantic (tags, badges, emotes, timestamps)
- Lenient parser that never fails on malformed or unknown input
- Automatic PING/PONG handling and periodic keepalive probes
- Errors delivered to handlers instead of raised across threads

Example:
    Basic synchronous usage:

    >>> from twitchkit import Session
    >>> session = Session("mybot", "oauth:your_token", "somechannel")
    >>> session.set_message_handler(
    ...     lambda message, session: print(message.author.display_name, message.content)
    ... )
    >>> session.connect()
    >>> session.send_chat_message("Hello, chat!")

    Asynchronous usage:

    >>> import asyncio
    >>> from twitchkit import AsyncSession
    >>>
    >>> async def main():
    ...     async with AsyncSession("mybot", "oauth:your_token", "somechannel") as session:
    ...         await session.send_chat_message("Hello from asyncio!")
    >>>
    >>> asyncio.run(main())
"""

from .async_session import AsyncSession
from .exceptions import (
    ConfigurationError,
    ConnectionError,
    MessageError,
    NotConnectedError,
    TwitchKitError,
)
from .models import Author, ConnectionState, EmoteOccurrence, ParsedMessage
from .protocol import parse_message
from .session import Session


class ChatEndpoint:
    """WebSocket URLs for Twitch chat."""

    # TLS endpoint, used by default
    DEFAULT = "wss://irc-ws.chat.twitch.tv:443"

    # Unencrypted endpoint
    PLAINTEXT = "ws://irc-ws.chat.twitch.tv:80"


__version__ = "0.1.0"

__all__ = [
    # Sessions
    "Session",
    "AsyncSession",
    # Endpoint constants
    "ChatEndpoint",
    # Parsing
    "parse_message",
    # Models
    "ParsedMessage",
    "Author",
    "EmoteOccurrence",
    "ConnectionState",
    # Exceptions
    "TwitchKitError",
    "ConfigurationError",
    "ConnectionError",
    "NotConnectedError",
    "MessageError",
]
