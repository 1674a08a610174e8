"""Asynchronous session for twitchkit.

Provides an asynchronous interface for connecting to and interacting with
Twitch chat via websockets using asyncio.
"""

import asyncio
import logging
from typing import Any

import aiohttp

from .exceptions import (
    ConfigurationError,
    ConnectionError,
    MessageError,
    NotConnectedError,
    TwitchKitError,
)
from .handlers import EventHandlers
from .models import ConnectionState, ParsedMessage
from .protocol import ProtocolHandler, endpoint_is_valid, is_ping, redact, split_lines

logger = logging.getLogger(__name__)


class AsyncSession:
    """Asynchronous session for Twitch chat."""

    def __init__(
        self,
        username: str | None = None,
        token: str | None = None,
        channel: str | None = None,
        url: str = "wss://irc-ws.chat.twitch.tv:443",
        user_agent: str = "twitchkit/0.1.0",
        keepalive_interval: float = 300.0,
    ) -> None:
        """Initialize a new async chat session.

        Args:
            username: Twitch login name of the account to chat as
            token: OAuth token, in the form "oauth:xxxxxx"
            channel: Channel to join, with or without the leading '#'
            url: WebSocket URL for the chat server. Use ChatEndpoint constants:
                 - ChatEndpoint.DEFAULT: "wss://irc-ws.chat.twitch.tv:443"
                 - ChatEndpoint.PLAINTEXT: "ws://irc-ws.chat.twitch.tv:80"
            user_agent: User agent string to use for connection
            keepalive_interval: Seconds between client PING probes
        """
        self.username = ""
        self.token = ""
        self.channel = ""
        self.configure(username or "", token or "", channel or "")

        self.url = url
        self.user_agent = user_agent

        # Internal state
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._session: aiohttp.ClientSession | None = None
        self._state = ConnectionState.DISCONNECTED
        self._listen_task: asyncio.Task[None] | None = None
        self._keepalive_task: asyncio.Task[None] | None = None
        self._dispatch_task: asyncio.Task[None] | None = None
        self._dispatch_queue: asyncio.Queue[ParsedMessage | None] | None = None

        # Protocol and event handling
        self.protocol = ProtocolHandler()
        self.handlers = EventHandlers()

        # Connection configuration
        self._keepalive_interval = 300.0  # seconds
        self.set_keepalive_interval(keepalive_interval)

    def configure(self, username: str, token: str, channel: str) -> None:
        """Store the credentials and channel used by the next connect()."""
        self.username = username.lower()
        self.token = token
        self.channel = channel.lower().removeprefix("#")

    def set_url(self, url: str) -> None:
        """Set the websocket URL."""
        if self._state is not ConnectionState.DISCONNECTED:
            raise TwitchKitError("Cannot change URL while connected")
        self.url = url

    def set_user_agent(self, user_agent: str) -> None:
        """Set the user agent string."""
        self.user_agent = user_agent

    def set_keepalive_interval(self, seconds: float) -> None:
        """Set the period of client keepalive probes."""
        if seconds <= 0:
            raise ValueError("Keepalive interval must be positive")
        self._keepalive_interval = seconds

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    def is_connected(self) -> bool:
        """Check if the session is connected."""
        return (
            self._state is ConnectionState.CONNECTED
            and self._ws is not None
            and not self._ws.closed
        )

    async def connect(self) -> None:
        """Open a connection to the chat server and join the channel.

        Failures are delivered to the error handler; nothing is raised.
        If connect() itself is cancelled, whatever it opened is closed and
        the session is left disconnected before CancelledError propagates.
        """
        if self._state is not ConnectionState.DISCONNECTED:
            logger.warning("Already connected")
            return

        error = self._check_configuration()
        if error is not None:
            logger.error(f"Cannot connect: {error}")
            self.handlers.dispatch_error(error, self)
            return

        self._state = ConnectionState.CONNECTING
        try:
            self._session = aiohttp.ClientSession()
            headers = {"User-Agent": self.user_agent}

            logger.info(f"Connecting to {self.url}")
            ws = await self._session.ws_connect(self.url, headers=headers)
        except asyncio.CancelledError:
            await self._abandon_connect()
            raise
        except Exception as e:
            logger.error(f"Failed to connect: {e}")
            await self._close_client_session(self._session)
            self._session = None
            self._state = ConnectionState.DISCONNECTED
            self.handlers.dispatch_error(ConnectionError(f"Failed to connect: {e}"), self)
            return

        self._ws = ws
        self._dispatch_queue = asyncio.Queue()
        self._dispatch_task = asyncio.create_task(
            self._dispatch_loop(self._dispatch_queue)
        )
        self._listen_task = asyncio.create_task(self._listen_loop(ws))

        self._state = ConnectionState.AUTHENTICATING
        try:
            for line in self.protocol.handshake(self.username, self.token, self.channel):
                await self._send(line)
        except asyncio.CancelledError:
            if self._ws is ws:
                await self._abandon_connect()
            raise

        if self._ws is not ws:
            # Torn down while the handshake was being sent
            return

        self._keepalive_task = asyncio.create_task(self._keepalive_loop())
        self._state = ConnectionState.CONNECTED
        logger.info(f"Connected, joined #{self.channel}")
        self.handlers.dispatch_connect(self)

    async def disconnect(self) -> None:
        """Close the connection and cleanup resources."""
        if self._state is ConnectionState.DISCONNECTED:
            return

        logger.info("Closing connection")
        ws, session, tasks = self._cleanup()
        self.handlers.dispatch_disconnect(None, self)

        for task in tasks:
            await self._wait_cancelled(task)

        try:
            if ws is not None and not ws.closed:
                await ws.close(code=aiohttp.WSCloseCode.GOING_AWAY)
        except Exception as e:
            logger.error(f"Error closing websocket: {e}")

        await self._close_client_session(session)
        logger.info("Connection closed")

    async def send_chat_message(self, message: str) -> None:
        """Send a chat message to the joined channel."""
        if self._state is not ConnectionState.CONNECTED:
            logger.warning("Cannot send chat message: not connected")
            self.handlers.dispatch_error(NotConnectedError("Not connected"), self)
            return

        await self._send(self.protocol.format_chat_message(self.channel, message))

    # Event handler registration methods (same as sync version)
    def set_connect_handler(self, handler: Any) -> Any:
        """Set the handler called after connecting."""
        return self.handlers.set_connect_handler(handler)

    def set_disconnect_handler(self, handler: Any) -> Any:
        """Set the handler called after the connection ends."""
        return self.handlers.set_disconnect_handler(handler)

    def set_message_handler(self, handler: Any) -> Any:
        """Set the handler for chat messages.

        Coroutine handlers are awaited on the event loop; plain functions
        run in the loop's default executor.
        """
        return self.handlers.set_message_handler(handler)

    def set_error_handler(self, handler: Any) -> Any:
        """Set the handler for session errors."""
        return self.handlers.set_error_handler(handler)

    # Context manager support
    async def __aenter__(self) -> "AsyncSession":
        """Enter the async context manager by opening the connection."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit the async context manager by closing the connection."""
        await self.disconnect()

    # Internal methods
    def _check_configuration(self) -> ConfigurationError | None:
        """Return the reason the session cannot connect, if any."""
        if not self.username or not self.token or not self.channel:
            return ConfigurationError("Username, token, and channel must be configured")
        if not endpoint_is_valid(self.url):
            return ConfigurationError("Invalid URL", details=self.url)
        return None

    async def _send(self, line: str) -> None:
        """Send one protocol line, reporting failures to the error handler."""
        ws = self._ws
        if ws is None:
            logger.debug(f"Dropping outbound line, no connection: {redact(line)}")
            return

        try:
            await ws.send_str(line)
            logger.debug(f"Sent: {redact(line)}")
        except Exception as e:
            logger.error(f"Failed to send message: {e}")
            self.handlers.dispatch_error(
                MessageError(f"Failed to send message: {e}"), self
            )

    async def _keepalive_loop(self) -> None:
        """Send a PING every keepalive interval until cancelled."""
        while True:
            await asyncio.sleep(self._keepalive_interval)
            if self._state is not ConnectionState.CONNECTED:
                return
            await self._send(self.protocol.format_ping())

    async def _listen_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        """Main listening loop for incoming frames."""
        logger.debug("Starting async message listen loop")
        reason = "server closed connection"

        try:
            async for msg in ws:
                if self._ws is not ws:
                    return

                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_frame(msg.data)

                elif msg.type == aiohttp.WSMsgType.BINARY:
                    try:
                        text = msg.data.decode("utf-8")
                    except UnicodeDecodeError:
                        logger.debug("Dropping binary frame that is not valid UTF-8")
                        continue
                    await self._handle_frame(text)

                elif msg.type == aiohttp.WSMsgType.ERROR:
                    ws_exception = ws.exception()
                    logger.error(f"WebSocket error: {ws_exception}")
                    reason = f"websocket error: {ws_exception}"
                    break

        except asyncio.CancelledError:
            logger.debug("Listen loop cancelled")
            return
        except Exception as e:
            logger.error(f"Error in async listen loop: {e}")
            reason = f"listen loop error: {e}"

        logger.debug("Async listen loop ended")
        await self._handle_transport_failure(ws, reason)

    async def _handle_frame(self, frame: str) -> None:
        """Handle each line of a text frame."""
        for line in split_lines(frame):
            await self._handle_line(line)

    async def _handle_line(self, line: str) -> None:
        """Answer keepalive probes and queue chat messages for delivery."""
        if is_ping(line):
            await self._send(self.protocol.format_pong())
            return

        message = self.protocol.parse_message(line)
        if message.command == "PRIVMSG":
            if self._dispatch_queue is not None:
                self._dispatch_queue.put_nowait(message)
        else:
            logger.debug(f"Ignoring {message.command or 'empty'} line")

    async def _dispatch_loop(self, queue: asyncio.Queue[ParsedMessage | None]) -> None:
        """Deliver queued chat messages in order until a None sentinel arrives."""
        while True:
            message = await queue.get()
            if message is None:
                return
            await self.handlers.dispatch_message_async(message, self)

    async def _handle_transport_failure(
        self, ws: aiohttp.ClientWebSocketResponse, reason: str
    ) -> None:
        """Mark the session disconnected after the transport failed."""
        if self._ws is not ws:
            # Already torn down by disconnect()
            return

        logger.warning(f"Disconnected from chat: {reason}")
        _, session, tasks = self._cleanup()
        self.handlers.dispatch_disconnect(
            ConnectionError(f"Connection lost: {reason}", details=reason), self
        )

        for task in tasks:
            await self._wait_cancelled(task)
        await self._close_client_session(session)

    def _cleanup(
        self,
    ) -> tuple[
        aiohttp.ClientWebSocketResponse | None,
        aiohttp.ClientSession | None,
        list[asyncio.Task[None]],
    ]:
        """Reset connection state without awaiting.

        Cancels the keepalive and listen tasks and lets the dispatch task
        drain what was already queued. Returns the websocket, client session
        and cancelled tasks so the caller can finish closing them.
        """
        ws, session = self._ws, self._session
        current = asyncio.current_task()

        tasks = []
        for task in (self._keepalive_task, self._listen_task):
            if task is not None and not task.done() and task is not current:
                task.cancel()
                tasks.append(task)

        if self._dispatch_queue is not None:
            self._dispatch_queue.put_nowait(None)

        self._state = ConnectionState.DISCONNECTED
        self._ws = None
        self._session = None
        self._keepalive_task = None
        self._listen_task = None
        self._dispatch_task = None
        self._dispatch_queue = None
        return ws, session, tasks

    async def _abandon_connect(self) -> None:
        """Release everything a cancelled connect() had opened.

        No observer is called since the connection was never reported.
        """
        logger.warning("Connect cancelled, closing connection")
        ws, session, tasks = self._cleanup()

        for task in tasks:
            await self._wait_cancelled(task)

        try:
            if ws is not None and not ws.closed:
                await ws.close(code=aiohttp.WSCloseCode.GOING_AWAY)
        except Exception as e:
            logger.error(f"Error closing websocket: {e}")

        await self._close_client_session(session)

    async def _wait_cancelled(self, task: asyncio.Task[None]) -> None:
        """Wait for a cancelled task to finish."""
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Error while stopping task: {e}")

    async def _close_client_session(self, session: aiohttp.ClientSession | None) -> None:
        """Close an aiohttp client session if it is still open."""
        if session is not None and not session.closed:
            await session.close()
