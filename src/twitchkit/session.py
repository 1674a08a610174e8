"""Synchronous session for twitchkit.

Provides a synchronous interface for connecting to and interacting with
Twitch chat via websockets. Frames are received on a background thread,
chat messages are delivered on a separate dispatch thread, and a third
thread sends keepalive probes.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import websocket  # websocket-client package

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


class Session:
    """Synchronous session for Twitch chat."""

    def __init__(
        self,
        username: str | None = None,
        token: str | None = None,
        channel: str | None = None,
        url: str = "wss://irc-ws.chat.twitch.tv:443",
        user_agent: str = "twitchkit/0.1.0",
        keepalive_interval: float = 300.0,
    ) -> None:
        """Initialize a new chat session.

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
        self._ws: websocket.WebSocket | None = None
        self._state = ConnectionState.DISCONNECTED
        self._lock = threading.RLock()
        self._listen_thread: threading.Thread | None = None
        self._keepalive_thread: threading.Thread | None = None
        self._keepalive_stop = threading.Event()
        self._dispatcher: ThreadPoolExecutor | None = None

        # Protocol and event handling
        self.protocol = ProtocolHandler()
        self.handlers = EventHandlers()

        # Connection configuration
        self._keepalive_interval = 300.0  # seconds
        self._recv_timeout = 1.0  # seconds
        self.set_keepalive_interval(keepalive_interval)

    def configure(self, username: str, token: str, channel: str) -> None:
        """Store the credentials and channel used by the next connect().

        Nothing is validated here; missing values are reported when
        connecting.

        Args:
            username: Twitch login name, stored lowercased
            token: OAuth token (format: "oauth:xxxxxx")
            channel: Channel name, stored lowercased without a leading '#'

        Example:
            >>> session = Session()
            >>> session.configure("MyBot", "oauth:abc123", "#SomeChannel")
            >>> session.channel
            'somechannel'
        """
        self.username = username.lower()
        self.token = token
        self.channel = channel.lower().removeprefix("#")

    def set_url(self, url: str) -> None:
        """Set the websocket URL for the chat server.

        Raises:
            TwitchKitError: If called while a connection is active
        """
        if self._state is not ConnectionState.DISCONNECTED:
            raise TwitchKitError("Cannot change URL while connected")
        self.url = url

    def set_user_agent(self, user_agent: str) -> None:
        """Set the user agent string for websocket connections."""
        self.user_agent = user_agent

    def set_keepalive_interval(self, seconds: float) -> None:
        """Set the period of client keepalive probes.

        Takes effect on the next connect().
        """
        if seconds <= 0:
            raise ValueError("Keepalive interval must be positive")
        self._keepalive_interval = seconds

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    def is_connected(self) -> bool:
        """Check if the session is connected."""
        return self._state is ConnectionState.CONNECTED and self._ws is not None

    def connect(self) -> None:
        """Open a connection to the chat server and join the channel.

        Opens the websocket, starts the listen thread and sends the
        handshake (PASS, NICK, JOIN, CAP REQ) without waiting for a reply.
        Failures are delivered to the error handler; nothing is raised.

        Example:
            >>> session = Session("mybot", "oauth:abc123", "somechannel")
            >>> session.set_message_handler(lambda msg, s: print(msg.content))
            >>> session.connect()
        """
        with self._lock:
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
                ws = websocket.WebSocket()
                headers = {"User-Agent": self.user_agent}

                logger.info(f"Connecting to {self.url}")
                ws.connect(self.url, header=headers)  # type: ignore[no-untyped-call]
            except Exception as e:
                logger.error(f"Failed to connect: {e}")
                self._state = ConnectionState.DISCONNECTED
                self.handlers.dispatch_error(
                    ConnectionError(f"Failed to connect: {e}"), self
                )
                return

            self._ws = ws
            self._dispatcher = None  # Each connection gets its own dispatch thread
            self._listen_thread = threading.Thread(
                target=self._listen_loop, args=(ws,), daemon=True
            )
            self._listen_thread.start()

            self._state = ConnectionState.AUTHENTICATING
            for line in self.protocol.handshake(self.username, self.token, self.channel):
                self._send(line)

            self._start_keepalive()
            self._state = ConnectionState.CONNECTED
            logger.info(f"Connected, joined #{self.channel}")
            self.handlers.dispatch_connect(self)

    def disconnect(self) -> None:
        """Close the connection and cleanup resources."""
        with self._lock:
            if self._state is ConnectionState.DISCONNECTED:
                return

            logger.info("Closing connection")
            ws = self._ws
            listen_thread = self._listen_thread
            keepalive_thread = self._keepalive_thread
            self._cleanup()

            try:
                if ws:
                    ws.close(status=websocket.STATUS_GOING_AWAY)
            except Exception as e:
                logger.error(f"Error closing websocket: {e}")

            self.handlers.dispatch_disconnect(None, self)

        # Threads may be blocked on the lock, so join outside it
        current = threading.current_thread()
        for thread, timeout in ((listen_thread, 5.0), (keepalive_thread, 2.0)):
            if thread and thread.is_alive() and thread is not current:
                thread.join(timeout=timeout)

        logger.info("Connection closed")

    def send_chat_message(self, message: str) -> None:
        """Send a chat message to the joined channel.

        The text is sent as-is, without escaping or length checks.

        Args:
            message: The message content to send

        Example:
            >>> session.send_chat_message("Hello chat!")
        """
        with self._lock:
            if self._state is not ConnectionState.CONNECTED:
                logger.warning("Cannot send chat message: not connected")
                self.handlers.dispatch_error(NotConnectedError("Not connected"), self)
                return

            self._send(self.protocol.format_chat_message(self.channel, message))

    # Event handler registration methods
    def set_connect_handler(self, handler: Any) -> Any:
        """Set the handler called after connecting."""
        return self.handlers.set_connect_handler(handler)

    def set_disconnect_handler(self, handler: Any) -> Any:
        """Set the handler called after the connection ends."""
        return self.handlers.set_disconnect_handler(handler)

    def set_message_handler(self, handler: Any) -> Any:
        """Set the handler for chat messages."""
        return self.handlers.set_message_handler(handler)

    def set_error_handler(self, handler: Any) -> Any:
        """Set the handler for session errors."""
        return self.handlers.set_error_handler(handler)

    # Context manager support
    def __enter__(self) -> "Session":
        """Enter the context manager by connecting."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit the context manager by disconnecting."""
        self.disconnect()

    # Internal methods
    def _check_configuration(self) -> ConfigurationError | None:
        """Return the reason the session cannot connect, if any."""
        if not self.username or not self.token or not self.channel:
            return ConfigurationError("Username, token, and channel must be configured")
        if not endpoint_is_valid(self.url):
            return ConfigurationError("Invalid URL", details=self.url)
        return None

    def _send(self, line: str) -> None:
        """Send one protocol line, reporting failures to the error handler."""
        ws = self._ws
        if ws is None:
            logger.debug(f"Dropping outbound line, no connection: {redact(line)}")
            return

        try:
            ws.send(line)
            logger.debug(f"Sent: {redact(line)}")
        except Exception as e:
            logger.error(f"Failed to send message: {e}")
            self.handlers.dispatch_error(
                MessageError(f"Failed to send message: {e}"), self
            )

    def _start_keepalive(self) -> None:
        """Start the thread sending periodic PING probes."""
        self._keepalive_stop = threading.Event()
        self._keepalive_thread = threading.Thread(
            target=self._keepalive_loop, args=(self._keepalive_stop,), daemon=True
        )
        self._keepalive_thread.start()

    def _keepalive_loop(self, stop: threading.Event) -> None:
        """Send a PING every keepalive interval until stopped."""
        while not stop.wait(self._keepalive_interval):
            with self._lock:
                if stop.is_set() or self._state is not ConnectionState.CONNECTED:
                    break
                self._send(self.protocol.format_ping())

    def _listen_loop(self, ws: websocket.WebSocket) -> None:
        """Main listening loop for incoming frames."""
        logger.debug("Starting message listen loop")
        ws.settimeout(self._recv_timeout)

        while self._ws is ws:
            try:
                frame = ws.recv()
                if not frame:
                    # Close frames come back empty; the next recv raises
                    continue

                self._handle_frame(frame)
            except websocket.WebSocketTimeoutException:
                continue  # Timeout is normal, continue loop
            except websocket.WebSocketConnectionClosedException:
                self._handle_transport_failure(ws, "server closed connection")
                break
            except Exception as e:
                logger.error(f"Error in listen loop: {e}", exc_info=True)
                self._handle_transport_failure(ws, str(e))
                break

        logger.debug("Listen loop ended")

    def _handle_frame(self, frame: str | bytes) -> None:
        """Decode a frame and handle each line in it."""
        if isinstance(frame, bytes):
            try:
                frame = frame.decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("Dropping binary frame that is not valid UTF-8")
                return

        for line in split_lines(frame):
            self._handle_line(line)

    def _handle_line(self, line: str) -> None:
        """Answer keepalive probes and deliver chat messages."""
        if is_ping(line):
            self._send(self.protocol.format_pong())
            return

        message = self.protocol.parse_message(line)
        if message.command == "PRIVMSG":
            self._dispatch_message(message)
        else:
            logger.debug(f"Ignoring {message.command or 'empty'} line")

    def _dispatch_message(self, message: ParsedMessage) -> None:
        """Hand a message to the dispatch thread so the listen loop never waits."""
        if self._dispatcher is None:
            self._dispatcher = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="twitchkit-dispatch"
            )
        try:
            self._dispatcher.submit(self.handlers.dispatch_message, message, self)
        except RuntimeError:
            # Dispatcher already shut down by a concurrent disconnect()
            logger.debug("Dropping chat message received after disconnect")

    def _handle_transport_failure(self, ws: websocket.WebSocket, reason: str) -> None:
        """Mark the session disconnected after the transport failed."""
        with self._lock:
            if self._ws is not ws:
                # Already torn down by disconnect()
                return

            logger.warning(f"Disconnected from chat: {reason}")
            self._cleanup()

            try:
                ws.shutdown()
            except Exception as e:
                logger.debug(f"Error shutting down websocket: {e}")

            self.handlers.dispatch_disconnect(
                ConnectionError(f"Connection lost: {reason}", details=reason), self
            )

    def _cleanup(self) -> None:
        """Clean up connection state.

        The dispatcher is shut down without waiting, so messages already
        queued are still delivered before its thread exits.
        """
        self._keepalive_stop.set()
        if self._dispatcher is not None:
            self._dispatcher.shutdown(wait=False)
        self._state = ConnectionState.DISCONNECTED
        self._ws = None
        self._listen_thread = None
        self._keepalive_thread = None
