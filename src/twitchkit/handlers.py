"""Event handler management for twitchkit.

Each session event has a single handler slot. Registering a handler
replaces the previous one. Handlers can be plain functions or coroutine
functions; exceptions raised by handlers are logged and never propagate
into the session.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .exceptions import TwitchKitError
from .models import ParsedMessage

logger = logging.getLogger(__name__)

# Type hints for handlers - can be either sync or async
ConnectHandlerFunc = (
    Callable[[Any], None]  # Sync: (session) -> None
    | Callable[[Any], Awaitable[None]]  # Async: (session) -> Awaitable[None]
)

DisconnectHandlerFunc = (
    Callable[[Exception | None, Any], None]  # Sync: (error, session) -> None
    | Callable[[Exception | None, Any], Awaitable[None]]
)

MessageHandlerFunc = (
    Callable[[ParsedMessage, Any], None]  # Sync: (message, session) -> None
    | Callable[[ParsedMessage, Any], Awaitable[None]]
)

ErrorHandlerFunc = (
    Callable[[TwitchKitError, Any], None]  # Sync: (error, session) -> None
    | Callable[[TwitchKitError, Any], Awaitable[None]]
)

H = TypeVar("H")


class EventHandlers:
    """Manages event handler registration and dispatch."""

    def __init__(self) -> None:
        """Initialize EventHandlers with empty slots."""
        self.connect_handler: ConnectHandlerFunc | None = None
        self.disconnect_handler: DisconnectHandlerFunc | None = None
        self.message_handler: MessageHandlerFunc | None = None
        self.error_handler: ErrorHandlerFunc | None = None

        # Keeps scheduled coroutine handlers alive until they finish
        self._tasks: set[asyncio.Task[None]] = set()

    # Handler registration methods
    def set_connect_handler(self, handler: H) -> H:
        """Set the handler called once the handshake has been sent."""
        self.connect_handler = handler  # type: ignore[assignment]
        return handler

    def set_disconnect_handler(self, handler: H) -> H:
        """Set the handler called when the connection ends."""
        self.disconnect_handler = handler  # type: ignore[assignment]
        return handler

    def set_message_handler(self, handler: H) -> H:
        """Set the handler for chat messages."""
        self.message_handler = handler  # type: ignore[assignment]
        return handler

    def set_error_handler(self, handler: H) -> H:
        """Set the handler for session errors."""
        self.error_handler = handler  # type: ignore[assignment]
        return handler

    def clear_handlers(self) -> None:
        """Remove all registered handlers."""
        self.connect_handler = None
        self.disconnect_handler = None
        self.message_handler = None
        self.error_handler = None

    # Event dispatching
    def dispatch_connect(self, session: Any) -> None:
        """Dispatch a connect event."""
        self._call_handler(self.connect_handler, session)

    def dispatch_disconnect(self, error: Exception | None, session: Any) -> None:
        """Dispatch a disconnect event. error is None for a local disconnect."""
        self._call_handler(self.disconnect_handler, error, session)

    def dispatch_message(self, message: ParsedMessage, session: Any) -> None:
        """Dispatch a chat message."""
        self._call_handler(self.message_handler, message, session)

    def dispatch_error(self, error: TwitchKitError, session: Any) -> None:
        """Dispatch an error to the error handler."""
        self._call_handler(self.error_handler, error, session)

    async def dispatch_message_async(
        self, message: ParsedMessage, session: Any
    ) -> None:
        """Deliver a chat message from inside an event loop.

        Coroutine handlers are awaited. Plain handlers run in the loop's
        default executor so they cannot block the loop.
        """
        handler = self.message_handler
        if handler is None:
            return

        try:
            if inspect.iscoroutinefunction(handler):
                await handler(message, session)
            else:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, handler, message, session)
        except Exception as e:
            logger.error(f"Error in message handler {handler}: {e}", exc_info=True)

    def _call_handler(self, handler: Callable[..., Any] | None, *args: Any) -> None:
        """Safely call a single handler."""
        if handler is None:
            return

        try:
            # Check if handler is a coroutine function (async def)
            if inspect.iscoroutinefunction(handler):
                try:
                    loop = asyncio.get_running_loop()
                except RuntimeError:
                    logger.error(
                        f"Async handler {handler} called outside event loop context"
                    )
                    return

                task: asyncio.Task[None] = loop.create_task(handler(*args))
                self._tasks.add(task)
                task.add_done_callback(self._handle_async_handler_done)
            else:
                handler(*args)
        except Exception as e:
            logger.error(f"Error in event handler {handler}: {e}", exc_info=True)

    def _handle_async_handler_done(self, task: asyncio.Task[None]) -> None:
        """Handle errors from async handler tasks."""
        self._tasks.discard(task)
        if task.cancelled():
            return
        exception = task.exception()
        if exception is not None:
            logger.error(
                f"Error in async event handler: {exception}", exc_info=exception
            )
