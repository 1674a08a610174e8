"""
Tests for twitchkit event handler system.

Focuses on single-slot registration, dispatch of sync and async handlers,
and containment of handler errors.
"""

import asyncio
from unittest.mock import Mock

import pytest
from twitchkit.exceptions import ConnectionError, NotConnectedError
from twitchkit.handlers import EventHandlers
from twitchkit.protocol import parse_message

PRIVMSG = ":bob!bob@bob.tmi.twitch.tv PRIVMSG #chan :hello"


class TestEventHandlerRegistration:
    """Test event handler registration functionality."""

    def setup_method(self):
        """Set up fresh handlers for each test."""
        self.handlers = EventHandlers()

    def test_slots_start_empty(self):
        """Test no handlers are registered initially."""
        assert self.handlers.connect_handler is None
        assert self.handlers.disconnect_handler is None
        assert self.handlers.message_handler is None
        assert self.handlers.error_handler is None

    def test_set_message_handler(self):
        """Test setting a message handler."""
        handler = Mock()
        self.handlers.set_message_handler(handler)

        assert self.handlers.message_handler is handler

    def test_registration_replaces(self):
        """Test a second registration replaces the first."""
        first = Mock()
        second = Mock()

        self.handlers.set_message_handler(first)
        self.handlers.set_message_handler(second)
        self.handlers.dispatch_message(parse_message(PRIVMSG), None)

        first.assert_not_called()
        second.assert_called_once()

    def test_set_returns_handler_for_decorator_use(self):
        """Test registration can be used as a decorator."""

        @self.handlers.set_error_handler
        def on_error(error, session):
            pass

        assert on_error is not None
        assert self.handlers.error_handler is on_error

    def test_clear_handlers(self):
        """Test clearing every slot."""
        self.handlers.set_connect_handler(Mock())
        self.handlers.set_disconnect_handler(Mock())
        self.handlers.set_message_handler(Mock())
        self.handlers.set_error_handler(Mock())

        self.handlers.clear_handlers()

        assert self.handlers.connect_handler is None
        assert self.handlers.disconnect_handler is None
        assert self.handlers.message_handler is None
        assert self.handlers.error_handler is None


class TestEventDispatch:
    """Test dispatching events to sync handlers."""

    def setup_method(self):
        """Set up fresh handlers for each test."""
        self.handlers = EventHandlers()
        self.session = Mock()

    def test_dispatch_connect(self):
        """Test the connect handler receives the session."""
        handler = Mock()
        self.handlers.set_connect_handler(handler)

        self.handlers.dispatch_connect(self.session)

        handler.assert_called_once_with(self.session)

    def test_dispatch_disconnect_without_error(self):
        """Test a local disconnect passes None."""
        handler = Mock()
        self.handlers.set_disconnect_handler(handler)

        self.handlers.dispatch_disconnect(None, self.session)

        handler.assert_called_once_with(None, self.session)

    def test_dispatch_disconnect_with_error(self):
        """Test a remote disconnect passes the failure."""
        handler = Mock()
        error = ConnectionError("Connection lost")
        self.handlers.set_disconnect_handler(handler)

        self.handlers.dispatch_disconnect(error, self.session)

        handler.assert_called_once_with(error, self.session)

    def test_dispatch_message(self):
        """Test the message handler receives the parsed message."""
        handler = Mock()
        message = parse_message(PRIVMSG)
        self.handlers.set_message_handler(handler)

        self.handlers.dispatch_message(message, self.session)

        handler.assert_called_once_with(message, self.session)

    def test_dispatch_error(self):
        """Test the error handler receives the error object."""
        handler = Mock()
        error = NotConnectedError("Not connected")
        self.handlers.set_error_handler(handler)

        self.handlers.dispatch_error(error, self.session)

        handler.assert_called_once_with(error, self.session)

    def test_dispatch_without_handler(self):
        """Test dispatching to an empty slot does nothing."""
        self.handlers.dispatch_connect(self.session)
        self.handlers.dispatch_message(parse_message(PRIVMSG), self.session)
        self.handlers.dispatch_error(NotConnectedError("x"), self.session)

    def test_handler_exception_is_logged_not_raised(self, caplog):
        """Test a failing handler does not propagate its exception."""

        def failing_handler(message, session):
            raise ValueError("boom")

        self.handlers.set_message_handler(failing_handler)

        self.handlers.dispatch_message(parse_message(PRIVMSG), self.session)

        assert "boom" in caplog.text

    def test_async_handler_outside_loop_is_skipped(self, caplog):
        """Test a coroutine handler cannot run without an event loop."""
        calls = []

        async def async_handler(session):
            calls.append(session)

        self.handlers.set_connect_handler(async_handler)

        self.handlers.dispatch_connect(self.session)

        assert calls == []
        assert "outside event loop" in caplog.text


class TestAsyncDispatch:
    """Test dispatching to coroutine handlers."""

    @pytest.mark.asyncio
    async def test_async_connect_handler_is_scheduled(self):
        """Test coroutine handlers run as tasks on the running loop."""
        handlers = EventHandlers()
        done = asyncio.Event()

        async def on_connect(session):
            done.set()

        handlers.set_connect_handler(on_connect)
        handlers.dispatch_connect(None)

        await asyncio.wait_for(done.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_async_handler_error_is_logged(self, caplog):
        """Test exceptions from coroutine handlers are logged."""
        handlers = EventHandlers()

        async def on_error(error, session):
            raise RuntimeError("async boom")

        handlers.set_error_handler(on_error)
        handlers.dispatch_error(NotConnectedError("x"), None)

        # Let the task run and its done callback fire
        for _ in range(5):
            await asyncio.sleep(0)

        assert "async boom" in caplog.text

    @pytest.mark.asyncio
    async def test_dispatch_message_async_awaits_coroutine(self):
        """Test coroutine message handlers are awaited in place."""
        handlers = EventHandlers()
        received = []

        async def on_message(message, session):
            await asyncio.sleep(0)
            received.append(message.content)

        handlers.set_message_handler(on_message)
        await handlers.dispatch_message_async(parse_message(PRIVMSG), None)

        assert received == ["hello"]

    @pytest.mark.asyncio
    async def test_dispatch_message_async_runs_sync_in_executor(self):
        """Test plain message handlers run off the event loop thread."""
        import threading

        handlers = EventHandlers()
        threads = []

        def on_message(message, session):
            threads.append(threading.current_thread())

        handlers.set_message_handler(on_message)
        await handlers.dispatch_message_async(parse_message(PRIVMSG), None)

        assert len(threads) == 1
        assert threads[0] is not threading.current_thread()

    @pytest.mark.asyncio
    async def test_dispatch_message_async_contains_errors(self, caplog):
        """Test failures in message handlers are logged."""
        handlers = EventHandlers()

        async def on_message(message, session):
            raise KeyError("missing")

        handlers.set_message_handler(on_message)
        await handlers.dispatch_message_async(parse_message(PRIVMSG), None)

        assert "missing" in caplog.text
