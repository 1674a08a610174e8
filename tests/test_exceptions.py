"""
Tests for twitchkit exception handling.

Focuses on the exception hierarchy and on how sessions deliver errors to
handlers instead of raising them.
"""

from unittest.mock import Mock, patch

import pytest
import websocket
from twitchkit import Session
from twitchkit.exceptions import (
    ConfigurationError,
    ConnectionError,
    MessageError,
    NotConnectedError,
    TwitchKitError,
)


class TestExceptionHierarchy:
    """Test the exception class hierarchy."""

    def test_twitchkit_error_base_class(self):
        """Test TwitchKitError base exception."""
        error = TwitchKitError("Base error")

        assert isinstance(error, Exception)
        assert str(error) == "Base error"
        assert error.message == "Base error"
        assert error.details is None

    def test_twitchkit_error_with_details(self):
        """Test TwitchKitError with additional details."""
        error = TwitchKitError("Error message", "Additional details")

        assert error.message == "Error message"
        assert error.details == "Additional details"
        assert str(error) == "Error message"

    @pytest.mark.parametrize(
        "error_class",
        [ConfigurationError, ConnectionError, NotConnectedError, MessageError],
    )
    def test_subclasses_inherit_from_base(self, error_class):
        """Test every library error is a TwitchKitError."""
        error = error_class("Something failed")

        assert isinstance(error, TwitchKitError)
        assert isinstance(error, Exception)
        assert str(error) == "Something failed"

    def test_connection_error_is_not_builtin(self):
        """Test the library ConnectionError is distinct from the builtin."""
        assert not issubclass(ConnectionError, OSError)

    def test_catch_all_library_errors(self):
        """Test catching the base class catches subclasses."""
        with pytest.raises(TwitchKitError):
            raise MessageError("send failed")


@pytest.fixture(autouse=True)
def patch_listen_loop():
    """Keep the listen thread from touching the mocked websocket."""
    with patch.object(Session, "_listen_loop", lambda self, ws: None):
        yield


class TestErrorDelivery:
    """Test errors reach the error handler and are never raised."""

    def setup_method(self):
        """Set up a session with a recording error handler."""
        self.errors = []
        self.session = Session("bot", "oauth:abc", "chan")
        self.session.set_error_handler(lambda error, s: self.errors.append(error))

    def teardown_method(self):
        """Clean up the session after each test."""
        self.session.disconnect()

    def test_missing_configuration(self):
        """Test connecting without credentials reports a ConfigurationError."""
        session = Session()
        errors = []
        session.set_error_handler(lambda error, s: errors.append(error))

        session.connect()

        assert len(errors) == 1
        assert isinstance(errors[0], ConfigurationError)
        assert not session.is_connected()

    def test_transport_open_failure(self):
        """Test a failed websocket open reports a ConnectionError."""
        with patch("websocket.WebSocket") as mock_ws_class:
            mock_ws_class.return_value.connect.side_effect = (
                websocket.WebSocketException("Connection refused")
            )

            self.session.connect()

        assert len(self.errors) == 1
        assert isinstance(self.errors[0], ConnectionError)
        assert "Connection refused" in str(self.errors[0])
        assert not self.session.is_connected()

    def test_send_failure_keeps_state(self):
        """Test a rejected send reports a MessageError and stays connected."""
        mock_ws = Mock()
        with patch("websocket.WebSocket", return_value=mock_ws):
            self.session.connect()

        mock_ws.send.side_effect = websocket.WebSocketConnectionClosedException(
            "socket is already closed."
        )
        self.session.send_chat_message("hello")

        assert len(self.errors) == 1
        assert isinstance(self.errors[0], MessageError)
        assert self.session.is_connected()

    def test_error_handler_exception_is_contained(self):
        """Test a failing error handler does not break the session."""

        def broken_handler(error, session):
            raise RuntimeError("handler bug")

        self.session.set_error_handler(broken_handler)

        # Should not raise
        self.session.send_chat_message("hello")
