"""
Shared test doubles for twitchkit.

Scripted stand-ins for the websocket-client and aiohttp transports, so
sessions can be driven frame by frame without opening sockets.
"""

import asyncio
from types import SimpleNamespace

import aiohttp
import pytest
import websocket

HANDSHAKE = [
    "PASS oauth:abc123",
    "NICK testbot",
    "JOIN #testchannel",
    "CAP REQ :twitch.tv/tags twitch.tv/commands twitch.tv/membership",
]

PRIVMSG = (
    "@badges=moderator/1;color=#FF0000;display-name=Alice;emotes=;"
    "id=abc-123;tmi-sent-ts=1619191991246 "
    ":alice!alice@alice.tmi.twitch.tv PRIVMSG #testchannel :hello bot"
)


class FakeWebSocket:
    """Blocking websocket double returning scripted frames from recv()."""

    def __init__(self, frames=()):
        self.frames = list(frames)
        self.sent = []
        self.url = None
        self.options = {}
        self.timeout = None
        self.close_status = None
        self.was_shut_down = False

    def connect(self, url, **options):
        self.url = url
        self.options = options

    def settimeout(self, timeout):
        self.timeout = timeout

    def recv(self):
        if not self.frames:
            raise websocket.WebSocketConnectionClosedException(
                "Connection to remote host was lost."
            )
        frame = self.frames.pop(0)
        if isinstance(frame, Exception):
            raise frame
        return frame

    def send(self, data):
        self.sent.append(data)

    def close(self, status=websocket.STATUS_NORMAL, **kwargs):
        self.close_status = status

    def shutdown(self):
        self.was_shut_down = True


class FakeAsyncWebSocket:
    """aiohttp websocket double yielding scripted messages."""

    def __init__(self, frames=(), stay_open=False):
        self.frames = list(frames)
        self.stay_open = stay_open
        self.sent = []
        self.closed = False
        self.close_code = None
        self.error = None
        self._close_event = asyncio.Event()

    async def send_str(self, data):
        self.sent.append(data)

    async def close(self, *, code=aiohttp.WSCloseCode.OK, message=b""):
        self.closed = True
        self.close_code = code
        self._close_event.set()
        return True

    def exception(self):
        return self.error

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.frames:
            frame = self.frames.pop(0)
            if isinstance(frame, Exception):
                raise frame
            return frame
        if self.stay_open:
            await self._close_event.wait()
        raise StopAsyncIteration


class FakeClientSession:
    """aiohttp.ClientSession double handing out one websocket."""

    def __init__(self, ws=None, error=None):
        self.ws = ws
        self.error = error
        self.closed = False
        self.connect_calls = []

    async def ws_connect(self, url, **kwargs):
        self.connect_calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.ws

    async def close(self):
        self.closed = True


def text(data):
    """A TEXT websocket message."""
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data, extra=None)


def binary(data):
    """A BINARY websocket message."""
    return SimpleNamespace(type=aiohttp.WSMsgType.BINARY, data=data, extra=None)


def ws_error():
    """An ERROR websocket message."""
    return SimpleNamespace(type=aiohttp.WSMsgType.ERROR, data=None, extra=None)


@pytest.fixture
def fakes():
    """Expose the test doubles and sample lines to tests."""
    return SimpleNamespace(
        FakeWebSocket=FakeWebSocket,
        FakeAsyncWebSocket=FakeAsyncWebSocket,
        FakeClientSession=FakeClientSession,
        text=text,
        binary=binary,
        ws_error=ws_error,
        HANDSHAKE=HANDSHAKE,
        PRIVMSG=PRIVMSG,
    )
