"""Protocol handling for twitchkit.

Handles parsing of incoming chat lines and formatting of outgoing lines
according to the Twitch flavour of IRCv3. Parsing is lenient: a malformed
or truncated line yields a partially filled message, never an exception.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse

from .models import Author, EmoteOccurrence, ParsedMessage

logger = logging.getLogger(__name__)

SERVER_NAME = "tmi.twitch.tv"
CAPABILITIES = ("twitch.tv/tags", "twitch.tv/commands", "twitch.tv/membership")

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _parse_int(value: str) -> int | None:
    if not _INTEGER_RE.fullmatch(value):
        return None
    try:
        return int(value)
    except ValueError:
        # Longer than the interpreter's integer string conversion limit
        return None


def parse_tags(segment: str) -> dict[str, str]:
    """Parse an IRCv3 tag segment (without the leading '@').

    Args:
        segment: Text like "color=#0000FF;display-name=User"

    Returns:
        Tag key to value. Pieces that do not split into exactly one key and
        one value are skipped; a repeated key keeps its last value.
    """
    tags: dict[str, str] = {}
    for piece in segment.split(";"):
        key_value = piece.split("=")
        if len(key_value) == 2:
            tags[key_value[0]] = key_value[1]
    return tags


def parse_badges(value: str) -> dict[str, str]:
    """Parse a badges tag like "subscriber/6,premium/1"."""
    badges: dict[str, str] = {}
    for pair in value.split(","):
        if not pair:
            continue
        parts = pair.split("/")
        if len(parts) == 2:
            badges[parts[0]] = parts[1]
    return badges


def parse_emotes(value: str) -> list[EmoteOccurrence]:
    """Parse an emotes tag like "25:0-4,12-16/1902:6-10".

    One occurrence is produced per valid position, in the order the
    positions appear. A malformed position is dropped on its own; the rest
    of its group is kept.
    """
    emotes: list[EmoteOccurrence] = []
    for group in value.split("/"):
        if not group:
            continue
        parts = group.split(":")
        if len(parts) != 2:
            continue
        emote_id, positions = parts

        for position in positions.split(","):
            bounds = position.split("-")
            if len(bounds) != 2:
                continue
            start = _parse_int(bounds[0])
            end = _parse_int(bounds[1])
            if start is None or end is None:
                continue
            emotes.append(
                EmoteOccurrence(id=emote_id, start_index=start, end_index=end)
            )
    return emotes


def parse_timestamp(value: str | None) -> datetime | None:
    """Convert a tmi-sent-ts value (milliseconds since epoch) to a UTC datetime."""
    if value is None:
        return None
    millis = _parse_int(value)
    if millis is None:
        return None
    try:
        return _EPOCH + timedelta(milliseconds=millis)
    except OverflowError:
        return None


def parse_message(raw_line: str) -> ParsedMessage:
    """Parse one protocol line into a ParsedMessage.

    The line is split on single spaces, so consecutive spaces produce empty
    tokens rather than being collapsed. Never raises.

    Args:
        raw_line: A single line without its line terminator

    Returns:
        The parsed message. Missing parts are left empty.

    Example:
        >>> msg = parse_message(":bob!bob@bob.tmi.twitch.tv PRIVMSG #chan :hi")
        >>> msg.author.username, msg.channel, msg.content
        ('bob', 'chan', 'hi')
    """
    tags: dict[str, str] = {}
    prefix = ""
    command = ""
    params: list[str] = []
    content = ""

    tokens = raw_line.split(" ")
    position = 0

    if tokens[position].startswith("@"):
        tags = parse_tags(tokens[position][1:])
        position += 1

    if position < len(tokens) and tokens[position].startswith(":"):
        prefix = tokens[position][1:]
        position += 1

    if position < len(tokens):
        command = tokens[position]
        position += 1

    for index in range(position, len(tokens)):
        if tokens[index].startswith(":"):
            content = " ".join(tokens[index:])[1:]
            break
        params.append(tokens[index])

    username = prefix.split("!", 1)[0] if "!" in prefix else ""

    channel = ""
    if params and params[0].startswith("#"):
        channel = params[0][1:]

    author = Author(
        username=username,
        display_name=tags.get("display-name", username),
        color=tags.get("color", ""),
        badges=parse_badges(tags.get("badges", "")),
    )

    return ParsedMessage(
        raw=raw_line,
        tags=tags,
        prefix=prefix,
        command=command,
        params=params,
        content=content,
        author=author,
        channel=channel,
        emotes=parse_emotes(tags.get("emotes", "")),
        id=tags.get("id", ""),
        timestamp=parse_timestamp(tags.get("tmi-sent-ts")),
    )


def split_lines(frame: str) -> list[str]:
    """Split a websocket frame into protocol lines.

    The server may batch several CRLF-terminated lines into one frame. A
    frame without a terminator is a single line. Blank lines are dropped.
    """
    lines = []
    for line in frame.split("\n"):
        if line.endswith("\r"):
            line = line[:-1]
        if line:
            lines.append(line)
    return lines


def is_ping(line: str) -> bool:
    """Check if a line is a keepalive probe from the server."""
    return line.startswith("PING")


def redact(line: str) -> str:
    """Hide the credential of a PASS line for logging."""
    if line.startswith("PASS "):
        return "PASS ***"
    return line


class ProtocolHandler:
    """Handles chat protocol parsing and formatting."""

    def parse_message(self, raw_line: str) -> ParsedMessage:
        """Parse a raw protocol line into a message object."""
        message = parse_message(raw_line)
        if not message.command:
            logger.debug(f"Line has no command: {raw_line!r}")
        return message

    def format_pass(self, token: str) -> str:
        """Format the authentication line."""
        return f"PASS {token}"

    def format_nick(self, username: str) -> str:
        """Format the identification line."""
        return f"NICK {username}"

    def format_join(self, channel: str) -> str:
        """Format a channel join line."""
        return f"JOIN #{channel}"

    def format_cap_request(self) -> str:
        """Format the capability request for tags, commands and membership."""
        return f"CAP REQ :{' '.join(CAPABILITIES)}"

    def format_chat_message(self, channel: str, text: str) -> str:
        """Format an outgoing chat message for transmission.

        Args:
            channel: Channel name without the leading '#'
            text: Message content, sent as-is

        Returns:
            PRIVMSG line ready for websocket transmission
        """
        return f"PRIVMSG #{channel} :{text}"

    def format_ping(self) -> str:
        """Format a client keepalive probe."""
        return f"PING :{SERVER_NAME}"

    def format_pong(self) -> str:
        """Format the reply to a server keepalive probe."""
        return f"PONG :{SERVER_NAME}"

    def handshake(self, username: str, token: str, channel: str) -> list[str]:
        """Lines sent right after the transport opens, in order."""
        return [
            self.format_pass(token),
            self.format_nick(username),
            self.format_join(channel),
            self.format_cap_request(),
        ]


def endpoint_is_valid(url: str) -> bool:
    """Check that url is a ws:// or wss:// URL with a host."""
    try:
        parsed = urlparse(url)
        return parsed.scheme in ("ws", "wss") and bool(parsed.hostname)
    except ValueError:
        return False
