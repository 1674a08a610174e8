"""Data models for twitchkit.

Defines Pydantic models for parsed chat lines and their authors.
All models are immutable and provide type-safe representations of
chat protocol messages.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

EMOTE_CDN_URL = "https://static-cdn.jtvnw.net/emoticons/v2/{id}/default/dark/3.0"

ACTION_PREFIX = "\x01ACTION "


class ConnectionState(Enum):
    """Lifecycle states of a chat session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"


class EmoteOccurrence(BaseModel):
    """One place in a message where an emote replaces literal text."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Emote identifier")
    start_index: int = Field(description="Inclusive start offset into content")
    end_index: int = Field(description="Inclusive end offset into content")

    @property
    def url(self) -> str:
        """CDN URL of the emote image."""
        return EMOTE_CDN_URL.format(id=self.id)


class Author(BaseModel):
    """The user who sent a chat line."""

    model_config = ConfigDict(frozen=True)

    username: str = Field(default="", description="Login name from the prefix")
    display_name: str = Field(default="", description="Name as shown in chat")
    color: str = Field(default="", description="Name color, e.g. #0000FF")
    badges: dict[str, str] = Field(
        default_factory=dict, description="Badge name to badge version"
    )

    def has_badge(self, name: str) -> bool:
        """Check if the author carries a badge, whatever its version."""
        return name in self.badges

    def is_moderator(self) -> bool:
        """Check if the author is a channel moderator."""
        return self.has_badge("moderator")

    def is_subscriber(self) -> bool:
        """Check if the author is subscribed to the channel."""
        return self.has_badge("subscriber")

    def is_broadcaster(self) -> bool:
        """Check if the author owns the channel."""
        return self.has_badge("broadcaster")


class ParsedMessage(BaseModel):
    """A single protocol line broken into its parts."""

    model_config = ConfigDict(frozen=True)

    raw: str = Field(description="The line as received")
    tags: dict[str, str] = Field(default_factory=dict, description="IRCv3 tags")
    prefix: str = Field(default="", description="Source nick!user@host or server")
    command: str = Field(default="", description="Protocol verb, e.g. PRIVMSG")
    params: list[str] = Field(default_factory=list, description="Middle parameters")
    content: str = Field(default="", description="Trailing argument")
    author: Author = Field(default_factory=Author, description="Who sent the line")
    channel: str = Field(default="", description="Channel name without '#'")
    emotes: list[EmoteOccurrence] = Field(
        default_factory=list, description="Emote positions in parse order"
    )
    id: str = Field(default="", description="Message id tag")
    timestamp: datetime | None = Field(
        default=None, description="When the server sent the message"
    )

    def is_action(self) -> bool:
        """Check if this is an action message (/me command)."""
        return self.content.startswith(ACTION_PREFIX)

    def get_action_text(self) -> str | None:
        """Get action text if this is an action message."""
        if self.is_action():
            return self.content[len(ACTION_PREFIX) :].rstrip("\x01")
        return None
