#!/usr/bin/env python3
"""
twitchkit - Python websocket chat library for Twitch chat

This file serves as a demo of the library capabilities.
For real usage, see the examples/ directory.
"""

import asyncio
import logging
import os
import sys
import time

import twitchkit

# Set up logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def describe(message: twitchkit.ParsedMessage) -> str:
    """Format a chat message for the console."""
    author = message.author
    name = author.display_name or author.username
    if author.is_broadcaster():
        name = f"📺 {name}"
    elif author.is_moderator():
        name = f"🛡️ {name}"

    if message.is_action():
        return f"* {name} {message.get_action_text()}"

    text = f"[{name}]: {message.content}"
    if message.emotes:
        text += f"  ({len(message.emotes)} emotes)"
    return text


def sync_demo(username: str, token: str, channel: str) -> None:
    """Demonstrate synchronous API usage."""
    print("\n=== Synchronous Demo ===")

    def on_message(message: twitchkit.ParsedMessage, session: twitchkit.Session) -> None:
        print(f"📝 {describe(message)}")

        # Demo auto-responses
        if message.content == "!info":
            session.send_chat_message(f"twitchkit v{twitchkit.__version__} sync demo")

    def on_disconnect(error: Exception | None, session: twitchkit.Session) -> None:
        if error is not None:
            print(f"⚠️ Connection lost: {error}")

    def on_error(error: Exception, session: twitchkit.Session) -> None:
        print(f"❌ Error: {error}")

    session = twitchkit.Session(username, token, channel, url=twitchkit.ChatEndpoint.DEFAULT)
    session.set_message_handler(on_message)
    session.set_disconnect_handler(on_disconnect)
    session.set_error_handler(on_error)

    try:
        print("🔗 Connecting to chat...")
        session.connect()
        if not session.is_connected():
            return

        print(f"✅ Connected to #{session.channel}! Listening for 10 seconds...")
        for _ in range(10):
            if not session.is_connected():
                break
            time.sleep(1)

    finally:
        session.disconnect()
        print("🔌 Disconnected")


async def async_demo(username: str, token: str, channel: str) -> None:
    """Demonstrate asynchronous API usage."""
    print("\n=== Asynchronous Demo ===")

    session = twitchkit.AsyncSession(username, token, channel)

    @session.set_message_handler
    async def on_message(
        message: twitchkit.ParsedMessage, session: twitchkit.AsyncSession
    ) -> None:
        print(f"📝 {describe(message)}")

        if message.content == "!async":
            await asyncio.sleep(0.5)  # Async delay
            await session.send_chat_message("This is async twitchkit! ⚡")

    @session.set_error_handler
    def on_error(error: Exception, session: twitchkit.AsyncSession) -> None:
        print(f"❌ Async Error: {error}")

    print("🔗 Connecting to chat (async)...")
    async with session:  # Context manager auto-handles connection
        if session.is_connected():
            print(f"✅ Connected to #{session.channel}! Listening for 10 seconds...")

        for _ in range(10):
            if not session.is_connected():
                break
            await asyncio.sleep(1)

    print("🔌 Disconnected (auto-closed by context manager)")


def show_library_info() -> None:
    """Show library information and capabilities."""
    print(
        f"""
🚀 twitchkit v{twitchkit.__version__}
   Python websocket chat library for Twitch

📦 Available Models:
   • ParsedMessage, Author, EmoteOccurrence
   • ConnectionState

🎯 Features:
   • Sync & Async APIs
   • Type-safe with Pydantic
   • Badges, emotes and timestamps from IRCv3 tags
   • Automatic PING/PONG and keepalive probes

📖 Examples available in examples/ directory
🧪 Run tests with: pytest
"""
    )


def main() -> None:
    """Main demo function."""
    args = sys.argv[1:]
    username = args[0] if len(args) > 0 else os.environ.get("TWITCH_USERNAME", "")
    token = args[1] if len(args) > 1 else os.environ.get("TWITCH_TOKEN", "")
    channel = args[2] if len(args) > 2 else os.environ.get("TWITCH_CHANNEL", "")

    show_library_info()

    if username and token and channel:
        print(f"\n🔑 Using credentials for {username}")

        try:
            sync_demo(username, token, channel)
            asyncio.run(async_demo(username, token, channel))
        except KeyboardInterrupt:
            print("\n⏹️  Demos interrupted by user")
    else:
        print(
            """
ℹ️  To run interactive demos, provide credentials:
   python main.py USERNAME oauth:TOKEN CHANNEL

   or set TWITCH_USERNAME, TWITCH_TOKEN and TWITCH_CHANNEL.

🔧 For development:
   pip install -e .[dev]
   pytest                    # Run tests
   python examples/simple_sync.py     # Sync example
   python examples/simple_async.py    # Async example
"""
        )


if __name__ == "__main__":
    main()
