#!/usr/bin/env python3
"""
Simple asynchronous twitchkit example.

This example demonstrates basic usage of the asynchronous AsyncSession class
for connecting to Twitch chat and replying to chat commands.
"""

import asyncio
import os

from twitchkit import AsyncSession, ChatEndpoint


async def main():
    """Main async function demonstrating asynchronous chat usage."""

    session = AsyncSession(
        username=os.environ.get("TWITCH_USERNAME", "your_bot_name"),
        token=os.environ.get("TWITCH_TOKEN", "oauth:your_token_here"),
        channel=os.environ.get("TWITCH_CHANNEL", "your_channel"),
        url=ChatEndpoint.DEFAULT,
        user_agent="twitchkit-async-example/1.0",
    )

    # Coroutine handlers are awaited on the event loop
    @session.set_message_handler
    async def on_message(message, session):
        print(f"{message.author.username}: {message.content}")

        if message.content == "!hello" and message.author.is_subscriber():
            await session.send_chat_message(f"Hi {message.author.display_name}!")

    @session.set_disconnect_handler
    def on_disconnect(error, session):
        if error is not None:
            print(f"Connection lost: {error}")

    @session.set_error_handler
    def on_error(error, session):
        print(f"Error: {error}")

    try:
        print(f"Connecting to {session.url}...")
        await session.connect()
        if not session.is_connected():
            return
        print("Connected!")

        # Keep the connection alive for a bit
        await asyncio.sleep(60)

    finally:
        await session.disconnect()
        print("Disconnected.")


if __name__ == "__main__":
    asyncio.run(main())
