#!/usr/bin/env python3
"""
Simple synchronous twitchkit example.

This example demonstrates basic usage of the synchronous Session class
for connecting to Twitch chat and sending messages.
"""

import os

from twitchkit import ChatEndpoint, Session


def main():
    """Main function demonstrating synchronous chat usage."""

    # Create a session for the TLS endpoint
    # For an unencrypted connection, use: url=ChatEndpoint.PLAINTEXT
    session = Session(
        username=os.environ.get("TWITCH_USERNAME", "your_bot_name"),
        token=os.environ.get("TWITCH_TOKEN", "oauth:your_token_here"),
        channel=os.environ.get("TWITCH_CHANNEL", "your_channel"),
        url=ChatEndpoint.DEFAULT,
        user_agent="twitchkit-example/1.0",
    )

    # Set up event handlers
    @session.set_message_handler
    def on_message(message, session):
        print(f"{message.author.display_name or message.author.username}: {message.content}")

    @session.set_error_handler
    def on_error(error, session):
        print(f"Error: {error}")

    try:
        print(f"Connecting to {session.url}...")
        session.connect()
        if not session.is_connected():
            return
        print("Connected! Type 'quit' to exit.")

        # Send a test message
        session.send_chat_message("Hello from twitchkit!")

        # Keep the connection alive and handle user input
        while session.is_connected():
            user_input = input("> ")
            if user_input.lower() == "quit":
                break
            elif user_input.strip():
                session.send_chat_message(user_input)

    except KeyboardInterrupt:
        print("\nGracefully shutting down...")
    finally:
        session.disconnect()
        print("Disconnected.")


if __name__ == "__main__":
    main()
