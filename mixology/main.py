"""CLI entry point for the Mixology agent.

A terminal chat loop for testing and development.  For production, use the
FastAPI server (mixology/server.py).

Usage:
    python -m mixology.main                    # web formatting, quiet
    python -m mixology.main --channel sms      # see SMS segmentation
    python -m mixology.main --debug            # show API calls
"""

from __future__ import annotations

import argparse
import logging
import uuid

from dotenv import load_dotenv

from mixology.conversation import build_conversation_service
from mixology.errors import ModelInvocationError
from mixology.models import ChannelTag

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("mixology").setLevel(logging.DEBUG if debug else logging.INFO)


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Mixology Agent CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    parser.add_argument(
        "--channel", choices=[tag.value for tag in ChannelTag], default=ChannelTag.WEB.value,
        help="Channel used to format replies",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  Mixology - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new thread,")
    print("            'history' to show this thread.")
    print("=" * 60 + "\n")

    service = build_conversation_service()
    thread = str(uuid.uuid4())
    logger.info("Started new thread: %s", thread)

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nCheers!")
            break

        if not user_input:
            continue

        command = user_input.lower()
        if command in ("exit", "quit", "q"):
            print("\nCheers!")
            break
        if command == "new":
            thread = str(uuid.uuid4())
            print(f"\n>> New thread started: {thread[:8]}...\n")
            continue
        if command == "history":
            for msg in service.get_history(thread):
                print(f"  [{msg.role.value}] {msg.content}")
            print()
            continue

        try:
            result = service.send_message(user_input, thread=thread, user="cli", channel=args.channel)
            print()
            for msg in result.messages:
                print(f"Mixology: {msg.content}\n")
        except KeyboardInterrupt:
            print("\n\nCheers!")
            break
        except ModelInvocationError as e:
            print(f"\nMixology: The language model is unavailable right now ({e}).")
            print("          Please try again in a moment.\n")
        except Exception as e:
            logger.exception("Error processing message")
            print(f"\nMixology: I'm sorry, something went wrong: {e}")
            print("          Please try again or type 'new' to start a fresh thread.\n")


if __name__ == "__main__":
    main()
