#!/usr/bin/env python3
"""
Interactive local chat harness (no HTTP, no WhatsApp).

Usage:
  python3 scripts/chat_local.py

What it does:
- Keeps a stable sender_id for the session
- Sends your typed messages through the same HandleIncomingMessageUseCase
- Prints the replies and the sender's conversation step after each message
"""

from __future__ import annotations

import os
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from clinic_bot.main import initialize_store  # noqa: E402
from clinic_bot.wiring.dependencies import (  # noqa: E402
    get_handle_incoming_message_use_case,
    get_notification_gateway,
    get_session_store,
)


def _print_header(sender_id: str) -> None:
    print("\nLocal Chat Harness")
    print("-" * 60)
    print(f"sender_id: {sender_id}")
    print("Type your message and press Enter.")
    print("Commands: /new (new sender), /state, /quit, /help")
    print("-" * 60)


def main() -> None:
    sender_id = os.getenv("CHAT_SENDER_ID", "573000000000")
    initialize_store()
    use_case = get_handle_incoming_message_use_case()
    sessions = get_session_store()
    _print_header(sender_id)

    try:
        while True:
            try:
                user_text = input("\n> ").strip()
            except (EOFError, KeyboardInterrupt):
                print("\nBye!")
                return

            cmd = user_text.lower()
            if cmd in ("/quit", "/exit"):
                print("Bye!")
                return
            if cmd == "/help":
                print("Commands:")
                print("  /new   -> start over as a different sender")
                print("  /state -> show the sender's conversation state")
                print("  /quit  -> exit")
                continue
            if cmd == "/new":
                sender_id = f"57{int(time.time())}"
                print(f"New sender_id: {sender_id}")
                continue
            if cmd == "/state":
                state = sessions.get(sender_id)
                print(state if state else "(idle)")
                continue

            replies = use_case.reply(sender_id=sender_id, text=user_text)

            print("\n--- Reply ---")
            for reply in replies or ["(no outbound message)"]:
                print(reply)
                print()
            state = sessions.get(sender_id)
            print(f"[step: {state.step.value if state else 'menu'}]")
            print("-" * 60)
    finally:
        get_notification_gateway().shutdown(wait=True)


if __name__ == "__main__":
    main()
