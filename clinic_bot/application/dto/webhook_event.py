from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from clinic_bot.domain.entities.message import Message


class WebhookEventDTO(BaseModel):
    object: str | None = None
    entry: list[dict[str, Any]] = Field(default_factory=list)

    def extract_messages(self) -> list[Message]:
        """Text messages from a WhatsApp Cloud API delivery; statuses and media are skipped."""
        messages: list[Message] = []
        for entry in self.entry or []:
            for change in entry.get("changes", []) or []:
                value = change.get("value") or {}
                for msg in value.get("messages", []) or []:
                    if msg.get("type") != "text":
                        continue
                    text = (msg.get("text") or {}).get("body")
                    mid = msg.get("id")
                    sender = msg.get("from")
                    timestamp = msg.get("timestamp")

                    if not (mid and sender and text and timestamp):
                        continue

                    try:
                        sent_at = int(timestamp)
                    except (TypeError, ValueError):
                        continue

                    messages.append(
                        Message(
                            id=str(mid),
                            sender_id=str(sender),
                            text=str(text),
                            timestamp=sent_at,
                            platform="whatsapp",
                        )
                    )

        return messages
