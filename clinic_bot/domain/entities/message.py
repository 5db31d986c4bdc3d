from dataclasses import dataclass


@dataclass(frozen=True)
class Message:
    id: str  # transport message id, used to drop redeliveries
    sender_id: str  # WhatsApp phone number, also the conversation key
    text: str
    timestamp: int
    platform: str
