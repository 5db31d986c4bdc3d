from __future__ import annotations

import threading

from clinic_bot.application.ports.session_store import SessionStorePort
from clinic_bot.domain.entities.conversation_state import ConversationState


class MemorySessionStore(SessionStorePort):
    """Process-local session table. In-flight dialogues are lost on restart."""

    def __init__(self) -> None:
        self._states: dict[str, ConversationState] = {}
        self._lock = threading.Lock()

    def get(self, sender_id: str) -> ConversationState | None:
        with self._lock:
            return self._states.get(sender_id)

    def put(self, sender_id: str, state: ConversationState) -> None:
        with self._lock:
            self._states[sender_id] = state

    def delete(self, sender_id: str) -> None:
        with self._lock:
            self._states.pop(sender_id, None)

    def __len__(self) -> int:
        return len(self._states)
