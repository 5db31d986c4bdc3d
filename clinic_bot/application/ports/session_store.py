from abc import ABC, abstractmethod

from clinic_bot.domain.entities.conversation_state import ConversationState


class SessionStorePort(ABC):
    @abstractmethod
    def get(self, sender_id: str) -> ConversationState | None:
        raise NotImplementedError

    @abstractmethod
    def put(self, sender_id: str, state: ConversationState) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, sender_id: str) -> None:
        raise NotImplementedError
