from abc import ABC, abstractmethod


class MessagePlatformPort(ABC):
    """Outbound chat channel; one call per reply text, in order."""

    @abstractmethod
    def send_text(self, recipient_id: str, text: str) -> None:
        raise NotImplementedError
