from __future__ import annotations

import logging
import threading
from collections import OrderedDict

import httpx

from clinic_bot.application.ports.session_store import SessionStorePort
from clinic_bot.application.use_cases.conversation_engine import ConversationEngine
from clinic_bot.application.use_cases.notification_gateway import NotificationGateway
from clinic_bot.application.use_cases.send_reply import SendReplyUseCase
from clinic_bot.application.utils import templates
from clinic_bot.domain.entities.conversation_state import ConversationState
from clinic_bot.domain.entities.message import Message
from clinic_bot.domain.entities.step_result import StepResult


class HandleIncomingMessageUseCase:
    """
    Entry point for inbound chat text.

    Steps from the same sender are serialized by a per-sender lock; different
    senders proceed concurrently and share only the appointment store.
    """

    def __init__(
        self,
        engine: ConversationEngine,
        sessions: SessionStorePort,
        send_reply: SendReplyUseCase,
        notifier: NotificationGateway,
        processed_cache_size: int = 1000,
    ) -> None:
        self._engine = engine
        self._sessions = sessions
        self._send_reply = send_reply
        self._notifier = notifier
        self._sender_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._processed: OrderedDict[str, None] = OrderedDict()
        self._processed_guard = threading.Lock()
        self._processed_cache_size = processed_cache_size
        self._logger = logging.getLogger(__name__)

    def handle(self, message: Message) -> list[str]:
        """Process a transport message and deliver the replies to the sender."""
        if not self._mark_processed(message.id):
            self._logger.info("Duplicate message ignored", extra={"message_id": message.id})
            return []
        return self._run(message.sender_id, message.text, deliver=True)

    def reply(self, sender_id: str, text: str) -> list[str]:
        """Process text and return the replies without sending them."""
        return self._run(sender_id, text, deliver=False)

    def _run(self, sender_id: str, text: str, deliver: bool) -> list[str]:
        with self._lock_for(sender_id):
            result = self._step(sender_id, text)
            if deliver:
                self._deliver(sender_id, result.messages)

        # Replies never wait on backup or email
        if result.effects:
            self._notifier.dispatch(result.effects)
        return result.messages

    def _step(self, sender_id: str, text: str) -> StepResult:
        state = self._sessions.get(sender_id)
        try:
            result = self._engine.step(sender_id, text, state)
        except Exception as e:
            self._logger.exception(
                "Error processing conversation step", extra={"sender_id": sender_id, "error": str(e)}
            )
            self._sessions.delete(sender_id)
            return StepResult(messages=[templates.GENERIC_ERROR], state=ConversationState())

        if result.state.is_idle:
            self._sessions.delete(sender_id)
        else:
            self._sessions.put(sender_id, result.state)

        self._logger.info(
            "Message handled",
            extra={
                "sender_id": sender_id,
                "flow": result.state.flow.value,
                "step": result.state.step.value,
                "message_count": len(result.messages),
            },
        )
        return result

    def _deliver(self, sender_id: str, messages: list[str]) -> None:
        for text in messages:
            try:
                self._send_reply.execute(sender_id, text)
            except httpx.HTTPError as e:
                self._logger.error(
                    "Reply delivery failed", extra={"sender_id": sender_id, "error": str(e)}
                )
                return

    def _lock_for(self, sender_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._sender_locks.get(sender_id)
            if lock is None:
                lock = self._sender_locks[sender_id] = threading.Lock()
            return lock

    def _mark_processed(self, message_id: str) -> bool:
        with self._processed_guard:
            if message_id in self._processed:
                return False
            self._processed[message_id] = None
            if len(self._processed) > self._processed_cache_size:
                self._processed.popitem(last=False)
            return True
