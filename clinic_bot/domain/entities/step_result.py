from __future__ import annotations

from dataclasses import dataclass, field

from clinic_bot.domain.entities.appointment import Appointment
from clinic_bot.domain.entities.conversation_state import ConversationState


@dataclass(frozen=True)
class BookingCommitted:
    appointment: Appointment


@dataclass(frozen=True)
class StoreChanged:
    reason: str  # "cancelled", ...


SideEffect = BookingCommitted | StoreChanged


@dataclass(frozen=True)
class StepResult:
    messages: list[str]
    state: ConversationState
    effects: list[SideEffect] = field(default_factory=list)
