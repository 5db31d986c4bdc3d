from __future__ import annotations

from clinic_bot.domain.entities.conversation_state import ConversationState, Step


def reset_flow(step: Step = Step.MENU) -> ConversationState:
    """Drop everything collected so far and park the sender at `step`."""
    return ConversationState(step=step)


def restart_booking(state: ConversationState) -> ConversationState:
    """Reset booking state to its first step, clearing collected fields and cached dates."""
    return ConversationState(step=Step.BOOKING_PERSON_ID, updated_at=state.updated_at)


def restart_cancelling() -> ConversationState:
    """Reset cancellation state to its first step, clearing cached matches."""
    return ConversationState(step=Step.CANCEL_PERSON_ID)
