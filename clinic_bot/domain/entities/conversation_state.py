from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from clinic_bot.domain.entities.appointment import Appointment
from clinic_bot.domain.entities.booking_draft import BookingDraft


class Flow(str, Enum):
    NONE = "none"
    BOOKING = "booking"
    LISTING = "listing"
    CANCELLING = "cancelling"


class Step(str, Enum):
    MENU = "menu"
    BOOKING_PERSON_ID = "booking.await_person_id"
    BOOKING_FULL_NAME = "booking.await_full_name"
    BOOKING_PHONE = "booking.await_phone"
    BOOKING_DATE = "booking.await_date_choice"
    BOOKING_TIME = "booking.await_time_choice"
    LISTING_PERSON_ID = "listing.await_person_id"
    CANCEL_PERSON_ID = "cancelling.await_person_id"
    CANCEL_SELECTION = "cancelling.await_selection"
    CANCEL_CONFIRMATION = "cancelling.await_confirmation"

    @property
    def flow(self) -> Flow:
        prefix = self.value.split(".", 1)[0]
        return {
            "booking": Flow.BOOKING,
            "listing": Flow.LISTING,
            "cancelling": Flow.CANCELLING,
        }.get(prefix, Flow.NONE)


@dataclass(frozen=True)
class ConversationState:
    step: Step = Step.MENU
    draft: BookingDraft = field(default_factory=BookingDraft)
    candidate_dates: tuple[str, ...] = ()  # DD-MM-YYYY, cached for the booking session
    candidate_appointments: tuple[Appointment, ...] = ()  # cancellation matches
    selected_appointment: Appointment | None = None
    updated_at: float | None = None

    @property
    def flow(self) -> Flow:
        return self.step.flow

    @property
    def is_idle(self) -> bool:
        """True when nothing is in progress and the state need not be kept."""
        return (
            self.step is Step.MENU
            and self.draft == BookingDraft()
            and not self.candidate_dates
            and not self.candidate_appointments
            and self.selected_appointment is None
        )
